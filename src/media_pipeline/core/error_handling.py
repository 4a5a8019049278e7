# src/media_pipeline/core/error_handling.py

import functools
import logging

from botocore.exceptions import BotoCoreError, ClientError

from .exceptions import MediaPipelineError, QueueUnavailable, StoreUnavailable

NOT_FOUND_ERROR_CODES = ("NoSuchKey", "404", "NotFound")


def client_error_code(error: ClientError) -> str:
    return str(error.response.get("Error", {}).get("Code", ""))


def is_not_found_error(error: BaseException) -> bool:
    """True when a botocore error means the requested key does not exist."""
    return isinstance(error, ClientError) and client_error_code(error) in NOT_FOUND_ERROR_CODES


def _translate_boto_errors(unavailable_error):
    def decorator(func):
        @functools.wraps(func)
        def wrapper(*args, **kwargs):
            logger = logging.getLogger(func.__module__ + '.' + func.__name__)
            try:
                return func(*args, **kwargs)
            except MediaPipelineError:
                raise
            except (ClientError, BotoCoreError) as e:
                logger.error(f"Error in '{func.__name__}': {e}", exc_info=True)
                raise unavailable_error(f"{func.__name__} failed: {e}") from e
        return wrapper
    return decorator


# Applied at the adapter boundary so callers only ever see the pipeline taxonomy.
translate_store_errors = _translate_boto_errors(StoreUnavailable)
translate_queue_errors = _translate_boto_errors(QueueUnavailable)


class BatchOperationContextManager:
    """
    Context manager for consumer runs to collect and summarize failed messages.
    """
    def __init__(self, operation_name="Consumer Run"):
        self.operation_name = operation_name
        self.errors = []
        self.logger = logging.getLogger(self.__class__.__module__ + '.' + self.__class__.__name__)

    def __enter__(self):
        self.logger.info(f"Starting {self.operation_name}.")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if self.errors:
            self.logger.warning(
                f"{self.operation_name} completed with {len(self.errors)} failed message(s)."
            )
            for i, error_detail in enumerate(self.errors):
                self.logger.error(
                    f"  Failure {i+1}/{len(self.errors)} for message '{error_detail['item']}' "
                    f"({error_detail['disposition']}): {error_detail['error']}"
                )
        if exc_type:
            self.logger.error(
                f"{self.operation_name} failed due to an unhandled exception: {exc_val}",
                exc_info=(exc_type, exc_val, exc_tb)
            )
        elif not self.errors:
            self.logger.info(f"{self.operation_name} completed successfully.")

        # Exceptions raised inside the block are never suppressed
        return False

    def add_error(self, error_message: str, item_identifier: str = "Unknown message", disposition: str = "drop"):
        """
        Report a message that was dropped or abandoned during the run.

        Args:
            error_message (str): The error message or exception string.
            item_identifier (str): Message id or source key of the failed message.
            disposition (str): What the worker did with the message.
        """
        self.errors.append(
            {"item": item_identifier, "error": str(error_message), "disposition": disposition}
        )
        self.logger.debug(f"Error added for message '{item_identifier}' in {self.operation_name}: {error_message}")
