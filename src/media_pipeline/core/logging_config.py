"""Centralized logging configuration for the media pipeline.

Every pipeline logger lives under the ``media-pipeline`` hierarchy and
propagates to it; only that parent carries a handler.
"""

import os
import sys
import logging
from typing import Optional

DEFAULT_LOGGER_NAME = "media-pipeline"

LOG_FORMATS = {
    # Thread name distinguishes consumers in a multithreaded pool
    "structured": (
        "%(asctime)s | %(name)s | %(levelname)-8s | %(threadName)s | "
        "%(filename)s:%(lineno)d | %(funcName)s() | %(message)s"
    ),
    "simple": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
}

# boto debug output includes signed request headers
QUIET_LOGGERS = ("botocore", "boto3", "urllib3", "s3transfer", "PIL")


def _resolve_level(level: Optional[str]) -> int:
    name = level or os.getenv("MEDIA_PIPELINE_LOG_LEVEL") or os.getenv("LOG_LEVEL", "INFO")
    return getattr(logging, name.upper(), logging.INFO)


def setup_logger(
    name: str = DEFAULT_LOGGER_NAME,
    level: Optional[str] = None,
    format_type: str = "structured",
) -> logging.Logger:
    """
    Configure the pipeline's parent logger from arguments and environment.

    Args:
        name: Logger name (defaults to "media-pipeline")
        level: Log level override (defaults to env var or INFO)
        format_type: Logging format ("structured" or "simple")

    Returns:
        Configured logger instance

    Environment Variables:
        MEDIA_PIPELINE_LOG_LEVEL: Logging level; LOG_LEVEL is the fallback
        MEDIA_PIPELINE_LOG_FORMAT: Format type ("structured" or "simple")
    """
    logger = logging.getLogger(name)
    logger.setLevel(_resolve_level(level))

    if not logger.handlers:
        format_name = os.getenv("MEDIA_PIPELINE_LOG_FORMAT", format_type).lower()
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            logging.Formatter(
                LOG_FORMATS.get(format_name, LOG_FORMATS["structured"]),
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )
        logger.addHandler(handler)

    logger.propagate = False

    for library in QUIET_LOGGERS:
        logging.getLogger(library).setLevel(logging.WARNING)
    return logger


def get_logger(name: str = DEFAULT_LOGGER_NAME) -> logging.Logger:
    """
    Get a logger inside the pipeline hierarchy.

    Short names such as ``"video"`` become ``"media-pipeline.video"`` so their
    records reach the handler configured by ``setup_logger``.

    Args:
        name: Logger name

    Returns:
        Logger instance
    """
    if name == DEFAULT_LOGGER_NAME:
        return setup_logger(name)
    if not name.startswith(DEFAULT_LOGGER_NAME + "."):
        name = f"{DEFAULT_LOGGER_NAME}.{name}"
    return logging.getLogger(name)


def set_log_level(level: str) -> None:
    """Change the level of the whole pipeline hierarchy at runtime."""
    logging.getLogger(DEFAULT_LOGGER_NAME).setLevel(_resolve_level(level))


# Create default logger instance
logger = setup_logger()
