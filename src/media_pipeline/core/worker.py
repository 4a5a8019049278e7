"""Pipeline worker: executes one processing request end to end."""

import json
import time
from typing import Any, Dict, Mapping, Optional, Union

from .exceptions import (
    ConfigurationError,
    MalformedRequest,
    ObjectNotFound,
    QueueUnavailable,
    SourceNotFound,
    StoreUnavailable,
    TransformFailure,
)
from .models import (
    Disposition,
    EngineKind,
    MessageOutcome,
    ProcessingRequest,
    ProcessingResult,
    QueueMessage,
)
from .observability import LogContext, MetricsCollector, PerformanceMetrics, create_logger
from .protocols import ContentStoreProtocol, EngineProtocol, LoggerProtocol, WorkQueueProtocol
from .routing import plan_for_request

# Never retried: the same message fails identically on every delivery
DROP_ERRORS = (MalformedRequest, SourceNotFound, TransformFailure)
# Transient infrastructure trouble: let the queue redeliver
ABANDON_ERRORS = (StoreUnavailable, QueueUnavailable)


def encode_analysis_result(result: Mapping[str, Any]) -> bytes:
    """Canonical JSON so re-running an analysis writes identical bytes."""
    return json.dumps(result, sort_keys=True, separators=(",", ":"), default=str).encode(
        "utf-8"
    )


class PipelineWorker:
    """Stateless consumer of processing requests.

    The worker owns nothing between requests. Results leave only as a derived
    artifact written to the store and two metadata tags on the source object.
    """

    def __init__(
        self,
        store: ContentStoreProtocol,
        engines: Mapping[EngineKind, EngineProtocol],
        queue: Optional[WorkQueueProtocol] = None,
        logger: Optional[LoggerProtocol] = None,
        metrics_collector: Optional[MetricsCollector] = None,
    ):
        self._store = store
        self._engines: Dict[EngineKind, EngineProtocol] = dict(engines)
        self._queue = queue
        self._logger = logger or create_logger("media-pipeline.worker")
        self._metrics_collector = metrics_collector

    @property
    def queue(self) -> Optional[WorkQueueProtocol]:
        return self._queue

    def handle(self, request: ProcessingRequest) -> ProcessingResult:
        """Download, transform, upload and tag. Raises on any failure."""
        start_time = time.time()
        log_context = LogContext.for_request(request, "handle", "pipeline_worker")

        success = False
        error_message = None
        try:
            plan = plan_for_request(request)
            engine = self._engines.get(plan.route.engine)
            if engine is None:
                raise ConfigurationError(f"No {plan.route.engine.value} engine configured")

            self._logger.debug("Downloading source", log_context.with_operation("download_source"))
            try:
                data = self._store.get(request.namespace, request.source_key)
            except ObjectNotFound as e:
                raise SourceNotFound(request.namespace, request.source_key) from e

            self._logger.debug(
                f"Applying {plan.route.engine.value} engine",
                log_context.with_operation("apply_engine"),
            )
            output: Union[bytes, Mapping[str, Any]] = engine.apply(
                data, request.processing_type, plan.parameters
            )
            if plan.route.engine == EngineKind.ANALYSIS:
                body = encode_analysis_result(output)  # type: ignore[arg-type]
            else:
                body = output  # type: ignore[assignment]

            self._logger.debug(
                "Uploading artifact",
                log_context.with_operation("upload_artifact"),
                derived_key=plan.key,
            )
            self._store.put(plan.namespace.value, plan.key, body, plan.content_type)

            self._logger.debug("Tagging source", log_context.with_operation("tag_source"))
            self._tag_source(request)

            success = True
            result = ProcessingResult(
                source_key=request.source_key,
                processing_type=request.processing_type,
                media_id=request.media_id,
                output_namespace=plan.namespace.value,
                derived_key=plan.key,
                content_type=plan.content_type,
                success=True,
                processing_time=time.time() - start_time,
            )
            self._logger.info(
                "Processed request",
                log_context,
                derived_key=plan.key,
                processing_time_ms=result.processing_time * 1000,
            )
            return result
        except Exception as e:
            error_message = str(e)
            raise
        finally:
            if self._metrics_collector:
                self._metrics_collector.record_metric(
                    PerformanceMetrics(
                        operation="handle_request",
                        start_time=start_time,
                        end_time=time.time(),
                        success=success,
                        error_message=error_message,
                        metadata={"processing_type": request.processing_type.value},
                    )
                )

    def process_message(self, message: QueueMessage) -> MessageOutcome:
        """Handle one leased message and settle it; never raises."""
        log_context = LogContext.for_message(message, "pipeline_worker")

        request: Optional[ProcessingRequest] = None
        result: Optional[ProcessingResult] = None
        error = ""
        try:
            request = ProcessingRequest.from_message(message.body)
            result = self.handle(request)
            disposition = Disposition.ACK
        except DROP_ERRORS as e:
            disposition = Disposition.DROP
            error = f"{type(e).__name__}: {e}"
            self._logger.error("Dropping message", log_context, error=error)
        except ABANDON_ERRORS as e:
            disposition = Disposition.ABANDON
            error = f"{type(e).__name__}: {e}"
            self._logger.warning("Abandoning message for redelivery", log_context, error=error)
        except Exception as e:  # noqa: BLE001
            # One poisoned message must not stop the consumer loop
            disposition = Disposition.ABANDON
            error = f"{type(e).__name__}: {e}"
            self._logger.error(
                "Unexpected error, abandoning message", log_context, error=error, exc_info=True
            )

        if result is None:
            result = ProcessingResult(
                source_key=request.source_key if request else "",
                processing_type=request.processing_type if request else None,
                media_id=request.media_id if request else None,
                success=False,
                error=error,
            )

        self._settle(message, disposition, log_context)
        return MessageOutcome(
            message_id=message.message_id,
            disposition=disposition,
            result=result,
            error=error,
        )

    def _tag_source(self, request: ProcessingRequest) -> None:
        try:
            tags = {"processed": "true", "processingType": request.processing_type.value}
            # S3 returns user metadata keys lowercased
            replaced = {key.lower() for key in tags}
            metadata = {
                key: value
                for key, value in self._store.get_metadata(
                    request.namespace, request.source_key
                ).items()
                if key.lower() not in replaced
            }
            metadata.update(tags)
            self._store.set_metadata(request.namespace, request.source_key, metadata)
        except ObjectNotFound as e:
            raise SourceNotFound(request.namespace, request.source_key) from e

    def _settle(
        self, message: QueueMessage, disposition: Disposition, log_context: LogContext
    ) -> None:
        if self._queue is None:
            return
        try:
            if disposition == Disposition.ABANDON:
                self._queue.abandon(message.receipt_handle)
            else:
                self._queue.ack(message.receipt_handle)
        except QueueUnavailable as e:
            # The lease expires and the message is redelivered; overwrite is idempotent
            self._logger.error(
                f"Could not {disposition.value} message", log_context, error=str(e)
            )
