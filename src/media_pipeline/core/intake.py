"""Intake side of the pipeline: uploads, queueing and synchronous submission."""

import uuid
from typing import Any, Mapping, Optional

from .exceptions import (
    MalformedRequest,
    MediaPipelineError,
    SourceNotFound,
    StoreUnavailable,
    TransformFailure,
    UnsupportedType,
)
from .models import (
    MediaItem,
    MediaType,
    Namespace,
    ProcessingRequest,
    ProcessingType,
    SubmissionResponse,
)
from .observability import LogContext, create_logger
from .protocols import ContentStoreProtocol, LoggerProtocol, WorkQueueProtocol
from .routing import JPEG_CONTENT_TYPE, plan_for_request, thumbnail_key
from .worker import PipelineWorker


def classify_media_type(content_type: Optional[str]) -> MediaType:
    """Media type from the content-type prefix; anything unrecognised is an image."""
    content_type = (content_type or "").lower()
    if content_type.startswith("video/"):
        return MediaType.VIDEO
    if content_type.startswith("audio/"):
        return MediaType.AUDIO
    return MediaType.IMAGE


class UploadIntake:
    """Entry points used by the front end.

    Args:
        store: Content store holding originals and thumbnails
        queue: Work queue that feeds the pipeline workers
        image_engine: Engine used for the upload-time thumbnail; optional
        worker: Worker used for synchronous submissions; optional
        logger: Logger for intake events
    """

    def __init__(
        self,
        store: ContentStoreProtocol,
        queue: WorkQueueProtocol,
        image_engine: Optional[Any] = None,
        worker: Optional[PipelineWorker] = None,
        logger: Optional[LoggerProtocol] = None,
    ):
        self._store = store
        self._queue = queue
        self._image_engine = image_engine
        self._worker = worker
        self._logger = logger or create_logger("media-pipeline.intake")

    def upload(self, data: bytes, filename: str, content_type: str) -> MediaItem:
        media_id = str(uuid.uuid4())
        source_key = f"{media_id}-{filename}"
        log_context = LogContext(
            correlation_id=media_id, operation="upload", component="intake"
        ).with_metadata(source_key=source_key)

        self._store.put(Namespace.ORIGINALS.value, source_key, data, content_type)
        item = MediaItem(
            id=media_id,
            name=filename,
            source_key=source_key,
            type=classify_media_type(content_type),
            size=len(data),
            content_type=content_type,
        )
        self._logger.info("Stored original", log_context, media_type=item.type.value)

        if item.type == MediaType.IMAGE and self._image_engine is not None:
            self._store_thumbnail(item, data, log_context)
        elif item.type == MediaType.VIDEO:
            try:
                self.request_processing(
                    source_key, ProcessingType.VIDEO_THUMBNAIL, media_id=media_id
                )
            except MediaPipelineError as e:
                self._logger.warning(
                    "Could not queue video thumbnail", log_context, error=str(e)
                )

        return item

    def enqueue(self, request: ProcessingRequest) -> None:
        self._queue.enqueue(request.to_message())
        self._logger.info(
            "Queued processing request", LogContext.for_request(request, "enqueue", "intake")
        )

    def request_processing(
        self,
        source_key: str,
        processing_type: ProcessingType,
        parameters: Optional[Mapping[str, str]] = None,
        media_id: Optional[str] = None,
    ) -> ProcessingRequest:
        """Build a request against the originals namespace and queue it."""
        request = ProcessingRequest(
            source_key=source_key,
            namespace=Namespace.ORIGINALS.value,
            processing_type=processing_type,
            media_id=media_id,
            parameters=dict(parameters or {}),
        )
        self.enqueue(request)
        return request

    def submit(
        self, payload: Mapping[str, Any], synchronous: bool = False
    ) -> SubmissionResponse:
        """Validate a submission and either queue it or run it in-process.

        Returns a response shaped like the HTTP answer: 400 for malformed or
        unsupported requests, 404 for a missing source (synchronous only),
        500 for engine or infrastructure failures, 202 once queued and 200
        with the artifact reference when run synchronously.
        """
        fields = dict(payload)
        if "containerName" not in fields and "namespace" not in fields:
            fields["containerName"] = Namespace.ORIGINALS.value

        try:
            request = ProcessingRequest.from_payload(fields)
            plan = plan_for_request(request)
        except UnsupportedType as e:
            return SubmissionResponse(status_code=400, status="error", message=str(e))
        except MalformedRequest as e:
            return SubmissionResponse(
                status_code=400, status="error", message=f"Invalid request: {e}"
            )

        response_fields = dict(
            media_id=request.media_id,
            processing_type=request.processing_type.value,
        )

        if not synchronous or self._worker is None:
            try:
                self.enqueue(request)
            except MediaPipelineError as e:
                self._logger.error("Could not queue submission", error=str(e))
                return SubmissionResponse(
                    status_code=500, status="error", message=str(e), **response_fields
                )
            return SubmissionResponse(
                status_code=202,
                status="queued",
                message=f"{request.processing_type.value} queued for asynchronous processing",
                **response_fields,
            )

        try:
            result = self._worker.handle(request)
        except SourceNotFound as e:
            return SubmissionResponse(
                status_code=404, status="error", message=str(e), **response_fields
            )
        except MediaPipelineError as e:
            self._logger.error("Synchronous submission failed", error=str(e))
            return SubmissionResponse(
                status_code=500, status="error", message=str(e), **response_fields
            )
        except Exception as e:
            self._logger.error(
                "Unexpected error in synchronous submission", error=str(e), exc_info=True
            )
            return SubmissionResponse(
                status_code=500,
                status="error",
                message=f"Internal error: {type(e).__name__}: {e}",
                **response_fields,
            )

        return SubmissionResponse(
            status_code=200,
            status="completed",
            message=f"{request.processing_type.value} completed",
            namespace=plan.namespace.value,
            derived_key=result.derived_key,
            content_type=result.content_type,
            **response_fields,
        )

    def _store_thumbnail(self, item: MediaItem, data: bytes, log_context: LogContext) -> None:
        try:
            thumbnail = self._image_engine.generate_thumbnail(data)
            key = thumbnail_key(item.source_key)
            self._store.put(Namespace.THUMBNAILS.value, key, thumbnail, JPEG_CONTENT_TYPE)
            item.thumbnail_key = key
            item.metadata = self._image_engine.extract_metadata(data)
        except (TransformFailure, StoreUnavailable) as e:
            self._logger.warning("Thumbnail generation failed", log_context, error=str(e))
