"""Shared data models for the media pipeline."""

import base64
import binascii
import json
import os
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .exceptions import ConfigurationError, MalformedRequest, UnsupportedType


class ProcessingType(str, Enum):
    """Closed set of transformations the pipeline knows how to run."""

    THUMBNAIL = "THUMBNAIL"
    WATERMARK = "WATERMARK"
    RESIZE = "RESIZE"
    FILTER = "FILTER"
    FORMAT_CONVERSION = "FORMAT_CONVERSION"
    VIDEO_THUMBNAIL = "VIDEO_THUMBNAIL"
    VIDEO_WATERMARK = "VIDEO_WATERMARK"
    VIDEO_COMPRESS = "VIDEO_COMPRESS"
    AUDIO_EXTRACT = "AUDIO_EXTRACT"
    VIDEO_PREVIEW = "VIDEO_PREVIEW"
    IMAGE_ANALYSIS = "IMAGE_ANALYSIS"
    FACE_DETECTION = "FACE_DETECTION"
    OBJECT_RECOGNITION = "OBJECT_RECOGNITION"
    TEXT_EXTRACTION = "TEXT_EXTRACTION"
    CONTENT_MODERATION = "CONTENT_MODERATION"


class MediaType(str, Enum):
    IMAGE = "IMAGE"
    VIDEO = "VIDEO"
    AUDIO = "AUDIO"


class Namespace(str, Enum):
    """Logical containers of the content store."""

    ORIGINALS = "originals"
    THUMBNAILS = "thumbnails"
    PROCESSED = "processed"
    TEMP = "temp"


class EngineKind(str, Enum):
    IMAGE = "image"
    VIDEO = "video"
    ANALYSIS = "analysis"


class Disposition(str, Enum):
    """What the worker did with a queue message."""

    ACK = "ack"
    DROP = "drop"
    ABANDON = "abandon"


def _decode_message(text: Union[str, bytes]) -> Any:
    if isinstance(text, bytes):
        try:
            text = text.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise MalformedRequest("Message body is not UTF-8 text") from exc

    body = text.strip()
    if not body.startswith("{"):
        # Payloads queued by the web front end are base64 encoded
        try:
            body = base64.b64decode(body, validate=True).decode("utf-8")
        except (binascii.Error, UnicodeDecodeError) as exc:
            raise MalformedRequest(
                "Message body is neither JSON nor base64-encoded JSON"
            ) from exc

    try:
        return json.loads(body)
    except json.JSONDecodeError as exc:
        raise MalformedRequest(f"Message body is not valid JSON: {exc}") from exc


class ProcessingRequest(BaseModel):
    """A self-describing unit of work, as carried on the work queue.

    Field aliases match the wire format (``blobName``, ``containerName``,
    ``mediaId``, ``processingType``); Python names are accepted as well.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    source_key: str = Field(alias="blobName", min_length=1)
    namespace: str = Field(alias="containerName", min_length=1)
    processing_type: ProcessingType = Field(alias="processingType")
    media_id: Optional[str] = Field(default=None, alias="mediaId")
    parameters: Dict[str, str] = Field(default_factory=dict)

    @field_validator("parameters", mode="before")
    @classmethod
    def _coerce_parameters(cls, value: Any) -> Dict[str, str]:
        if value is None:
            return {}
        if not isinstance(value, Mapping):
            raise ValueError("parameters must be an object of string values")

        coerced: Dict[str, str] = {}
        for key, item in value.items():
            if isinstance(item, bool):
                coerced[str(key)] = str(item).lower()
            elif isinstance(item, (str, int, float)):
                coerced[str(key)] = str(item)
            else:
                raise ValueError(f"parameter '{key}' must be a scalar value")
        return coerced

    @classmethod
    def from_payload(cls, payload: Any) -> "ProcessingRequest":
        """Validate a decoded wire payload.

        Raises:
            UnsupportedType: processingType is not a known value
            MalformedRequest: any other shape problem
        """
        if not isinstance(payload, Mapping):
            raise MalformedRequest("Processing request must be a JSON object")

        raw_type = payload.get("processingType", payload.get("processing_type"))
        if raw_type is None:
            raise MalformedRequest("Processing request is missing processingType")
        if isinstance(raw_type, ProcessingType):
            pass
        elif not isinstance(raw_type, str) or raw_type not in ProcessingType.__members__:
            raise UnsupportedType(raw_type)

        try:
            return cls.model_validate(dict(payload))
        except ValidationError as exc:
            raise MalformedRequest(f"Invalid processing request: {exc}") from exc

    @classmethod
    def from_message(cls, text: Union[str, bytes]) -> "ProcessingRequest":
        """Parse a queue message body (JSON or base64-encoded JSON)."""
        return cls.from_payload(_decode_message(text))

    def to_message(self) -> str:
        """Serialize using the wire field names."""
        return self.model_dump_json(by_alias=True)


class ProcessingResult(BaseModel):
    """Result of handling a single processing request."""

    source_key: str
    processing_type: Optional[ProcessingType] = None
    media_id: Optional[str] = None
    output_namespace: str = ""
    derived_key: str = ""
    content_type: str = ""
    success: bool = False
    error: str = ""
    processing_time: float = 0.0


class QueueMessage(BaseModel):
    """A leased message received from the work queue."""

    body: str
    receipt_handle: str
    message_id: str = ""
    receive_count: int = 1


class MessageOutcome(BaseModel):
    """Disposition of one queue message after the worker saw it."""

    message_id: str = ""
    disposition: Disposition
    result: Optional[ProcessingResult] = None
    error: str = ""


class MediaItem(BaseModel):
    """Catalog entry the intake side keeps for an uploaded asset."""

    id: str
    name: str
    source_key: str
    type: MediaType
    size: int = 0
    content_type: str = ""
    thumbnail_key: Optional[str] = None
    uploaded_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    processed_keys: List[str] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
    ai_analysis: Dict[str, Any] = Field(default_factory=dict)


class SubmissionResponse(BaseModel):
    """Answer to a synchronous submission, shaped like an HTTP response."""

    status_code: int
    status: str
    message: str = ""
    media_id: Optional[str] = None
    processing_type: Optional[str] = None
    namespace: Optional[str] = None
    derived_key: Optional[str] = None
    content_type: Optional[str] = None


DEFAULT_BUCKETS: Dict[str, str] = {
    Namespace.ORIGINALS.value: "media",
    Namespace.THUMBNAILS.value: "thumbnails",
    Namespace.PROCESSED.value: "processed",
    Namespace.TEMP.value: "temp",
}

_ENV_FIELDS = {
    "AWS_REGION": "region_name",
    "MEDIA_PIPELINE_ENDPOINT_URL": "endpoint_url",
    "MEDIA_PIPELINE_QUEUE_URL": "queue_url",
    "MEDIA_PIPELINE_BATCH_SIZE": "batch_size",
    "MEDIA_PIPELINE_WAIT_TIME_SECONDS": "wait_time_seconds",
    "MEDIA_PIPELINE_VISIBILITY_TIMEOUT": "visibility_timeout",
    "MEDIA_PIPELINE_CONCURRENCY": "concurrency",
    "MEDIA_PIPELINE_TEMP_DIR": "temp_dir",
    "MEDIA_PIPELINE_FFMPEG_PATH": "ffmpeg_path",
    "MEDIA_PIPELINE_FFPROBE_PATH": "ffprobe_path",
    "MEDIA_PIPELINE_FFMPEG_TIMEOUT": "ffmpeg_timeout",
}

_ENV_BUCKETS = {
    "MEDIA_PIPELINE_ORIGINALS_BUCKET": Namespace.ORIGINALS.value,
    "MEDIA_PIPELINE_THUMBNAILS_BUCKET": Namespace.THUMBNAILS.value,
    "MEDIA_PIPELINE_PROCESSED_BUCKET": Namespace.PROCESSED.value,
    "MEDIA_PIPELINE_TEMP_BUCKET": Namespace.TEMP.value,
}


class PipelineConfig(BaseModel):
    """Configuration for workers and intake."""

    region_name: Optional[str] = None
    endpoint_url: Optional[str] = None
    queue_url: str = ""
    buckets: Dict[str, str] = Field(default_factory=lambda: dict(DEFAULT_BUCKETS))
    batch_size: int = Field(default=10, ge=1, le=10)
    wait_time_seconds: int = Field(default=20, ge=0, le=20)
    visibility_timeout: int = Field(default=300, ge=0)
    concurrency: int = Field(default=4, ge=1)
    temp_dir: Optional[str] = None
    ffmpeg_path: str = "ffmpeg"
    ffprobe_path: str = "ffprobe"
    ffmpeg_timeout: float = Field(default=300.0, gt=0)
    debug: bool = False

    @classmethod
    def from_env(
        cls, environ: Optional[Mapping[str, str]] = None, **overrides: Any
    ) -> "PipelineConfig":
        """Build configuration from MEDIA_PIPELINE_* variables plus overrides."""
        env = os.environ if environ is None else environ

        values: Dict[str, Any] = {}
        for var, field_name in _ENV_FIELDS.items():
            if env.get(var):
                values[field_name] = env[var]

        buckets = dict(DEFAULT_BUCKETS)
        for var, namespace in _ENV_BUCKETS.items():
            if env.get(var):
                buckets[namespace] = env[var]
        values["buckets"] = buckets

        values.update({k: v for k, v in overrides.items() if v is not None})

        try:
            return cls.model_validate(values)
        except ValidationError as exc:
            raise ConfigurationError(f"Invalid pipeline configuration: {exc}") from exc

    def bucket_for(self, namespace: str) -> str:
        return self.buckets.get(namespace, namespace)
