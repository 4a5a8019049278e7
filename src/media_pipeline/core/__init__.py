"""Core utilities and shared components for the media pipeline."""

from .logging_config import get_logger, set_log_level, setup_logger
from .exceptions import (
    ConfigurationError,
    MalformedRequest,
    MediaPipelineError,
    ObjectNotFound,
    QueueUnavailable,
    SourceNotFound,
    StoreUnavailable,
    TransformFailure,
    UnsupportedType,
)
from .models import (
    Disposition,
    EngineKind,
    MediaType,
    Namespace,
    PipelineConfig,
    ProcessingRequest,
    ProcessingResult,
    ProcessingType,
)
from .routing import derived_key, plan_artifact, resolve, thumbnail_key

__all__ = [
    "PipelineConfig",
    "ProcessingRequest",
    "ProcessingResult",
    "ProcessingType",
    "MediaType",
    "Namespace",
    "EngineKind",
    "Disposition",
    "derived_key",
    "plan_artifact",
    "resolve",
    "thumbnail_key",
    "setup_logger",
    "get_logger",
    "set_log_level",
    "MediaPipelineError",
    "MalformedRequest",
    "UnsupportedType",
    "ObjectNotFound",
    "SourceNotFound",
    "TransformFailure",
    "StoreUnavailable",
    "QueueUnavailable",
    "ConfigurationError",
]
