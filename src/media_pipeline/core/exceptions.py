"""Custom exceptions for the media pipeline."""

from __future__ import annotations

from typing import Optional


class MediaPipelineError(Exception):
    """Base exception for all media pipeline errors."""


class MalformedRequest(MediaPipelineError):
    """Raised when a processing request can never be completed as written."""


class UnsupportedType(MalformedRequest):
    """Raised when a processing type is outside the known enumeration."""

    def __init__(self, processing_type: object):
        self.processing_type = processing_type
        super().__init__(f"Unsupported processing type: {processing_type}")


class ObjectNotFound(MediaPipelineError):
    """Raised by the content store when a key does not exist."""

    def __init__(self, namespace: str, key: str):
        self.namespace = namespace
        self.key = key
        super().__init__(f"Object {key} not found in namespace {namespace}")


class SourceNotFound(ObjectNotFound):
    """Raised when the source object of a request is missing."""


class TransformFailure(MediaPipelineError):
    """Raised when an engine fails to decode or encode media."""

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        self.cause = cause
        super().__init__(message)


class StoreUnavailable(MediaPipelineError):
    """Raised for transient content store failures."""


class QueueUnavailable(MediaPipelineError):
    """Raised for transient work queue failures."""


class ConfigurationError(MediaPipelineError):
    """Error raised for invalid configuration options."""
