"""Protocol definitions for dependency injection and testability."""

from datetime import datetime
from typing import Any, Dict, Iterator, List, Mapping, Optional, Protocol, Tuple, Union

from .models import ProcessingType, QueueMessage


class S3ClientProtocol(Protocol):
    """Subset of the boto3 S3 client used by the content store."""

    def get_object(self, Bucket: str, Key: str) -> Dict[str, Any]:
        ...

    def put_object(
        self,
        Bucket: str,
        Key: str,
        Body: bytes,
        ContentType: str,
        Metadata: Dict[str, str] = ...,
    ) -> Dict[str, Any]:
        ...

    def head_object(self, Bucket: str, Key: str) -> Dict[str, Any]:
        ...

    def copy_object(self, **kwargs: Any) -> Dict[str, Any]:
        ...

    def delete_object(self, Bucket: str, Key: str) -> Dict[str, Any]:
        ...

    def get_paginator(self, operation_name: str) -> Any:
        ...


class SQSClientProtocol(Protocol):
    """Subset of the boto3 SQS client used by the work queue."""

    def send_message(self, QueueUrl: str, MessageBody: str) -> Dict[str, Any]:
        ...

    def receive_message(self, **kwargs: Any) -> Dict[str, Any]:
        ...

    def delete_message(self, QueueUrl: str, ReceiptHandle: str) -> Dict[str, Any]:
        ...

    def change_message_visibility(
        self, QueueUrl: str, ReceiptHandle: str, VisibilityTimeout: int
    ) -> Dict[str, Any]:
        ...


class RekognitionClientProtocol(Protocol):
    """Subset of the boto3 Rekognition client used by the analysis engine."""

    def detect_labels(self, **kwargs: Any) -> Dict[str, Any]:
        ...

    def detect_faces(self, **kwargs: Any) -> Dict[str, Any]:
        ...

    def detect_text(self, **kwargs: Any) -> Dict[str, Any]:
        ...

    def detect_moderation_labels(self, **kwargs: Any) -> Dict[str, Any]:
        ...


class ContentStoreProtocol(Protocol):
    """Key-addressed binary storage split into namespaces."""

    def get(self, namespace: str, key: str) -> bytes:
        ...

    def put(
        self, namespace: str, key: str, data: bytes, content_type: str
    ) -> None:
        ...

    def get_metadata(self, namespace: str, key: str) -> Dict[str, str]:
        ...

    def set_metadata(
        self, namespace: str, key: str, metadata: Mapping[str, str]
    ) -> None:
        ...

    def list_objects(self, namespace: str) -> Iterator[Tuple[str, datetime]]:
        ...

    def delete(self, namespace: str, key: str) -> None:
        ...


class WorkQueueProtocol(Protocol):
    """At-least-once message queue."""

    def enqueue(self, text: str) -> None:
        ...

    def receive(self, max_messages: Optional[int] = None) -> List[QueueMessage]:
        ...

    def ack(self, receipt_handle: str) -> None:
        ...

    def abandon(self, receipt_handle: str) -> None:
        ...


class EngineProtocol(Protocol):
    """Uniform engine contract: bytes in, bytes or a structured result out."""

    def apply(
        self,
        data: bytes,
        processing_type: ProcessingType,
        parameters: Mapping[str, str],
    ) -> Union[bytes, Dict[str, Any]]:
        ...


class LoggerProtocol(Protocol):
    """Protocol for logging operations."""

    def debug(self, message: str, context: Any = None, **kwargs: Any) -> None:
        ...

    def info(self, message: str, context: Any = None, **kwargs: Any) -> None:
        ...

    def warning(self, message: str, context: Any = None, **kwargs: Any) -> None:
        ...

    def error(self, message: str, context: Any = None, **kwargs: Any) -> None:
        ...
