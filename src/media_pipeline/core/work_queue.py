"""Work queue backed by SQS."""

from typing import List, Optional

from .error_handling import translate_queue_errors
from .models import QueueMessage
from .protocols import LoggerProtocol, SQSClientProtocol


class SQSWorkQueue:
    """At-least-once queue: unacknowledged messages reappear after the visibility timeout."""

    def __init__(
        self,
        sqs_client: SQSClientProtocol,
        queue_url: str,
        wait_time_seconds: int = 20,
        visibility_timeout: Optional[int] = None,
        max_messages: int = 10,
        logger: Optional[LoggerProtocol] = None,
    ):
        self._sqs_client = sqs_client
        self._queue_url = queue_url
        self._wait_time_seconds = wait_time_seconds
        self._visibility_timeout = visibility_timeout
        self._max_messages = max_messages
        self._logger = logger

    @property
    def queue_url(self) -> str:
        return self._queue_url

    @translate_queue_errors
    def enqueue(self, text: str) -> None:
        response = self._sqs_client.send_message(QueueUrl=self._queue_url, MessageBody=text)
        if self._logger:
            self._logger.debug(f"Queued message {response.get('MessageId', '')}")

    @translate_queue_errors
    def receive(self, max_messages: Optional[int] = None) -> List[QueueMessage]:
        """Long-poll for up to ``max_messages`` messages (SQS caps this at 10)."""
        request = {
            "QueueUrl": self._queue_url,
            "MaxNumberOfMessages": min(max_messages or self._max_messages, 10),
            "WaitTimeSeconds": self._wait_time_seconds,
            "AttributeNames": ["ApproximateReceiveCount"],
        }
        if self._visibility_timeout is not None:
            request["VisibilityTimeout"] = self._visibility_timeout

        response = self._sqs_client.receive_message(**request)
        return [
            QueueMessage(
                body=message["Body"],
                receipt_handle=message["ReceiptHandle"],
                message_id=message.get("MessageId", ""),
                receive_count=int(
                    message.get("Attributes", {}).get("ApproximateReceiveCount", 1)
                ),
            )
            for message in response.get("Messages", [])
        ]

    @translate_queue_errors
    def ack(self, receipt_handle: str) -> None:
        self._sqs_client.delete_message(QueueUrl=self._queue_url, ReceiptHandle=receipt_handle)

    @translate_queue_errors
    def abandon(self, receipt_handle: str) -> None:
        """Make the message visible again right away so another consumer retries it."""
        self._sqs_client.change_message_visibility(
            QueueUrl=self._queue_url, ReceiptHandle=receipt_handle, VisibilityTimeout=0
        )
