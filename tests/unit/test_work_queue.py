"""Unit tests for the SQS work queue."""

from unittest.mock import Mock

import pytest

from media_pipeline.core.exceptions import QueueUnavailable
from media_pipeline.core.work_queue import SQSWorkQueue
from media_pipeline.testing.fakes import TEST_QUEUE_URL, FakeSQSClient


@pytest.fixture
def sqs():
    return FakeSQSClient()


@pytest.fixture
def queue(sqs):
    return SQSWorkQueue(sqs, TEST_QUEUE_URL, wait_time_seconds=0)


class TestSQSWorkQueue:
    def test_enqueue_and_receive(self, queue):
        queue.enqueue('{"a": 1}')

        messages = queue.receive()

        assert len(messages) == 1
        assert messages[0].body == '{"a": 1}'
        assert messages[0].receive_count == 1
        assert messages[0].message_id

    def test_receive_empty_queue(self, queue):
        assert queue.receive() == []

    def test_received_message_is_leased(self, queue, sqs):
        queue.enqueue("x")
        queue.receive()

        assert queue.receive() == []
        assert sqs.in_flight_count == 1

    def test_ack_deletes(self, queue, sqs):
        queue.enqueue("x")
        message = queue.receive()[0]

        queue.ack(message.receipt_handle)

        assert sqs.messages == {}
        assert sqs.deleted == ["x"]

    def test_abandon_makes_message_visible_again(self, queue):
        queue.enqueue("x")
        first = queue.receive()[0]

        queue.abandon(first.receipt_handle)
        second = queue.receive()[0]

        assert second.message_id == first.message_id
        assert second.receive_count == 2
        assert second.receipt_handle != first.receipt_handle

    def test_unacked_message_is_redelivered_after_lease_expiry(self, queue, sqs):
        queue.enqueue("x")
        queue.receive()

        sqs.expire_in_flight()

        assert queue.receive()[0].receive_count == 2

    def test_receive_respects_max_messages(self, queue):
        for i in range(5):
            queue.enqueue(str(i))

        assert len(queue.receive(max_messages=3)) == 3

    def test_receive_request_shape(self):
        client = Mock()
        client.receive_message.return_value = {}
        queue = SQSWorkQueue(client, TEST_QUEUE_URL, wait_time_seconds=20, visibility_timeout=300)

        queue.receive(max_messages=25)

        client.receive_message.assert_called_once_with(
            QueueUrl=TEST_QUEUE_URL,
            MaxNumberOfMessages=10,
            WaitTimeSeconds=20,
            AttributeNames=["ApproximateReceiveCount"],
            VisibilityTimeout=300,
        )

    def test_stale_receipt_handle_is_queue_unavailable(self, queue):
        with pytest.raises(QueueUnavailable):
            queue.ack("not-a-handle")

    @pytest.mark.parametrize("operation", ["enqueue", "receive"])
    def test_service_errors_become_queue_unavailable(self, queue, sqs, operation):
        sqs.set_failure_mode(True, "SQS unavailable")

        with pytest.raises(QueueUnavailable):
            if operation == "enqueue":
                queue.enqueue("x")
            else:
                queue.receive()

    def test_queue_url_property(self, queue):
        assert queue.queue_url == TEST_QUEUE_URL
