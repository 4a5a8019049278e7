"""Integration tests for the complete pipeline."""

import json
import os

import pytest

from media_pipeline.consumers import (
    multithread_process_batch,
    run_consumer,
    serial_process_batch,
)
from media_pipeline.core.factories import PipelineFactory
from media_pipeline.core.models import PipelineConfig, ProcessingType
from media_pipeline.core.observability import MetricsCollector
from media_pipeline.testing.fakes import (
    TEST_QUEUE_URL,
    FakeFfmpegRunner,
    FakeLogger,
    FakeRekognitionClient,
    FakeSQSClient,
    create_test_image,
    setup_test_s3_environment,
)


@pytest.fixture
def environment(tmp_path):
    """Workers, intake and fakes sharing one S3 and one SQS."""
    s3 = setup_test_s3_environment()
    sqs = FakeSQSClient()
    rekognition = FakeRekognitionClient()
    runner = FakeFfmpegRunner(output_bytes=b"compressed-video")
    metrics = MetricsCollector()
    config = PipelineConfig(
        queue_url=TEST_QUEUE_URL, wait_time_seconds=0, temp_dir=str(tmp_path)
    )
    worker = PipelineFactory.create_worker(
        config,
        s3_client=s3,
        sqs_client=sqs,
        rekognition_client=rekognition,
        video_runner=runner,
        logger=FakeLogger(),
        metrics_collector=metrics,
    )
    intake = PipelineFactory.create_intake(
        config, s3_client=s3, sqs_client=sqs, worker=worker, logger=FakeLogger()
    )
    return {
        "s3": s3,
        "sqs": sqs,
        "rekognition": rekognition,
        "runner": runner,
        "metrics": metrics,
        "worker": worker,
        "intake": intake,
        "tmp_path": tmp_path,
    }


def drain(environment, process_batch=serial_process_batch, **kwargs):
    kwargs.setdefault("idle_polls_limit", 1)
    return run_consumer(
        environment["worker"].queue, environment["worker"], process_batch, **kwargs
    )


def snapshot(s3):
    return {
        name: {
            key: (obj.body, obj.content_type, dict(obj.metadata))
            for key, obj in bucket.objects.items()
        }
        for name, bucket in s3.buckets.items()
    }


class TestPipelineIntegration:
    """End-to-end scenarios through intake, queue, worker and store."""

    def test_image_thumbnail(self, environment):
        s3 = environment["s3"]
        environment["intake"].request_processing("cat.jpg", ProcessingType.THUMBNAIL)

        stats = drain(environment)

        assert stats.acked == 1
        artifact = s3.buckets["processed"].objects["thumb-cat.jpg"]
        assert artifact.content_type == "image/jpeg"
        assert artifact.body.startswith(b"\xff\xd8")
        source = s3.buckets["media"].objects["cat.jpg"]
        assert source.metadata["processed"] == "true"
        assert source.metadata["processingType"] == "THUMBNAIL"
        assert environment["sqs"].messages == {}

    def test_video_compress_low_quality(self, environment):
        s3 = environment["s3"]
        environment["intake"].request_processing(
            "clip.mp4", ProcessingType.VIDEO_COMPRESS, {"quality": "low"}
        )

        stats = drain(environment)

        assert stats.acked == 1
        artifact = s3.buckets["processed"].objects["compress-low-clip.mp4"]
        assert artifact.body == b"compressed-video"
        assert artifact.content_type == "video/mp4"
        command = environment["runner"].last_command
        assert command[command.index("-b:v") + 1] == "500000"
        # Staging files are gone once the request completes
        assert os.listdir(environment["tmp_path"]) == []

    def test_text_extraction(self, environment):
        s3 = environment["s3"]
        environment["intake"].request_processing("doc.png", ProcessingType.TEXT_EXTRACTION)

        drain(environment)

        artifact = s3.buckets["processed"].objects["text-doc.png"]
        assert artifact.content_type == "application/json"
        document = json.loads(artifact.body)
        assert document["text"]["content"] == "HELLO WORLD"
        assert "error" not in document

    def test_text_extraction_backend_failure_is_recorded(self, environment):
        s3 = environment["s3"]
        environment["rekognition"].set_failure_mode(True, "Rekognition unavailable")
        environment["intake"].request_processing("doc.png", ProcessingType.TEXT_EXTRACTION)

        stats = drain(environment)

        assert stats.acked == 1
        document = json.loads(s3.buckets["processed"].objects["text-doc.png"].body)
        assert "Rekognition unavailable" in document["error"]

    def test_duplicate_delivery_leaves_identical_state(self, environment):
        s3, sqs = environment["s3"], environment["sqs"]
        intake = environment["intake"]

        intake.request_processing("cat.jpg", ProcessingType.FILTER, {"type": "sepia"})
        drain(environment)
        after_first = snapshot(s3)

        intake.request_processing("cat.jpg", ProcessingType.FILTER, {"type": "sepia"})
        drain(environment)

        assert snapshot(s3) == after_first
        assert sqs.messages == {}

    def test_unacked_message_is_redelivered(self, environment):
        s3, sqs = environment["s3"], environment["sqs"]
        environment["intake"].request_processing("cat.jpg", ProcessingType.WATERMARK)
        s3.set_failure_mode(True, "S3 unavailable", operations=["PutObject"])

        stats = drain(environment, max_polls=1)

        assert stats.abandoned == 1
        assert sqs.visible_count == 1

        s3.set_failure_mode(False)
        stats = drain(environment)

        assert stats.acked == 1
        assert "watermark-cat.jpg" in s3.buckets["processed"].objects

    def test_mixed_batch_on_thread_pool(self, environment):
        s3, sqs = environment["s3"], environment["sqs"]
        intake = environment["intake"]
        intake.request_processing("cat.jpg", ProcessingType.THUMBNAIL)
        intake.request_processing("doc.png", ProcessingType.FORMAT_CONVERSION, {"format": "webp"})
        intake.request_processing("clip.mp4", ProcessingType.AUDIO_EXTRACT)
        intake.request_processing("missing.jpg", ProcessingType.RESIZE)
        sqs.send_message(QueueUrl=TEST_QUEUE_URL, MessageBody="garbage")

        stats = drain(environment, multithread_process_batch)

        assert stats.acked == 3
        assert stats.dropped == 2
        assert sqs.messages == {}
        assert set(s3.buckets["processed"].objects) == {
            "thumb-cat.jpg",
            "convert-webp-doc.png",
            "audio-clip.mp4",
        }
        assert s3.buckets["processed"].objects["convert-webp-doc.png"].content_type == "image/webp"

    def test_upload_then_process(self, environment):
        s3 = environment["s3"]
        intake = environment["intake"]

        item = intake.upload(create_test_image(800, 600), "beach.jpg", "image/jpeg")
        response = intake.submit(
            {"blobName": item.source_key, "processingType": "RESIZE", "mediaId": item.id}
        )
        assert response.status_code == 202

        drain(environment)

        assert f"thumb-{item.source_key}" in s3.buckets["thumbnails"].objects
        assert f"resize-{item.source_key}" in s3.buckets["processed"].objects

    def test_metrics_are_collected(self, environment):
        environment["intake"].request_processing("cat.jpg", ProcessingType.THUMBNAIL)

        drain(environment)

        summary = environment["metrics"].get_summary("handle_request")
        assert summary["total_operations"] == 1
        assert summary["success_rate"] == 1.0
