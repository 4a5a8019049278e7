"""Tests for fake implementations to ensure they work correctly."""

import json
import subprocess

import pytest
from botocore.exceptions import ClientError

from media_pipeline.testing.fakes import (
    FakeFfmpegRunner,
    FakeLogger,
    FakeRekognitionClient,
    FakeS3Client,
    FakeSQSClient,
    S3Bucket,
    create_test_image,
    setup_test_s3_environment,
)


def error_code(exc_info):
    return exc_info.value.response["Error"]["Code"]


class TestFakeS3Client:
    """Tests for FakeS3Client to ensure it behaves like boto3."""

    def test_create_bucket(self):
        """Test bucket creation."""
        client = FakeS3Client()

        bucket = client.create_bucket("test-bucket")

        assert bucket.name == "test-bucket"
        assert len(bucket.objects) == 0
        assert client.get_bucket("test-bucket") is bucket

    def test_get_object_success(self):
        client = FakeS3Client()
        bucket = client.create_bucket("test-bucket")
        bucket.add_object("test.jpg", b"test image data", metadata={"a": "1"})

        response = client.get_object(Bucket="test-bucket", Key="test.jpg")

        assert response["Body"].read() == b"test image data"
        assert response["ContentType"] == "image/jpeg"
        assert response["ContentLength"] == len(b"test image data")
        assert response["Metadata"] == {"a": "1"}

    def test_get_object_not_found(self):
        client = FakeS3Client()
        client.create_bucket("test-bucket")

        with pytest.raises(ClientError) as exc_info:
            client.get_object(Bucket="test-bucket", Key="nonexistent.jpg")

        assert error_code(exc_info) == "NoSuchKey"

    def test_get_object_bucket_not_found(self):
        client = FakeS3Client()

        with pytest.raises(ClientError) as exc_info:
            client.get_object(Bucket="nonexistent", Key="test.jpg")

        assert error_code(exc_info) == "NoSuchBucket"

    def test_head_object_not_found_uses_bare_status_code(self):
        client = FakeS3Client()
        client.create_bucket("test-bucket")

        with pytest.raises(ClientError) as exc_info:
            client.head_object(Bucket="test-bucket", Key="missing")

        assert error_code(exc_info) == "404"

    def test_put_object_replaces(self):
        client = FakeS3Client()
        client.create_bucket("test-bucket")

        client.put_object(Bucket="test-bucket", Key="a", Body=b"1", ContentType="text/plain")
        response = client.put_object(Bucket="test-bucket", Key="a", Body=b"2")

        assert response["ResponseMetadata"]["HTTPStatusCode"] == 200
        obj = client.get_bucket("test-bucket").get_object("a")
        assert obj.body == b"2"
        assert obj.content_type == "binary/octet-stream"

    def test_copy_object_replace_directive(self):
        client = FakeS3Client()
        bucket = client.create_bucket("b")
        bucket.add_object("k", b"data", "image/png", {"old": "x"})

        client.copy_object(
            Bucket="b",
            Key="k",
            CopySource={"Bucket": "b", "Key": "k"},
            Metadata={"new": "y"},
            MetadataDirective="REPLACE",
            ContentType="image/png",
        )

        obj = bucket.get_object("k")
        assert obj.metadata == {"new": "y"}
        assert obj.content_type == "image/png"
        assert obj.body == b"data"

    def test_copy_object_default_directive_keeps_metadata(self):
        client = FakeS3Client()
        bucket = client.create_bucket("b")
        bucket.add_object("k", b"data", "image/png", {"old": "x"})

        client.copy_object(Bucket="b", Key="k2", CopySource={"Bucket": "b", "Key": "k"})

        assert bucket.get_object("k2").metadata == {"old": "x"}

    def test_paginator_lists_sorted_keys(self):
        client = FakeS3Client()
        bucket = client.create_bucket("b")
        bucket.add_object("b.jpg", b"2")
        bucket.add_object("a.jpg", b"1")

        pages = client.get_paginator("list_objects_v2").paginate(Bucket="b")

        assert [obj["Key"] for obj in pages[0]["Contents"]] == ["a.jpg", "b.jpg"]

    def test_delete_object_is_idempotent(self):
        client = FakeS3Client()
        client.create_bucket("b")

        client.delete_object(Bucket="b", Key="never-existed")

        assert client.operations == ["DeleteObject"]

    def test_failure_mode_limited_to_operations(self):
        client = setup_test_s3_environment()
        client.set_failure_mode(True, "boom", operations=["PutObject"])

        client.get_object(Bucket="media", Key="cat.jpg")
        with pytest.raises(ClientError) as exc_info:
            client.put_object(Bucket="media", Key="x", Body=b"")

        assert error_code(exc_info) == "ServiceUnavailable"

    def test_operation_tracking(self):
        client = setup_test_s3_environment()

        client.get_object(Bucket="media", Key="cat.jpg")
        client.head_object(Bucket="media", Key="cat.jpg")

        assert client.operation_count == 2
        assert client.operations == ["GetObject", "HeadObject"]


class TestS3Bucket:
    def test_list_objects_with_prefix(self):
        bucket = S3Bucket(name="b")
        bucket.add_object("images/a.jpg", b"a")
        bucket.add_object("videos/b.mp4", b"b")

        assert [obj.key for obj in bucket.list_objects("images/")] == ["images/a.jpg"]

    def test_object_size_defaults_to_body_length(self):
        obj = S3Bucket(name="b").add_object("k", b"12345")
        assert obj.size == 5


class TestFakeSQSClient:
    def test_receive_leases_messages(self):
        client = FakeSQSClient()
        client.send_message(QueueUrl="q", MessageBody="one")

        first = client.receive_message(QueueUrl="q", MaxNumberOfMessages=10)
        second = client.receive_message(QueueUrl="q", MaxNumberOfMessages=10)

        assert [m["Body"] for m in first["Messages"]] == ["one"]
        assert first["Messages"][0]["Attributes"]["ApproximateReceiveCount"] == "1"
        assert second == {}

    def test_delete_with_old_receipt_handle_fails(self):
        client = FakeSQSClient()
        client.send_message(QueueUrl="q", MessageBody="one")
        old = client.receive_message(QueueUrl="q")["Messages"][0]["ReceiptHandle"]
        client.expire_in_flight()
        client.receive_message(QueueUrl="q")

        with pytest.raises(ClientError) as exc_info:
            client.delete_message(QueueUrl="q", ReceiptHandle=old)

        assert error_code(exc_info) == "ReceiptHandleIsInvalid"

    def test_change_visibility_to_zero_releases_message(self):
        client = FakeSQSClient()
        client.send_message(QueueUrl="q", MessageBody="one")
        handle = client.receive_message(QueueUrl="q")["Messages"][0]["ReceiptHandle"]

        client.change_message_visibility(QueueUrl="q", ReceiptHandle=handle, VisibilityTimeout=0)

        assert client.visible_count == 1
        assert client.in_flight_count == 0


class TestFakeRekognitionClient:
    def test_default_responses(self):
        client = FakeRekognitionClient()

        labels = client.detect_labels(Image={"Bytes": b""})

        assert labels["Labels"][0]["Name"] == "Cat"
        assert client.calls == ["detect_labels"]

    def test_responses_are_copies(self):
        client = FakeRekognitionClient()

        client.detect_faces(Image={"Bytes": b""})["FaceDetails"].clear()

        assert len(client.detect_faces(Image={"Bytes": b""})["FaceDetails"]) == 1

    def test_set_response(self):
        client = FakeRekognitionClient()
        client.set_response("detect_text", {"TextDetections": []})

        assert client.detect_text(Image={"Bytes": b""}) == {"TextDetections": []}

    def test_failure_mode_uses_api_operation_names(self):
        client = FakeRekognitionClient()
        client.set_failure_mode(True, "throttled", operations=["DetectFaces"])

        client.detect_labels(Image={"Bytes": b""})
        with pytest.raises(ClientError):
            client.detect_faces(Image={"Bytes": b""})


class TestFakeFfmpegRunner:
    def test_ffmpeg_writes_output_file(self, tmp_path):
        runner = FakeFfmpegRunner(output_bytes=b"encoded")
        output = tmp_path / "out.mp4"

        completed = runner(["ffmpeg", "-i", "in.mp4", str(output)])

        assert completed.returncode == 0
        assert output.read_bytes() == b"encoded"
        assert runner.last_command[-1] == str(output)

    def test_ffprobe_prints_json(self):
        runner = FakeFfmpegRunner()

        completed = runner(["/usr/bin/ffprobe", "-of", "json", "in.mp4"])

        assert json.loads(completed.stdout)["format"]["duration"] == "12.5"

    def test_failure_and_timeout(self, tmp_path):
        runner = FakeFfmpegRunner()
        runner.set_failure(returncode=2, stderr=b"bad")

        completed = runner(["ffmpeg", str(tmp_path / "out")])
        assert completed.returncode == 2
        assert completed.stderr == b"bad"

        runner.raise_timeout = True
        with pytest.raises(subprocess.TimeoutExpired):
            runner(["ffmpeg", str(tmp_path / "out")], timeout=1)

    def test_missing_executable(self):
        runner = FakeFfmpegRunner()
        runner.missing_executable = True

        with pytest.raises(FileNotFoundError):
            runner(["ffmpeg", "out"])


class TestFakeLogger:
    def test_logs_are_captured_by_level(self):
        logger = FakeLogger()

        logger.info("hello", key="value")
        logger.error("bad")

        assert logger.get_logs("INFO") == [
            {"level": "INFO", "message": "hello", "timestamp": logger.logs[0]["timestamp"], "key": "value"}
        ]
        assert len(logger.get_logs()) == 2

        logger.clear_logs()
        assert logger.get_logs() == []


class TestHelpers:
    def test_create_test_image_formats(self):
        assert create_test_image(fmt="JPEG").startswith(b"\xff\xd8")
        assert create_test_image(fmt="PNG").startswith(b"\x89PNG")

    def test_setup_test_s3_environment(self):
        client = setup_test_s3_environment()

        assert set(client.buckets) == {"media", "thumbnails", "processed", "temp"}
        assert sorted(client.buckets["media"].objects) == ["cat.jpg", "clip.mp4", "doc.png"]
        assert client.buckets["media"].objects["doc.png"].content_type == "image/png"
