"""Testing utilities and fakes for the media pipeline."""

from .fakes import (
    TEST_QUEUE_URL,
    FakeFfmpegRunner,
    FakeLogger,
    FakeRekognitionClient,
    FakeS3Client,
    FakeSQSClient,
    S3Bucket,
    S3Object,
    create_test_image,
    make_client_error,
    setup_test_s3_environment,
)

__all__ = [
    "TEST_QUEUE_URL",
    "FakeS3Client",
    "FakeSQSClient",
    "FakeRekognitionClient",
    "FakeFfmpegRunner",
    "FakeLogger",
    "S3Object",
    "S3Bucket",
    "create_test_image",
    "make_client_error",
    "setup_test_s3_environment",
]
