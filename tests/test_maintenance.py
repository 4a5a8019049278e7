"""Tests for scheduled housekeeping."""

from datetime import datetime, timedelta, timezone

from media_pipeline.core.maintenance import DEFAULT_RETENTION_DAYS, cleanup_stale_objects
from media_pipeline.core.storage import S3ContentStore
from media_pipeline.testing.fakes import FakeS3Client, setup_test_s3_environment

NOW = datetime(2024, 6, 15, 12, 0, tzinfo=timezone.utc)


def test_deletes_only_stale_objects():
    s3 = setup_test_s3_environment()
    temp = s3.buckets["temp"]
    temp.add_object("old.bin", b"1", last_modified=NOW - timedelta(days=8))
    temp.add_object("fresh.bin", b"2", last_modified=NOW - timedelta(days=6))

    deleted = cleanup_stale_objects(S3ContentStore(s3), now=NOW)

    assert deleted == ["old.bin"]
    assert list(temp.objects) == ["fresh.bin"]


def test_other_namespaces_are_untouched():
    s3 = setup_test_s3_environment()
    for obj in s3.buckets["media"].objects.values():
        obj.last_modified = NOW - timedelta(days=365)

    cleanup_stale_objects(S3ContentStore(s3), now=NOW)

    assert len(s3.buckets["media"].objects) == 3


def test_custom_namespace_and_retention():
    s3 = setup_test_s3_environment()
    s3.buckets["processed"].add_object("a", b"", last_modified=NOW - timedelta(days=2))

    deleted = cleanup_stale_objects(S3ContentStore(s3), "processed", retention_days=1, now=NOW)

    assert deleted == ["a"]


def test_naive_timestamps_are_treated_as_utc():
    s3 = setup_test_s3_environment()
    naive = (NOW - timedelta(days=30)).replace(tzinfo=None)
    s3.buckets["temp"].add_object("naive.bin", b"", last_modified=naive)

    assert cleanup_stale_objects(S3ContentStore(s3), now=NOW) == ["naive.bin"]


def test_missing_namespace_is_a_no_op():
    assert cleanup_stale_objects(S3ContentStore(FakeS3Client()), now=NOW) == []


def test_default_retention():
    assert DEFAULT_RETENTION_DAYS == 7
