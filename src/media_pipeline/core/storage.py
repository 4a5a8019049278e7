"""Content store backed by S3 buckets, one bucket per namespace."""

from datetime import datetime
from typing import Dict, Iterator, Mapping, Optional, Tuple

from botocore.exceptions import ClientError

from .error_handling import client_error_code, is_not_found_error, translate_store_errors
from .exceptions import ObjectNotFound
from .models import DEFAULT_BUCKETS
from .protocols import LoggerProtocol, S3ClientProtocol


class S3ContentStore:
    """Whole-object get/put plus string metadata over S3.

    Every put replaces the object atomically, so writing the same derived key
    twice converges to a single object rather than accumulating copies.
    """

    def __init__(
        self,
        s3_client: S3ClientProtocol,
        buckets: Optional[Mapping[str, str]] = None,
        logger: Optional[LoggerProtocol] = None,
    ):
        self._s3_client = s3_client
        self._buckets: Dict[str, str] = dict(DEFAULT_BUCKETS if buckets is None else buckets)
        self._logger = logger

    def bucket_for(self, namespace: str) -> str:
        """Map a logical namespace to a bucket; unknown names are literal buckets."""
        return self._buckets.get(namespace, namespace)

    @translate_store_errors
    def get(self, namespace: str, key: str) -> bytes:
        bucket = self.bucket_for(namespace)
        if self._logger:
            self._logger.debug(f"Downloading s3://{bucket}/{key}")
        try:
            response = self._s3_client.get_object(Bucket=bucket, Key=key)
        except ClientError as e:
            if is_not_found_error(e):
                raise ObjectNotFound(namespace, key) from e
            raise
        return response["Body"].read()

    @translate_store_errors
    def put(self, namespace: str, key: str, data: bytes, content_type: str) -> None:
        bucket = self.bucket_for(namespace)
        if self._logger:
            self._logger.debug(f"Uploading s3://{bucket}/{key} ({len(data)} bytes, {content_type})")
        self._s3_client.put_object(
            Bucket=bucket, Key=key, Body=data, ContentType=content_type
        )

    @translate_store_errors
    def get_metadata(self, namespace: str, key: str) -> Dict[str, str]:
        return dict(self._head(namespace, key).get("Metadata") or {})

    @translate_store_errors
    def set_metadata(self, namespace: str, key: str, metadata: Mapping[str, str]) -> None:
        """Replace the user metadata of an object, keeping its content type.

        S3 metadata is immutable, so this is an in-place copy with
        ``MetadataDirective=REPLACE``.
        """
        bucket = self.bucket_for(namespace)
        head = self._head(namespace, key)
        self._s3_client.copy_object(
            Bucket=bucket,
            Key=key,
            CopySource={"Bucket": bucket, "Key": key},
            Metadata=dict(metadata),
            MetadataDirective="REPLACE",
            ContentType=head.get("ContentType", "application/octet-stream"),
        )

    @translate_store_errors
    def list_objects(self, namespace: str) -> Iterator[Tuple[str, datetime]]:
        """Yield ``(key, last_modified)`` for every object in the namespace."""
        bucket = self.bucket_for(namespace)
        paginator = self._s3_client.get_paginator("list_objects_v2")
        objects = []
        try:
            for page in paginator.paginate(Bucket=bucket):
                for obj in page.get("Contents", []):
                    objects.append((obj["Key"], obj["LastModified"]))
        except ClientError as e:
            if client_error_code(e) == "NoSuchBucket":
                raise ObjectNotFound(namespace, "") from e
            raise
        return iter(objects)

    @translate_store_errors
    def delete(self, namespace: str, key: str) -> None:
        self._s3_client.delete_object(Bucket=self.bucket_for(namespace), Key=key)

    def _head(self, namespace: str, key: str) -> Dict:
        try:
            return self._s3_client.head_object(Bucket=self.bucket_for(namespace), Key=key)
        except ClientError as e:
            if is_not_found_error(e):
                raise ObjectNotFound(namespace, key) from e
            raise
