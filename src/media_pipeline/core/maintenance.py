"""Scheduled housekeeping for the content store."""

from datetime import datetime, timedelta, timezone
from typing import List, Optional

from .exceptions import ObjectNotFound
from .logging_config import get_logger
from .models import Namespace
from .protocols import ContentStoreProtocol

DEFAULT_RETENTION_DAYS = 7

logger = get_logger("media-pipeline.maintenance")


def cleanup_stale_objects(
    store: ContentStoreProtocol,
    namespace: str = Namespace.TEMP.value,
    retention_days: int = DEFAULT_RETENTION_DAYS,
    now: Optional[datetime] = None,
) -> List[str]:
    """
    Delete objects last modified more than ``retention_days`` ago.

    Args:
        store: Content store to clean
        namespace: Namespace to sweep (temp by default)
        retention_days: Age in days after which an object is stale
        now: Reference time, timezone-aware; defaults to the current UTC time

    Returns:
        Keys that were deleted
    """
    now = now or datetime.now(timezone.utc)
    cutoff = now - timedelta(days=retention_days)

    try:
        objects = list(store.list_objects(namespace))
    except ObjectNotFound:
        logger.info(f"Namespace '{namespace}' does not exist, nothing to clean")
        return []

    deleted = []
    for key, last_modified in objects:
        if last_modified.tzinfo is None:
            last_modified = last_modified.replace(tzinfo=timezone.utc)
        if last_modified < cutoff:
            store.delete(namespace, key)
            deleted.append(key)

    logger.info(
        f"Cleaned {len(deleted)} of {len(objects)} objects older than "
        f"{retention_days} days from '{namespace}'"
    )
    return deleted
