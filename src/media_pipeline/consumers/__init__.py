"""Queue consumers with different concurrency strategies."""

from .common import ConsumerStats, run_consumer
from .multithread import process_batch as multithread_process_batch
from .serial import process_batch as serial_process_batch

__all__ = [
    "ConsumerStats",
    "run_consumer",
    "serial_process_batch",
    "multithread_process_batch",
]
