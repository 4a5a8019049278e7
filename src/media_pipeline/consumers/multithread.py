"""Multithreaded consumer strategy - uses a thread pool for parallelism."""

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import List

from ..core.models import Disposition, MessageOutcome, QueueMessage
from ..core.worker import PipelineWorker

DEFAULT_MAX_WORKERS = 4


def process_batch(
    batch: List[QueueMessage],
    worker: PipelineWorker,
    max_workers: int = DEFAULT_MAX_WORKERS,
) -> List[MessageOutcome]:
    """
    Process a batch of messages on a thread pool.

    The worker holds no per-request state, so one instance serves every
    thread; each request keeps its buffers and staging files to itself.

    Args:
        batch: Messages leased from the work queue
        worker: Pipeline worker shared by all threads
        max_workers: Upper bound on concurrent requests

    Returns:
        Outcomes in completion order
    """
    if not batch:
        return []

    results: List[MessageOutcome] = []
    pool_size = min(max_workers, len(batch))

    with ThreadPoolExecutor(
        max_workers=pool_size, thread_name_prefix="consumer"
    ) as executor:
        future_to_message = {
            executor.submit(worker.process_message, message): message
            for message in batch
        }

        for future in as_completed(future_to_message):
            try:
                results.append(future.result())
            except Exception as e:
                # Unsettled: the lease expires and the queue redelivers it
                message = future_to_message[future]
                results.append(
                    MessageOutcome(
                        message_id=message.message_id,
                        disposition=Disposition.ABANDON,
                        error=str(e),
                    )
                )

    return results
