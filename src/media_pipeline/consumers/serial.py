"""Serial consumer strategy - handles leased messages one by one."""

from typing import List

from ..core.models import MessageOutcome, QueueMessage
from ..core.worker import PipelineWorker


def process_batch(
    batch: List[QueueMessage], worker: PipelineWorker
) -> List[MessageOutcome]:
    """
    Processes a batch of messages serially, one by one, in the current thread.

    Args:
        batch: Messages leased from the work queue.
        worker: `PipelineWorker` that handles and settles each message.

    Returns:
        A list of `MessageOutcome` objects, one per message, in batch order.
    """
    results = []

    for message in batch:
        results.append(worker.process_message(message))

    return results
