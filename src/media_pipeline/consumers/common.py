"""Drain loop and reporting shared by all consumer strategies."""

import threading
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from ..core import PipelineConfig, get_logger
from ..core.error_handling import BatchOperationContextManager
from ..core.exceptions import QueueUnavailable
from ..core.models import Disposition, MessageOutcome, QueueMessage
from ..core.protocols import WorkQueueProtocol
from ..core.worker import PipelineWorker

ProcessBatchFn = Callable[[List[QueueMessage], PipelineWorker], List[MessageOutcome]]

RECEIVE_BACKOFF_SECONDS = 1.0
MAX_RECEIVE_BACKOFF_SECONDS = 30.0


@dataclass
class ConsumerStats:
    """Tally of message dispositions over one consumer run."""

    acked: int = 0
    dropped: int = 0
    abandoned: int = 0
    polls: int = 0
    receive_errors: int = 0

    @property
    def messages(self) -> int:
        return self.acked + self.dropped + self.abandoned

    def record(self, outcome: MessageOutcome) -> None:
        if outcome.disposition == Disposition.ACK:
            self.acked += 1
        elif outcome.disposition == Disposition.DROP:
            self.dropped += 1
        else:
            self.abandoned += 1


def receive_backoff(
    consecutive_failures: int,
    base: float = RECEIVE_BACKOFF_SECONDS,
    maximum: float = MAX_RECEIVE_BACKOFF_SECONDS,
) -> float:
    """Delay before the next poll, doubling per consecutive failed receive."""
    return min(maximum, base * 2 ** (consecutive_failures - 1))


def log_configuration(config: PipelineConfig, processor_name: str):
    """Log consumer configuration."""
    logger = get_logger("consumer")
    logger.info("=" * 80)
    logger.info(f"{processor_name.upper()} MEDIA PIPELINE CONSUMER")
    logger.info("=" * 80)

    logger.info("CONFIGURATION:")
    logger.info(f"  Queue:         {config.queue_url or '(not set)'}")
    for namespace, bucket in sorted(config.buckets.items()):
        logger.info(f"  {namespace + ':':<14} s3://{bucket}")
    logger.info("")

    logger.info("CONSUMER OPTIONS:")
    logger.info(f"  Batch Size: {config.batch_size}")
    logger.info(f"  Wait Time: {config.wait_time_seconds}s")
    logger.info(f"  Visibility Timeout: {config.visibility_timeout}s")
    logger.info(f"  Concurrency: {config.concurrency}")
    logger.info(f"  FFmpeg: {config.ffmpeg_path} (timeout {config.ffmpeg_timeout:.0f}s)")
    logger.info("=" * 80)


def log_final_statistics(total_time: float, stats: ConsumerStats):
    """Log final consumer statistics."""
    logger = get_logger("consumer")
    overall_rate = stats.messages / total_time if total_time > 0 else 0

    logger.info("=" * 80)
    logger.info("CONSUMER STOPPED")
    logger.info("=" * 80)
    logger.info(f"Total execution time: {total_time:.1f}s")
    logger.info(f"Polls: {stats.polls} ({stats.receive_errors} failed)")
    logger.info(f"Overall processing rate: {overall_rate:.1f} messages/sec")
    logger.info(f"Acknowledged: {stats.acked}")
    logger.info(f"Dropped: {stats.dropped}")
    logger.info(f"Abandoned for redelivery: {stats.abandoned}")
    logger.info("=" * 80)


def run_consumer(
    queue: WorkQueueProtocol,
    worker: PipelineWorker,
    process_batch_fn: ProcessBatchFn,
    batch_size: int = 10,
    max_polls: Optional[int] = None,
    idle_polls_limit: Optional[int] = None,
    stop_event: Optional[threading.Event] = None,
    processor_name: str = "serial",
) -> ConsumerStats:
    """
    Poll the work queue and hand each batch to ``process_batch_fn``.

    Stops after ``max_polls`` polls, after ``idle_polls_limit`` consecutive
    empty polls, or once ``stop_event`` is set; otherwise runs until
    interrupted. A failed receive is logged and the next poll waits for an
    exponential backoff, reset by the next successful receive. Failed polls
    count as empty ones toward ``idle_polls_limit``.

    Returns:
        ConsumerStats with per-disposition counts
    """
    logger = get_logger("consumer")
    stats = ConsumerStats()
    idle_polls = 0
    receive_failures = 0
    start_time = time.time()

    with BatchOperationContextManager(
        operation_name=f"Queue consumption via {processor_name}"
    ) as batch_manager:
        while not (stop_event and stop_event.is_set()):
            if max_polls is not None and stats.polls >= max_polls:
                break

            stats.polls += 1
            try:
                messages = queue.receive(batch_size)
            except QueueUnavailable as e:
                stats.receive_errors += 1
                receive_failures += 1
                idle_polls += 1
                if idle_polls_limit is not None and idle_polls >= idle_polls_limit:
                    logger.error(
                        f"Poll {stats.polls} failed: {e}; "
                        f"no messages for {idle_polls} consecutive polls, stopping"
                    )
                    break
                delay = receive_backoff(receive_failures)
                logger.error(f"Poll {stats.polls} failed: {e}; retrying in {delay:.1f}s")
                if stop_event:
                    stop_event.wait(delay)
                else:
                    time.sleep(delay)
                continue

            receive_failures = 0

            if not messages:
                idle_polls += 1
                logger.debug(f"Poll {stats.polls} returned no messages")
                if idle_polls_limit is not None and idle_polls >= idle_polls_limit:
                    logger.info(f"No messages for {idle_polls} consecutive polls, stopping")
                    break
                continue

            idle_polls = 0
            batch_start_time = time.time()
            outcomes = process_batch_fn(messages, worker)

            for outcome in outcomes:
                stats.record(outcome)
                if outcome.disposition != Disposition.ACK:
                    batch_manager.add_error(
                        outcome.error or "Unknown error",
                        item_identifier=outcome.message_id or "Unknown message",
                        disposition=outcome.disposition.value,
                    )

            logger.info(
                f"Poll {stats.polls}: {len(messages)} messages in "
                f"{time.time() - batch_start_time:.2f}s - "
                f"Acked: {stats.acked}, Dropped: {stats.dropped}, "
                f"Abandoned: {stats.abandoned}"
            )

    log_final_statistics(time.time() - start_time, stats)
    return stats
