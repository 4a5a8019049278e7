"""Observability utilities: request-scoped log context and per-request metrics."""

import logging
import threading
import uuid
from collections import defaultdict, deque
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any, Deque, Dict, List, Optional, Tuple

from .logging_config import get_logger

if TYPE_CHECKING:
    from .models import ProcessingRequest, QueueMessage


class LogLevel(Enum):
    """Log levels for structured logging."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class LogContext:
    """Correlation data attached to every line logged for one request.

    The correlation id is the media id when the request carries one, so a
    single upload can be followed from intake through every worker.
    """

    correlation_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    operation: str = ""
    component: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def for_request(
        cls, request: "ProcessingRequest", operation: str, component: str
    ) -> "LogContext":
        return cls(
            correlation_id=request.media_id or request.source_key,
            operation=operation,
            component=component,
            metadata={
                "source_key": request.source_key,
                "processing_type": request.processing_type.value,
            },
        )

    @classmethod
    def for_message(cls, message: "QueueMessage", component: str) -> "LogContext":
        return cls(
            correlation_id=message.message_id or message.receipt_handle[:16],
            operation="process_message",
            component=component,
            metadata={"receive_count": message.receive_count},
        )

    def with_operation(self, operation: str) -> "LogContext":
        """Create new context with operation set."""
        return LogContext(
            correlation_id=self.correlation_id,
            operation=operation,
            component=self.component,
            metadata=self.metadata.copy(),
        )

    def with_metadata(self, **kwargs) -> "LogContext":
        """Create new context with additional metadata."""
        return LogContext(
            correlation_id=self.correlation_id,
            operation=self.operation,
            component=self.component,
            metadata={**self.metadata, **kwargs},
        )

    def render(self, message: str, fields: Dict[str, Any]) -> str:
        text = f"[{self.correlation_id}] {message}"
        if self.operation:
            text = f"[{self.operation}] {text}"
        return _with_fields(text, {**self.metadata, **fields})


def _with_fields(message: str, fields: Dict[str, Any]) -> str:
    if not fields:
        return message
    return f"{message} ({', '.join(f'{k}={v}' for k, v in fields.items())})"


class StructuredLogger:
    """Logger that renders a LogContext and keyword fields into each line.

    Records go through the ``media-pipeline`` logger hierarchy, so the
    handler and format come from ``setup_logger``.
    """

    def __init__(self, name: str, level: Optional[int] = None):
        self._logger = get_logger(name)
        if level is not None:
            self._logger.setLevel(level)

    @property
    def name(self) -> str:
        return self._logger.name

    def _log(
        self,
        level: LogLevel,
        message: str,
        context: Optional[LogContext] = None,
        exc_info: bool = False,
        **kwargs,
    ):
        if context:
            text = context.render(message, kwargs)
        else:
            text = _with_fields(message, kwargs)
        self._logger.log(getattr(logging, level.value), text, exc_info=exc_info)

    def debug(self, message: str, context: Optional[LogContext] = None, **kwargs):
        self._log(LogLevel.DEBUG, message, context, **kwargs)

    def info(self, message: str, context: Optional[LogContext] = None, **kwargs):
        self._log(LogLevel.INFO, message, context, **kwargs)

    def warning(self, message: str, context: Optional[LogContext] = None, **kwargs):
        self._log(LogLevel.WARNING, message, context, **kwargs)

    def error(self, message: str, context: Optional[LogContext] = None, **kwargs):
        self._log(LogLevel.ERROR, message, context, **kwargs)

    def critical(self, message: str, context: Optional[LogContext] = None, **kwargs):
        self._log(LogLevel.CRITICAL, message, context, **kwargs)


@dataclass
class PerformanceMetrics:
    """Timing of one operation, tagged with request metadata."""

    operation: str
    start_time: float
    end_time: float
    success: bool
    error_message: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    @property
    def duration_ms(self) -> float:
        return self.duration * 1000


@dataclass
class _RunningTotals:
    count: int = 0
    successes: int = 0
    total_duration: float = 0.0
    min_duration: float = float("inf")
    max_duration: float = 0.0

    def add(self, metric: PerformanceMetrics):
        self.count += 1
        self.successes += int(metric.success)
        self.total_duration += metric.duration
        self.min_duration = min(self.min_duration, metric.duration)
        self.max_duration = max(self.max_duration, metric.duration)

    def summary(self) -> Dict[str, Any]:
        if not self.count:
            return {}
        return {
            "total_operations": self.count,
            "successful_operations": self.successes,
            "failed_operations": self.count - self.successes,
            "success_rate": self.successes / self.count,
            "avg_duration": self.total_duration / self.count,
            "min_duration": self.min_duration,
            "max_duration": self.max_duration,
            "total_duration": self.total_duration,
        }


class MetricsCollector:
    """Collector for performance metrics, safe to share across consumer threads.

    Only the most recent ``max_records`` metrics are kept verbatim. Summaries
    come from running totals, so they cover every metric ever recorded while
    memory stays bounded in a long-running worker. Grouped summaries are
    available for the metadata keys named in ``summary_keys``.
    """

    def __init__(
        self,
        max_records: int = 1000,
        summary_keys: Tuple[str, ...] = ("processing_type",),
    ):
        self._metrics: Deque[PerformanceMetrics] = deque(maxlen=max_records)
        self._summary_keys = summary_keys
        self._totals: Dict[Optional[str], _RunningTotals] = defaultdict(_RunningTotals)
        self._grouped: Dict[Tuple[Optional[str], str], Dict[str, _RunningTotals]] = defaultdict(
            lambda: defaultdict(_RunningTotals)
        )
        self._lock = threading.Lock()

    def record_metric(self, metric: PerformanceMetrics):
        with self._lock:
            self._metrics.append(metric)
            for operation in (None, metric.operation):
                self._totals[operation].add(metric)
                for key in self._summary_keys:
                    value = str(metric.metadata.get(key, "unknown"))
                    self._grouped[(operation, key)][value].add(metric)

    def get_metrics(self, operation: Optional[str] = None) -> List[PerformanceMetrics]:
        """Get the most recent metrics, optionally filtered by operation."""
        with self._lock:
            if operation:
                return [m for m in self._metrics if m.operation == operation]
            return list(self._metrics)

    def get_summary(self, operation: Optional[str] = None) -> Dict[str, Any]:
        """Count, success rate and duration statistics; empty when nothing was recorded."""
        with self._lock:
            totals = self._totals.get(operation)
            return totals.summary() if totals else {}

    def get_summary_by(self, metadata_key: str, operation: Optional[str] = None) -> Dict[str, Dict[str, Any]]:
        """Summaries grouped by a metadata value, e.g. per processing type."""
        if metadata_key not in self._summary_keys:
            raise ValueError(f"Metrics are not grouped by '{metadata_key}'")
        with self._lock:
            groups = self._grouped.get((operation, metadata_key), {})
            return {value: totals.summary() for value, totals in sorted(groups.items())}

    def clear_metrics(self):
        with self._lock:
            self._metrics.clear()
            self._totals.clear()
            self._grouped.clear()


def create_logger(name: str, level: LogLevel = LogLevel.INFO) -> StructuredLogger:
    """Create a structured logger at the given level."""
    return StructuredLogger(name, getattr(logging, level.value))
