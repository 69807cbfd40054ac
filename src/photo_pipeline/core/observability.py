"""Observability utilities for logging and per-file metrics."""

import logging
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from .logging_config import setup_logger


class LogLevel(Enum):
    """Log levels for structured logging."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


@dataclass
class LogContext:
    """Context information for structured logging."""

    correlation_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    operation: str = ""
    component: str = ""
    metadata: Dict[str, Any] = field(default_factory=dict)

    def with_operation(self, operation: str) -> "LogContext":
        """Create new context with operation set."""
        return LogContext(
            correlation_id=self.correlation_id,
            operation=operation,
            component=self.component,
            metadata=self.metadata.copy(),
        )

    def with_metadata(self, **kwargs: Any) -> "LogContext":
        """Create new context with additional metadata."""
        new_metadata = self.metadata.copy()
        new_metadata.update(kwargs)
        return LogContext(
            correlation_id=self.correlation_id,
            operation=self.operation,
            component=self.component,
            metadata=new_metadata,
        )


class StructuredLogger:
    """Structured logger with context support."""

    def __init__(self, name: str, level: LogLevel = LogLevel.INFO):
        self._logger = setup_logger(name, level=level.value)

    @property
    def name(self) -> str:
        return self._logger.name

    def _log(
        self,
        level: LogLevel,
        message: str,
        context: Optional[LogContext] = None,
        **kwargs: Any,
    ) -> None:
        if context:
            formatted_message = f"[{context.correlation_id}] {message}"
            if context.operation:
                formatted_message = f"[{context.operation}] {formatted_message}"

            if context.metadata or kwargs:
                metadata_str = ", ".join(
                    f"{k}={v}" for k, v in {**context.metadata, **kwargs}.items()
                )
                formatted_message = f"{formatted_message} ({metadata_str})"
        elif kwargs:
            metadata_str = ", ".join(f"{k}={v}" for k, v in kwargs.items())
            formatted_message = f"{message} ({metadata_str})"
        else:
            formatted_message = message

        self._logger.log(getattr(logging, level.value), formatted_message)

    def debug(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        self._log(LogLevel.DEBUG, message, context, **kwargs)

    def info(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        self._log(LogLevel.INFO, message, context, **kwargs)

    def warning(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        self._log(LogLevel.WARNING, message, context, **kwargs)

    def error(self, message: str, context: Optional[LogContext] = None, **kwargs: Any) -> None:
        self._log(LogLevel.ERROR, message, context, **kwargs)


@dataclass
class PerformanceMetrics:
    """Timing of one processed file."""

    operation: str
    start_time: float
    end_time: float
    success: bool
    bytes_processed: int = 0
    error_message: Optional[str] = None

    @property
    def duration(self) -> float:
        """Calculate operation duration in seconds."""
        return self.end_time - self.start_time


class MetricsCollector:
    """Collector for performance metrics."""

    def __init__(self) -> None:
        self._metrics: List[PerformanceMetrics] = []

    def record_metric(self, metric: PerformanceMetrics) -> None:
        self._metrics.append(metric)

    def get_metrics(self, operation: Optional[str] = None) -> List[PerformanceMetrics]:
        """Get recorded metrics, optionally filtered by operation."""
        if operation:
            return [m for m in self._metrics if m.operation == operation]
        return self._metrics.copy()

    def get_summary(self, operation: Optional[str] = None) -> Dict[str, Any]:
        """Get summary statistics for metrics."""
        metrics = self.get_metrics(operation)

        if not metrics:
            return {}

        durations = [m.duration for m in metrics]
        successful = [m for m in metrics if m.success]
        total_bytes = sum(m.bytes_processed for m in metrics)
        total_duration = sum(durations)

        return {
            "total_operations": len(metrics),
            "successful_operations": len(successful),
            "failed_operations": len(metrics) - len(successful),
            "success_rate": len(successful) / len(metrics),
            "avg_duration": total_duration / len(durations),
            "min_duration": min(durations),
            "max_duration": max(durations),
            "total_duration": total_duration,
            "total_bytes": total_bytes,
        }

