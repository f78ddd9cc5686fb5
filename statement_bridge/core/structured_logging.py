"""
Statement Bridge - Structured Logging

This module provides structured JSON logging with categories, metadata and
operation timings. Module code logs through plain ``logging.getLogger(__name__)``
loggers and attaches structured fields via ``extra``.
"""

import json
import logging
import logging.config
import threading
import time
import traceback
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional


class LogCategory(Enum):
    """Log categories for filtering and routing."""

    SYSTEM = "system"
    PERFORMANCE = "performance"
    PARSING = "parsing"
    SERIALIZATION = "serialization"
    CONVERSION = "conversion"
    COMPARISON = "comparison"
    RECONCILIATION = "reconciliation"


@dataclass
class LogEvent:
    """Structured log event."""

    timestamp: float
    level: str
    category: LogCategory
    message: str
    component: str
    operation: Optional[str] = None
    exception: Optional[BaseException] = None
    performance_metrics: Optional[Dict[str, float]] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        result = {
            "timestamp": self.timestamp,
            "iso_timestamp": datetime.fromtimestamp(self.timestamp, timezone.utc).isoformat(),
            "level": self.level,
            "category": self.category.value,
            "message": self.message,
            "component": self.component,
            "operation": self.operation,
            "metadata": self.metadata,
        }

        if self.exception:
            result["exception"] = {
                "type": type(self.exception).__name__,
                "message": str(self.exception),
                "traceback": traceback.format_exception(
                    type(self.exception), self.exception, self.exception.__traceback__
                ),
            }

        if self.performance_metrics:
            result["performance_metrics"] = self.performance_metrics

        return result

    def to_json(self) -> str:
        """Convert to JSON string."""
        return json.dumps(self.to_dict(), ensure_ascii=False, default=str)


class StructuredFormatter(logging.Formatter):
    """Formats log records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        category = getattr(record, "category", LogCategory.SYSTEM)
        if not isinstance(category, LogCategory):
            category = LogCategory(category)

        log_event = LogEvent(
            timestamp=record.created,
            level=record.levelname,
            category=category,
            message=record.getMessage(),
            component=getattr(record, "component", record.name),
            operation=getattr(record, "operation", None),
            exception=record.exc_info[1] if record.exc_info else None,
            performance_metrics=getattr(record, "performance_metrics", None),
            metadata=getattr(record, "metadata", {}),
        )

        return log_event.to_json()


class PerformanceLogger:
    """Logger specifically for performance metrics."""

    def __init__(self, logger: logging.Logger):
        self.logger = logger
        self.operation_times: Dict[str, List[float]] = {}
        self.lock = threading.Lock()

    @contextmanager
    def time_operation(self, operation_name: str, **metadata: Any):
        """Context manager to time operations."""
        start_time = time.perf_counter()

        try:
            yield
        finally:
            duration = time.perf_counter() - start_time

            with self.lock:
                times = self.operation_times.setdefault(operation_name, [])
                times.append(duration)
                # Keep only last 1000 measurements
                if len(times) > 1000:
                    self.operation_times[operation_name] = times[-1000:]

            self.logger.debug(
                f"Operation {operation_name} completed",
                extra={
                    "category": LogCategory.PERFORMANCE,
                    "operation": operation_name,
                    "performance_metrics": {
                        "duration_seconds": duration,
                        "duration_ms": duration * 1000,
                    },
                    "metadata": metadata,
                },
            )

    def get_operation_stats(self, operation_name: str) -> Optional[Dict[str, float]]:
        """Get statistics for an operation."""
        with self.lock:
            times = self.operation_times.get(operation_name)
            if not times:
                return None

            return {
                "count": len(times),
                "mean": sum(times) / len(times),
                "min": min(times),
                "max": max(times),
                "total": sum(times),
            }


def build_logging_config(level: str = "INFO", fmt: str = "text") -> Dict[str, Any]:
    """Build a dictConfig mapping for the given level and output format."""
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "structured": {"()": StructuredFormatter},
            "simple": {"format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": level,
                "formatter": "structured" if fmt == "json" else "simple",
                "stream": "ext://sys.stderr",
            },
        },
        "loggers": {
            "statement_bridge": {
                "level": level,
                "handlers": ["console"],
                "propagate": False,
            },
        },
    }


def configure_logging(level: str = "INFO", fmt: str = "text", config: Optional[Dict[str, Any]] = None):
    """Configure the logging system."""
    logging.config.dictConfig(config or build_logging_config(level.upper(), fmt))
