"""Structured logging utilities for test-excludes.

This module provides structured logging using structlog.
Log entries emitted while a declaration file is being parsed carry the
file name under ``source``.
"""

import logging
import time
from contextvars import ContextVar
from typing import Any, Optional

import structlog
from structlog.types import EventDict, Processor

# Context variable naming the declaration file currently being parsed
source_var: ContextVar[Optional[str]] = ContextVar("source", default=None)


def add_source(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add the declaration source to log context if available."""
    source = source_var.get()
    if source and "source" not in event_dict:
        event_dict["source"] = source
    return event_dict


def add_timestamp(logger: logging.Logger, method_name: str, event_dict: EventDict) -> EventDict:
    """Add epoch timestamp to log entries."""
    event_dict["timestamp"] = time.time()
    return event_dict


def configure_logging(
    log_level: str = "INFO",
    json_output: bool = True
) -> None:
    """Configure structured logging.

    Args:
        log_level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        json_output: If True, output JSON format. If False, use console format.
    """
    processors: list[Processor] = [
        structlog.contextvars.merge_contextvars,
        add_source,
        add_timestamp,
        structlog.processors.add_log_level,
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]

    if json_output:
        processors.append(structlog.processors.JSONRenderer())
    else:
        processors.extend([
            structlog.dev.ConsoleRenderer(colors=False),
        ])

    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper())
        ),
        context_class=dict,
        # PrintLogger binds the current sys.stdout on every call
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=False,
    )


def get_logger(name: str = "excludes") -> structlog.stdlib.BoundLogger:
    """Get a configured logger instance.

    Args:
        name: Logger name (typically module name)

    Returns:
        Configured structlog logger
    """
    return structlog.get_logger(name)


class PerformanceLogger:
    """Context manager for tracking operation performance."""

    def __init__(
        self,
        operation: str,
        logger: Optional[structlog.stdlib.BoundLogger] = None,
        threshold_ms: float = 250,
        **fields: Any,
    ):
        """Initialize performance logger.

        Args:
            operation: Name of the operation being timed
            logger: Logger instance to use (creates new if None)
            threshold_ms: Durations above this are logged as warnings
            fields: Extra key/values added to the completion log entry
        """
        self.operation = operation
        self.logger = logger or get_logger()
        self.threshold_ms = threshold_ms
        self.fields = fields
        self.start_time: float = 0
        self.end_time: float = 0

    def __enter__(self) -> "PerformanceLogger":
        """Start timing."""
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        """Stop timing and log performance."""
        self.end_time = time.perf_counter()
        duration_ms = (self.end_time - self.start_time) * 1000

        if exc_type is not None:
            self.logger.error(
                f"{self.operation} failed",
                operation=self.operation,
                duration_ms=duration_ms,
                error=str(exc_val),
                **self.fields,
            )
        else:
            log_method = self.logger.warning if duration_ms > self.threshold_ms else self.logger.debug
            log_method(
                f"{self.operation} completed",
                operation=self.operation,
                duration_ms=duration_ms,
                **self.fields,
            )


def set_source(source: str) -> None:
    """Set the declaration source in context for all subsequent logs.

    Args:
        source: Path or label of the declaration file being parsed
    """
    source_var.set(source)


def clear_source() -> None:
    """Clear the declaration source from context."""
    source_var.set(None)
