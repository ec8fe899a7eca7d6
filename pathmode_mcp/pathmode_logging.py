"""Logging and observability utilities for the Pathmode MCP server.

This module provides structured logging, performance monitoring,
and observability hooks for tool invocations and graph analysis.
Console output goes to stderr because stdout carries the MCP stdio stream.
"""

from __future__ import annotations

import inspect
import json
import sys
import time
import logging as std_logging
from collections import deque
from contextlib import contextmanager
from datetime import datetime, timezone
from functools import wraps
from pathlib import Path
from typing import Any, Callable, Deque, Dict, List, Optional, Union

LOGGER_NAME = "pathmode"
MAX_METRICS_PER_NAME = 1000


def setup_logging(log_level: Union[str, int] = std_logging.INFO, log_file: Optional[Path] = None) -> None:
    """Setup structured logging for the server."""

    logger = std_logging.getLogger(LOGGER_NAME)
    logger.setLevel(log_level)

    # Clear existing handlers
    logger.handlers.clear()

    detailed_formatter = std_logging.Formatter(
        fmt="%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(funcName)s:%(lineno)d - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )

    console_handler = std_logging.StreamHandler(sys.stderr)
    console_handler.setLevel(log_level)
    console_handler.setFormatter(detailed_formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = std_logging.FileHandler(log_file)
        file_handler.setLevel(std_logging.DEBUG)
        file_handler.setFormatter(JsonFormatter())
        logger.addHandler(file_handler)

    logger.info("Pathmode logging initialized")


class JsonFormatter(std_logging.Formatter):
    """JSON formatter for structured logging."""

    def format(self, record: std_logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_entry = {
            "timestamp": datetime.fromtimestamp(record.created).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
            "message": record.getMessage(),
        }

        if record.exc_info:
            log_entry["exception"] = self.formatException(record.exc_info)

        if hasattr(record, "extra_fields"):
            log_entry.update(record.extra_fields)

        return json.dumps(log_entry, default=str)


def _utcnow() -> str:
    return datetime.now(timezone.utc).isoformat()


class PerformanceMonitor:
    """Keep the most recent duration metrics for server operations in memory."""

    def __init__(self, max_per_metric: int = MAX_METRICS_PER_NAME):
        self.max_per_metric = max_per_metric
        self.metrics: Dict[str, Deque[Dict[str, Any]]] = {}

    def record_metric(self, name: str, value: Any, tags: Optional[Dict[str, str]] = None) -> None:
        """Record a performance metric."""
        metric = {
            "timestamp": _utcnow(),
            "name": name,
            "value": value,
            "tags": tags or {}
        }
        self.metrics.setdefault(name, deque(maxlen=self.max_per_metric)).append(metric)

        logger = std_logging.getLogger(f"{LOGGER_NAME}.performance")
        logger.debug(f"Metric recorded: {name}={value}", extra={"extra_fields": metric})

    def get_metrics(self, name: Optional[str] = None) -> Dict[str, List[Dict[str, Any]]]:
        """Get recorded metrics."""
        if name:
            return {name: list(self.metrics.get(name, ()))}
        return {key: list(values) for key, values in self.metrics.items()}

    def clear(self) -> None:
        self.metrics.clear()


performance_monitor = PerformanceMonitor()


def log_performance(operation_name: str):
    """Decorator recording the duration of a sync or async operation."""

    def _success(start_time: float) -> None:
        duration = time.perf_counter() - start_time
        performance_monitor.record_metric(
            f"{operation_name}_duration", duration, {"status": "success"}
        )
        std_logging.getLogger(f"{LOGGER_NAME}.performance").info(
            f"Completed operation: {operation_name} in {duration:.3f}s",
            extra={"extra_fields": {
                "operation": operation_name,
                "duration": duration,
                "status": "success"
            }}
        )

    def _failure(start_time: float, error: Exception) -> None:
        duration = time.perf_counter() - start_time
        performance_monitor.record_metric(
            f"{operation_name}_duration",
            duration,
            {"status": "error", "error_type": type(error).__name__}
        )
        std_logging.getLogger(f"{LOGGER_NAME}.performance").error(
            f"Failed operation: {operation_name} after {duration:.3f}s - {error}",
            extra={"extra_fields": {
                "operation": operation_name,
                "duration": duration,
                "status": "error",
                "error_type": type(error).__name__,
                "error_message": str(error)
            }}
        )

    def decorator(func):
        if inspect.iscoroutinefunction(func):
            @wraps(func)
            async def async_wrapper(*args, **kwargs):
                start_time = time.perf_counter()
                try:
                    result = await func(*args, **kwargs)
                except Exception as e:
                    _failure(start_time, e)
                    raise
                _success(start_time)
                return result

            return async_wrapper

        @wraps(func)
        def wrapper(*args, **kwargs):
            start_time = time.perf_counter()
            try:
                result = func(*args, **kwargs)
            except Exception as e:
                _failure(start_time, e)
                raise
            _success(start_time)
            return result

        return wrapper
    return decorator


@contextmanager
def log_operation(operation_name: str, **extra_fields):
    """Context manager to log operations with custom fields."""
    logger = std_logging.getLogger(f"{LOGGER_NAME}.operations")
    start_time = time.perf_counter()

    logger.info(f"Starting operation: {operation_name}", extra={"extra_fields": {
        "operation": operation_name,
        "status": "started",
        **extra_fields
    }})

    try:
        yield
    except Exception as e:
        duration = time.perf_counter() - start_time
        logger.error(f"Failed operation: {operation_name} after {duration:.3f}s - {e}", extra={"extra_fields": {
            "operation": operation_name,
            "status": "failed",
            "duration": duration,
            "error_type": type(e).__name__,
            "error_message": str(e),
            **extra_fields
        }})
        raise

    duration = time.perf_counter() - start_time
    logger.info(f"Completed operation: {operation_name} in {duration:.3f}s", extra={"extra_fields": {
        "operation": operation_name,
        "status": "completed",
        "duration": duration,
        **extra_fields
    }})


class ObservabilityHooks:
    """Callbacks fired on server events such as status updates."""

    def __init__(self):
        self.hooks: Dict[str, List[Callable[..., Any]]] = {}
        self.logger = std_logging.getLogger(f"{LOGGER_NAME}.observability")

    def register_hook(self, event_type: str, callback: Callable[..., Any]) -> None:
        """Register a callback for a specific event type."""
        self.hooks.setdefault(event_type, []).append(callback)
        self.logger.debug(f"Registered hook for event: {event_type}")

    def trigger_hooks(self, event_type: str, **data) -> None:
        """Trigger all callbacks for a specific event type."""
        callbacks = self.hooks.get(event_type, [])
        if not callbacks:
            return
        self.logger.debug(f"Triggering {len(callbacks)} hooks for event: {event_type}")
        for hook in callbacks:
            try:
                hook(**data)
            except Exception as e:
                # A failing hook never fails the tool call.
                self.logger.error(f"Hook failed for event {event_type}: {e}")

    def log_event(self, event_type: str, intent_id: Optional[str] = None, **data) -> None:
        """Log a server event and trigger hooks."""
        event_data = {
            "timestamp": _utcnow(),
            "event_type": event_type,
            "intent_id": intent_id,
            **data
        }

        self.logger.info(f"Event: {event_type}", extra={"extra_fields": event_data})

        hook_data = {k: v for k, v in event_data.items() if k != "event_type"}
        self.trigger_hooks(event_type, **hook_data)


observability_hooks = ObservabilityHooks()


def log_error_with_context(error: Exception, context: Dict[str, Any], **extra_fields):
    """Log an error with rich context information."""
    logger = std_logging.getLogger(f"{LOGGER_NAME}.errors")

    error_data = {
        "timestamp": _utcnow(),
        "error_type": type(error).__name__,
        "error_message": str(error),
        "context": context,
        **extra_fields
    }

    logger.error(
        f"Error in {context.get('operation', 'unknown operation')}: {error}",
        extra={"extra_fields": error_data},
    )


def log_analysis_event(kind: str, total: int, **extra_fields):
    """Log a completed graph analysis."""
    observability_hooks.log_event("graph_analyzed", kind=kind, total=total, **extra_fields)


def log_status_update(intent_id: str, status: str, **extra_fields):
    """Log an intent status change pushed to the API."""
    observability_hooks.log_event("intent_status_updated", intent_id=intent_id, status=status, **extra_fields)


def log_note_logged(intent_id: str, **extra_fields):
    """Log an implementation note pushed to the API."""
    observability_hooks.log_event("implementation_note_logged", intent_id=intent_id, **extra_fields)
