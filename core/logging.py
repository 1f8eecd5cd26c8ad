# ============================================================================
# STRUCTURED LOGGING
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Core - Structured logging with context
# PURPOSE: Consistent, queryable logging across bus, scheduler and pipeline
# CREATED: 14 OCT 2026
# ============================================================================
"""
Structured Logging

Provides structured, JSON-formatted logging for the generation core.

Features:
- Component-based loggers
- Contextual fields (job_id, task_id, provider_id, stage)
- JSON output for log aggregation
- Named checkpoints for tracing a build through its stages

Context is held in a ContextVar rather than thread-local storage, so every
asyncio task (one per build job, one per dispatched provider call) sees its
own context stack.

Usage:
    from core.logging import get_logger, log_context

    logger = get_logger("orchestrator.pipeline")

    with log_context(job_id="job-123", stage="validating"):
        logger.info("Validating specification")
"""

import json
import logging
import os
import sys
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass, field, asdict, replace
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Tuple, Union
from enum import Enum


class ComponentType(str, Enum):
    """Component types for logging categorization."""
    EVENT_BUS = "event_bus"
    EXTENSIONS = "extensions"
    SCHEDULER = "scheduler"
    PIPELINE = "pipeline"
    GENERATOR = "generator"
    PROVIDER = "provider"
    REPOSITORY = "repository"
    API = "api"


@dataclass(frozen=True)
class LogContext:
    """
    Context for structured logging.

    Immutable; nested contexts are derived with dataclasses.replace.
    """
    job_id: Optional[str] = None
    task_id: Optional[str] = None
    provider_id: Optional[str] = None
    extension_id: Optional[str] = None
    stage: Optional[str] = None
    correlation_id: Optional[str] = None
    tenant_id: Optional[str] = None
    component: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dict, excluding None values."""
        result = {}
        for key, value in asdict(self).items():
            if value is not None and key != "extra":
                result[key] = value
        if self.extra:
            result.update(self.extra)
        return result


_CONTEXT_FIELDS = (
    "job_id",
    "task_id",
    "provider_id",
    "extension_id",
    "stage",
    "correlation_id",
    "tenant_id",
    "component",
)

_context_stack: ContextVar[Tuple[LogContext, ...]] = ContextVar(
    "forge_log_context", default=()
)


def get_current_context() -> LogContext:
    """Get current logging context."""
    stack = _context_stack.get()
    if stack:
        return stack[-1]
    return LogContext()


@contextmanager
def log_context(**kwargs):
    """
    Context manager for adding logging context.

    Unknown keyword arguments are folded into ``extra``.

    Example:
        with log_context(job_id="job-123", stage="generating-schema"):
            logger.info("Generating schema")
    """
    parent = get_current_context()
    known = {k: v for k, v in kwargs.items() if k in _CONTEXT_FIELDS}
    extra = {k: v for k, v in kwargs.items() if k not in _CONTEXT_FIELDS and k != "extra"}
    extra.update(kwargs.get("extra", {}))

    new_context = replace(parent, **known, extra={**parent.extra, **extra})

    token = _context_stack.set(_context_stack.get() + (new_context,))
    try:
        yield new_context
    finally:
        _context_stack.reset(token)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class StructuredFormatter(logging.Formatter):
    """
    JSON formatter for structured logging.

    Outputs log records as JSON for easy parsing by log aggregators.
    """

    def __init__(
        self,
        include_timestamp: bool = True,
        include_level: bool = True,
        include_logger: bool = True,
        include_context: bool = True,
        include_source: bool = True,
    ):
        super().__init__()
        self.include_timestamp = include_timestamp
        self.include_level = include_level
        self.include_logger = include_logger
        self.include_context = include_context
        self.include_source = include_source

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        log_data: Dict[str, Any] = {}

        if self.include_timestamp:
            log_data["timestamp"] = _utc_now().isoformat()

        if self.include_level:
            log_data["level"] = record.levelname

        if self.include_logger:
            log_data["logger"] = record.name

        log_data["message"] = record.getMessage()

        if self.include_context:
            context_dict = get_current_context().to_dict()
            if context_dict:
                log_data["context"] = context_dict

        if hasattr(record, "extra") and record.extra:
            log_data["data"] = record.extra

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        if self.include_source:
            log_data["source"] = {
                "file": record.filename,
                "line": record.lineno,
                "function": record.funcName,
            }

        return json.dumps(log_data, default=str)


class HumanFormatter(logging.Formatter):
    """
    Human-readable formatter for development.

    Includes context fields inline for easy reading.
    """

    _INLINE = (
        ("job_id", "job"),
        ("stage", "stage"),
        ("task_id", "task"),
        ("provider_id", "provider"),
        ("extension_id", "ext"),
    )

    def format(self, record: logging.LogRecord) -> str:
        """Format log record for human reading."""
        timestamp = _utc_now().strftime("%Y-%m-%d %H:%M:%S")
        level = record.levelname.ljust(8)

        context = get_current_context()
        context_parts = [
            f"{label}={getattr(context, attr)}"
            for attr, label in self._INLINE
            if getattr(context, attr)
        ]
        context_str = f" [{', '.join(context_parts)}]" if context_parts else ""

        extra_str = ""
        if hasattr(record, "extra") and record.extra:
            extra_str = f" {record.extra}"

        result = f"{timestamp} {level} {record.name}{context_str}: {record.getMessage()}{extra_str}"

        if record.exc_info:
            result += f"\n{self.formatException(record.exc_info)}"

        return result


class ContextLogger(logging.LoggerAdapter):
    """
    Logger adapter that includes context in log records.

    Merges the active log_context() fields into every record.
    """

    def process(self, msg, kwargs):
        """Process log record to include context."""
        extra = dict(kwargs.get("extra", {}))
        extra.update(get_current_context().to_dict())
        if self.extra and self.extra.get("component"):
            extra.setdefault("component", str(self.extra["component"].value))

        kwargs["extra"] = {"extra": extra}
        return msg, kwargs


def get_logger(
    name: str,
    component: Optional[ComponentType] = None,
) -> ContextLogger:
    """
    Get a context-aware logger.

    Args:
        name: Logger name (e.g., "orchestrator.scheduler")
        component: Optional component type for categorization
    """
    return ContextLogger(logging.getLogger(name), {"component": component})


def configure_logging(
    level: Union[str, int] = "INFO",
    json_output: bool = False,
    include_source: bool = True,
) -> None:
    """
    Configure logging for the application.

    Args:
        level: Log level (DEBUG, INFO, WARNING, ERROR)
        json_output: Use JSON format (for production)
        include_source: Include source file/line info in JSON output
    """
    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    if json_output or os.getenv("LOG_FORMAT", "").lower() == "json":
        formatter = StructuredFormatter(include_context=True, include_source=include_source)
    else:
        formatter = HumanFormatter()

    root = logging.getLogger()
    root.setLevel(level)

    for handler in root.handlers[:]:
        root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root.addHandler(handler)


# ============================================================================
# CHECKPOINT LOGGING
# ============================================================================

def log_checkpoint(
    name: str,
    data: Optional[Dict[str, Any]] = None,
    logger: Optional[logging.Logger] = None,
) -> None:
    """
    Log a named checkpoint.

    Checkpoints are named markers ("build_started", "stage_failed") that can
    be queried to reconstruct the flow of a build or task.
    """
    if logger is None:
        logger = logging.getLogger("checkpoint")

    checkpoint_data: Dict[str, Any] = {
        "checkpoint": name,
        "timestamp": _utc_now().isoformat(),
    }
    checkpoint_data.update(
        {k: v for k, v in get_current_context().to_dict().items() if k in _CONTEXT_FIELDS}
    )

    if data:
        checkpoint_data["data"] = data

    logger.info(f"CHECKPOINT: {name}", extra={"extra": checkpoint_data})


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "ComponentType",
    "LogContext",
    "StructuredFormatter",
    "HumanFormatter",
    "ContextLogger",
    "get_logger",
    "configure_logging",
    "log_context",
    "get_current_context",
    "log_checkpoint",
]
