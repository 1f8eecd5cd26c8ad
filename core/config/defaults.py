# ============================================================================
# CONFIGURATION DEFAULTS
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Core - Default configuration values
# PURPOSE: Centralized defaults for the event bus, scheduler, pipeline, storage
# CREATED: 14 OCT 2026
# ============================================================================
"""
Configuration Defaults

Provides sensible defaults for the generation core. Every value can be
overridden via environment variables, and services accept explicit
instances so tests can construct their own.

Design:
- Immutable dataclasses for defaults
- Environment variable overrides
- Type-safe access
"""

import os
from dataclasses import dataclass, field
from typing import Optional
from enum import Enum


class RequeuePolicy(str, Enum):
    """Where a task goes when no provider could take it."""
    PRIORITY_SLOT = "priority"  # behind queued tasks of the same priority
    BACK = "back"               # behind everything


class PersistenceBackend(str, Enum):
    """Storage backends for job records and events."""
    MEMORY = "memory"
    POSTGRES = "postgres"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_optional_float(name: str) -> Optional[float]:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return None
    return float(value)


@dataclass(frozen=True)
class EventBusDefaults:
    """
    Defaults for the in-process event bus.

    History and dead-letter buffers are rings; the oldest entry is dropped
    once capacity is reached.
    """
    history_size: int = 1000
    dead_letter_size: int = 1000

    # Reject event types with no registered payload model
    strict_payloads: bool = False

    @classmethod
    def from_env(cls) -> "EventBusDefaults":
        """Create from environment variables."""
        return cls(
            history_size=int(os.getenv("EVENT_HISTORY_SIZE", 1000)),
            dead_letter_size=int(os.getenv("EVENT_DEAD_LETTER_SIZE", 1000)),
            strict_payloads=_env_bool("EVENT_STRICT_PAYLOADS", False),
        )


@dataclass(frozen=True)
class SchedulerDefaults:
    """
    Defaults for the task scheduler.

    The dispatcher wakes on enqueue and on provider release; the tick
    interval is only the fallback poll.
    """
    tick_interval_seconds: float = 1.0
    heartbeat_interval_seconds: float = 30.0

    # Queue depth above which the heartbeat raises an alert
    queue_depth_alert_threshold: int = 100
    max_alerts: int = 100

    default_max_retries: int = 3
    requeue_policy: RequeuePolicy = RequeuePolicy.PRIORITY_SLOT

    # Hard execution limit per task; None disables it
    task_timeout_seconds: Optional[float] = None

    @classmethod
    def from_env(cls) -> "SchedulerDefaults":
        """Create from environment variables."""
        return cls(
            tick_interval_seconds=float(os.getenv("SCHEDULER_TICK_INTERVAL_SEC", 1.0)),
            heartbeat_interval_seconds=float(os.getenv("SCHEDULER_HEARTBEAT_INTERVAL_SEC", 30.0)),
            queue_depth_alert_threshold=int(os.getenv("SCHEDULER_QUEUE_ALERT_THRESHOLD", 100)),
            max_alerts=int(os.getenv("SCHEDULER_MAX_ALERTS", 100)),
            default_max_retries=int(os.getenv("SCHEDULER_DEFAULT_MAX_RETRIES", 3)),
            requeue_policy=RequeuePolicy(os.getenv("SCHEDULER_REQUEUE_POLICY", "priority")),
            task_timeout_seconds=_env_optional_float("SCHEDULER_TASK_TIMEOUT_SEC"),
        )


@dataclass(frozen=True)
class PipelineDefaults:
    """Defaults for the build pipeline."""
    # Hard limit per stage action; None disables it
    stage_timeout_seconds: Optional[float] = None

    # Value of DomainEvent.source for pipeline events
    source: str = "build-pipeline"

    @classmethod
    def from_env(cls) -> "PipelineDefaults":
        """Create from environment variables."""
        return cls(
            stage_timeout_seconds=_env_optional_float("PIPELINE_STAGE_TIMEOUT_SEC"),
            source=os.getenv("PIPELINE_SOURCE", "build-pipeline"),
        )


@dataclass(frozen=True)
class PersistenceDefaults:
    """Defaults for job, artifact and event storage."""
    backend: PersistenceBackend = PersistenceBackend.MEMORY
    pool_min_size: int = 1
    pool_max_size: int = 10
    schema_name: str = "forge"

    @classmethod
    def from_env(cls) -> "PersistenceDefaults":
        """Create from environment variables."""
        return cls(
            backend=PersistenceBackend(os.getenv("PERSISTENCE_BACKEND", "memory")),
            pool_min_size=int(os.getenv("DB_POOL_MIN", 1)),
            pool_max_size=int(os.getenv("DB_POOL_MAX", 10)),
            schema_name=os.getenv("FORGE_SCHEMA", "forge"),
        )


# ============================================================================
# GLOBAL DEFAULTS INSTANCE
# ============================================================================

@dataclass
class Defaults:
    """Container for all default configurations."""
    event_bus: EventBusDefaults = field(default_factory=EventBusDefaults)
    scheduler: SchedulerDefaults = field(default_factory=SchedulerDefaults)
    pipeline: PipelineDefaults = field(default_factory=PipelineDefaults)
    persistence: PersistenceDefaults = field(default_factory=PersistenceDefaults)

    @classmethod
    def from_env(cls) -> "Defaults":
        """Create all defaults from environment variables."""
        return cls(
            event_bus=EventBusDefaults.from_env(),
            scheduler=SchedulerDefaults.from_env(),
            pipeline=PipelineDefaults.from_env(),
            persistence=PersistenceDefaults.from_env(),
        )


_defaults: Optional[Defaults] = None


def get_defaults() -> Defaults:
    """Get global defaults instance."""
    global _defaults
    if _defaults is None:
        _defaults = Defaults.from_env()
    return _defaults


def reset_defaults() -> None:
    """Reset defaults (for testing)."""
    global _defaults
    _defaults = None


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "RequeuePolicy",
    "PersistenceBackend",
    "EventBusDefaults",
    "SchedulerDefaults",
    "PipelineDefaults",
    "PersistenceDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
