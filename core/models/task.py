# ============================================================================
# TASK & PROVIDER MODELS
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Core model - Scheduled work and the providers that execute it
# PURPOSE: Track one unit of generation work from queue to terminal state
# CREATED: 14 OCT 2026
# EXPORTS: Task, Provider, SchedulerStats, ModuleHealth, Alert
# DEPENDENCIES: pydantic
# ============================================================================
"""
Task & Provider Models

A Task is created when work is submitted to the scheduler and is mutated
only by the scheduler's admission loop and by the completion of the
provider call it was assigned to. Status moves forward only.

A Provider is a capability-tagged executor slot pool. ``current_load`` is
raised on dispatch and lowered when the call finishes, whatever the
outcome; acquire() and release() keep it within [0, max_concurrent].
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Set

from pydantic import BaseModel, Field, computed_field

from core.contracts import HealthState, TaskPriority, TaskStatus
from core.errors import InvalidTransitionError


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


_ALLOWED_TRANSITIONS = {
    TaskStatus.QUEUED: {TaskStatus.RUNNING, TaskStatus.FAILED, TaskStatus.CANCELLED},
    TaskStatus.RUNNING: {TaskStatus.COMPLETED, TaskStatus.FAILED},
    TaskStatus.COMPLETED: set(),
    TaskStatus.FAILED: set(),
    TaskStatus.CANCELLED: set(),
}


class Task(BaseModel):
    """
    One unit of schedulable work.

    Lifecycle:
        1. Created QUEUED by TaskScheduler.submit()
        2. RUNNING once assigned to a provider
        3. COMPLETED / FAILED when the provider call finishes
        4. FAILED directly from QUEUED when no provider was found within
           max_retries admission attempts; CANCELLED by cancel()
    """

    task_id: str = Field(default_factory=lambda: f"task-{uuid.uuid4().hex[:16]}", max_length=128)
    task_type: str = Field(..., max_length=64, description="Capability required to run the task")
    priority: TaskPriority = Field(default=TaskPriority.NORMAL)
    status: TaskStatus = Field(default=TaskStatus.QUEUED)

    input: Dict[str, Any] = Field(default_factory=dict)
    output: Optional[Dict[str, Any]] = None
    error: Optional[str] = Field(default=None, max_length=2000)

    retry_count: int = Field(default=0, ge=0)
    max_retries: int = Field(default=3, ge=0)
    timeout_seconds: Optional[float] = Field(default=None, gt=0)

    assigned_provider: Optional[str] = None
    correlation_id: Optional[str] = Field(default=None, max_length=64)
    metadata: Dict[str, Any] = Field(default_factory=dict)

    created_at: datetime = Field(default_factory=_utc_now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @computed_field
    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal()

    @computed_field
    @property
    def wait_time_ms(self) -> Optional[int]:
        """Time spent queued before dispatch."""
        if not self.started_at:
            return None
        return int((self.started_at - self.created_at).total_seconds() * 1000)

    @computed_field
    @property
    def execution_time_ms(self) -> Optional[int]:
        if not self.started_at or not self.completed_at:
            return None
        return int((self.completed_at - self.started_at).total_seconds() * 1000)

    def can_transition_to(self, new_status: TaskStatus) -> bool:
        """Forward-only transition check. Same-state is not a transition."""
        return new_status in _ALLOWED_TRANSITIONS.get(self.status, set())

    def _transition(self, new_status: TaskStatus) -> None:
        if not self.can_transition_to(new_status):
            raise InvalidTransitionError("task", self.status.value, new_status.value)
        self.status = new_status

    def mark_running(self, provider_id: str) -> None:
        self._transition(TaskStatus.RUNNING)
        self.assigned_provider = provider_id
        self.started_at = _utc_now()

    def mark_completed(self, output: Optional[Dict[str, Any]] = None) -> None:
        self._transition(TaskStatus.COMPLETED)
        self.output = output or {}
        self.completed_at = _utc_now()

    def mark_failed(self, error: str) -> None:
        self._transition(TaskStatus.FAILED)
        self.error = error[:2000] if error else error
        self.completed_at = _utc_now()

    def mark_cancelled(self) -> None:
        self._transition(TaskStatus.CANCELLED)
        self.completed_at = _utc_now()


class Provider(BaseModel):
    """
    A capability-tagged executor.

    Lower ``priority`` is preferred when several providers are eligible.
    """

    provider_id: str = Field(..., max_length=64)
    name: str = Field(default="", max_length=128)
    capabilities: Set[str] = Field(default_factory=set)
    max_concurrent: int = Field(default=1, ge=1)
    current_load: int = Field(default=0, ge=0)
    priority: int = Field(default=100)
    enabled: bool = True

    avg_latency_ms: float = Field(default=0.0, ge=0)
    cost_per_unit: float = Field(default=0.0, ge=0)
    calls_completed: int = Field(default=0, ge=0)
    calls_failed: int = Field(default=0, ge=0)

    @computed_field
    @property
    def available_slots(self) -> int:
        return max(self.max_concurrent - self.current_load, 0)

    def can_accept(self, task_type: str) -> bool:
        """Eligible: enabled, has the capability, and below its concurrency cap."""
        return (
            self.enabled
            and task_type in self.capabilities
            and self.current_load < self.max_concurrent
        )

    def acquire(self) -> None:
        if self.current_load >= self.max_concurrent:
            raise ValueError(
                f"Provider {self.provider_id} is at capacity ({self.max_concurrent})"
            )
        self.current_load += 1

    def release(self) -> None:
        self.current_load = max(self.current_load - 1, 0)

    def record_call(self, latency_ms: float, success: bool) -> None:
        """Fold one observed call into the running latency mean."""
        total = self.calls_completed + self.calls_failed
        self.avg_latency_ms = (self.avg_latency_ms * total + latency_ms) / (total + 1)
        if success:
            self.calls_completed += 1
        else:
            self.calls_failed += 1


class SchedulerStats(BaseModel):
    """Cumulative scheduler counters."""
    total_submitted: int = 0
    total_started: int = 0
    total_executed: int = 0      # started and finished, either outcome
    total_completed: int = 0
    total_failed: int = 0
    total_cancelled: int = 0
    total_retries: int = 0
    total_wait_ms: int = 0
    total_execution_ms: int = 0

    @computed_field
    @property
    def avg_wait_ms(self) -> float:
        return self.total_wait_ms / self.total_started if self.total_started else 0.0

    @computed_field
    @property
    def avg_execution_ms(self) -> float:
        return self.total_execution_ms / self.total_executed if self.total_executed else 0.0


class ModuleHealth(BaseModel):
    """Health snapshot of one logical scheduler module."""
    module: str
    state: HealthState
    message: str = ""
    details: Dict[str, Any] = Field(default_factory=dict)
    checked_at: datetime = Field(default_factory=_utc_now)


class Alert(BaseModel):
    """A bounded-buffer alert raised by the scheduler heartbeat."""
    alert_id: str = Field(default_factory=lambda: f"alert-{uuid.uuid4().hex[:12]}")
    severity: str = "warning"
    message: str
    details: Dict[str, Any] = Field(default_factory=dict)
    raised_at: datetime = Field(default_factory=_utc_now)


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "Task",
    "Provider",
    "SchedulerStats",
    "ModuleHealth",
    "Alert",
]
