# ============================================================================
# BASE CONTRACTS & ENUMS
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Foundation - Core enums shared by every subsystem
# PURPOSE: Status, priority, stage and scope enums for the generation core
# CREATED: 14 OCT 2026
# EXPORTS: TaskStatus, TaskPriority, BuildStage, HookType, ScopeType,
#          ArtifactCategory, LogLevel, HealthState
# DEPENDENCIES: enum
# ============================================================================
"""
Base contracts for the generation core.

These enums cross every boundary in the system:
- Python (scheduler, pipeline, extension registry)
- JSON (event payloads, HTTP responses)
- SQL (persisted job records and projections)
"""

from enum import Enum
from typing import Dict


# ============================================================================
# TASK ENUMS
# ============================================================================

class TaskStatus(str, Enum):
    """
    Scheduled task lifecycle states.

    State transitions (forward only):
        QUEUED -> RUNNING -> COMPLETED
                          -> FAILED
        QUEUED -> FAILED     (no provider after max retries)
        QUEUED -> CANCELLED
    """
    QUEUED = "queued"            # Waiting in the priority queue
    RUNNING = "running"          # Assigned to a provider, executing
    COMPLETED = "completed"      # Provider returned a result
    FAILED = "failed"            # Provider raised, timed out, or none available
    CANCELLED = "cancelled"      # Removed from the queue before dispatch

    def is_terminal(self) -> bool:
        """Check if this is a terminal state (no further transitions)."""
        return self in (TaskStatus.COMPLETED, TaskStatus.FAILED, TaskStatus.CANCELLED)


class TaskPriority(str, Enum):
    """Task priority. Higher rank is dispatched first."""
    CRITICAL = "critical"
    HIGH = "high"
    NORMAL = "normal"
    LOW = "low"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK: Dict[TaskPriority, int] = {
    TaskPriority.CRITICAL: 3,
    TaskPriority.HIGH: 2,
    TaskPriority.NORMAL: 1,
    TaskPriority.LOW: 0,
}


class TaskKind:
    """Task types (provider capabilities) the core submits."""
    CODE_GENERATION = "code-generation"
    CODE_REVIEW = "code-review"


# ============================================================================
# BUILD ENUMS
# ============================================================================

class BuildStage(str, Enum):
    """
    Build pipeline stages.

    State transitions:
        IDLE -> VALIDATING -> GENERATING_SCHEMA -> GENERATING_BACKEND
             -> GENERATING_FRONTEND -> GENERATING_INFRA -> RUNNING_TESTS
             -> [DEPLOYING] -> COMPLETED
        any non-terminal stage -> FAILED
    """
    IDLE = "idle"
    VALIDATING = "validating"
    GENERATING_SCHEMA = "generating-schema"
    GENERATING_BACKEND = "generating-backend"
    GENERATING_FRONTEND = "generating-frontend"
    GENERATING_INFRA = "generating-infra"
    RUNNING_TESTS = "running-tests"
    DEPLOYING = "deploying"
    COMPLETED = "completed"
    FAILED = "failed"

    def is_terminal(self) -> bool:
        """Check if this is a terminal stage."""
        return self in (BuildStage.COMPLETED, BuildStage.FAILED)

    @property
    def progress(self) -> int:
        """Progress checkpoint (0-100) reached on entering this stage."""
        return _STAGE_PROGRESS.get(self, 0)


_STAGE_PROGRESS: Dict[BuildStage, int] = {
    BuildStage.IDLE: 0,
    BuildStage.VALIDATING: 5,
    BuildStage.GENERATING_SCHEMA: 20,
    BuildStage.GENERATING_BACKEND: 40,
    BuildStage.GENERATING_FRONTEND: 60,
    BuildStage.GENERATING_INFRA: 75,
    BuildStage.RUNNING_TESTS: 85,
    BuildStage.DEPLOYING: 95,
    BuildStage.COMPLETED: 100,
}


class ArtifactCategory(str, Enum):
    """Artifact bag categories."""
    SCHEMA = "schema"
    BACKEND = "backend"
    FRONTEND = "frontend"
    INFRASTRUCTURE = "infrastructure"
    TESTS = "tests"
    DOCUMENTATION = "documentation"


class LogLevel(str, Enum):
    """Build log entry levels."""
    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"


# ============================================================================
# EXTENSION ENUMS
# ============================================================================

class HookType(str, Enum):
    """How a hook participates in execute_hooks."""
    BEFORE = "before"      # Transforms the input, sequentially
    AFTER = "after"        # Transforms the result, sequentially
    AROUND = "around"      # Wraps the default handler, decides whether to call next
    REPLACE = "replace"    # Last one wins; default and around never run


class ScopeType(str, Enum):
    """Extension scope."""
    GLOBAL = "global"
    TENANT = "tenant"
    PROJECT = "project"


# ============================================================================
# HEALTH ENUMS
# ============================================================================

class HealthState(str, Enum):
    """Per-module health in scheduler snapshots."""
    HEALTHY = "healthy"
    DEGRADED = "degraded"
    DOWN = "down"


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "TaskStatus",
    "TaskPriority",
    "TaskKind",
    "BuildStage",
    "ArtifactCategory",
    "LogLevel",
    "HookType",
    "ScopeType",
    "HealthState",
]
