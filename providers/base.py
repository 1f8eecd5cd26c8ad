# ============================================================================
# PROVIDER BASE
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Core - AI provider contract
# PURPOSE: Adapt generation backends to the scheduler's executor interface
# CREATED: 15 OCT 2026
# ============================================================================
"""
Provider Base

An AIProvider turns scheduler Tasks into calls on a generation backend.
Each provider advertises capabilities (task types); execute() routes a task
to the matching operation:

    code-generation  -> generate(request)
    code-review      -> analyze(request)

Operations return a ProviderResult. A failed result is raised as a
GenerationError so the scheduler records the task as failed.

Usage:
    provider = LocalGenerationProvider(ReferenceGenerator())
    provider.register_with(scheduler)
"""

import logging
import time
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, FrozenSet, Optional

from core.contracts import TaskKind
from core.errors import GenerationError
from core.models.task import Provider, Task

logger = logging.getLogger(__name__)


# ============================================================================
# REQUEST / RESULT
# ============================================================================

@dataclass
class ProviderRequest:
    """
    What an operation receives.

    Built from the scheduler's copy of the Task.
    """
    task_id: str
    task_type: str
    input: Dict[str, Any]
    retry_count: int = 0
    timeout_seconds: Optional[float] = None
    correlation_id: Optional[str] = None

    @classmethod
    def from_task(cls, task: Task) -> "ProviderRequest":
        return cls(
            task_id=task.task_id,
            task_type=task.task_type,
            input=task.input,
            retry_count=task.retry_count,
            timeout_seconds=task.timeout_seconds,
            correlation_id=task.correlation_id,
        )


@dataclass
class ProviderResult:
    """
    What an operation returns.

    Operations should return this to indicate success/failure.
    """
    success: bool = True
    output: Dict[str, Any] = field(default_factory=dict)
    error_message: Optional[str] = None
    metrics: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def success_result(
        cls,
        output: Optional[Dict[str, Any]] = None,
        metrics: Optional[Dict[str, Any]] = None,
    ) -> "ProviderResult":
        return cls(success=True, output=output or {}, metrics=metrics or {})

    @classmethod
    def failure_result(cls, error_message: str) -> "ProviderResult":
        return cls(success=False, error_message=error_message[:2000])


Operation = Callable[[ProviderRequest], Awaitable[ProviderResult]]


# ============================================================================
# PROVIDER
# ============================================================================

class AIProvider(ABC):
    """Base class for generation providers."""

    capabilities: FrozenSet[str] = frozenset({TaskKind.CODE_GENERATION})

    def __init__(
        self,
        provider_id: str,
        name: str = "",
        max_concurrent: int = 1,
        priority: int = 100,
        cost_per_unit: float = 0.0,
    ):
        self.provider_id = provider_id
        self.name = name or provider_id
        self.max_concurrent = max_concurrent
        self.priority = priority
        self.cost_per_unit = cost_per_unit

    @abstractmethod
    async def generate(self, request: ProviderRequest) -> ProviderResult:
        """Produce files for ``request.input["category"]``."""

    async def analyze(self, request: ProviderRequest) -> ProviderResult:
        """Review files in ``request.input["files"]``."""
        return ProviderResult.failure_result(f"{self.provider_id} does not support analysis")

    def _operation(self, task_type: str) -> Operation:
        operations: Dict[str, Operation] = {
            TaskKind.CODE_GENERATION: self.generate,
            TaskKind.CODE_REVIEW: self.analyze,
        }
        if task_type not in self.capabilities or task_type not in operations:
            raise GenerationError(f"Provider {self.provider_id} cannot run task type '{task_type}'")
        return operations[task_type]

    async def execute(self, task: Task) -> Dict[str, Any]:
        """
        Scheduler executor entry point.

        Raises:
            GenerationError: If the operation reports failure
        """
        request = ProviderRequest.from_task(task)
        operation = self._operation(task.task_type)

        start = time.monotonic()
        result = await operation(request)
        elapsed_ms = int((time.monotonic() - start) * 1000)

        if not result.success:
            logger.warning(f"{self.provider_id} failed {task.task_id}: {result.error_message}")
            raise GenerationError(
                result.error_message or f"{task.task_type} failed on {self.provider_id}",
                category=request.input.get("category"),
            )

        logger.debug(f"{self.provider_id} finished {task.task_id} in {elapsed_ms}ms")
        return {**result.output, "metrics": {**result.metrics, "latency_ms": elapsed_ms}}

    def describe(self) -> Provider:
        """Scheduler-side record for this provider."""
        return Provider(
            provider_id=self.provider_id,
            name=self.name,
            capabilities=set(self.capabilities),
            max_concurrent=self.max_concurrent,
            priority=self.priority,
            cost_per_unit=self.cost_per_unit,
        )

    def register_with(self, scheduler) -> Provider:
        return scheduler.register_provider(self.describe(), self.execute)


__all__ = [
    "ProviderRequest",
    "ProviderResult",
    "AIProvider",
]
