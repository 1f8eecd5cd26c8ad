# ============================================================================
# SCHEDULER-BACKED GENERATOR
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Generator - Routes generation stages through the task scheduler
# PURPOSE: Let providers (AI or local) produce files under scheduler control
# CREATED: 15 OCT 2026
# ============================================================================
"""
Scheduler-Backed Generator

GeneratorPort adapter that turns each generation call into a
``code-generation`` task on the TaskScheduler and waits for it. The
provider that picks the task up returns ``{"files": [...]}``.

Categories not listed in ``routed`` fall through to the ``fallback``
generator, so a deployment can send only the expensive stages (backend,
frontend) to AI providers.

The scheduler's dispatcher must be running (TaskScheduler.start()).
"""

import inspect
import logging
from typing import Iterable, List, Optional

from core.contracts import ArtifactCategory, TaskKind, TaskPriority, TaskStatus
from core.errors import GenerationError, ProviderUnavailableError
from core.models.blueprint import BuildSpecification
from generators.ports import GeneratedFile, GeneratorPort

logger = logging.getLogger(__name__)


class SchedulerBackedGenerator(GeneratorPort):
    """Generator whose work is executed by scheduler providers."""

    name = "scheduled"

    def __init__(
        self,
        scheduler,
        fallback: Optional[GeneratorPort] = None,
        routed: Optional[Iterable[ArtifactCategory]] = None,
        priority: TaskPriority = TaskPriority.NORMAL,
        max_retries: Optional[int] = None,
        timeout_seconds: Optional[float] = None,
        wait_timeout_seconds: Optional[float] = None,
    ):
        """
        Args:
            scheduler: TaskScheduler that owns the providers
            fallback: Generator for categories that are not routed
            routed: Categories sent to the scheduler (default: all)
            priority: Priority of submitted tasks
            max_retries: Admission attempts before ProviderUnavailableError
            timeout_seconds: Hard execution limit per task
            wait_timeout_seconds: How long to wait for a terminal state
        """
        self.scheduler = scheduler
        self.fallback = fallback
        self.routed = set(routed) if routed is not None else set(ArtifactCategory)
        self.priority = priority
        self.max_retries = max_retries
        self.timeout_seconds = timeout_seconds
        self.wait_timeout_seconds = wait_timeout_seconds

        if self.fallback is None and self.routed != set(ArtifactCategory):
            raise ValueError("A fallback generator is required when not every category is routed")

    async def _generate(self, category: ArtifactCategory, spec: BuildSpecification) -> List[GeneratedFile]:
        if category not in self.routed:
            result = getattr(self.fallback, method_for(category))(spec)
            if inspect.isawaitable(result):
                result = await result
            return result

        task = await self.scheduler.submit(
            TaskKind.CODE_GENERATION,
            input={"category": category.value, "specification": spec.model_dump(mode="json")},
            priority=self.priority,
            max_retries=self.max_retries,
            timeout_seconds=self.timeout_seconds,
            metadata={"specification_id": spec.id},
        )
        logger.debug(f"Submitted {category.value} generation as {task.task_id}")

        task = await self.scheduler.wait_for(task.task_id, timeout=self.wait_timeout_seconds)

        if task.status == TaskStatus.COMPLETED:
            files = (task.output or {}).get("files", [])
            return [GeneratedFile.from_dict(f) for f in files]

        if task.status == TaskStatus.FAILED and task.assigned_provider is None:
            raise ProviderUnavailableError(TaskKind.CODE_GENERATION, task.retry_count)

        raise GenerationError(
            f"{category.value} generation task {task.task_id} ended {task.status.value}: {task.error}",
            category=category.value,
        )

    async def generate_schema(self, spec: BuildSpecification) -> List[GeneratedFile]:
        return await self._generate(ArtifactCategory.SCHEMA, spec)

    async def generate_backend(self, spec: BuildSpecification) -> List[GeneratedFile]:
        return await self._generate(ArtifactCategory.BACKEND, spec)

    async def generate_frontend(self, spec: BuildSpecification) -> List[GeneratedFile]:
        return await self._generate(ArtifactCategory.FRONTEND, spec)

    async def generate_infrastructure(self, spec: BuildSpecification) -> List[GeneratedFile]:
        return await self._generate(ArtifactCategory.INFRASTRUCTURE, spec)

    async def generate_tests(self, spec: BuildSpecification) -> List[GeneratedFile]:
        return await self._generate(ArtifactCategory.TESTS, spec)


_METHODS = {
    ArtifactCategory.SCHEMA: "generate_schema",
    ArtifactCategory.BACKEND: "generate_backend",
    ArtifactCategory.FRONTEND: "generate_frontend",
    ArtifactCategory.INFRASTRUCTURE: "generate_infrastructure",
    ArtifactCategory.TESTS: "generate_tests",
}


def method_for(category: ArtifactCategory) -> str:
    """GeneratorPort method name that produces ``category``."""
    try:
        return _METHODS[category]
    except KeyError:
        raise GenerationError(f"No generator method for category {category.value}", category=category.value)


__all__ = ["SchedulerBackedGenerator", "method_for"]
