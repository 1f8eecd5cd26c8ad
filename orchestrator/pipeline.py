# ============================================================================
# BUILD PIPELINE
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Core - Staged build driver and status API
# PURPOSE: Turn a build specification into artifacts, one stage at a time
# CREATED: 15 OCT 2026
# ============================================================================
"""
Build Pipeline

Drives one BuildJob per submission through a fixed stage order:

    idle -> validating -> generating-schema -> generating-backend
         -> generating-frontend -> generating-infra -> running-tests
         -> [deploying] -> completed

Each stage:
1. Advances the job (stage + progress checkpoint) and appends a log entry
2. Publishes generation.progress
3. Performs exactly one delegated action (validator, generator, checks,
   deployer) wrapped in the stage's extension points
4. On any exception, records a BuildError and moves the job to failed

Jobs are independent: each has its own record and ArtifactBag, mutated only
by the coroutine driving it. Artifacts produced before a failure are kept.

Extension points used:
    pre-validation / post-validation   specification in, specification out
    pre-generation                     specification in, per generation stage
    post-generation                    {"category", "files"} in and out
    code-optimization                  artifact list in and out
    security-scan                      artifact list in, findings out
    pre-deploy / post-deploy           artifacts in / deployment details in
    notification-dispatch              terminal summary, failures only logged

Usage:
    pipeline = BuildPipeline(event_bus, registry, ReferenceGenerator())
    job = await pipeline.submit(spec)           # returns immediately
    job = await pipeline.wait_for(job.job_id)
    files = await pipeline.get_artifacts(job.job_id)
"""

import asyncio
import inspect
import logging
import time
import uuid
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple

from core.config import PipelineDefaults
from core.contracts import ArtifactCategory, BuildStage, LogLevel
from core.errors import DeploymentError, ForgeError, GenerationError, ValidationError
from core.logging import log_checkpoint, log_context
from core.models.blueprint import BuildSpecification
from core.models.build import Artifact, ArtifactBag, BuildError, BuildJob
from core.models.events import EventType
from core.models.extension import ScopeContext
from generators.checks import check_files
from generators.ports import DeploymentPort, GeneratedFile, GeneratorPort
from generators.reference import LoggingDeployer
from generators.scheduled import method_for
from repositories.base import InMemoryRepository, Repository
from services.extension_registry import CorePoint, ExtensionRegistry

logger = logging.getLogger(__name__)


GENERATION_STAGES: List[Tuple[BuildStage, ArtifactCategory]] = [
    (BuildStage.GENERATING_SCHEMA, ArtifactCategory.SCHEMA),
    (BuildStage.GENERATING_BACKEND, ArtifactCategory.BACKEND),
    (BuildStage.GENERATING_FRONTEND, ArtifactCategory.FRONTEND),
    (BuildStage.GENERATING_INFRA, ArtifactCategory.INFRASTRUCTURE),
]

TIMEOUT_SUGGESTION = "Raise PIPELINE_STAGE_TIMEOUT_SEC or reduce the size of the specification"


def _identity(value: Any) -> Any:
    return value


def _as_generated(item: Any) -> GeneratedFile:
    if isinstance(item, GeneratedFile):
        return item
    if isinstance(item, Artifact):
        return GeneratedFile(path=item.path, content=item.content, type=item.type)
    if isinstance(item, dict):
        return GeneratedFile.from_dict(item)
    raise GenerationError(f"Generator returned unsupported file object: {type(item).__name__}")


def to_build_error(exc: BaseException, stage: BuildStage, timeout: Optional[float] = None) -> BuildError:
    """Convert a stage exception into the BuildError recorded on the job."""
    if isinstance(exc, ForgeError):
        code, suggestion, message = exc.code, exc.suggestion, str(exc)
    elif isinstance(exc, asyncio.TimeoutError):
        code, suggestion = ForgeError.code, TIMEOUT_SUGGESTION
        message = f"Stage {stage.value} exceeded {timeout}s"
    else:
        code, suggestion = ForgeError.code, ForgeError.suggestion
        message = str(exc) or type(exc).__name__
    return BuildError(code=code, message=message[:2000], suggestion=suggestion, stage=stage)


class BuildPipeline:
    """
    Staged build driver.

    One instance per application; every collaborator is injected so tests
    and deployments can swap generators, deployers and storage.
    """

    def __init__(
        self,
        event_bus,
        extensions: ExtensionRegistry,
        generator: GeneratorPort,
        jobs_repo: Optional[Repository[BuildJob]] = None,
        artifacts_repo: Optional[Repository[ArtifactBag]] = None,
        deployer: Optional[DeploymentPort] = None,
        config: Optional[PipelineDefaults] = None,
    ):
        """
        Args:
            event_bus: EventBus for generation.* and deployment.* events
            extensions: Registry whose hooks wrap each stage
            generator: Produces files for each generation stage
            jobs_repo: Build job storage (default: in memory)
            artifacts_repo: Artifact bag storage keyed by job id (default: in memory)
            deployer: Used only when a deploy target is given
            config: Pipeline defaults (stage timeout, event source)
        """
        self.event_bus = event_bus
        self.extensions = extensions
        self.generator = generator
        self.jobs_repo = jobs_repo if jobs_repo is not None else InMemoryRepository()
        self.artifacts_repo = artifacts_repo if artifacts_repo is not None else InMemoryRepository()
        self.deployer = deployer if deployer is not None else LoggingDeployer()
        self.config = config or PipelineDefaults()

        # In-flight jobs; removed once their terminal state is persisted
        self._active: Dict[str, Tuple[BuildJob, ArtifactBag]] = {}
        self._tasks: Dict[str, asyncio.Task] = {}

        # Metrics
        self._jobs_submitted = 0
        self._jobs_completed = 0
        self._jobs_failed = 0
        self._save_errors = 0

    # =========================================================================
    # SUBMISSION
    # =========================================================================

    def _new_job(
        self,
        spec: BuildSpecification,
        deploy_target: Optional[str],
        tenant_id: Optional[str],
        correlation_id: Optional[str],
    ) -> Tuple[BuildJob, ArtifactBag]:
        job = BuildJob(
            specification_id=spec.id,
            deploy_target=deploy_target or None,
            tenant_id=tenant_id,
            correlation_id=correlation_id or str(uuid.uuid4()),
        )
        bag = ArtifactBag()
        self._active[job.job_id] = (job, bag)
        self._jobs_submitted += 1
        return job, bag

    async def submit(
        self,
        spec: BuildSpecification,
        deploy_target: Optional[str] = None,
        tenant_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> BuildJob:
        """
        Create a job and drive it in the background.

        Returns:
            Snapshot of the new job (stage=idle)
        """
        job, bag = self._new_job(spec, deploy_target, tenant_id, correlation_id)
        snapshot = job.model_copy(deep=True)
        await self._save(job)

        task = asyncio.create_task(self._drive(job, bag, spec), name=f"pipeline-{job.job_id}")
        self._tasks[job.job_id] = task
        task.add_done_callback(lambda _t, job_id=job.job_id: self._tasks.pop(job_id, None))

        logger.info(f"Submitted build {job.job_id} for specification {spec.id}")
        return snapshot

    async def run(
        self,
        spec: BuildSpecification,
        deploy_target: Optional[str] = None,
        tenant_id: Optional[str] = None,
        correlation_id: Optional[str] = None,
    ) -> BuildJob:
        """Create a job and drive it to a terminal stage before returning."""
        job, bag = self._new_job(spec, deploy_target, tenant_id, correlation_id)
        await self._save(job)
        await self._drive(job, bag, spec)
        return job.model_copy(deep=True)

    async def wait_for(self, job_id: str, timeout: Optional[float] = None) -> Optional[BuildJob]:
        """
        Wait for a submitted job to finish.

        Raises:
            asyncio.TimeoutError: If the job is still running after ``timeout``
        """
        task = self._tasks.get(job_id)
        if task is not None:
            await asyncio.wait_for(asyncio.shield(task), timeout)
        return await self.get_build_state(job_id)

    async def shutdown(self, timeout: float = 30.0) -> None:
        """Wait for in-flight jobs; cancel whatever is still running after ``timeout``."""
        tasks = list(self._tasks.values())
        if not tasks:
            return

        logger.info(f"Waiting for {len(tasks)} build(s) to finish")
        done, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
            logger.warning(f"Cancelled {len(pending)} build(s) at shutdown")

    # =========================================================================
    # DRIVER
    # =========================================================================

    async def _drive(self, job: BuildJob, bag: ArtifactBag, spec: BuildSpecification) -> None:
        started = time.monotonic()
        scope = ScopeContext(tenant_id=job.tenant_id, project_id=spec.id)
        spec = spec.model_copy(deep=True)

        with log_context(job_id=job.job_id, correlation_id=job.correlation_id, tenant_id=job.tenant_id):
            log_checkpoint("build_started", {"specification_id": spec.id}, logger)

            try:
                await self._emit(EventType.GENERATION_STARTED, job, {
                    "job_id": job.job_id,
                    "specification_id": job.specification_id,
                    "deploy_target": job.deploy_target,
                })

                spec = await self._stage(job, BuildStage.VALIDATING, lambda: self._validate(spec, scope))

                for stage, category in GENERATION_STAGES:
                    await self._stage(
                        job, stage,
                        lambda category=category: self._generate(job, bag, category, spec, scope),
                    )

                await self._stage(
                    job, BuildStage.RUNNING_TESTS,
                    lambda: self._run_tests(job, bag, spec, scope),
                )
                job.artifacts_ready = True
                await self._emit(EventType.ARTIFACTS_READY, job, {
                    "job_id": job.job_id,
                    "artifact_counts": bag.counts(),
                    "total_files": bag.total,
                })

                if job.deploy_target:
                    await self._stage(
                        job, BuildStage.DEPLOYING,
                        lambda: self._deploy(job, bag, scope),
                    )

                job.advance(BuildStage.COMPLETED)
                job.log(f"Build completed with {bag.total} files")
                self._jobs_completed += 1
                duration_ms = int((time.monotonic() - started) * 1000)
                log_checkpoint("build_completed", {"files": bag.total, "duration_ms": duration_ms}, logger)
                await self._emit(EventType.GENERATION_COMPLETED, job, {
                    "job_id": job.job_id,
                    "artifact_counts": bag.counts(),
                    "duration_ms": duration_ms,
                })

            except asyncio.CancelledError:
                self._record_failure(job, BuildError(
                    code=ForgeError.code,
                    message="Build cancelled before completion",
                    suggestion="Resubmit the specification",
                ))
                raise

            except Exception as e:
                if isinstance(e, _StageFailed):
                    error = e.error
                else:
                    logger.exception(f"Build {job.job_id} failed outside a stage action")
                    error = to_build_error(e, job.stage)
                    self._record_failure(job, error)

                if job.stage == BuildStage.FAILED:
                    log_checkpoint("build_failed", {"stage": error.stage.value, "code": error.code}, logger)
                    await self._emit(EventType.GENERATION_FAILED, job, {
                        "job_id": job.job_id,
                        "stage": error.stage.value,
                        "code": error.code,
                        "message": error.message,
                    })

            finally:
                await self._finish(job, bag)

            await self._notify(job, scope)

    async def _stage(self, job: BuildJob, stage: BuildStage, action: Callable[[], Awaitable[Any]]) -> Any:
        """Enter ``stage``, run its action, and convert any failure."""
        with log_context(stage=stage.value):
            job.advance(stage)
            job.log(f"Entered {stage.value}")
            await self._save(job)
            await self._emit(EventType.GENERATION_PROGRESS, job, {
                "job_id": job.job_id,
                "stage": stage.value,
                "progress": job.progress,
                "message": f"Entered {stage.value}",
            })

            timeout = self.config.stage_timeout_seconds
            try:
                if timeout is not None:
                    return await asyncio.wait_for(action(), timeout)
                return await action()
            except asyncio.CancelledError:
                raise
            except Exception as e:
                error = to_build_error(e, stage, timeout)
                if isinstance(e, ForgeError):
                    logger.warning(f"Stage {stage.value} failed: {error.code}: {error.message}")
                else:
                    logger.exception(f"Stage {stage.value} failed unexpectedly")
                self._record_failure(job, error)
                raise _StageFailed(error) from e

    def _record_failure(self, job: BuildJob, error: BuildError) -> None:
        if job.is_terminal:
            return
        job.log(f"{error.code}: {error.message}", LogLevel.ERROR)
        job.fail(error)
        self._jobs_failed += 1

    async def _finish(self, job: BuildJob, bag: ArtifactBag) -> None:
        saved = await self._save(job) and await self._save_artifacts(job.job_id, bag)
        if saved:
            self._active.pop(job.job_id, None)

    # =========================================================================
    # STAGE ACTIONS
    # =========================================================================

    async def _validate(self, spec: BuildSpecification, scope: ScopeContext) -> BuildSpecification:
        spec = self._as_spec(await self.extensions.execute_hooks(
            CorePoint.PRE_VALIDATION, spec, _identity, scope,
        ))

        problems = spec.validation_problems()
        if problems:
            raise ValidationError("; ".join(problems), field="entities", value=len(spec.entities))

        return self._as_spec(await self.extensions.execute_hooks(
            CorePoint.POST_VALIDATION, spec, _identity, scope,
        ))

    async def _generate(
        self,
        job: BuildJob,
        bag: ArtifactBag,
        category: ArtifactCategory,
        spec: BuildSpecification,
        scope: ScopeContext,
    ) -> List[Artifact]:
        stage_spec = self._as_spec(await self.extensions.execute_hooks(
            CorePoint.PRE_GENERATION, spec, _identity, scope,
        ))

        files = getattr(self.generator, method_for(category))(stage_spec)
        if inspect.isawaitable(files):
            files = await files

        result = await self.extensions.execute_hooks(
            CorePoint.POST_GENERATION,
            {"category": category.value, "files": list(files)},
            _identity,
            scope,
        )

        artifacts = [
            Artifact.create(path=f.path, content=f.content, category=category, type=f.type)
            for f in (_as_generated(item) for item in result["files"])
        ]
        if not artifacts:
            raise GenerationError(f"Generator produced no {category.value} files", category=category.value)

        bag.extend(artifacts)
        job.log(f"Generated {len(artifacts)} {category.value} files")
        await self._save_artifacts(job.job_id, bag)
        return artifacts

    async def _run_tests(
        self,
        job: BuildJob,
        bag: ArtifactBag,
        spec: BuildSpecification,
        scope: ScopeContext,
    ) -> None:
        await self._generate(job, bag, ArtifactCategory.TESTS, spec, scope)

        optimized = await self.extensions.execute_hooks(
            CorePoint.CODE_OPTIMIZATION, bag.all_files(), _identity, scope,
        )
        rewritten = self._rebuild(bag, optimized)
        if rewritten:
            job.log(f"Code optimization rewrote {rewritten} files")

        reviewed = [a for a in bag.all_files() if a.category != ArtifactCategory.TESTS]
        findings: List[Dict[str, Any]] = [f.to_dict() for f in check_files(reviewed)]
        scanned = await self.extensions.execute_hooks(
            CorePoint.SECURITY_SCAN, bag.all_files(), lambda _files: [], scope,
        )
        for finding in scanned or []:
            findings.append(finding if isinstance(finding, dict) else {"message": str(finding)})

        for finding in findings:
            job.log(f"Check failed: {finding}", LogLevel.WARN)
        if findings:
            first = findings[0]
            raise GenerationError(
                f"{len(findings)} problem(s) in generated code, first: "
                f"{first.get('path', '?')}: {first.get('message', '')}",
                category=ArtifactCategory.TESTS.value,
            )

        job.log(f"Checked {bag.total} files")

    @staticmethod
    def _rebuild(bag: ArtifactBag, artifacts: Any) -> int:
        """
        Apply code-optimization output to the bag by path.

        Hooks may rewrite the content of existing files only. Files the hook
        leaves out are kept as they were, and unknown paths are ignored, so
        the bag never shrinks. Returns the number of files rewritten.
        """
        rewrites: Dict[str, str] = {}
        for item in artifacts or []:
            if isinstance(item, dict):
                rewrites[item["path"]] = item["content"]
            else:
                rewrites[item.path] = item.content

        rewritten = 0
        for items in bag.files.values():
            for index, artifact in enumerate(items):
                content = rewrites.pop(artifact.path, None)
                if content is None or content == artifact.content:
                    continue
                items[index] = Artifact.create(
                    path=artifact.path, content=content, category=artifact.category, type=artifact.type,
                )
                rewritten += 1

        if rewrites:
            logger.warning(f"Code optimization returned unknown paths, ignored: {sorted(rewrites)}")
        return rewritten

    async def _deploy(self, job: BuildJob, bag: ArtifactBag, scope: ScopeContext) -> Dict[str, Any]:
        target = job.deploy_target
        await self._emit(EventType.DEPLOYMENT_STARTED, job, {"job_id": job.job_id, "target": target})

        try:
            artifacts = await self.extensions.execute_hooks(
                CorePoint.PRE_DEPLOY, bag.all_files(), _identity, scope,
            )
            details = await self.deployer.deploy(job.job_id, target, artifacts) or {}
            details = await self.extensions.execute_hooks(
                CorePoint.POST_DEPLOY, details, _identity, scope,
            )
        except Exception as e:
            await self._emit(EventType.DEPLOYMENT_FAILED, job, {
                "job_id": job.job_id,
                "target": target,
                "error": str(e)[:2000],
            })
            if isinstance(e, ForgeError):
                raise
            raise DeploymentError(str(e) or type(e).__name__, target=target) from e

        job.log(f"Deployed to {target}")
        await self._emit(EventType.DEPLOYMENT_COMPLETED, job, {
            "job_id": job.job_id,
            "target": target,
            "details": details if isinstance(details, dict) else {},
        })
        return details

    async def _notify(self, job: BuildJob, scope: ScopeContext) -> None:
        summary = {
            "job_id": job.job_id,
            "stage": job.stage.value,
            "artifacts_ready": job.artifacts_ready,
            "errors": [e.model_dump(mode="json") for e in job.errors],
        }
        try:
            await self.extensions.execute_hooks(CorePoint.NOTIFICATION_DISPATCH, summary, _identity, scope)
        except Exception as e:
            logger.warning(f"Notification dispatch failed for {job.job_id}: {e}")

    @staticmethod
    def _as_spec(value: Any) -> BuildSpecification:
        if isinstance(value, BuildSpecification):
            return value
        return BuildSpecification.model_validate(value)

    # =========================================================================
    # PERSISTENCE & EVENTS
    # =========================================================================

    async def _save(self, job: BuildJob) -> bool:
        try:
            await self.jobs_repo.put(job.job_id, job)
            return True
        except Exception as e:
            self._save_errors += 1
            logger.warning(f"Failed to persist build {job.job_id}: {e}")
            return False

    async def _save_artifacts(self, job_id: str, bag: ArtifactBag) -> bool:
        try:
            await self.artifacts_repo.put(job_id, bag)
            return True
        except Exception as e:
            self._save_errors += 1
            logger.warning(f"Failed to persist artifacts for {job_id}: {e}")
            return False

    async def _emit(self, event_type: EventType, job: BuildJob, payload: Dict[str, Any]) -> None:
        if self.event_bus is None:
            return
        await self.event_bus.emit(
            event_type,
            payload,
            source=self.config.source,
            tenant_id=job.tenant_id,
            correlation_id=job.correlation_id,
            aggregate_id=job.job_id,
            aggregate_type="build",
        )

    # =========================================================================
    # STATUS API
    # =========================================================================

    async def get_build_state(self, job_id: str) -> Optional[BuildJob]:
        """Snapshot of a job, or None if unknown."""
        active = self._active.get(job_id)
        if active is not None:
            return active[0].model_copy(deep=True)
        try:
            return await self.jobs_repo.get(job_id)
        except Exception as e:
            logger.warning(f"Failed to load build {job_id}: {e}")
            return None

    async def _load_bag(self, job_id: str) -> Optional[ArtifactBag]:
        active = self._active.get(job_id)
        if active is not None:
            return active[1].model_copy(deep=True)
        try:
            return await self.artifacts_repo.get(job_id)
        except Exception as e:
            logger.warning(f"Failed to load artifacts for {job_id}: {e}")
            return None

    async def get_artifacts(
        self,
        job_id: str,
        category: Optional[ArtifactCategory] = None,
    ) -> List[Artifact]:
        """Artifacts of a job (optionally one category); empty if unknown."""
        bag = await self._load_bag(job_id)
        if bag is None:
            return []
        return bag.get(category) if category is not None else bag.all_files()

    async def get_artifact_content(self, job_id: str, path: str) -> Optional[str]:
        bag = await self._load_bag(job_id)
        if bag is None:
            return None
        artifact = bag.find(path)
        return artifact.content if artifact else None

    async def list_jobs(self, limit: int = 100, tenant_id: Optional[str] = None) -> List[BuildJob]:
        """Known jobs, newest first."""
        jobs: Dict[str, BuildJob] = {}
        try:
            for job in await self.jobs_repo.list(limit=limit):
                jobs[job.job_id] = job
        except Exception as e:
            logger.warning(f"Failed to list builds: {e}")
        for job_id, (job, _bag) in self._active.items():
            jobs[job_id] = job.model_copy(deep=True)

        result = [j for j in jobs.values() if tenant_id is None or j.tenant_id == tenant_id]
        result.sort(key=lambda j: j.created_at, reverse=True)
        return result[:max(limit, 0)]

    @property
    def active_count(self) -> int:
        return len(self._active)

    @property
    def stats(self) -> Dict[str, Any]:
        return {
            "jobs_submitted": self._jobs_submitted,
            "jobs_completed": self._jobs_completed,
            "jobs_failed": self._jobs_failed,
            "active": len(self._active),
            "running_tasks": len(self._tasks),
            "save_errors": self._save_errors,
            "generator": getattr(self.generator, "name", type(self.generator).__name__),
        }


class _StageFailed(Exception):
    """Internal: a stage recorded its BuildError and the run must stop."""

    def __init__(self, error: BuildError):
        self.error = error
        super().__init__(error.message)


__all__ = [
    "BuildPipeline",
    "GENERATION_STAGES",
    "to_build_error",
    "TIMEOUT_SUGGESTION",
]
