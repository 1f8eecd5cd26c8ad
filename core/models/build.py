# ============================================================================
# BUILD JOB MODEL
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Core model - Build job record and artifact bag
# PURPOSE: Track one pipeline run from submission to a terminal stage
# CREATED: 14 OCT 2026
# EXPORTS: BuildJob, BuildLogEntry, BuildError, Artifact, ArtifactBag,
#          compute_checksum
# DEPENDENCIES: pydantic
# ============================================================================
"""
Build Job Model

A BuildJob is created at submission (stage=idle) and mutated only by the
pipeline driver for that job id. Once its stage is completed or failed it
no longer changes.

Stage order is fixed; advance() only moves forward and progress never
decreases. fail() is accepted from any non-terminal stage.
"""

import uuid
from datetime import datetime, timezone
from typing import Dict, List, Optional

from pydantic import BaseModel, Field, computed_field

from core.contracts import ArtifactCategory, BuildStage, LogLevel
from core.errors import InvalidTransitionError


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


_STAGE_ORDER: List[BuildStage] = [
    BuildStage.IDLE,
    BuildStage.VALIDATING,
    BuildStage.GENERATING_SCHEMA,
    BuildStage.GENERATING_BACKEND,
    BuildStage.GENERATING_FRONTEND,
    BuildStage.GENERATING_INFRA,
    BuildStage.RUNNING_TESTS,
    BuildStage.DEPLOYING,
    BuildStage.COMPLETED,
]


def compute_checksum(content: str) -> str:
    """
    Non-cryptographic content checksum.

    31-multiplier rolling hash folded to signed 32 bits; hex of the
    absolute value.
    """
    value = 0
    for char in content:
        value = ((value << 5) - value + ord(char)) & 0xFFFFFFFF
    if value & 0x80000000:
        value -= 0x100000000
    return format(abs(value), "x")


# ============================================================================
# RECORDS
# ============================================================================

class BuildLogEntry(BaseModel):
    timestamp: datetime = Field(default_factory=_utc_now)
    level: LogLevel = LogLevel.INFO
    stage: BuildStage
    message: str


class BuildError(BaseModel):
    code: str = Field(..., max_length=64)
    message: str = Field(..., max_length=2000)
    suggestion: str = ""
    stage: Optional[BuildStage] = None


class Artifact(BaseModel):
    path: str
    content: str
    type: str = "text"
    checksum: str = ""
    category: ArtifactCategory

    @classmethod
    def create(
        cls,
        path: str,
        content: str,
        category: ArtifactCategory,
        type: str = "text",
    ) -> "Artifact":
        return cls(
            path=path,
            content=content,
            type=type,
            checksum=compute_checksum(content),
            category=category,
        )


class ArtifactBag(BaseModel):
    """
    Generated files grouped by category.

    Append-only while the job runs; one bag per job.
    """

    files: Dict[ArtifactCategory, List[Artifact]] = Field(
        default_factory=lambda: {category: [] for category in ArtifactCategory}
    )

    def add(self, artifact: Artifact) -> None:
        self.files.setdefault(artifact.category, []).append(artifact)

    def extend(self, artifacts: List[Artifact]) -> None:
        for artifact in artifacts:
            self.add(artifact)

    def get(self, category: ArtifactCategory) -> List[Artifact]:
        return list(self.files.get(category, []))

    def all_files(self) -> List[Artifact]:
        return [a for category in ArtifactCategory for a in self.files.get(category, [])]

    def find(self, path: str) -> Optional[Artifact]:
        """Search every category for an artifact with this path."""
        for artifact in self.all_files():
            if artifact.path == path:
                return artifact
        return None

    def counts(self) -> Dict[str, int]:
        return {category.value: len(self.files.get(category, [])) for category in ArtifactCategory}

    @property
    def total(self) -> int:
        return sum(len(items) for items in self.files.values())


class BuildJob(BaseModel):
    """
    One execution of the build pipeline.

    Lifecycle:
        1. Created with stage=IDLE by BuildPipeline.submit()
        2. advance() through the fixed stage order; DEPLOYING only when a
           deploy target was given
        3. COMPLETED, or FAILED from whichever stage raised
    """

    job_id: str = Field(default_factory=lambda: f"build-{uuid.uuid4().hex[:16]}", max_length=64)
    specification_id: str = Field(..., max_length=64)
    stage: BuildStage = BuildStage.IDLE
    progress: int = Field(default=0, ge=0, le=100)

    logs: List[BuildLogEntry] = Field(default_factory=list)
    errors: List[BuildError] = Field(default_factory=list)

    deploy_target: Optional[str] = None
    artifacts_ready: bool = False
    tenant_id: Optional[str] = Field(default=None, max_length=64)
    correlation_id: Optional[str] = Field(default=None, max_length=64)

    created_at: datetime = Field(default_factory=_utc_now)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @computed_field
    @property
    def is_terminal(self) -> bool:
        return self.stage.is_terminal()

    @computed_field
    @property
    def duration_seconds(self) -> Optional[float]:
        if not self.started_at:
            return None
        end_time = self.completed_at or _utc_now()
        return (end_time - self.started_at).total_seconds()

    def can_advance_to(self, stage: BuildStage) -> bool:
        if self.stage.is_terminal():
            return False
        if stage == BuildStage.FAILED:
            return True
        return _STAGE_ORDER.index(stage) > _STAGE_ORDER.index(self.stage)

    def advance(self, stage: BuildStage) -> None:
        """Move to a later stage and raise progress to its checkpoint."""
        if not self.can_advance_to(stage) or stage == BuildStage.FAILED:
            raise InvalidTransitionError("build", self.stage.value, stage.value)
        if self.started_at is None:
            self.started_at = _utc_now()
        self.stage = stage
        self.progress = max(self.progress, stage.progress)
        if stage == BuildStage.COMPLETED:
            self.completed_at = _utc_now()

    def fail(self, error: BuildError) -> None:
        if not self.can_advance_to(BuildStage.FAILED):
            raise InvalidTransitionError("build", self.stage.value, BuildStage.FAILED.value)
        if error.stage is None:
            error.stage = self.stage
        self.errors.append(error)
        self.stage = BuildStage.FAILED
        self.completed_at = _utc_now()

    def log(self, message: str, level: LogLevel = LogLevel.INFO) -> BuildLogEntry:
        entry = BuildLogEntry(level=level, stage=self.stage, message=message)
        self.logs.append(entry)
        return entry


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "compute_checksum",
    "BuildLogEntry",
    "BuildError",
    "Artifact",
    "ArtifactBag",
    "BuildJob",
]
