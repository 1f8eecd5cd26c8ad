# ============================================================================
# API SCHEMAS
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Core - Request/Response schemas
# PURPOSE: Pydantic models for API validation
# CREATED: 15 OCT 2026
# ============================================================================
"""
API Schemas

Request and response models for the API.
"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from core.contracts import ArtifactCategory, BuildStage
from core.models.blueprint import BuildSpecification
from core.models.build import Artifact, BuildJob
from core.models.events import DomainEvent
from core.models.task import Task


# ============================================================================
# REQUEST SCHEMAS
# ============================================================================

class BuildCreate(BaseModel):
    """Request to start a build."""
    specification: BuildSpecification
    deploy_target: Optional[str] = Field(
        None,
        max_length=64,
        description="Deployment target; omit to stop after artifacts are ready",
    )
    tenant_id: Optional[str] = Field(None, max_length=64)
    correlation_id: Optional[str] = Field(
        None,
        max_length=64,
        description="External correlation ID for tracing",
    )

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "specification": {
                        "name": "Billing",
                        "entities": [
                            {
                                "name": "Invoice",
                                "fields": [
                                    {"name": "number", "type": "string", "unique": True},
                                    {"name": "amount", "type": "decimal"},
                                ],
                            }
                        ],
                    }
                }
            ]
        }
    }


# ============================================================================
# RESPONSE SCHEMAS
# ============================================================================

class BuildSummary(BaseModel):
    """Build job without logs."""
    job_id: str
    specification_id: str
    stage: BuildStage
    progress: int
    artifacts_ready: bool
    deploy_target: Optional[str] = None
    tenant_id: Optional[str] = None
    correlation_id: Optional[str] = None
    error_count: int = 0
    created_at: datetime
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None

    @classmethod
    def from_job(cls, job: BuildJob) -> "BuildSummary":
        return cls(
            job_id=job.job_id,
            specification_id=job.specification_id,
            stage=job.stage,
            progress=job.progress,
            artifacts_ready=job.artifacts_ready,
            deploy_target=job.deploy_target,
            tenant_id=job.tenant_id,
            correlation_id=job.correlation_id,
            error_count=len(job.errors),
            created_at=job.created_at,
            started_at=job.started_at,
            completed_at=job.completed_at,
        )


class BuildListResponse(BaseModel):
    builds: List[BuildSummary]
    total: int


class BuildDetailResponse(BaseModel):
    """Full build record with artifact counts."""
    job: BuildJob
    artifact_counts: Dict[str, int] = Field(default_factory=dict)


class ArtifactInfo(BaseModel):
    """Artifact metadata without content."""
    path: str
    type: str
    category: ArtifactCategory
    checksum: str
    size: int

    @classmethod
    def from_artifact(cls, artifact: Artifact) -> "ArtifactInfo":
        return cls(
            path=artifact.path,
            type=artifact.type,
            category=artifact.category,
            checksum=artifact.checksum,
            size=len(artifact.content),
        )


class ArtifactListResponse(BaseModel):
    job_id: str
    artifacts: List[ArtifactInfo]
    total: int


class ArtifactContentResponse(BaseModel):
    job_id: str
    path: str
    content: str


class TaskListResponse(BaseModel):
    tasks: List[Task]
    total: int


class TaskCancelResponse(BaseModel):
    task_id: str
    cancelled: bool


class EventListResponse(BaseModel):
    events: List[DomainEvent]
    total: int
    last_sequence: int


class ExtensionListResponse(BaseModel):
    extensions: List[Dict[str, Any]]
    total: int


class ExtensionPointListResponse(BaseModel):
    points: List[Dict[str, Any]]
    total: int


class ErrorResponse(BaseModel):
    """Error response."""
    detail: str


__all__ = [
    "BuildCreate",
    "BuildSummary",
    "BuildListResponse",
    "BuildDetailResponse",
    "ArtifactInfo",
    "ArtifactListResponse",
    "ArtifactContentResponse",
    "TaskListResponse",
    "TaskCancelResponse",
    "EventListResponse",
    "ExtensionListResponse",
    "ExtensionPointListResponse",
    "ErrorResponse",
]
