# ============================================================================
# CORE MODULE
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Core module initialization
# PURPOSE: Export core contracts, errors and models
# CREATED: 14 OCT 2026
# ============================================================================

from core.contracts import (
    TaskStatus,
    TaskPriority,
    BuildStage,
    ArtifactCategory,
    HookType,
    ScopeType,
)
from core.errors import (
    ForgeError,
    ValidationError,
    GenerationError,
    DeploymentError,
    ProviderUnavailableError,
    ExtensionPointNotFoundError,
)
from core.models import (
    DomainEvent,
    EventType,
    Task,
    Provider,
    BuildJob,
    BuildSpecification,
)

__all__ = [
    # Enums
    "TaskStatus",
    "TaskPriority",
    "BuildStage",
    "ArtifactCategory",
    "HookType",
    "ScopeType",
    "EventType",
    # Errors
    "ForgeError",
    "ValidationError",
    "GenerationError",
    "DeploymentError",
    "ProviderUnavailableError",
    "ExtensionPointNotFoundError",
    # Models
    "DomainEvent",
    "Task",
    "Provider",
    "BuildJob",
    "BuildSpecification",
]
