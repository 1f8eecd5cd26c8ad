# ============================================================================
# ERROR TAXONOMY
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Foundation - Exception hierarchy
# PURPOSE: Typed errors raised by the registry, scheduler and pipeline
# CREATED: 14 OCT 2026
# ============================================================================
"""
Error Taxonomy

Every error raised by the generation core derives from ForgeError.
Each carries a stable ``code`` and a human-facing ``suggestion`` so the
build pipeline can turn any stage failure into a BuildError record without
a lookup table.

Errors that escape the pipeline's stage driver are programming errors
(unknown extension point, duplicate ids, unknown task); everything raised
inside a stage becomes a logged BuildError instead.
"""

from typing import Any, Iterable, Optional


class ForgeError(Exception):
    """Base exception for the generation core."""

    code = "BUILD_FAILED"
    suggestion = "Check the build logs for details"

    def __init__(self, message: str, suggestion: Optional[str] = None):
        if suggestion is not None:
            self.suggestion = suggestion
        super().__init__(message)


# ============================================================================
# BUILD ERRORS
# ============================================================================

class ValidationError(ForgeError):
    """Raised when a build specification fails validation."""

    code = "VALIDATION_FAILED"
    suggestion = "Define at least one entity with at least one field"

    def __init__(self, message: str, field: Optional[str] = None, value: Any = None):
        self.field = field
        self.value = value
        super().__init__(message)


class GenerationError(ForgeError):
    """Raised when a generator fails or produces unusable output."""

    code = "GENERATION_FAILED"
    suggestion = "Review the specification for the failing category and retry"

    def __init__(self, message: str, category: Optional[str] = None):
        self.category = category
        super().__init__(message)


class DeploymentError(ForgeError):
    """Raised when deploying generated artifacts fails."""

    code = "DEPLOYMENT_FAILED"
    suggestion = "Artifacts were kept; fix the target and redeploy"

    def __init__(self, message: str, target: Optional[str] = None):
        self.target = target
        super().__init__(message)


class ProviderUnavailableError(ForgeError):
    """Raised when no provider can take a task before retries run out."""

    code = "PROVIDER_UNAVAILABLE"
    suggestion = "Register a provider with the required capability or raise its concurrency"

    def __init__(self, task_type: str, retry_count: int = 0):
        self.task_type = task_type
        self.retry_count = retry_count
        super().__init__(
            f"No available provider for task type '{task_type}' after {retry_count} attempts"
        )


# ============================================================================
# EXTENSION ERRORS
# ============================================================================

class ExtensionError(ForgeError):
    """Base exception for extension registry errors."""
    pass


class ExtensionPointNotFoundError(ExtensionError):
    """Raised when an extension point id is not registered."""

    def __init__(self, point_id: str):
        self.point_id = point_id
        super().__init__(f"Extension point not found: {point_id}")


class DuplicateExtensionPointError(ExtensionError):
    """Raised when an extension point id is already registered."""

    def __init__(self, point_id: str):
        self.point_id = point_id
        super().__init__(f"Extension point already registered: {point_id}")


class ExtensionNotFoundError(ExtensionError):
    """Raised when an extension id is not registered."""

    def __init__(self, extension_id: str):
        self.extension_id = extension_id
        super().__init__(f"Extension not found: {extension_id}")


class DuplicateExtensionError(ExtensionError):
    """Raised when an extension id is already registered."""

    def __init__(self, extension_id: str):
        self.extension_id = extension_id
        super().__init__(f"Extension already registered: {extension_id}")


# ============================================================================
# EVENT / TASK ERRORS
# ============================================================================

class EventPayloadError(ForgeError):
    """Raised when an event payload does not match its registered model."""

    def __init__(self, event_type: str, details: Iterable[Any] = ()):
        self.event_type = event_type
        self.details = list(details)
        super().__init__(f"Invalid payload for event '{event_type}': {self.details}")


class TaskNotFoundError(ForgeError):
    """Raised when a task id is not known to the scheduler."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task not found: {task_id}")


class InvalidTransitionError(ForgeError):
    """Raised on a backwards or sideways status transition."""

    def __init__(self, entity: str, current: str, target: str):
        self.entity = entity
        self.current = current
        self.target = target
        super().__init__(f"Cannot transition {entity} from {current} to {target}")


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "ForgeError",
    "ValidationError",
    "GenerationError",
    "DeploymentError",
    "ProviderUnavailableError",
    "ExtensionError",
    "ExtensionPointNotFoundError",
    "DuplicateExtensionPointError",
    "ExtensionNotFoundError",
    "DuplicateExtensionError",
    "EventPayloadError",
    "TaskNotFoundError",
    "InvalidTransitionError",
]
