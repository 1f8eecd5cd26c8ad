# ============================================================================
# DOMAIN EVENT MODEL
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Core model - Event envelope and typed payloads
# PURPOSE: Immutable events exchanged over the bus, validated per type
# CREATED: 14 OCT 2026
# EXPORTS: DomainEvent, EventType, EventPayloadRegistry, default_payload_registry
# DEPENDENCIES: pydantic, enum
# ============================================================================
"""
Domain Event Model

DomainEvent is the envelope every subsystem publishes on the event bus.
Its ``payload`` is a JSON-compatible dict whose shape is determined by
``event_type``: the EventPayloadRegistry maps each type string to a pydantic
model, and the bus validates (and normalises) payloads against it at
publish time. Event types with no registered model pass through unchanged
unless the registry is strict.

Event types are dotted strings ("generation.started", "task.failed");
EventType lists the ones the core itself publishes, but any string is a
valid type for application events.
"""

import uuid
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Type, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from core.errors import EventPayloadError


WILDCARD = "*"


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class EventType(str, Enum):
    """Event types published by the generation core."""

    # Build pipeline
    GENERATION_STARTED = "generation.started"
    GENERATION_PROGRESS = "generation.progress"
    GENERATION_COMPLETED = "generation.completed"
    GENERATION_FAILED = "generation.failed"
    ARTIFACTS_READY = "artifacts.ready"

    # Deployment
    DEPLOYMENT_STARTED = "deployment.started"
    DEPLOYMENT_COMPLETED = "deployment.completed"
    DEPLOYMENT_FAILED = "deployment.failed"

    # Scheduler
    TASK_QUEUED = "task.queued"
    TASK_STARTED = "task.started"
    TASK_COMPLETED = "task.completed"
    TASK_FAILED = "task.failed"
    TASK_RETRYING = "task.retrying"
    TASK_CANCELLED = "task.cancelled"

    # Extension registry
    EXTENSION_POINT_REGISTERED = "extension.point.registered"
    EXTENSION_REGISTERED = "extension.registered"
    EXTENSION_UNREGISTERED = "extension.unregistered"
    EXTENSION_ENABLED = "extension.enabled"
    EXTENSION_DISABLED = "extension.disabled"

    # System
    HEALTH_CHANGED = "system.health.changed"
    ALERT_RAISED = "system.alert.raised"


def _type_name(event_type: Union[str, Enum]) -> str:
    if isinstance(event_type, Enum):
        return str(event_type.value)
    return event_type


# ============================================================================
# ENVELOPE
# ============================================================================

class DomainEvent(BaseModel):
    """
    A single event on the bus.

    Frozen: the bus derives sequenced copies with model_copy() instead of
    mutating the published instance.
    """

    model_config = ConfigDict(frozen=True)

    event_id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    event_type: str = Field(..., min_length=1, max_length=128)
    version: str = Field(default="1.0", max_length=16)
    timestamp: datetime = Field(default_factory=_utc_now)

    tenant_id: Optional[str] = Field(default=None, max_length=64)
    correlation_id: Optional[str] = Field(default=None, max_length=64)
    causation_id: Optional[str] = Field(default=None, max_length=64)
    source: str = Field(default="blueprint-forge", max_length=64)

    # Assigned by the bus at publish time
    sequence: Optional[int] = Field(default=None, ge=0)

    aggregate_id: Optional[str] = Field(default=None, max_length=128)
    aggregate_type: Optional[str] = Field(default=None, max_length=64)

    payload: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("event_type", mode="before")
    @classmethod
    def _coerce_event_type(cls, value: Any) -> Any:
        return _type_name(value) if isinstance(value, Enum) else value

    @classmethod
    def create(
        cls,
        event_type: Union[str, EventType],
        payload: Optional[Dict[str, Any]] = None,
        **metadata: Any,
    ) -> "DomainEvent":
        """
        Build an event, generating a correlation id when none is given.

        Args:
            event_type: Dotted type string or EventType
            payload: Event data, validated by the bus on publish
            **metadata: Any other envelope field (tenant_id, aggregate_id, ...)
        """
        if not metadata.get("correlation_id"):
            metadata["correlation_id"] = str(uuid.uuid4())
        return cls(event_type=_type_name(event_type), payload=payload or {}, **metadata)

    def caused(
        self,
        event_type: Union[str, EventType],
        payload: Optional[Dict[str, Any]] = None,
        **metadata: Any,
    ) -> "DomainEvent":
        """Create a follow-up event sharing this event's correlation chain."""
        metadata.setdefault("tenant_id", self.tenant_id)
        metadata.setdefault("correlation_id", self.correlation_id)
        metadata.setdefault("causation_id", self.event_id)
        return DomainEvent.create(event_type, payload, **metadata)


# ============================================================================
# PAYLOADS
# ============================================================================

class _Payload(BaseModel):
    model_config = ConfigDict(extra="allow")


class GenerationStartedPayload(_Payload):
    job_id: str
    specification_id: str
    deploy_target: Optional[str] = None


class GenerationProgressPayload(_Payload):
    job_id: str
    stage: str
    progress: int = Field(..., ge=0, le=100)
    message: str = ""


class GenerationCompletedPayload(_Payload):
    job_id: str
    artifact_counts: Dict[str, int] = Field(default_factory=dict)
    duration_ms: int = Field(default=0, ge=0)


class GenerationFailedPayload(_Payload):
    job_id: str
    stage: str
    code: str
    message: str


class ArtifactsReadyPayload(_Payload):
    job_id: str
    artifact_counts: Dict[str, int] = Field(default_factory=dict)
    total_files: int = Field(default=0, ge=0)


class DeploymentPayload(_Payload):
    job_id: str
    target: str
    details: Dict[str, Any] = Field(default_factory=dict)
    error: Optional[str] = None


class TaskQueuedPayload(_Payload):
    task_id: str
    task_type: str
    priority: str


class TaskStartedPayload(_Payload):
    task_id: str
    task_type: str
    provider_id: str
    wait_time_ms: int = Field(..., ge=0)


class TaskCompletedPayload(_Payload):
    task_id: str
    task_type: str
    provider_id: str
    execution_time_ms: int = Field(..., ge=0)


class TaskFailedPayload(_Payload):
    task_id: str
    task_type: str
    error: str
    retry_count: int = Field(default=0, ge=0)
    provider_id: Optional[str] = None


class TaskRetryingPayload(_Payload):
    task_id: str
    task_type: str
    retry_count: int = Field(..., ge=1)
    max_retries: int = Field(..., ge=0)
    reason: str


class TaskCancelledPayload(_Payload):
    task_id: str
    task_type: str


class ExtensionPointPayload(_Payload):
    point_id: str
    name: str


class ExtensionPayload(_Payload):
    extension_id: str
    name: str
    version: str = ""
    scope: str = "global"
    extension_points: list = Field(default_factory=list)


class HealthChangedPayload(_Payload):
    module: str
    previous: Optional[str] = None
    current: str
    details: Dict[str, Any] = Field(default_factory=dict)


class AlertRaisedPayload(_Payload):
    alert_id: str
    severity: str
    message: str
    queue_depth: int = Field(default=0, ge=0)
    threshold: int = Field(default=0, ge=0)


# ============================================================================
# PAYLOAD REGISTRY
# ============================================================================

class EventPayloadRegistry:
    """
    Maps event-type strings to payload models.

    validate() returns the normalised (JSON-mode dumped) payload, or raises
    EventPayloadError. In strict mode unregistered types are rejected.
    """

    def __init__(self, strict: bool = False):
        self.strict = strict
        self._models: Dict[str, Type[BaseModel]] = {}

    def register(self, event_type: Union[str, EventType], model: Type[BaseModel]) -> None:
        self._models[_type_name(event_type)] = model

    def unregister(self, event_type: Union[str, EventType]) -> bool:
        return self._models.pop(_type_name(event_type), None) is not None

    def is_registered(self, event_type: Union[str, EventType]) -> bool:
        return _type_name(event_type) in self._models

    def model_for(self, event_type: Union[str, EventType]) -> Optional[Type[BaseModel]]:
        return self._models.get(_type_name(event_type))

    def registered_types(self) -> list:
        return sorted(self._models)

    def validate(self, event_type: Union[str, EventType], payload: Dict[str, Any]) -> Dict[str, Any]:
        name = _type_name(event_type)
        model = self._models.get(name)
        if model is None:
            if self.strict:
                raise EventPayloadError(name, ["event type is not registered"])
            return payload
        try:
            return model.model_validate(payload).model_dump(mode="json")
        except PydanticValidationError as e:
            raise EventPayloadError(name, e.errors(include_url=False)) from e


_BUILTIN_PAYLOADS: Dict[EventType, Type[BaseModel]] = {
    EventType.GENERATION_STARTED: GenerationStartedPayload,
    EventType.GENERATION_PROGRESS: GenerationProgressPayload,
    EventType.GENERATION_COMPLETED: GenerationCompletedPayload,
    EventType.GENERATION_FAILED: GenerationFailedPayload,
    EventType.ARTIFACTS_READY: ArtifactsReadyPayload,
    EventType.DEPLOYMENT_STARTED: DeploymentPayload,
    EventType.DEPLOYMENT_COMPLETED: DeploymentPayload,
    EventType.DEPLOYMENT_FAILED: DeploymentPayload,
    EventType.TASK_QUEUED: TaskQueuedPayload,
    EventType.TASK_STARTED: TaskStartedPayload,
    EventType.TASK_COMPLETED: TaskCompletedPayload,
    EventType.TASK_FAILED: TaskFailedPayload,
    EventType.TASK_RETRYING: TaskRetryingPayload,
    EventType.TASK_CANCELLED: TaskCancelledPayload,
    EventType.EXTENSION_POINT_REGISTERED: ExtensionPointPayload,
    EventType.EXTENSION_REGISTERED: ExtensionPayload,
    EventType.EXTENSION_UNREGISTERED: ExtensionPayload,
    EventType.EXTENSION_ENABLED: ExtensionPayload,
    EventType.EXTENSION_DISABLED: ExtensionPayload,
    EventType.HEALTH_CHANGED: HealthChangedPayload,
    EventType.ALERT_RAISED: AlertRaisedPayload,
}


def default_payload_registry(strict: bool = False) -> EventPayloadRegistry:
    """Registry pre-loaded with every event type the core publishes."""
    registry = EventPayloadRegistry(strict=strict)
    for event_type, model in _BUILTIN_PAYLOADS.items():
        registry.register(event_type, model)
    return registry


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "WILDCARD",
    "EventType",
    "DomainEvent",
    "EventPayloadRegistry",
    "default_payload_registry",
    "GenerationStartedPayload",
    "GenerationProgressPayload",
    "GenerationCompletedPayload",
    "GenerationFailedPayload",
    "ArtifactsReadyPayload",
    "DeploymentPayload",
    "TaskQueuedPayload",
    "TaskStartedPayload",
    "TaskCompletedPayload",
    "TaskFailedPayload",
    "TaskRetryingPayload",
    "TaskCancelledPayload",
    "ExtensionPointPayload",
    "ExtensionPayload",
    "HealthChangedPayload",
    "AlertRaisedPayload",
]
