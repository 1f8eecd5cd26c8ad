# ============================================================================
# MODELS MODULE
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Model exports
# PURPOSE: Central export point for all domain models
# CREATED: 14 OCT 2026
# ============================================================================
"""
Models Module - Central Export Point

Pydantic models for records that cross the JSON and SQL boundaries
(events, tasks, build jobs, specifications) and dataclasses for the
extension registry, whose hooks carry callables.
"""

from core.models.events import (
    WILDCARD,
    DomainEvent,
    EventType,
    EventPayloadRegistry,
    default_payload_registry,
)
from core.models.extension import (
    Hook,
    ExtensionPoint,
    Extension,
    ExtensionScope,
    ScopeContext,
)
from core.models.task import Task, Provider, SchedulerStats, ModuleHealth, Alert
from core.models.build import (
    BuildJob,
    BuildLogEntry,
    BuildError,
    Artifact,
    ArtifactBag,
    compute_checksum,
)
from core.models.blueprint import (
    BuildSpecification,
    EntityDefinition,
    FieldDefinition,
    FieldType,
    RelationshipDefinition,
)

__all__ = [
    # Events
    "WILDCARD",
    "DomainEvent",
    "EventType",
    "EventPayloadRegistry",
    "default_payload_registry",
    # Extensions
    "Hook",
    "ExtensionPoint",
    "Extension",
    "ExtensionScope",
    "ScopeContext",
    # Scheduler
    "Task",
    "Provider",
    "SchedulerStats",
    "ModuleHealth",
    "Alert",
    # Builds
    "BuildJob",
    "BuildLogEntry",
    "BuildError",
    "Artifact",
    "ArtifactBag",
    "compute_checksum",
    # Specification
    "BuildSpecification",
    "EntityDefinition",
    "FieldDefinition",
    "FieldType",
    "RelationshipDefinition",
]
