# ============================================================================
# BUILD SPECIFICATION MODEL
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Core model - Structured build input ("blueprint")
# PURPOSE: Pre-parsed description of the system to generate
# CREATED: 14 OCT 2026
# EXPORTS: BuildSpecification, EntityDefinition, FieldDefinition,
#          RelationshipDefinition, FieldType
# DEPENDENCIES: pydantic
# ============================================================================
"""
Build Specification Model

The pipeline consumes a BuildSpecification that upstream tooling has
already parsed. The only invariant the core enforces is the one in
BuildSpecification.validation_problems(): at least one entity, and every
entity with at least one field. Everything else (pages, roles,
integrations, compliance) is carried through to the generators untouched.
"""

import re
import uuid
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator


class FieldType(str, Enum):
    """Column types a generator must know how to map."""
    STRING = "string"
    TEXT = "text"
    INTEGER = "integer"
    BIGINT = "bigint"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    DATE = "date"
    DATETIME = "datetime"
    TIMESTAMP = "timestamp"
    JSON = "json"
    JSONB = "jsonb"
    UUID = "uuid"
    ENUM = "enum"
    ARRAY = "array"


class FieldDefinition(BaseModel):
    name: str = Field(..., min_length=1, max_length=64)
    type: FieldType = FieldType.STRING
    nullable: bool = True
    unique: bool = False
    indexed: bool = False
    primary_key: bool = False
    default_value: Optional[Any] = None
    enum_values: List[str] = Field(default_factory=list)
    references: Optional[str] = Field(
        default=None,
        description="Target as 'entity' or 'entity.field'",
    )

    @model_validator(mode="after")
    def _enum_needs_values(self) -> "FieldDefinition":
        if self.type == FieldType.ENUM and not self.enum_values:
            raise ValueError(f"enum field '{self.name}' requires enum_values")
        return self


def _snake(name: str) -> str:
    words = re.sub(r"[^0-9A-Za-z]+", "_", name).strip("_")
    return re.sub(r"(?<=[a-z0-9])(?=[A-Z])", "_", words).lower()


def pluralize(word: str) -> str:
    if re.search(r"[^aeiou]y$", word):
        return word[:-1] + "ies"
    if re.search(r"(s|x|z|ch|sh)$", word):
        return word + "es"
    return word + "s"


class EntityDefinition(BaseModel):
    name: str = Field(..., min_length=1, max_length=64)
    table_name: Optional[str] = Field(default=None, max_length=64)
    fields: List[FieldDefinition] = Field(default_factory=list)
    timestamps: bool = True
    soft_delete: bool = False
    tenant_isolated: bool = False

    @property
    def resolved_table_name(self) -> str:
        """Explicit table name, or the pluralised snake_case entity name."""
        return self.table_name or pluralize(_snake(self.name))

    @property
    def class_name(self) -> str:
        """CamelCase identifier for generated source, e.g. "Order Item" -> OrderItem."""
        return "".join(part.capitalize() for part in _snake(self.name).split("_"))


class RelationshipDefinition(BaseModel):
    type: str = Field(..., pattern=r"^(one-to-one|one-to-many|many-to-many)$")
    source: str
    target: str
    through_table: Optional[str] = None


class BuildSpecification(BaseModel):
    """
    Structured input to a build.

    Fields beyond ``entities`` and ``relationships`` are free-form and only
    read by generators.
    """

    id: str = Field(default_factory=lambda: f"spec-{uuid.uuid4().hex[:12]}", max_length=64)
    name: str = Field(default="Untitled", max_length=128)
    description: str = ""
    version: str = "1.0.0"

    entities: List[EntityDefinition] = Field(default_factory=list)
    relationships: List[RelationshipDefinition] = Field(default_factory=list)
    pages: List[Dict[str, Any]] = Field(default_factory=list)
    roles: List[Dict[str, Any]] = Field(default_factory=list)
    integrations: List[Dict[str, Any]] = Field(default_factory=list)
    infrastructure: Dict[str, Any] = Field(default_factory=dict)
    compliance: Dict[str, Any] = Field(default_factory=dict)

    def validation_problems(self) -> List[str]:
        """Problems that prevent a build from leaving the validating stage."""
        problems = []
        if not self.entities:
            problems.append("Specification must define at least one entity")
        for entity in self.entities:
            if not entity.fields:
                problems.append(f"Entity '{entity.name}' must define at least one field")

        names = [e.name for e in self.entities]
        for relationship in self.relationships:
            for end in (relationship.source, relationship.target):
                if end not in names:
                    problems.append(f"Relationship references unknown entity '{end}'")
        return problems


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "FieldType",
    "FieldDefinition",
    "EntityDefinition",
    "RelationshipDefinition",
    "BuildSpecification",
    "pluralize",
]
