# ============================================================================
# EXTENSION MODELS
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Core model - Extension points, extensions and hooks
# PURPOSE: Data shapes for the extension registry
# CREATED: 14 OCT 2026
# EXPORTS: Hook, ExtensionPoint, Extension, ExtensionScope, ScopeContext
# DEPENDENCIES: dataclasses, pydantic (optional point schemas)
# ============================================================================
"""
Extension Models

Plain dataclasses rather than pydantic models: hooks carry callables, and
extension points may carry pydantic model classes as their input/output
schemas.

Hook handler signatures (sync or async):
    before(value)        -> value
    after(result)        -> result
    replace(value)       -> result
    around(value, next)  -> result, where ``await next(value)`` runs the rest
                            of the chain
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Type

from pydantic import BaseModel

from core.contracts import HookType, ScopeType


HookHandler = Callable[..., Any]


@dataclass
class Hook:
    """A handler attached to one extension point."""
    hook_type: HookType
    handler: HookHandler
    priority: int = 100
    name: Optional[str] = None

    # Set by the registry when the owning extension is registered
    extension_id: Optional[str] = None

    def describe(self) -> Dict[str, Any]:
        return {
            "hook_type": self.hook_type.value,
            "priority": self.priority,
            "name": self.name or getattr(self.handler, "__name__", "hook"),
            "extension_id": self.extension_id,
        }


@dataclass
class ExtensionPoint:
    """
    A named hook point.

    ``hooks`` holds the enabled global hooks, kept sorted by ascending
    priority. Tenant and project hooks live in the registry's scoped index.
    """
    id: str
    name: str
    description: str = ""
    version: str = "1.0.0"
    input_schema: Optional[Type[BaseModel]] = None
    output_schema: Optional[Type[BaseModel]] = None
    hooks: List[Hook] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "version": self.version,
            "input_schema": self.input_schema.__name__ if self.input_schema else None,
            "output_schema": self.output_schema.__name__ if self.output_schema else None,
            "hook_count": len(self.hooks),
        }


@dataclass
class ExtensionScope:
    """Where an extension applies."""
    type: ScopeType = ScopeType.GLOBAL
    tenant_id: Optional[str] = None
    project_id: Optional[str] = None

    def __post_init__(self):
        if self.type == ScopeType.TENANT and not self.tenant_id:
            raise ValueError("tenant scope requires tenant_id")
        if self.type == ScopeType.PROJECT and not self.project_id:
            raise ValueError("project scope requires project_id")


@dataclass
class ScopeContext:
    """Caller's scope when executing hooks."""
    tenant_id: Optional[str] = None
    project_id: Optional[str] = None


@dataclass
class Extension:
    """
    A versioned bundle of hooks.

    Hooks only affect their points while ``enabled`` is True; the registry
    flips it through enable_extension/disable_extension.
    """
    id: str
    name: str
    hooks: Dict[str, List[Hook]] = field(default_factory=dict)
    version: str = "1.0.0"
    description: str = ""
    author: str = ""
    config: Dict[str, Any] = field(default_factory=dict)
    scope: ExtensionScope = field(default_factory=ExtensionScope)
    enabled: bool = False
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def extension_points(self) -> List[str]:
        return list(self.hooks.keys())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "version": self.version,
            "description": self.description,
            "author": self.author,
            "extension_points": self.extension_points,
            "hooks": {
                point_id: [hook.describe() for hook in hooks]
                for point_id, hooks in self.hooks.items()
            },
            "scope": {
                "type": self.scope.type.value,
                "tenant_id": self.scope.tenant_id,
                "project_id": self.scope.project_id,
            },
            "enabled": self.enabled,
            "created_at": self.created_at.isoformat(),
        }


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "HookHandler",
    "Hook",
    "ExtensionPoint",
    "ExtensionScope",
    "ScopeContext",
    "Extension",
]
