# ============================================================================
# EXTENSION REGISTRY
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Service - Typed hook points and extension lifecycle
# PURPOSE: Let extensions transform, wrap or replace pipeline behaviour
# CREATED: 14 OCT 2026
# ============================================================================
"""
Extension Registry

Extension points are named hook sites. Extensions bundle hooks for one or
more points and are registered disabled or enabled; only enabled
extensions contribute hooks.

Design:
- Fail-fast on duplicate ids and unknown points (no partial registration)
- Global hooks live on the ExtensionPoint; tenant and project hooks live in
  a scoped index and are merged in at execution time
- Hook lists are kept sorted by ascending priority (stable)
- Lifecycle changes are published on the event bus

execute_hooks() runs, in order:
    1. every ``before`` hook, each transforming the input
    2. the last ``replace`` hook if any exists, otherwise the ``around``
       chain wrapped around the default handler, otherwise the default
    3. every ``after`` hook, each transforming the result
"""

import inspect
import logging
from typing import Any, Callable, Dict, List, Optional, Tuple

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from core.contracts import HookType, ScopeType
from core.errors import (
    DuplicateExtensionError,
    DuplicateExtensionPointError,
    ExtensionNotFoundError,
    ExtensionPointNotFoundError,
    ValidationError,
)
from core.models.events import EventType
from core.models.extension import (
    Extension,
    ExtensionPoint,
    ExtensionScope,
    Hook,
    ScopeContext,
)

logger = logging.getLogger(__name__)


# ============================================================================
# CORE EXTENSION POINTS
# ============================================================================

class CorePoint:
    """Ids of the extension points every registry starts with."""
    PRE_VALIDATION = "pre-validation"
    POST_VALIDATION = "post-validation"
    PRE_GENERATION = "pre-generation"
    POST_GENERATION = "post-generation"
    CODE_OPTIMIZATION = "code-optimization"
    SECURITY_SCAN = "security-scan"
    PRE_DEPLOY = "pre-deploy"
    POST_DEPLOY = "post-deploy"
    NOTIFICATION_DISPATCH = "notification-dispatch"


_CORE_POINTS: List[Tuple[str, str, str]] = [
    (CorePoint.PRE_VALIDATION, "Pre-Validation", "Transform the build specification before it is validated"),
    (CorePoint.POST_VALIDATION, "Post-Validation", "Inspect or amend a specification that passed validation"),
    (CorePoint.PRE_GENERATION, "Pre-Generation", "Adjust the specification before a generation stage runs"),
    (CorePoint.POST_GENERATION, "Post-Generation", "Transform the files produced by a generation stage"),
    (CorePoint.CODE_OPTIMIZATION, "Code Optimization", "Rewrite generated files before they are checked"),
    (CorePoint.SECURITY_SCAN, "Security Scan", "Scan generated artifacts and report findings"),
    (CorePoint.PRE_DEPLOY, "Pre-Deploy", "Run checks or transforms before deployment"),
    (CorePoint.POST_DEPLOY, "Post-Deploy", "React to a finished deployment"),
    (CorePoint.NOTIFICATION_DISPATCH, "Notification Dispatch", "Deliver build notifications"),
]


async def _call(handler: Callable[..., Any], *args: Any) -> Any:
    result = handler(*args)
    if inspect.isawaitable(result):
        result = await result
    return result


def _sort_hooks(hooks: List[Hook]) -> None:
    hooks.sort(key=lambda h: h.priority)


ScopeKey = Tuple[str, ScopeType, str]


class ExtensionRegistry:
    """
    Registry of extension points and extensions.

    One instance per application; the lifespan constructs it with the
    application's event bus.
    """

    def __init__(self, event_bus: Optional[Any] = None, register_core_points: bool = True):
        self.event_bus = event_bus
        self._points: Dict[str, ExtensionPoint] = {}
        self._extensions: Dict[str, Extension] = {}
        self._scoped_hooks: Dict[ScopeKey, List[Hook]] = {}

        if register_core_points:
            for point_id, name, description in _CORE_POINTS:
                self._points[point_id] = ExtensionPoint(id=point_id, name=name, description=description)

    # =========================================================================
    # EXTENSION POINTS
    # =========================================================================

    async def register_extension_point(self, point: ExtensionPoint) -> ExtensionPoint:
        """
        Register a new extension point.

        Raises:
            DuplicateExtensionPointError: If the id is already registered
        """
        if point.id in self._points:
            raise DuplicateExtensionPointError(point.id)

        _sort_hooks(point.hooks)
        self._points[point.id] = point
        logger.info(f"Registered extension point: {point.id}")

        await self._publish(
            EventType.EXTENSION_POINT_REGISTERED,
            {"point_id": point.id, "name": point.name},
            aggregate_id=point.id,
            aggregate_type="extension_point",
        )
        return point

    def get_extension_point(self, point_id: str) -> Optional[ExtensionPoint]:
        return self._points.get(point_id)

    def list_extension_points(self) -> List[ExtensionPoint]:
        return list(self._points.values())

    # =========================================================================
    # EXTENSIONS
    # =========================================================================

    async def register_extension(self, extension: Extension) -> Extension:
        """
        Register an extension.

        Every referenced point must exist; nothing is registered otherwise.
        An extension registered with enabled=True is attached immediately.

        Raises:
            DuplicateExtensionError: If the id is already registered
            ExtensionPointNotFoundError: Naming the first unknown point
        """
        if extension.id in self._extensions:
            raise DuplicateExtensionError(extension.id)

        for point_id in extension.hooks:
            if point_id not in self._points:
                raise ExtensionPointNotFoundError(point_id)

        for hooks in extension.hooks.values():
            for hook in hooks:
                hook.extension_id = extension.id

        self._extensions[extension.id] = extension
        if extension.enabled:
            self._attach(extension)

        logger.info(
            f"Registered extension: {extension.id} v{extension.version} "
            f"({extension.scope.type.value}, points={extension.extension_points})"
        )
        await self._publish_extension(EventType.EXTENSION_REGISTERED, extension)
        return extension

    async def unregister_extension(self, extension_id: str) -> bool:
        """Disable (if needed) and remove an extension. False if unknown."""
        extension = self._extensions.get(extension_id)
        if extension is None:
            return False

        if extension.enabled:
            await self.disable_extension(extension_id)

        del self._extensions[extension_id]
        logger.info(f"Unregistered extension: {extension_id}")
        await self._publish_extension(EventType.EXTENSION_UNREGISTERED, extension)
        return True

    async def enable_extension(self, extension_id: str) -> Extension:
        """
        Splice the extension's hooks into each referenced point.

        Raises:
            ExtensionNotFoundError: If the id is unknown
        """
        extension = self._require(extension_id)
        if extension.enabled:
            return extension

        self._attach(extension)
        extension.enabled = True
        logger.info(f"Enabled extension: {extension_id}")
        await self._publish_extension(EventType.EXTENSION_ENABLED, extension)
        return extension

    async def disable_extension(self, extension_id: str) -> Extension:
        """
        Remove the extension's hooks from each referenced point.

        Raises:
            ExtensionNotFoundError: If the id is unknown
        """
        extension = self._require(extension_id)
        if not extension.enabled:
            return extension

        self._detach(extension)
        extension.enabled = False
        logger.info(f"Disabled extension: {extension_id}")
        await self._publish_extension(EventType.EXTENSION_DISABLED, extension)
        return extension

    def get_extension(self, extension_id: str) -> Optional[Extension]:
        return self._extensions.get(extension_id)

    def list_extensions(
        self,
        enabled: Optional[bool] = None,
        extension_point: Optional[str] = None,
        tenant_id: Optional[str] = None,
    ) -> List[Extension]:
        """List extensions, optionally filtered."""
        extensions = list(self._extensions.values())
        if enabled is not None:
            extensions = [e for e in extensions if e.enabled == enabled]
        if extension_point is not None:
            extensions = [e for e in extensions if extension_point in e.hooks]
        if tenant_id is not None:
            extensions = [e for e in extensions if e.scope.tenant_id == tenant_id]
        return extensions

    def get_extensions_for_scope(self, scope: ScopeContext) -> List[Extension]:
        """Enabled extensions that apply to a caller in ``scope``."""
        return [
            e
            for e in self._extensions.values()
            if e.enabled and self._applies(e.scope, scope)
        ]

    def _require(self, extension_id: str) -> Extension:
        extension = self._extensions.get(extension_id)
        if extension is None:
            raise ExtensionNotFoundError(extension_id)
        return extension

    @staticmethod
    def _applies(extension_scope: ExtensionScope, scope: ScopeContext) -> bool:
        if extension_scope.type == ScopeType.GLOBAL:
            return True
        if extension_scope.type == ScopeType.TENANT:
            return extension_scope.tenant_id == scope.tenant_id
        return extension_scope.project_id == scope.project_id

    # =========================================================================
    # HOOK INDEX
    # =========================================================================

    def _hook_list(self, point_id: str, scope: ExtensionScope) -> List[Hook]:
        if scope.type == ScopeType.GLOBAL:
            return self._points[point_id].hooks
        scope_id = scope.tenant_id if scope.type == ScopeType.TENANT else scope.project_id
        return self._scoped_hooks.setdefault((point_id, scope.type, scope_id), [])

    def _attach(self, extension: Extension) -> None:
        for point_id, hooks in extension.hooks.items():
            target = self._hook_list(point_id, extension.scope)
            target.extend(hooks)
            _sort_hooks(target)

    def _detach(self, extension: Extension) -> None:
        for point_id in extension.hooks:
            target = self._hook_list(point_id, extension.scope)
            target[:] = [h for h in target if h.extension_id != extension.id]

    def get_hooks(self, point_id: str, scope: Optional[ScopeContext] = None) -> List[Hook]:
        """
        Global hooks merged with the caller's tenant and project hooks.

        Sorted by ascending priority; on ties global hooks come first.

        Raises:
            ExtensionPointNotFoundError: If the point is unknown
        """
        point = self._points.get(point_id)
        if point is None:
            raise ExtensionPointNotFoundError(point_id)

        hooks = list(point.hooks)
        if scope is not None:
            if scope.tenant_id:
                hooks.extend(self._scoped_hooks.get((point_id, ScopeType.TENANT, scope.tenant_id), []))
            if scope.project_id:
                hooks.extend(self._scoped_hooks.get((point_id, ScopeType.PROJECT, scope.project_id), []))
        _sort_hooks(hooks)
        return hooks

    # =========================================================================
    # EXECUTION
    # =========================================================================

    async def execute_hooks(
        self,
        point_id: str,
        input: Any,
        default_handler: Callable[[Any], Any],
        scope: Optional[ScopeContext] = None,
    ) -> Any:
        """
        Run a point's hooks around ``default_handler``.

        Hook exceptions propagate to the caller.

        Raises:
            ExtensionPointNotFoundError: If the point is unknown
            ValidationError: If input or result fails the point's schema
        """
        point = self._points.get(point_id)
        if point is None:
            raise ExtensionPointNotFoundError(point_id)

        hooks = self.get_hooks(point_id, scope)
        by_type: Dict[HookType, List[Hook]] = {hook_type: [] for hook_type in HookType}
        for hook in hooks:
            by_type[hook.hook_type].append(hook)

        value = input
        self._check_schema(point, point.input_schema, value, "input")

        for hook in by_type[HookType.BEFORE]:
            value = await self._run_hook(point_id, hook, value)

        if by_type[HookType.REPLACE]:
            replacement = by_type[HookType.REPLACE][-1]
            result = await self._run_hook(point_id, replacement, value)
        elif by_type[HookType.AROUND]:
            result = await self._run_around(point_id, by_type[HookType.AROUND], default_handler, value)
        else:
            result = await _call(default_handler, value)

        for hook in by_type[HookType.AFTER]:
            result = await self._run_hook(point_id, hook, result)

        self._check_schema(point, point.output_schema, result, "output")
        return result

    async def _run_hook(self, point_id: str, hook: Hook, *args: Any) -> Any:
        try:
            return await _call(hook.handler, *args)
        except Exception:
            logger.exception(
                f"{hook.hook_type.value} hook from extension {hook.extension_id} "
                f"failed at {point_id}"
            )
            raise

    async def _run_around(
        self,
        point_id: str,
        arounds: List[Hook],
        default_handler: Callable[[Any], Any],
        value: Any,
    ) -> Any:
        """Nested chain: arounds[0] outermost, default innermost."""

        async def invoke(index: int, current: Any) -> Any:
            if index == len(arounds):
                return await _call(default_handler, current)

            async def call_next(next_value: Any = current) -> Any:
                return await invoke(index + 1, next_value)

            return await self._run_hook(point_id, arounds[index], current, call_next)

        return await invoke(0, value)

    @staticmethod
    def _check_schema(point: ExtensionPoint, schema: Optional[type], value: Any, side: str) -> None:
        if schema is None or not isinstance(value, dict):
            return
        if not (isinstance(schema, type) and issubclass(schema, BaseModel)):
            return
        try:
            schema.model_validate(value)
        except PydanticValidationError as e:
            raise ValidationError(
                f"Extension point {point.id} {side} failed {schema.__name__}: {e.error_count()} error(s)",
                field=side,
            ) from e

    # =========================================================================
    # EVENTS
    # =========================================================================

    async def _publish(self, event_type: EventType, payload: Dict[str, Any], **metadata: Any) -> None:
        if self.event_bus is None:
            return
        await self.event_bus.emit(event_type, payload, source="extension-registry", **metadata)

    async def _publish_extension(self, event_type: EventType, extension: Extension) -> None:
        await self._publish(
            event_type,
            {
                "extension_id": extension.id,
                "name": extension.name,
                "version": extension.version,
                "scope": extension.scope.type.value,
                "extension_points": extension.extension_points,
            },
            tenant_id=extension.scope.tenant_id,
            aggregate_id=extension.id,
            aggregate_type="extension",
        )

    @property
    def stats(self) -> Dict[str, Any]:
        return {
            "extension_points": len(self._points),
            "extensions": len(self._extensions),
            "enabled": sum(1 for e in self._extensions.values() if e.enabled),
        }


# ============================================================================
# FACTORY
# ============================================================================

def create_extension(
    id: str,
    name: str,
    hooks: Dict[str, List[Hook]],
    version: str = "1.0.0",
    description: str = "",
    author: str = "",
    scope: Optional[ExtensionScope] = None,
    config: Optional[Dict[str, Any]] = None,
) -> Extension:
    """Build a disabled extension ready for register_extension()."""
    return Extension(
        id=id,
        name=name,
        hooks=hooks,
        version=version,
        description=description,
        author=author,
        scope=scope or ExtensionScope(),
        config=config or {},
        enabled=False,
    )


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "CorePoint",
    "ExtensionRegistry",
    "create_extension",
]
