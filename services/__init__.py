# ============================================================================
# SERVICES MODULE
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Core - Shared in-process services
# PURPOSE: Event bus and extension registry
# CREATED: 15 OCT 2026
# ============================================================================
"""
Services Module

Services are plain instances constructed once by the application lifespan
and injected into the scheduler, pipeline and routes.

Usage:
    from services import EventBus, ExtensionRegistry

    bus = EventBus()
    registry = ExtensionRegistry(event_bus=bus)
"""

from .event_bus import EventBus, Subscription, DeadLetter
from .extension_registry import ExtensionRegistry, CorePoint, create_extension

__all__ = [
    "EventBus",
    "Subscription",
    "DeadLetter",
    "ExtensionRegistry",
    "CorePoint",
    "create_extension",
]
