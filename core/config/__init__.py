# ============================================================================
# CONFIGURATION MODULE
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Core - Configuration and defaults
# PURPOSE: Centralized configuration management
# CREATED: 14 OCT 2026
# ============================================================================
"""
Configuration Module

Provides centralized configuration and defaults for the generation core.
"""

from core.config.defaults import (
    RequeuePolicy,
    PersistenceBackend,
    EventBusDefaults,
    SchedulerDefaults,
    PipelineDefaults,
    PersistenceDefaults,
    Defaults,
    get_defaults,
    reset_defaults,
)

__all__ = [
    "RequeuePolicy",
    "PersistenceBackend",
    "EventBusDefaults",
    "SchedulerDefaults",
    "PipelineDefaults",
    "PersistenceDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
