# ============================================================================
# ORCHESTRATOR MODULE
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Core - Task scheduling and build driving
# PURPOSE: Dispatch provider work and run builds stage by stage
# CREATED: 15 OCT 2026
# ============================================================================
"""
Orchestrator Module

Usage:
    from orchestrator import TaskScheduler, BuildPipeline

    scheduler = TaskScheduler(event_bus)
    await scheduler.start()

    pipeline = BuildPipeline(event_bus, registry, ReferenceGenerator())
    job = await pipeline.submit(spec)
"""

from .scheduler import TaskScheduler, DispatchOutcome
from .pipeline import BuildPipeline

__all__ = [
    "TaskScheduler",
    "DispatchOutcome",
    "BuildPipeline",
]
