# ============================================================================
# HEALTH CHECK PLUGINS
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Infrastructure - Health check implementations
# PURPOSE: Concrete checks for the generation core
# CREATED: 15 OCT 2026
# ============================================================================
"""
Health Check Plugins

Startup Checks (priority 10):
- process: Basic process health (always healthy if running)
- system_resources: Memory and CPU headroom

Persistence Checks (priority 30):
- postgres: PostgreSQL connection and forge tables

Application Checks (priority 40):
- event_bus: Dead letters and handler failures
- scheduler: Dispatcher running, module health
- pipeline: Build counters

Checks take their service instance in the constructor; main.lifespan
registers them on the application's HealthCheckRegistry.
"""

from health.checks.startup import ProcessCheck, SystemResourcesCheck
from health.checks.database import PostgresCheck
from health.checks.application import EventBusCheck, SchedulerCheck, PipelineCheck

__all__ = [
    "ProcessCheck",
    "SystemResourcesCheck",
    "PostgresCheck",
    "EventBusCheck",
    "SchedulerCheck",
    "PipelineCheck",
]
