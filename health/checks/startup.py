# ============================================================================
# STARTUP HEALTH CHECKS
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Infrastructure - Process and host checks
# PURPOSE: Basic process and resource checks
# CREATED: 15 OCT 2026
# ============================================================================
"""
Startup Health Checks

Basic checks that run first (priority 10):
- ProcessCheck: Always healthy if process is running
- SystemResourcesCheck: Memory and CPU headroom (psutil)
"""

import os
import platform
import sys

import psutil

from health.core import (
    HealthCheckPlugin,
    HealthCheckResult,
    HealthCheckCategory,
)


class ProcessCheck(HealthCheckPlugin):
    """Always returns healthy if the check runs (proves process is alive)."""

    name = "process"
    category = HealthCheckCategory.STARTUP
    timeout_seconds = 1.0

    async def check(self) -> HealthCheckResult:
        return HealthCheckResult.healthy(
            message="Process running",
            python_version=sys.version.split()[0],
            platform=platform.platform(),
            pid=os.getpid(),
        )


class SystemResourcesCheck(HealthCheckPlugin):
    """
    Host memory and CPU.

    Degraded above ``memory_threshold`` percent memory use; never unhealthy,
    since the process can still serve requests.
    """

    name = "system_resources"
    category = HealthCheckCategory.STARTUP
    timeout_seconds = 2.0
    required_for_ready = False

    def __init__(self, memory_threshold: float = 90.0):
        self.memory_threshold = memory_threshold

    async def check(self) -> HealthCheckResult:
        memory = psutil.virtual_memory()
        cpu = psutil.cpu_percent(interval=None)
        details = {
            "memory_percent": memory.percent,
            "memory_available_mb": round(memory.available / (1024 * 1024), 1),
            "cpu_percent": cpu,
        }

        if memory.percent > self.memory_threshold:
            return HealthCheckResult.degraded(
                message=f"Memory use {memory.percent}% above {self.memory_threshold}%",
                **details,
            )
        return HealthCheckResult.healthy(message="Resources within limits", **details)


__all__ = [
    "ProcessCheck",
    "SystemResourcesCheck",
]
