# ============================================================================
# GENERATORS MODULE
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Generator exports
# PURPOSE: Ports and implementations that produce build artifacts
# CREATED: 15 OCT 2026
# ============================================================================

from generators.ports import GeneratedFile, GeneratorPort, DeploymentPort
from generators.reference import ReferenceGenerator, LoggingDeployer, crud_endpoints
from generators.scheduled import SchedulerBackedGenerator
from generators.checks import CodeFinding, check_files

__all__ = [
    "GeneratedFile",
    "GeneratorPort",
    "DeploymentPort",
    "ReferenceGenerator",
    "LoggingDeployer",
    "crud_endpoints",
    "SchedulerBackedGenerator",
    "CodeFinding",
    "check_files",
]
