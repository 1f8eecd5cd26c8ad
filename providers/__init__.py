# ============================================================================
# PROVIDERS MODULE
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Provider exports
# PURPOSE: Executors the task scheduler dispatches generation work to
# CREATED: 15 OCT 2026
# ============================================================================

from providers.base import AIProvider, ProviderRequest, ProviderResult
from providers.local import LocalGenerationProvider

__all__ = [
    "AIProvider",
    "ProviderRequest",
    "ProviderResult",
    "LocalGenerationProvider",
]
