# ============================================================================
# API MODULE
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Core - FastAPI routes
# PURPOSE: HTTP API for builds, scheduler, events and extensions
# CREATED: 15 OCT 2026
# ============================================================================
"""
API Module

FastAPI routes for the generation core.
"""

from .routes import router
from .schemas import (
    BuildCreate,
    BuildSummary,
    BuildDetailResponse,
    ArtifactInfo,
)

__all__ = [
    "router",
    "BuildCreate",
    "BuildSummary",
    "BuildDetailResponse",
    "ArtifactInfo",
]
