# ============================================================================
# LOCAL GENERATION PROVIDER
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Provider - In-process generation and review
# PURPOSE: Serve code-generation and code-review tasks from a GeneratorPort
# CREATED: 15 OCT 2026
# ============================================================================
"""
Local Generation Provider

Wraps any GeneratorPort (usually the ReferenceGenerator) so scheduler
tasks can be served without a remote model. Also answers code-review
tasks with the static checks from generators.checks.
"""

import inspect
import logging

from pydantic import ValidationError as PydanticValidationError

from core.contracts import ArtifactCategory, TaskKind
from core.models.blueprint import BuildSpecification
from generators.checks import check_files
from generators.ports import GeneratedFile, GeneratorPort
from generators.scheduled import method_for
from providers.base import AIProvider, ProviderRequest, ProviderResult

logger = logging.getLogger(__name__)


class LocalGenerationProvider(AIProvider):
    """Provider backed by an in-process generator."""

    capabilities = frozenset({TaskKind.CODE_GENERATION, TaskKind.CODE_REVIEW})

    def __init__(self, generator: GeneratorPort, provider_id: str = "local", **kwargs):
        kwargs.setdefault("name", f"Local ({generator.name})")
        kwargs.setdefault("max_concurrent", 4)
        super().__init__(provider_id, **kwargs)
        self.generator = generator

    async def generate(self, request: ProviderRequest) -> ProviderResult:
        try:
            category = ArtifactCategory(request.input["category"])
            spec = BuildSpecification.model_validate(request.input["specification"])
        except (KeyError, ValueError, PydanticValidationError) as e:
            return ProviderResult.failure_result(f"Invalid generation request: {e}")

        files = getattr(self.generator, method_for(category))(spec)
        if inspect.isawaitable(files):
            files = await files

        return ProviderResult.success_result(
            output={"category": category.value, "files": [f.to_dict() for f in files]},
            metrics={"files": len(files)},
        )

    async def analyze(self, request: ProviderRequest) -> ProviderResult:
        try:
            files = [GeneratedFile.from_dict(f) for f in request.input["files"]]
        except (KeyError, TypeError) as e:
            return ProviderResult.failure_result(f"Invalid review request: {e}")

        findings = check_files(files)
        return ProviderResult.success_result(
            output={
                "passed": not findings,
                "findings": [f.to_dict() for f in findings],
                "files_checked": len(files),
            },
        )


__all__ = ["LocalGenerationProvider"]
