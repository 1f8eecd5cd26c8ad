# ============================================================================
# GENERATOR & DEPLOYMENT PORTS
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Interface - Collaborators injected into the build pipeline
# PURPOSE: Decouple the pipeline from concrete code generators and deployers
# CREATED: 15 OCT 2026
# ============================================================================
"""
Generator & Deployment Ports

The build pipeline performs one delegated action per stage. Generation
stages call a GeneratorPort; the deploying stage calls a DeploymentPort.

Generator methods may be sync or async and return GeneratedFile lists; the
pipeline wraps each file into a checksummed Artifact under the stage's
category.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Awaitable, Dict, List, Union

from core.models.blueprint import BuildSpecification
from core.models.build import Artifact


@dataclass
class GeneratedFile:
    """A file produced by a generator, before it becomes an Artifact."""
    path: str
    content: str
    type: str = "text"

    def to_dict(self) -> Dict[str, str]:
        return {"path": self.path, "content": self.content, "type": self.type}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GeneratedFile":
        return cls(path=data["path"], content=data["content"], type=data.get("type", "text"))


GeneratorResult = Union[List[GeneratedFile], Awaitable[List[GeneratedFile]]]


class GeneratorPort(ABC):
    """Produces the files for each generation stage."""

    name: str = "generator"

    @abstractmethod
    def generate_schema(self, spec: BuildSpecification) -> GeneratorResult:
        """Database schema files."""

    @abstractmethod
    def generate_backend(self, spec: BuildSpecification) -> GeneratorResult:
        """API and service files."""

    @abstractmethod
    def generate_frontend(self, spec: BuildSpecification) -> GeneratorResult:
        """UI files."""

    @abstractmethod
    def generate_infrastructure(self, spec: BuildSpecification) -> GeneratorResult:
        """Container and environment files."""

    @abstractmethod
    def generate_tests(self, spec: BuildSpecification) -> GeneratorResult:
        """Test files for the generated system."""


class DeploymentPort(ABC):
    """Ships a finished artifact set to a target."""

    @abstractmethod
    async def deploy(self, job_id: str, target: str, artifacts: List[Artifact]) -> Dict[str, Any]:
        """
        Deploy artifacts. Returns target-specific details (URL, release id).

        Raises:
            DeploymentError: If the deployment fails
        """


__all__ = [
    "GeneratedFile",
    "GeneratorResult",
    "GeneratorPort",
    "DeploymentPort",
]
