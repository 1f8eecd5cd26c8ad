# ============================================================================
# GENERATED CODE CHECKS
# ============================================================================
# EPOCH: 1 - GENERATION CORE
# STATUS: Generator - Static checks over generated files
# PURPOSE: Catch obviously broken output before artifacts are marked ready
# CREATED: 15 OCT 2026
# ============================================================================
"""
Generated Code Checks

Cheap static checks run during the running-tests stage and by the local
provider's code-review capability. They do not parse anything.

Only script sources are scanned. Other file types (SQL, JSON, Python,
HTML, YAML) carry specification text verbatim, such as names and enum
values, so a pattern match there says nothing about the generated code.
"""

from dataclasses import dataclass
from typing import Iterable, List, Union

from core.models.build import Artifact
from generators.ports import GeneratedFile

# Rendering a missing template variable into script output
NULL_REFERENCE_PATTERN = "undefined."

SCRIPT_TYPES = frozenset({"javascript", "typescript"})


@dataclass
class CodeFinding:
    path: str
    rule: str
    message: str

    def to_dict(self) -> dict:
        return {"path": self.path, "rule": self.rule, "message": self.message}


def check_files(files: Iterable[Union[Artifact, GeneratedFile]]) -> List[CodeFinding]:
    """Return one finding per problem; an empty list means the files pass."""
    findings = []
    for file in files:
        if file.type in SCRIPT_TYPES and NULL_REFERENCE_PATTERN in file.content:
            findings.append(CodeFinding(
                path=file.path,
                rule="null-reference",
                message=f"Contains '{NULL_REFERENCE_PATTERN}'",
            ))
    return findings


__all__ = ["CodeFinding", "check_files", "NULL_REFERENCE_PATTERN", "SCRIPT_TYPES"]
