"""Typed contracts for aggregated integration content."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List

Record = Dict[str, Any]

PARENT_ID_FIELD = "PackageId"


class ArtifactKind(str, Enum):
    """Designtime artifact kinds held by an integration package.

    Values are the OData navigation property names on IntegrationPackage.
    """

    INTEGRATION_FLOWS = "IntegrationDesigntimeArtifacts"
    MESSAGE_MAPPINGS = "MessageMappingDesigntimeArtifacts"
    VALUE_MAPPINGS = "ValueMappingDesigntimeArtifacts"
    SCRIPT_COLLECTIONS = "ScriptCollectionDesigntimeArtifacts"


# Kinds the tenant lists through one entity set instead of per package.
GLOBAL_KINDS = (ArtifactKind.MESSAGE_MAPPINGS, ArtifactKind.VALUE_MAPPINGS)
PER_PACKAGE_KINDS = (ArtifactKind.INTEGRATION_FLOWS, ArtifactKind.SCRIPT_COLLECTIONS)


def _empty_artifacts() -> Dict[ArtifactKind, List[Record]]:
    return {kind: [] for kind in ArtifactKind}


@dataclass
class PackageWithArtifacts:
    """An integration package and its artifacts grouped by kind."""

    package: Record
    artifacts: Dict[ArtifactKind, List[Record]] = field(default_factory=_empty_artifacts)

    @property
    def package_id(self) -> str:
        return self.package.get("Id")

    def is_empty(self) -> bool:
        return not any(self.artifacts.values())

    def to_dict(self) -> Record:
        """Flatten into the package record with one list per navigation property."""
        merged = dict(self.package)
        for kind, children in self.artifacts.items():
            merged[kind.value] = list(children)
        return merged


class RateLimitCounter:
    """Running count of rate-limit rejections seen during a batch."""

    def __init__(self) -> None:
        self.count = 0

    def increment(self) -> None:
        self.count += 1

    def reset(self) -> None:
        self.count = 0
