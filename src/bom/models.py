"""Data models for bill-of-materials components."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from versioning.models import ComponentVersion, Ecosystem


class ComponentKind(Enum):
    """Role of a component in the graph."""
    ROOT = "root"
    LIBRARY = "library"


@dataclass(frozen=True)
class BomLicense:
    """Normalized license record; any subset of fields may be populated."""
    id: Optional[str] = None
    name: Optional[str] = None
    expression: Optional[str] = None
    url: Optional[str] = None

    def to_dict(self) -> dict:
        return {k: v for k, v in (
            ("id", self.id),
            ("name", self.name),
            ("expression", self.expression),
            ("url", self.url),
        ) if v is not None}


@dataclass(frozen=True)
class BomHash:
    """Algorithm-tagged content digest."""
    algorithm: str
    content: str

    def __str__(self) -> str:
        return f"{self.algorithm}:{self.content}"


# Stable identity used for lookups: (ecosystem, name, version or None).
ComponentKey = Tuple[Ecosystem, str, Optional[ComponentVersion]]


@dataclass(eq=False)
class Component:
    """A node in the dependency graph.

    Identity is ``(ecosystem, name, version)``; kind and metadata do not take
    part in it. Instances are owned by a ComponentGraph, which hands them out
    as node handles.
    """
    ecosystem: Ecosystem
    name: str
    version: Optional[ComponentVersion] = None
    kind: ComponentKind = ComponentKind.LIBRARY
    license: Optional[BomLicense] = field(default=None)
    hash: Optional[BomHash] = field(default=None)

    @property
    def key(self) -> ComponentKey:
        return (self.ecosystem, self.name, self.version)

    @property
    def version_text(self) -> Optional[str]:
        return self.version.text if self.version is not None else None

    def __repr__(self) -> str:
        version = self.version_text or "?"
        return f"Component({self.ecosystem.value}:{self.name}@{version}, {self.kind.value})"
