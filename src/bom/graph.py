"""Component graph: typed, versioned nodes with depends-on edges."""

from __future__ import annotations

import threading
from typing import Dict, Iterator, List, Optional, Tuple

from versioning.models import Ecosystem

from .models import BomHash, BomLicense, Component, ComponentKey, ComponentKind


class GraphContractError(ValueError):
    """Raised when a caller violates the graph's contract (e.g. unknown node)."""


class ComponentGraph:
    """Directed graph of components.

    Nodes are unique by ``(ecosystem, name, version)``. All mutations go through
    a single lock so concurrent analyzers can share one graph.
    """

    def __init__(self):
        self._lock = threading.RLock()
        self._nodes: Dict[ComponentKey, Component] = {}
        self._by_name: Dict[Tuple[Ecosystem, str], List[Component]] = {}
        self._edges: Dict[ComponentKey, List[ComponentKey]] = {}
        self._edge_count = 0

    def add_component(self, component: Component) -> Component:
        """Insert the component if absent and return the graph's node for it.

        Adding a ROOT whose identity is already present as a LIBRARY (another
        manifest's lock file pinned it) promotes the existing node to ROOT.
        """
        with self._lock:
            existing = self._nodes.get(component.key)
            if existing is not None:
                if component.kind == ComponentKind.ROOT:
                    existing.kind = ComponentKind.ROOT
                return existing
            self._nodes[component.key] = component
            self._by_name.setdefault((component.ecosystem, component.name), []).append(component)
            self._edges[component.key] = []
            return component

    def _require(self, node: Component) -> ComponentKey:
        if not isinstance(node, Component) or self._nodes.get(node.key) is not node:
            raise GraphContractError(f"{node!r} is not a node of this graph")
        return node.key

    def connect(self, source: Component, target: Component) -> bool:
        """Add a depends-on edge; returns False when it already existed."""
        with self._lock:
            source_key = self._require(source)
            target_key = self._require(target)
            targets = self._edges[source_key]
            if target_key in targets:
                return False
            targets.append(target_key)
            self._edge_count += 1
            return True

    def set_license(self, node: Component, license_: Optional[BomLicense]) -> Component:
        with self._lock:
            self._require(node)
            node.license = license_
            return node

    def set_hash(self, node: Component, hash_: Optional[BomHash]) -> Component:
        with self._lock:
            self._require(node)
            node.hash = hash_
            return node

    def find_by_ecosystem_and_name(self, ecosystem: Ecosystem, name: str) -> List[Component]:
        """Return all nodes sharing ecosystem and name, in insertion order."""
        with self._lock:
            return list(self._by_name.get((ecosystem, name), []))

    def get(self, ecosystem: Ecosystem, name: str, version=None) -> Optional[Component]:
        with self._lock:
            return self._nodes.get((ecosystem, name, version))

    def contains(self, node: Component) -> bool:
        with self._lock:
            return self._nodes.get(node.key) is node

    def dependencies_of(self, node: Component) -> List[Component]:
        with self._lock:
            key = self._require(node)
            return [self._nodes[k] for k in self._edges[key]]

    def has_edge(self, source: Component, target: Component) -> bool:
        with self._lock:
            return target.key in self._edges.get(source.key, [])

    @property
    def nodes(self) -> List[Component]:
        with self._lock:
            return list(self._nodes.values())

    @property
    def roots(self) -> List[Component]:
        return [n for n in self.nodes if n.kind == ComponentKind.ROOT]

    def edges(self) -> Iterator[Tuple[Component, Component]]:
        with self._lock:
            pairs = [
                (self._nodes[source], self._nodes[target])
                for source, targets in self._edges.items()
                for target in targets
            ]
        return iter(pairs)

    @property
    def node_count(self) -> int:
        return len(self._nodes)

    @property
    def edge_count(self) -> int:
        return self._edge_count
