"""Dependency edge resolution shared by all ecosystem analyzers."""
from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, Mapping, Optional, Set

from bom.models import Component, ComponentKey
from common.logging_utils import extra_context, is_debug_enabled
from versioning.models import Ecosystem
from versioning.ranges import VersionRange
from versioning.resolver import find_component

from .context import AnalysisContext

logger = logging.getLogger(__name__)


class DependencyLinker:
    """Connects declared dependencies to locked components, recursively.

    Each matched package's own locked dependencies are linked the same way.
    Every component is expanded at most once per linker, which bounds the
    walk on diamond dependencies and terminates on cyclic lock files.

    Args:
        context: Dispatch context (graph + diagnostics)
        ecosystem: Ecosystem of every dependency linked here
        label: Human-readable ecosystem name used in warnings
        locked_dependencies: Component key -> that package's declared deps
        make_range: Constructor turning constraint text into a VersionRange
        optional_packages: Names whose absence is expected (no warning)
    """

    def __init__(
        self,
        context: AnalysisContext,
        ecosystem: Ecosystem,
        label: str,
        locked_dependencies: Mapping[ComponentKey, Mapping[str, Optional[str]]],
        make_range: Callable[[str], VersionRange],
        optional_packages: Iterable[str] = (),
    ):
        self._context = context
        self._ecosystem = ecosystem
        self._label = label
        self._locked = locked_dependencies
        self._make_range = make_range
        self._optional = set(optional_packages)
        self._expanded: Set[ComponentKey] = set()

    def link(self, parent: Component, dependencies: Mapping[str, Optional[str]]) -> None:
        for name, constraint in dependencies.items():
            if constraint is None:
                self._context.add_warning(
                    f"No version constraint for {self._label} dependency {name} of {parent.name}"
                )
                continue

            dependency, found_match = find_component(
                self._context.graph, self._ecosystem, name, self._make_range(constraint)
            )
            if dependency is None:
                if name not in self._optional:
                    self._context.add_warning(
                        f"Could not find {self._label} dependency {name} ({constraint})"
                    )
                continue

            if not found_match:
                self._context.add_warning(
                    f"Could not find exact {self._label} dependency match {name} ({constraint})"
                )

            self._context.connect(parent, dependency)
            self._expand(dependency)

    def _expand(self, component: Component) -> None:
        if component.key in self._expanded:
            if is_debug_enabled(logger):
                logger.debug("Skipping already expanded component", extra=extra_context(
                    event="decision", component="linker", action="expand",
                    outcome="skipped", target=repr(component)
                ))
            return
        self._expanded.add(component.key)
        own = self._locked.get(component.key)
        if own:
            self.link(component, own)

    @property
    def expanded(self) -> Set[ComponentKey]:
        return set(self._expanded)


def build_lock_index(pairs: Iterable) -> Dict[ComponentKey, Dict[str, Optional[str]]]:
    """Merge (component, dependencies) pairs; later duplicates extend earlier ones."""
    index: Dict[ComponentKey, Dict[str, Optional[str]]] = {}
    for component, dependencies in pairs:
        index.setdefault(component.key, {}).update(dependencies or {})
    return index
