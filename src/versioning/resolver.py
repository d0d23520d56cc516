"""Resolve a dependency constraint against components already in the graph."""

from __future__ import annotations

import logging
from typing import Optional, Tuple

from common.logging_utils import extra_context, is_debug_enabled

from .models import Ecosystem
from .ranges import VersionRange

logger = logging.getLogger(__name__)


def find_component(
    graph, ecosystem: Ecosystem, name: str, version_range: VersionRange
) -> Tuple[Optional[object], bool]:
    """Find the component that best satisfies a constraint.

    Args:
        graph: ComponentGraph holding the candidate pool
        ecosystem: Ecosystem of the dependency
        name: Dependency name (exact, already normalized by the reader)
        version_range: Parsed constraint

    Returns:
        Tuple of (component or None, found_match). When nothing satisfies the
        constraint but exactly one component carries the name, that component
        is returned with found_match False.
    """
    nodes = graph.find_by_ecosystem_and_name(ecosystem, name)
    version = version_range.matches(c.version for c in nodes if c.version is not None)

    if version is not None:
        for node in nodes:
            if node.version == version:
                return node, True

    if len(nodes) == 1:
        if is_debug_enabled(logger):
            logger.debug("Lenient single-candidate match", extra=extra_context(
                event="decision", component="resolver", action="find_component",
                outcome="lenient", target=f"{ecosystem.value}:{name}", spec=version_range.text
            ))
        return nodes[0], False

    if is_debug_enabled(logger):
        logger.debug("No match for constraint", extra=extra_context(
            event="decision", component="resolver", action="find_component",
            outcome="unresolved", target=f"{ecosystem.value}:{name}",
            spec=version_range.text, count=len(nodes)
        ))
    return None, False
