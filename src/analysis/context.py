"""Analysis settings and per-dispatch analysis context."""
from __future__ import annotations

import os
from typing import Any, Callable, List, Mapping, Optional

from bom.graph import ComponentGraph
from bom.models import Component

from .diagnostics import Diagnostics


def option_key(name: str) -> str:
    """Map a CLI flag or config key to its argparse dest (``--no-x`` -> ``NO_X``)."""
    return name.strip().lstrip("-").replace("-", "_").upper()


_TRUE_STRINGS = frozenset({"1", "true", "yes", "on"})
_FALSE_STRINGS = frozenset({"", "0", "false", "no", "off", "none"})


def as_bool(value: Any) -> bool:
    """Interpret a flag value, accepting the usual spellings for config strings."""
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
        raise ValueError(f"Not a boolean value: {value!r}")
    return bool(value)


class AnalysisSettings:
    """Run-wide configuration visible to analyzers.

    Args:
        root: Directory being scanned
        options: Parsed option values keyed by argparse dest
    """

    def __init__(self, root: str, options: Optional[Mapping[str, Any]] = None):
        self.root = os.path.abspath(root)
        self._options = {option_key(k): v for k, v in (options or {}).items()}

    def get_option(self, name: str, default: Any = None,
                   cast: Optional[Callable[[Any], Any]] = None) -> Any:
        """Return the option value by flag or dest name, optionally cast."""
        value = self._options.get(option_key(name))
        if value is None:
            return default
        return cast(value) if cast is not None else value

    def get_list(self, name: str) -> List[str]:
        """Return a repeatable option as a list; a bare string becomes one item."""
        value = self.get_option(name)
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return [str(v) for v in value]

    def has_option(self, name: str) -> bool:
        return self._options.get(option_key(name)) is not None


class AnalysisContext:
    """View over the shared graph and diagnostics for one analyzer dispatch.

    ``has_errors`` only reflects errors recorded through this context, so a
    fatal problem in one manifest does not gate other manifests.
    """

    def __init__(self, settings: AnalysisSettings, graph: ComponentGraph,
                 diagnostics: Diagnostics, analyzer: Optional[str] = None,
                 path: Optional[str] = None):
        self.settings = settings
        self.graph = graph
        self.diagnostics = diagnostics
        self.analyzer = analyzer
        self.path = path
        self._errors = 0
        self._warnings = 0

    def scoped(self, analyzer: str, path: str) -> "AnalysisContext":
        return AnalysisContext(self.settings, self.graph, self.diagnostics, analyzer, path)

    def add_component(self, component: Component) -> Component:
        return self.graph.add_component(component)

    def connect(self, source: Component, target: Component) -> bool:
        return self.graph.connect(source, target)

    def add_warning(self, message: str) -> None:
        self._warnings += 1
        self.diagnostics.add_warning(message, self.analyzer, self.path)

    def add_error(self, message: str) -> None:
        self._errors += 1
        self.diagnostics.add_error(message, self.analyzer, self.path)

    @property
    def has_errors(self) -> bool:
        return self._errors > 0

    @property
    def warning_count(self) -> int:
        return self._warnings
