"""Data models for versioning.

A component version is either ordered (parsed by the ecosystem's versioning
scheme and totally ordered against versions of the same scheme) or opaque
(arbitrary text, compared for equality only). Ordering an ordered version
against an opaque one is a programming error and raises TypeError.
"""

from __future__ import annotations

import functools
from enum import Enum
from typing import Any

import semantic_version
from packaging import version as pep440


class Ecosystem(Enum):
    """Enum for supported ecosystems."""
    NPM = "npm"
    PYPI = "pypi"
    NUGET = "nuget"


class ComponentVersion:
    """Base class for the two version variants."""

    __slots__ = ()

    @property
    def text(self) -> str:
        raise NotImplementedError

    @property
    def is_ordered(self) -> bool:
        raise NotImplementedError

    def __str__(self) -> str:
        return self.text


@functools.total_ordering
class OrderedVersion(ComponentVersion):
    """A version with a total order, wrapping a parsed version object.

    ``value`` is a ``semantic_version.Version`` (npm) or a
    ``packaging.version.Version`` (PyPI, NuGet).
    """

    __slots__ = ("_value", "_text")

    def __init__(self, value: Any, text: str):
        self._value = value
        self._text = text

    @property
    def value(self) -> Any:
        return self._value

    @property
    def text(self) -> str:
        return self._text

    @property
    def is_ordered(self) -> bool:
        return True

    def _check(self, other: Any) -> "OrderedVersion":
        if isinstance(other, TextVersion):
            raise TypeError(
                f"Cannot order version '{self._text}' against opaque version '{other.text}'"
            )
        if not isinstance(other, OrderedVersion):
            return NotImplemented  # type: ignore[return-value]
        if type(self._value) is not type(other._value):
            raise TypeError(
                f"Cannot order versions from different schemes: '{self._text}' and '{other._text}'"
            )
        return other

    def __eq__(self, other: Any) -> bool:
        if not isinstance(other, OrderedVersion):
            return False
        return type(self._value) is type(other._value) and self._value == other._value

    def __lt__(self, other: Any) -> bool:
        checked = self._check(other)
        if checked is NotImplemented:
            return NotImplemented
        return self._value < checked._value

    def __hash__(self) -> int:
        return hash((type(self._value).__name__, self._value))

    def __repr__(self) -> str:
        return f"OrderedVersion('{self._text}')"


class TextVersion(ComponentVersion):
    """An opaque version literal; equality is ordinal and case-sensitive."""

    __slots__ = ("_content",)

    def __init__(self, content: str):
        self._content = content

    @property
    def content(self) -> str:
        return self._content

    @property
    def text(self) -> str:
        return self._content

    @property
    def is_ordered(self) -> bool:
        return False

    def __eq__(self, other: Any) -> bool:
        return isinstance(other, TextVersion) and self._content == other._content

    def __lt__(self, other: Any) -> bool:
        raise TypeError(f"Opaque version '{self._content}' has no ordering")

    __le__ = __gt__ = __ge__ = __lt__

    def __hash__(self) -> int:
        return hash(("text", self._content))

    def __repr__(self) -> str:
        return f"TextVersion('{self._content}')"


def parse_semver(text: str) -> ComponentVersion:
    """Parse an npm version (strict semantic versioning), else opaque."""
    raw = text.strip()
    candidate = raw[1:] if raw[:1] in ("v", "=") else raw
    try:
        return OrderedVersion(semantic_version.Version(candidate), raw)
    except ValueError:
        return TextVersion(text)


def parse_pep440(text: str) -> ComponentVersion:
    """Parse a PEP 440 / dotted numeric version, else opaque."""
    try:
        return OrderedVersion(pep440.Version(text.strip()), text.strip())
    except pep440.InvalidVersion:
        return TextVersion(text)


_PARSERS = {
    Ecosystem.NPM: parse_semver,
    Ecosystem.PYPI: parse_pep440,
    Ecosystem.NUGET: parse_pep440,
}


def parse_version(ecosystem: Ecosystem, text: str) -> ComponentVersion:
    """Apply the ecosystem's versioning convention to a version string."""
    return _PARSERS[ecosystem](text)
