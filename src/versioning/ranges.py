"""Version ranges (dependency constraints) per ecosystem.

A range is parsed once. If the ecosystem's grammar accepts the text the range
is *structured* and matches ordered versions; otherwise it is *literal* and
matches opaque versions whose text equals the constraint exactly.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod
from typing import Any, Callable, Iterable, List, Optional

import semantic_version
from packaging import version as pep440
from packaging.specifiers import InvalidSpecifier, SpecifierSet

from .models import ComponentVersion, Ecosystem, OrderedVersion, TextVersion


class VersionRange(ABC):
    """Immutable constraint parsed from text."""

    def __init__(self, text: str):
        self._text = text
        self._spec = self._parse(text.strip()) if text is not None else None

    @property
    def text(self) -> str:
        return self._text

    @property
    def is_structured(self) -> bool:
        return self._spec is not None

    @abstractmethod
    def _parse(self, text: str) -> Optional[Any]:
        """Return an ecosystem-specific range object, or None if unparsable."""

    @abstractmethod
    def _contains(self, spec: Any, version: OrderedVersion) -> bool:
        """Return True when the ordered version satisfies the parsed range."""

    def matches(self, versions: Iterable[ComponentVersion]) -> Optional[ComponentVersion]:
        """Pick the best version among candidates.

        Structured ranges return the lowest satisfying ordered version; literal
        ranges return the first opaque version with identical text.
        """
        versions = list(versions)
        if self._spec is not None:
            satisfying: List[OrderedVersion] = []
            for v in versions:
                if not isinstance(v, OrderedVersion):
                    continue
                try:
                    if self._contains(self._spec, v):
                        satisfying.append(v)
                except (TypeError, ValueError):
                    continue  # version from another scheme
            if not satisfying:
                return None
            satisfying.sort()
            return satisfying[0]

        for v in versions:
            if isinstance(v, TextVersion) and v.content == self._text:
                return v
        return None

    def __repr__(self) -> str:
        kind = "structured" if self.is_structured else "literal"
        return f"{type(self).__name__}('{self._text}', {kind})"


class NpmVersionRange(VersionRange):
    """npm semver range syntax via semantic_version."""

    def _normalize_spec(self, spec_str: str) -> str:
        """Normalize hyphen and x-ranges into SimpleSpec-compatible form."""
        s = spec_str.strip()

        m = re.match(r'^\s*([0-9A-Za-z\.\-\+]+)\s+-\s+([0-9A-Za-z\.\-\+]+)\s*$', s)
        if m:
            return f">={m.group(1)},<={m.group(2)}"

        s2 = s.replace('*', 'x').lower()
        m = re.match(r'^\s*(\d+)\.(\d+)\.x\s*$', s2)
        if m:
            major, minor = int(m.group(1)), int(m.group(2))
            return f">={major}.{minor}.0,<{major}.{minor + 1}.0"

        m = re.match(r'^\s*(\d+)(?:\.x)?\s*$', s2)
        if m:
            major = int(m.group(1))
            return f">={major}.0.0,<{major + 1}.0.0"

        return s

    def _parse(self, text: str) -> Optional[Any]:
        # npm treats an empty range as any version
        if not text:
            text = "*"
        try:
            return semantic_version.NpmSpec(text)
        except ValueError:
            pass
        try:
            return semantic_version.SimpleSpec(self._normalize_spec(text))
        except ValueError:
            return None

    def _contains(self, spec: Any, version: OrderedVersion) -> bool:
        value = version.value
        if not isinstance(value, semantic_version.Version):
            return False
        return bool(spec.match(value))


_POETRY_CARET = re.compile(r'^\^\s*(?P<v>[0-9][0-9A-Za-z\.\-\+]*)$')
_POETRY_TILDE = re.compile(r'^~(?!=)\s*(?P<v>[0-9][0-9A-Za-z\.\-\+]*)$')
_POETRY_WILDCARD = re.compile(r'^(?:==)?\s*(?P<v>\d+(?:\.\d+)*)\.\*$')
_POETRY_BARE = re.compile(r'^(?P<v>[0-9][0-9A-Za-z\.\-\+!]*)$')
_OPERATOR_SPACING = re.compile(r'(===|==|!=|<=|>=|~=|<|>)\s+')


def _release_parts(text: str) -> List[int]:
    release = pep440.Version(text).release
    return list(release)


def _caret_bounds(text: str) -> str:
    parts = _release_parts(text)
    upper: List[int] = []
    for index, part in enumerate(parts):
        if part != 0 or index == len(parts) - 1:
            upper = parts[:index] + [part + 1]
            break
    if len(parts) == 1:
        upper = [parts[0] + 1]
    return f">={text},<{'.'.join(str(p) for p in upper)}"


def _tilde_bounds(text: str) -> str:
    parts = _release_parts(text)
    if len(parts) == 1:
        upper = [parts[0] + 1]
    else:
        upper = [parts[0], parts[1] + 1]
    return f">={text},<{'.'.join(str(p) for p in upper)}"


class PoetryVersionRange(VersionRange):
    """Poetry constraint syntax translated to PEP 440 specifier sets.

    Supports ``^``, ``~``, ``~=``, comparison operators, ``1.2.*`` wildcards,
    ``*``, comma or whitespace conjunction and ``||`` disjunction.
    """

    def _translate_clause(self, clause: str) -> str:
        clause = clause.strip()
        if clause in ("*", ""):
            return ""
        m = _POETRY_CARET.match(clause)
        if m:
            return _caret_bounds(m.group("v"))
        m = _POETRY_TILDE.match(clause)
        if m:
            return _tilde_bounds(m.group("v"))
        m = _POETRY_WILDCARD.match(clause)
        if m:
            return f"=={m.group('v')}.*"
        m = _POETRY_BARE.match(clause)
        if m:
            return f"=={m.group('v')}"
        return clause

    def _parse_conjunction(self, text: str) -> SpecifierSet:
        text = _OPERATOR_SPACING.sub(r'\1', text.strip())
        clauses = [c for c in re.split(r'[,\s]+', text) if c]
        translated = [self._translate_clause(c) for c in clauses]
        return SpecifierSet(",".join(t for t in translated if t))

    def _parse(self, text: str) -> Optional[Any]:
        if not text:
            return None
        try:
            return [self._parse_conjunction(alt) for alt in text.split("||")]
        except (InvalidSpecifier, pep440.InvalidVersion, ValueError):
            return None

    def _contains(self, spec: Any, version: OrderedVersion) -> bool:
        value = version.value
        if not isinstance(value, pep440.Version):
            return False
        return any(s.contains(value, prereleases=True) for s in spec)


class _Interval:
    """Closed/open interval over PEP 440 versions, or a floating prefix."""

    def __init__(self, lower=None, lower_inclusive=True, upper=None, upper_inclusive=False,
                 prefix: Optional[List[int]] = None):
        self.lower = lower
        self.lower_inclusive = lower_inclusive
        self.upper = upper
        self.upper_inclusive = upper_inclusive
        self.prefix = prefix

    def contains(self, value: pep440.Version) -> bool:
        if self.prefix is not None:
            return list(value.release[:len(self.prefix)]) == self.prefix
        if self.lower is not None:
            if value < self.lower or (value == self.lower and not self.lower_inclusive):
                return False
        if self.upper is not None:
            if value > self.upper or (value == self.upper and not self.upper_inclusive):
                return False
        return True


class NuGetVersionRange(VersionRange):
    """NuGet interval notation: ``1.0`` (minimum), ``[1.0]``, ``[1.0,2.0)``, ``1.*``."""

    def _parse(self, text: str) -> Optional[Any]:
        if not text:
            return None
        try:
            if text[0] in "[(":
                return self._parse_bracket(text)
            m = re.match(r'^(\d+(?:\.\d+)*)\.\*$', text)
            if m:
                return _Interval(prefix=[int(p) for p in m.group(1).split(".")])
            if text == "*":
                return _Interval()
            return _Interval(lower=pep440.Version(text), lower_inclusive=True)
        except pep440.InvalidVersion:
            return None

    def _parse_bracket(self, text: str) -> Optional[_Interval]:
        if len(text) < 3 or text[-1] not in ")]":
            return None
        lower_inclusive = text[0] == "["
        upper_inclusive = text[-1] == "]"
        inner = text[1:-1]
        if "," not in inner:
            if not (lower_inclusive and upper_inclusive):
                return None
            exact = pep440.Version(inner.strip())
            return _Interval(lower=exact, upper=exact, upper_inclusive=True)
        lower_str, upper_str = (p.strip() for p in inner.split(",", 1))
        if not lower_str and not upper_str:
            return None
        return _Interval(
            lower=pep440.Version(lower_str) if lower_str else None,
            lower_inclusive=lower_inclusive,
            upper=pep440.Version(upper_str) if upper_str else None,
            upper_inclusive=upper_inclusive,
        )

    def _contains(self, spec: Any, version: OrderedVersion) -> bool:
        value = version.value
        if not isinstance(value, pep440.Version):
            return False
        return spec.contains(value)


_RANGES: dict = {
    Ecosystem.NPM: NpmVersionRange,
    Ecosystem.PYPI: PoetryVersionRange,
    Ecosystem.NUGET: NuGetVersionRange,
}


def range_factory(ecosystem: Ecosystem) -> Callable[[str], VersionRange]:
    """Return the range constructor for an ecosystem."""
    return _RANGES[ecosystem]
