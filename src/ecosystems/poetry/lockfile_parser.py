"""Readers for Python Poetry projects (pyproject.toml, poetry.lock).

Both readers return intermediate records, or None when the file cannot be
read or parsed. Dependency values arrive either as plain constraint strings or
as tables (``{version = ..., optional = true}``, ``{path = ...}``, ``{git =
...}``) and are reduced to a single constraint string here.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from packaging.requirements import InvalidRequirement, Requirement
from packaging.utils import canonicalize_name

try:
    import tomllib as toml  # type: ignore
except ImportError:  # Python < 3.11
    import tomli as toml  # type: ignore

from analysis.records import DependencyGroups, LockedPackage, LockRecord, ManifestRecord

logger = logging.getLogger(__name__)

PYTHON_PSEUDO_DEPENDENCY = "python"
MAIN_GROUP = "main"
_SOURCE_KEYS = ("path", "git", "url", "file")


def _load_toml(path: str, label: str) -> Optional[Dict[str, Any]]:
    try:
        with open(path, "rb") as f:
            data = toml.load(f)
    except FileNotFoundError as e:
        logger.warning("%s file not found: %s", label, e)
        return None
    except OSError as e:
        logger.warning("Failed to read %s file: %s", label, e)
        return None
    except (toml.TOMLDecodeError, ValueError, TypeError) as e:
        logger.warning("Failed to parse %s (invalid format): %s", label, e)
        return None
    return data if isinstance(data, dict) else None


def constraint_from_value(value: Any) -> Optional[str]:
    """Reduce a dependency value (string, table or list of tables) to a constraint."""
    if isinstance(value, str):
        return value
    if isinstance(value, dict):
        version = value.get("version")
        if isinstance(version, str):
            return version
        for key in _SOURCE_KEYS:
            source = value.get(key)
            if isinstance(source, str):
                return source
        return None
    if isinstance(value, list):
        alternatives = [c for c in (constraint_from_value(v) for v in value) if c]
        return " || ".join(alternatives) if alternatives else None
    return None


def _is_optional(value: Any) -> bool:
    return isinstance(value, dict) and bool(value.get("optional"))


def _dependency_map(table: Any) -> Dict[str, Optional[str]]:
    dependencies: Dict[str, Optional[str]] = {}
    if not isinstance(table, dict):
        return dependencies
    for name, value in table.items():
        if name.lower() == PYTHON_PSEUDO_DEPENDENCY:
            continue
        dependencies[canonicalize_name(name)] = constraint_from_value(value)
    return dependencies


def _pep621_dependencies(entries: Any) -> Dict[str, Optional[str]]:
    dependencies: Dict[str, Optional[str]] = {}
    if not isinstance(entries, list):
        return dependencies
    for entry in entries:
        try:
            req = Requirement(str(entry))
        except InvalidRequirement as e:
            logger.warning("Skipping invalid requirement '%s': %s", entry, e)
            continue
        constraint = str(req.specifier) or (req.url or "*")
        dependencies[canonicalize_name(req.name)] = constraint
    return dependencies


def parse_pyproject(path: str) -> Optional[ManifestRecord]:
    """Read project identity and dependency groups from pyproject.toml.

    Groups: ``main`` ([tool.poetry.dependencies] plus PEP 621
    [project].dependencies), ``dev`` (legacy [tool.poetry.dev-dependencies])
    and one per [tool.poetry.group.<name>].
    """
    data = _load_toml(path, "pyproject.toml")
    if data is None:
        return None

    tool = data.get("tool", {})
    poetry = tool.get("poetry", {}) if isinstance(tool, dict) else {}
    project = data.get("project", {})
    if not isinstance(poetry, dict):
        poetry = {}
    if not isinstance(project, dict):
        project = {}

    groups: DependencyGroups = {}
    optional: List[str] = []

    main = _pep621_dependencies(project.get("dependencies"))
    main.update(_dependency_map(poetry.get("dependencies")))
    groups[MAIN_GROUP] = main
    for name, value in (poetry.get("dependencies") or {}).items():
        if _is_optional(value):
            optional.append(canonicalize_name(name))

    legacy_dev = poetry.get("dev-dependencies")
    if legacy_dev:
        groups.setdefault("dev", {}).update(_dependency_map(legacy_dev))

    for group_name, group in (poetry.get("group") or {}).items():
        if isinstance(group, dict):
            groups.setdefault(group_name, {}).update(_dependency_map(group.get("dependencies")))

    return ManifestRecord(
        project_name=poetry.get("name") or project.get("name"),
        project_version=poetry.get("version") or project.get("version"),
        dependency_groups=groups,
        optional_packages=optional,
    )


def parse_poetry_lock(path: str) -> Optional[LockRecord]:
    """Read pinned packages from poetry.lock.

    File hashes come from each package's ``files`` array, falling back to the
    legacy ``[metadata.files]`` table used by older Poetry releases.
    """
    data = _load_toml(path, "poetry.lock")
    if data is None:
        return None

    metadata = data.get("metadata", {})
    legacy_files = metadata.get("files", {}) if isinstance(metadata, dict) else {}
    if not isinstance(legacy_files, dict):
        legacy_files = {}

    record = LockRecord()
    package_list = data.get("package", [])
    if not isinstance(package_list, list):
        logger.warning("poetry.lock has no [[package]] array: %s", path)
        return record

    for pkg in package_list:
        if not isinstance(pkg, dict):
            continue
        raw_name = pkg.get("name")
        name = canonicalize_name(raw_name) if isinstance(raw_name, str) and raw_name else None
        files = pkg.get("files")
        if files is None and raw_name:
            files = legacy_files.get(raw_name) or legacy_files.get(name)
        file_hashes = [f.get("hash") for f in files or [] if isinstance(f, dict)]
        version = pkg.get("version")
        record.packages.append(LockedPackage(
            name=name,
            version=str(version) if version is not None else None,
            file_hashes=file_hashes,
            dependencies=_dependency_map(pkg.get("dependencies")),
            optional=bool(pkg.get("optional", False)),
        ))
    return record
