"""Readers for npm projects (package.json, package-lock.json).

Supports lockfileVersion 1 (nested ``dependencies``) and 2/3 (flat
``packages`` keyed by install path).
"""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, Optional

from analysis.records import DependencyGroups, LockedPackage, LockRecord, ManifestRecord

logger = logging.getLogger(__name__)

DEPENDENCY_GROUPS = ("dependencies", "devDependencies", "optionalDependencies", "peerDependencies")
NODE_MODULES_PREFIX = "node_modules/"


def _load_json(path: str, label: str) -> Optional[Dict[str, Any]]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        logger.warning("%s file not found: %s", label, e)
        return None
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Failed to read %s file: %s", label, e)
        return None
    except json.JSONDecodeError as e:
        logger.warning("Failed to parse %s (invalid format): %s", label, e)
        return None
    if not isinstance(data, dict):
        logger.warning("Failed to parse %s: top-level value is not an object", label)
        return None
    return data


def _string_map(value: Any) -> Dict[str, Optional[str]]:
    if not isinstance(value, dict):
        return {}
    return {k: (v if isinstance(v, str) else None) for k, v in value.items()}


def parse_package_json(path: str) -> Optional[ManifestRecord]:
    """Read project identity and dependency groups from package.json."""
    data = _load_json(path, "package.json")
    if data is None:
        return None

    groups: DependencyGroups = {}
    for group in DEPENDENCY_GROUPS:
        deps = _string_map(data.get(group))
        if deps:
            groups[group] = deps

    optional = list(groups.get("optionalDependencies", {}))
    optional.extend(groups.get("peerDependencies", {}))

    name = data.get("name")
    version = data.get("version")
    return ManifestRecord(
        project_name=name if isinstance(name, str) else None,
        project_version=version if isinstance(version, str) else None,
        dependency_groups=groups,
        optional_packages=optional,
    )


def package_name_from_path(pkg_path: str) -> str:
    """Derive a package name from an install path, keeping npm scopes.

    ``node_modules/a/node_modules/@scope/b`` -> ``@scope/b``
    """
    tail = pkg_path.rsplit(NODE_MODULES_PREFIX, 1)[-1]
    parts = tail.split("/")
    if len(parts) >= 2 and parts[-2].startswith("@"):
        return f"{parts[-2]}/{parts[-1]}"
    return parts[-1]


def _locked_from_entry(name: str, info: Dict[str, Any], location: str,
                       constraints_key: str = "dependencies") -> LockedPackage:
    dependencies = _string_map(info.get(constraints_key))
    dependencies.update(_string_map(info.get("optionalDependencies")))
    version = info.get("version")
    integrity = info.get("integrity")
    license_value = info.get("license")
    return LockedPackage(
        name=name,
        version=version if isinstance(version, str) else None,
        file_hashes=[integrity] if isinstance(integrity, str) else [],
        dependencies=dependencies,
        content_hash=integrity if isinstance(integrity, str) else None,
        license=license_value if isinstance(license_value, str) else None,
        location=location,
        optional=bool(info.get("optional", False)),
    )


def parse_package_lock(path: str) -> Optional[LockRecord]:
    """Read pinned packages from package-lock.json (lockfileVersion 1, 2 or 3)."""
    data = _load_json(path, "package-lock.json")
    if data is None:
        return None

    record = LockRecord()
    lockfile_version = data.get("lockfileVersion", 1)

    if lockfile_version in (2, 3) and isinstance(data.get("packages"), dict):
        for pkg_path, info in data["packages"].items():
            # Root package has an empty path
            if not pkg_path or not isinstance(info, dict):
                continue
            if info.get("link"):
                continue  # symlink; the target entry is listed separately
            name = info.get("name") or package_name_from_path(pkg_path)
            record.packages.append(_locked_from_entry(name, info, pkg_path))
        return record

    def _extract_from_deps(deps: Any, parent_location: str) -> None:
        """Recursively extract nested lockfileVersion 1 dependencies."""
        if not isinstance(deps, dict):
            return
        for pkg_name, info in deps.items():
            if not isinstance(info, dict):
                continue
            location = f"{parent_location}{NODE_MODULES_PREFIX}{pkg_name}"
            # v1 keeps constraints under "requires"; nested "dependencies" are installs
            record.packages.append(_locked_from_entry(pkg_name, info, location, "requires"))
            _extract_from_deps(info.get("dependencies"), location + "/")

    _extract_from_deps(data.get("dependencies"), "")
    return record
