"""Readers for NuGet projects (*.csproj/*.fsproj/*.vbproj, packages.lock.json)."""
from __future__ import annotations

import json
import logging
import os
import xml.etree.ElementTree as ET
from typing import Any, Dict, Optional

from analysis.records import DependencyGroups, LockedPackage, LockRecord, ManifestRecord

logger = logging.getLogger(__name__)

MAIN_GROUP = "main"
PRIVATE_GROUP = "private"
PROJECT_ENTRY_TYPE = "project"


def _strip_namespaces(root: ET.Element) -> None:
    # Remove namespace for easier parsing
    for elem in root.iter():
        if '}' in elem.tag:
            elem.tag = elem.tag.split('}')[1]


def _property(root: ET.Element, *names: str) -> Optional[str]:
    for name in names:
        elem = root.find(f".//PropertyGroup/{name}")
        if elem is not None and elem.text and elem.text.strip():
            return elem.text.strip()
    return None


def _reference_version(package_ref: ET.Element) -> Optional[str]:
    version = package_ref.get("Version")
    if version is None:
        child = package_ref.find("Version")
        if child is not None and child.text:
            version = child.text
    return version.strip() if version and version.strip() else None


def _is_private(package_ref: ET.Element) -> bool:
    value = package_ref.get("PrivateAssets")
    if value is None:
        child = package_ref.find("PrivateAssets")
        value = child.text if child is not None else None
    return bool(value) and value.strip().lower() == "all"


def parse_project_file(path: str) -> Optional[ManifestRecord]:
    """Read project identity and PackageReference items from an MSBuild project.

    References marked ``PrivateAssets="all"`` (analyzers, build tooling) form
    the ``private`` group; everything else is ``main``.
    """
    try:
        tree = ET.parse(path)
    except (ET.ParseError, OSError) as e:
        logger.warning("Couldn't parse project file %s: %s", path, e)
        return None
    root = tree.getroot()
    _strip_namespaces(root)

    groups: DependencyGroups = {}
    for package_ref in root.findall(".//PackageReference"):
        include_attr = package_ref.get("Include")
        if not include_attr:
            continue
        group = PRIVATE_GROUP if _is_private(package_ref) else MAIN_GROUP
        groups.setdefault(group, {})[include_attr.strip()] = _reference_version(package_ref)

    stem = os.path.splitext(os.path.basename(path))[0]
    return ManifestRecord(
        project_name=_property(root, "AssemblyName", "PackageId") or stem,
        project_version=_property(root, "Version", "PackageVersion"),
        dependency_groups=groups,
    )


def parse_nuget_lock(path: str) -> Optional[LockRecord]:
    """Read pinned packages from packages.lock.json.

    Entries are listed per target framework; the same package appearing under
    several frameworks is reported once per framework. Project references
    carry no resolved version and are skipped.
    """
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except FileNotFoundError as e:
        logger.warning("packages.lock.json file not found: %s", e)
        return None
    except (OSError, UnicodeDecodeError) as e:
        logger.warning("Failed to read packages.lock.json file: %s", e)
        return None
    except json.JSONDecodeError as e:
        logger.warning("Failed to parse packages.lock.json (invalid format): %s", e)
        return None
    if not isinstance(data, dict):
        logger.warning("Failed to parse packages.lock.json: top-level value is not an object")
        return None

    record = LockRecord()
    frameworks = data.get("dependencies", {})
    if not isinstance(frameworks, dict):
        return record

    for framework, entries in frameworks.items():
        if not isinstance(entries, dict):
            continue
        for name, info in entries.items():
            if not isinstance(info, dict):
                continue
            if str(info.get("type", "")).lower() == PROJECT_ENTRY_TYPE:
                logger.debug("Skipping project reference %s (%s)", name, framework)
                continue
            requested = info.get("requested")
            if isinstance(requested, str):
                record.requested.setdefault(name, requested)
            resolved = info.get("resolved")
            content_hash = info.get("contentHash")
            record.packages.append(LockedPackage(
                name=name,
                version=resolved if isinstance(resolved, str) else None,
                dependencies=_string_map(info.get("dependencies")),
                content_hash=content_hash if isinstance(content_hash, str) else None,
            ))
    return record


def _string_map(value: Any) -> Dict[str, Optional[str]]:
    if not isinstance(value, dict):
        return {}
    return {k: (v if isinstance(v, str) else None) for k, v in value.items()}
