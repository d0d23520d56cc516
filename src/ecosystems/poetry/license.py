"""License lookup for Python packages installed in a virtual environment.

Sources, in priority order, inside ``<name>-<version>.dist-info``:
metadata.json (``license`` key), METADATA header lines, then a license text
file matched against known license headers.
"""
from __future__ import annotations

import json
import logging
import os
import re
from typing import List, Optional, Tuple

from packaging.utils import canonicalize_name

from common.spdx import identify_license_text, license_from_classifier
from constants import Constants

logger = logging.getLogger(__name__)

_DIST_INFO_SUFFIX = ".dist-info"
_HEADER_EXPRESSION = re.compile(r"^License-Expression:\s*(?P<value>.+?)\s*$", re.M)
_HEADER_LICENSE = re.compile(r"^License:\s*(?P<value>.+?)\s*$", re.M)
_HEADER_CLASSIFIER = re.compile(r"^Classifier:\s*(?P<value>License ::.+?)\s*$", re.M)
_LICENSE_FILE = re.compile(r"^(LICEN[CS]E|COPYING)(\.(txt|md|rst))?$", re.I)
_PLACEHOLDERS = {"", "unknown", "none", "n/a"}


def find_site_packages(venv_path: str) -> List[str]:
    """Return every ``site-packages`` directory below the environment path."""
    found: List[str] = []
    for dirpath, dirnames, _ in os.walk(venv_path):
        if Constants.SITE_PACKAGES_DIR in dirnames:
            found.append(os.path.join(dirpath, Constants.SITE_PACKAGES_DIR))
            dirnames.remove(Constants.SITE_PACKAGES_DIR)
    return sorted(found)


def _dist_info_dir(site_packages: str, name: str, version: str) -> Optional[str]:
    """Locate the dist-info directory; wheel names use underscores and any case."""
    candidates = {
        f"{name}-{version}.dist-info",
        f"{name.replace('-', '_')}-{version}.dist-info",
    }
    for candidate in candidates:
        path = os.path.join(site_packages, candidate)
        if os.path.isdir(path):
            return path

    try:
        entries = sorted(os.listdir(site_packages))
    except OSError:
        return None
    wanted = canonicalize_name(name)
    for entry in entries:
        if not entry.endswith(_DIST_INFO_SUFFIX):
            continue
        dist_name, _, dist_version = entry[:-len(_DIST_INFO_SUFFIX)].rpartition("-")
        if canonicalize_name(dist_name) == wanted and dist_version == version:
            return os.path.join(site_packages, entry)
    return None


def _read_text(path: str) -> Optional[str]:
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            return f.read()
    except OSError as e:
        logger.debug("Could not read %s: %s", path, e)
        return None


def _from_metadata_json(dist_info: str) -> Optional[str]:
    path = os.path.join(dist_info, "metadata.json")
    if not os.path.isfile(path):
        return None
    try:
        with open(path, "r", encoding="utf-8") as f:
            metadata = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        logger.debug("Could not parse %s: %s", path, e)
        return None
    value = metadata.get("license") if isinstance(metadata, dict) else None
    return str(value) if value else None


def _from_metadata_headers(dist_info: str) -> Optional[str]:
    text = _read_text(os.path.join(dist_info, "METADATA"))
    if not text:
        return None
    headers = text.split("\n\n", 1)[0]

    m = _HEADER_EXPRESSION.search(headers)
    if m:
        return m.group("value")
    m = _HEADER_LICENSE.search(headers)
    if m and m.group("value").strip().lower() not in _PLACEHOLDERS and "\n" not in m.group("value"):
        return m.group("value")
    for classifier in _HEADER_CLASSIFIER.findall(headers):
        license_id = license_from_classifier(classifier)
        if license_id:
            return license_id
    return None


def _from_license_file(dist_info: str) -> Optional[str]:
    search_dirs = [dist_info, os.path.join(dist_info, "licenses")]
    for directory in search_dirs:
        if not os.path.isdir(directory):
            continue
        for entry in sorted(os.listdir(directory)):
            path = os.path.join(directory, entry)
            if os.path.isfile(path) and _LICENSE_FILE.match(entry):
                license_id = identify_license_text(_read_text(path))
                if license_id:
                    return license_id
    return None


def lookup_license(site_packages: Optional[str], name: str, version: str) -> Tuple[bool, Optional[str]]:
    """Find the raw license string of an installed package.

    Returns:
        Tuple of (metadata_found, raw license or None). metadata_found is False
        when no dist-info directory exists for the package.
    """
    if not site_packages:
        return False, None
    dist_info = _dist_info_dir(site_packages, name, version)
    if dist_info is None:
        return False, None
    for source in (_from_metadata_json, _from_metadata_headers, _from_license_file):
        value = source(dist_info)
        if value:
            return True, value
    return True, None
