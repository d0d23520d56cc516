"""License lookup from nuspec files in the NuGet global packages folder."""
from __future__ import annotations

import logging
import os
import xml.etree.ElementTree as ET
from typing import Optional, Tuple

from common.spdx import identify_license_text
from constants import Constants

logger = logging.getLogger(__name__)


def default_packages_path() -> str:
    """Global packages folder: $NUGET_PACKAGES, else ~/.nuget/packages."""
    configured = os.environ.get(Constants.ENV_NUGET_PACKAGES)
    if configured:
        return configured
    return os.path.join(os.path.expanduser("~"), ".nuget", "packages")


def nuspec_path(packages_path: str, name: str, version: str) -> str:
    """Packages are extracted to ``<id>/<version>/<id>.nuspec``, all lower-cased."""
    lower = name.lower()
    return os.path.join(packages_path, lower, version.lower(), f"{lower}.nuspec")


def _read_license_file(package_dir: str, relative: str) -> Optional[str]:
    path = os.path.join(package_dir, *relative.replace("\\", "/").split("/"))
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            return identify_license_text(f.read())
    except OSError as e:
        logger.debug("Could not read license file %s: %s", path, e)
        return None


def lookup_license(packages_path: Optional[str], name: str, version: str) -> Tuple[bool, Optional[str]]:
    """Find the raw license string of a restored package.

    Returns:
        Tuple of (metadata_found, raw license or None). metadata_found is False
        when the nuspec is missing or unreadable.
    """
    if not packages_path:
        return False, None
    path = nuspec_path(packages_path, name, version)
    if not os.path.isfile(path):
        return False, None
    try:
        root = ET.parse(path).getroot()
    except (ET.ParseError, OSError) as e:
        logger.warning("Couldn't parse nuspec file %s: %s", path, e)
        return False, None
    # Remove namespace for easier parsing
    for elem in root.iter():
        if '}' in elem.tag:
            elem.tag = elem.tag.split('}')[1]

    license_elem = root.find(".//metadata/license")
    license_type = license_elem.get("type", "").lower() if license_elem is not None else ""
    license_text = (license_elem.text or "").strip() if license_elem is not None else ""

    if license_type == "expression" and license_text:
        return True, license_text

    url_elem = root.find(".//metadata/licenseUrl")
    if url_elem is not None and url_elem.text and url_elem.text.strip():
        return True, url_elem.text.strip()

    if license_type == "file" and license_text:
        return True, _read_license_file(os.path.dirname(path), license_text)
    return True, None
