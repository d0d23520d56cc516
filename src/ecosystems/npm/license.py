"""License lookup for npm packages installed under node_modules."""
from __future__ import annotations

import json
import logging
import os
from typing import Any, Optional, Tuple

from constants import Constants

logger = logging.getLogger(__name__)


def license_from_value(value: Any) -> Optional[str]:
    """Reduce a package.json ``license`` / ``licenses`` value to one string.

    Handles the SPDX string form, the deprecated ``{type, url}`` object and
    the deprecated list of such objects (joined with OR).
    """
    if isinstance(value, str):
        return value.strip() or None
    if isinstance(value, dict):
        kind = value.get("type")
        if isinstance(kind, str) and kind.strip():
            return kind.strip()
        url = value.get("url")
        return url.strip() if isinstance(url, str) and url.strip() else None
    if isinstance(value, list):
        names = [n for n in (license_from_value(v) for v in value) if n]
        if not names:
            return None
        if len(names) == 1:
            return names[0]
        return "(" + " OR ".join(names) + ")"
    return None


def lookup_license(project_dir: str, location: Optional[str]) -> Tuple[bool, Optional[str]]:
    """Read the license of an installed package from its package.json.

    Args:
        project_dir: Directory holding the project's package.json
        location: Install path from the lock file (``node_modules/a``)

    Returns:
        Tuple of (metadata_found, raw license or None).
    """
    if not location:
        return False, None
    path = os.path.join(project_dir, *location.split("/"), Constants.PACKAGE_JSON_FILE)
    if not os.path.isfile(path):
        return False, None
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError) as e:
        logger.debug("Could not parse %s: %s", path, e)
        return False, None
    if not isinstance(data, dict):
        return False, None
    raw = license_from_value(data.get("license"))
    if raw is None:
        raw = license_from_value(data.get("licenses"))
    return True, raw
