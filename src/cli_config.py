"""Configuration file support for the CLI.

A config file is YAML (JSON is accepted too, being a YAML subset) with an
``options`` mapping whose keys are long flag names or their dest names:

    options:
      no-npm-dev-dependencies: true
      poetry-exclude-group: [docs, lint]

Values become parser defaults, so flags given on the command line win.
"""

from __future__ import annotations

import argparse
import logging
import os
from typing import Any, Dict

import yaml

from analysis.context import as_bool, option_key

logger = logging.getLogger(__name__)

OPTIONS_SECTION = "options"


def load_config(config_path: str) -> Dict[str, Any]:
    """Load the ``options`` section of a YAML/JSON config file.

    Args:
        config_path: Path to YAML/JSON config file.

    Returns:
        Options keyed by argparse dest; empty when the file is missing or invalid.
    """
    if not os.path.isfile(config_path):
        logger.warning("Config file not found: %s", config_path)
        return {}

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logger.error("Failed to load config: %s", e)
        return {}

    if not isinstance(data, dict):
        logger.warning("Config file %s is not a mapping; ignoring it", config_path)
        return {}
    options = data.get(OPTIONS_SECTION, {})
    if not isinstance(options, dict):
        logger.warning("'%s' in %s is not a mapping; ignoring it", OPTIONS_SECTION, config_path)
        return {}
    return {option_key(str(k)): v for k, v in options.items()}


def apply_config_defaults(parser: argparse.ArgumentParser, config_path: str) -> Dict[str, Any]:
    """Install config file options as parser defaults and return the applied ones."""
    actions = {action.dest: action for action in parser._actions}  # pylint: disable=protected-access
    applied: Dict[str, Any] = {}
    for dest, value in load_config(config_path).items():
        action = actions.get(dest)
        if action is None:
            logger.warning("Ignoring unknown option '%s' in %s", dest, config_path)
            continue
        if isinstance(action, (argparse._StoreTrueAction, argparse._StoreFalseAction)):  # pylint: disable=protected-access
            try:
                value = as_bool(value)
            except ValueError:
                logger.warning("Ignoring option '%s' in %s: %r is not a boolean", dest, config_path, value)
                continue
        applied[dest] = value
    if applied:
        parser.set_defaults(**applied)
        logger.debug("Applied %d option(s) from %s", len(applied), config_path)
    return applied
