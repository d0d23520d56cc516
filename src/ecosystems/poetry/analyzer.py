"""Python Poetry analyzer: pyproject.toml + poetry.lock."""
from __future__ import annotations

import argparse
import logging
import os
from typing import Optional, Set, Tuple

from analysis.analyzer import Analyzer
from analysis.context import AnalysisContext, AnalysisSettings, as_bool
from analysis.linking import DependencyLinker, build_lock_index
from bom.models import Component, ComponentKind
from common.hashing import combine_file_hashes
from common.spdx import parse_license
from constants import Constants
from versioning.models import Ecosystem, parse_version
from versioning.ranges import PoetryVersionRange

from .license import find_site_packages, lookup_license
from .lockfile_parser import parse_poetry_lock, parse_pyproject

logger = logging.getLogger(__name__)


class PoetryAnalyzer(Analyzer):
    """Builds the graph for Python projects managed by Poetry."""

    NO_DEV_DEPENDENCIES_FLAG = "--no-poetry-dev-dependencies"
    NO_TEST_DEPENDENCIES_FLAG = "--no-poetry-test-dependencies"
    EXCLUDE_GROUP_FLAG = "--poetry-exclude-group"
    DISABLE_FLAG = "--disable-poetry"
    VIRTUAL_ENVIRONMENT_PATH = "--virtual-environment-path"

    name = "poetry"
    label = "Poetry"
    patterns = ("**/" + Constants.PYPROJECT_TOML_FILE,)

    def __init__(self):
        super().__init__()
        self._virtual_environment_path: Optional[str] = None
        self._excluded_groups: Set[str] = set()
        self._analyzed = 0

    def initialize(self, parser: argparse.ArgumentParser) -> None:
        group = parser.add_argument_group("Python Poetry")
        group.add_argument(self.NO_DEV_DEPENDENCIES_FLAG,
                           dest="NO_POETRY_DEV_DEPENDENCIES",
                           help="Excludes dev dependencies for Python Poetry projects",
                           action="store_true")
        group.add_argument(self.NO_TEST_DEPENDENCIES_FLAG,
                           dest="NO_POETRY_TEST_DEPENDENCIES",
                           help="Excludes test dependencies for Python Poetry projects",
                           action="store_true")
        group.add_argument(self.EXCLUDE_GROUP_FLAG,
                           dest="POETRY_EXCLUDE_GROUP",
                           help="Excludes a Poetry dependency group (can be used multiple times)",
                           action="append",
                           type=str)
        group.add_argument(self.DISABLE_FLAG,
                           dest="DISABLE_POETRY",
                           help="Disables the Python Poetry analyzer",
                           action="store_true")
        group.add_argument(self.VIRTUAL_ENVIRONMENT_PATH,
                           dest="VIRTUAL_ENVIRONMENT_PATH",
                           help="The path to the Python virtual environment",
                           action="store",
                           type=str)

    def before_analysis(self, settings: AnalysisSettings) -> None:
        if settings.get_option(self.DISABLE_FLAG, False, as_bool):
            self._enabled = False

        venv = settings.get_option(self.VIRTUAL_ENVIRONMENT_PATH)
        self._virtual_environment_path = (
            os.path.abspath(os.path.join(settings.root, venv)) if venv else None
        )

        self._excluded_groups = set(settings.get_list(self.EXCLUDE_GROUP_FLAG))
        if settings.get_option(self.NO_DEV_DEPENDENCIES_FLAG, False, as_bool):
            self._excluded_groups.add("dev")
        if settings.get_option(self.NO_TEST_DEPENDENCIES_FLAG, False, as_bool):
            self._excluded_groups.add("test")

    @property
    def virtual_environment_path(self) -> Optional[str]:
        return self._virtual_environment_path

    @property
    def excluded_groups(self) -> Set[str]:
        return set(self._excluded_groups)

    def can_handle(self, context: AnalysisContext, path: str) -> bool:
        filename = self.filename(path).lower()
        if filename not in (Constants.PYPROJECT_TOML_FILE, Constants.POETRY_LOCK_FILE):
            return False
        if not os.path.isfile(os.path.join(os.path.dirname(path), Constants.POETRY_LOCK_FILE)):
            logger.debug("Skipping %s: no %s alongside", path, Constants.POETRY_LOCK_FILE)
            return False
        return True

    def should_traverse(self, directory: str) -> bool:
        directory = os.path.abspath(directory)
        venv = self._virtual_environment_path
        if venv and (directory == venv or directory.startswith(venv + os.sep)):
            return False
        return not os.path.isfile(os.path.join(directory, Constants.PYVENV_CFG_FILE))

    def analyze(self, context: AnalysisContext, path: str) -> None:
        directory = os.path.dirname(os.path.abspath(path))
        manifest_path = os.path.join(directory, Constants.PYPROJECT_TOML_FILE)
        self._analyzed += 1

        # Read the manifest
        manifest = parse_pyproject(manifest_path)
        if manifest is None:
            context.add_error(f"Could not read {Constants.PYPROJECT_TOML_FILE}")
            return

        project_name = manifest.project_name
        if not project_name:
            project_name = os.path.basename(directory)
            context.add_warning(
                f"{Constants.PYPROJECT_TOML_FILE} declares no project name; using '{project_name}'"
            )
        root = context.add_component(Component(
            Ecosystem.PYPI,
            project_name,
            parse_version(Ecosystem.PYPI, manifest.project_version) if manifest.project_version else None,
            ComponentKind.ROOT,
        ))

        # Read the lock file
        lock = parse_poetry_lock(os.path.join(directory, Constants.POETRY_LOCK_FILE))
        if lock is None:
            context.add_error(f"Could not read {Constants.POETRY_LOCK_FILE}")
            return

        site_packages, ok = self._resolve_site_packages(context, directory)
        if not ok:
            return

        # Add all packages
        pairs = []
        optional = set(manifest.optional_packages)
        for package in lock.packages:
            if not package.name or not package.version:
                context.add_error(
                    f"Invalid package entry in {Constants.POETRY_LOCK_FILE} "
                    f"(name={package.name!r}, version={package.version!r})"
                )
                continue

            component = context.add_component(Component(
                Ecosystem.PYPI,
                package.name,
                parse_version(Ecosystem.PYPI, package.version),
                ComponentKind.LIBRARY,
            ))
            content_hash = combine_file_hashes(package.file_hashes)
            if content_hash is not None:
                context.graph.set_hash(component, content_hash)
            self._attach_license(context, component, site_packages, package.version)

            if package.optional:
                optional.add(package.name)
            pairs.append((component, package.dependencies))

        # If we got errors, then abort
        if context.has_errors:
            return

        linker = DependencyLinker(
            context, Ecosystem.PYPI, self.label, build_lock_index(pairs),
            PoetryVersionRange, optional,
        )
        for group_name, dependencies in manifest.dependency_groups.items():
            if group_name in self._excluded_groups:
                logger.info("Skipping excluded Poetry dependency group '%s'", group_name)
                continue
            linker.link(root, dependencies)

    def _resolve_site_packages(self, context: AnalysisContext, directory: str) -> Tuple[Optional[str], bool]:
        """Find the single site-packages directory used for license lookup.

        Returns (path or None, ok). ok is False after a fatal error.
        """
        venv = self._virtual_environment_path or os.path.join(directory, Constants.DEFAULT_VENV_DIR)
        if not os.path.isdir(venv):
            if self._virtual_environment_path:
                context.add_warning(f"Virtual environment {venv} does not exist; licenses are not resolved")
            else:
                logger.info("No virtual environment for %s; licenses are not resolved", directory)
            return None, True

        site_packages_dirs = find_site_packages(venv)
        if len(site_packages_dirs) > 1:
            context.add_error(
                f"Found multiple '{Constants.SITE_PACKAGES_DIR}' directories in {venv}, "
                "but no version was specified"
            )
            return None, False
        if not site_packages_dirs:
            context.add_warning(f"No '{Constants.SITE_PACKAGES_DIR}' directory found in {venv}")
            return None, True
        return site_packages_dirs[0], True

    def _attach_license(self, context: AnalysisContext, component: Component,
                        site_packages: Optional[str], version: str) -> None:
        found, raw = False, None
        if site_packages is not None:
            found, raw = lookup_license(site_packages, component.name, version)
        if not found:
            context.add_warning(f"Could not find license metadata for package {component.name}@{version}")
            return
        context.graph.set_license(component, parse_license(raw))

    def after_analysis(self, settings: AnalysisSettings) -> None:
        if self._enabled:
            logger.info("Poetry analyzer processed %d manifest(s).", self._analyzed)
