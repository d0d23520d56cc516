"""npm analyzer: package.json + package-lock.json."""
from __future__ import annotations

import argparse
import logging
import os
from typing import Set

from analysis.analyzer import Analyzer
from analysis.context import AnalysisContext, AnalysisSettings, as_bool
from analysis.linking import DependencyLinker, build_lock_index
from bom.models import Component, ComponentKind
from common.hashing import parse_integrity
from common.spdx import parse_license
from constants import Constants
from versioning.models import Ecosystem, parse_version
from versioning.ranges import NpmVersionRange

from .license import lookup_license
from .lockfile_parser import parse_package_json, parse_package_lock

logger = logging.getLogger(__name__)


class NpmAnalyzer(Analyzer):
    """Builds the graph for Node.js projects with an npm lock file."""

    NO_DEV_DEPENDENCIES_FLAG = "--no-npm-dev-dependencies"
    EXCLUDE_GROUP_FLAG = "--npm-exclude-group"
    DISABLE_FLAG = "--disable-npm"

    name = "npm"
    label = "npm"
    patterns = ("**/" + Constants.PACKAGE_JSON_FILE,)

    def __init__(self):
        super().__init__()
        self._excluded_groups: Set[str] = set()
        self._analyzed = 0

    def initialize(self, parser: argparse.ArgumentParser) -> None:
        group = parser.add_argument_group("npm")
        group.add_argument(self.NO_DEV_DEPENDENCIES_FLAG,
                           dest="NO_NPM_DEV_DEPENDENCIES",
                           help="Excludes devDependencies for npm projects",
                           action="store_true")
        group.add_argument(self.EXCLUDE_GROUP_FLAG,
                           dest="NPM_EXCLUDE_GROUP",
                           help="Excludes a package.json dependency group, e.g. peerDependencies "
                                "(can be used multiple times)",
                           action="append",
                           type=str)
        group.add_argument(self.DISABLE_FLAG,
                           dest="DISABLE_NPM",
                           help="Disables the npm analyzer",
                           action="store_true")

    def before_analysis(self, settings: AnalysisSettings) -> None:
        if settings.get_option(self.DISABLE_FLAG, False, as_bool):
            self._enabled = False
        self._excluded_groups = set(settings.get_list(self.EXCLUDE_GROUP_FLAG))
        if settings.get_option(self.NO_DEV_DEPENDENCIES_FLAG, False, as_bool):
            self._excluded_groups.add("devDependencies")

    @property
    def excluded_groups(self) -> Set[str]:
        return set(self._excluded_groups)

    def can_handle(self, context: AnalysisContext, path: str) -> bool:
        if self.filename(path) != Constants.PACKAGE_JSON_FILE:
            return False
        if not os.path.isfile(os.path.join(os.path.dirname(path), Constants.PACKAGE_LOCK_FILE)):
            logger.debug("Skipping %s: no %s alongside", path, Constants.PACKAGE_LOCK_FILE)
            return False
        return True

    def should_traverse(self, directory: str) -> bool:
        return os.path.basename(os.path.normpath(directory)) != Constants.NODE_MODULES_DIR

    def analyze(self, context: AnalysisContext, path: str) -> None:
        directory = os.path.dirname(os.path.abspath(path))
        self._analyzed += 1

        # Read the manifest
        manifest = parse_package_json(os.path.join(directory, Constants.PACKAGE_JSON_FILE))
        if manifest is None:
            context.add_error(f"Could not read {Constants.PACKAGE_JSON_FILE}")
            return

        project_name = manifest.project_name
        if not project_name:
            project_name = os.path.basename(directory)
            context.add_warning(
                f"{Constants.PACKAGE_JSON_FILE} declares no project name; using '{project_name}'"
            )
        root = context.add_component(Component(
            Ecosystem.NPM,
            project_name,
            parse_version(Ecosystem.NPM, manifest.project_version) if manifest.project_version else None,
            ComponentKind.ROOT,
        ))

        # Read the lock file
        lock = parse_package_lock(os.path.join(directory, Constants.PACKAGE_LOCK_FILE))
        if lock is None:
            context.add_error(f"Could not read {Constants.PACKAGE_LOCK_FILE}")
            return

        # Add all packages
        pairs = []
        optional = set(manifest.optional_packages)
        for package in lock.packages:
            if not package.name or not package.version:
                context.add_error(
                    f"Invalid package entry in {Constants.PACKAGE_LOCK_FILE} "
                    f"(name={package.name!r}, version={package.version!r})"
                )
                continue

            component = context.add_component(Component(
                Ecosystem.NPM,
                package.name,
                parse_version(Ecosystem.NPM, package.version),
                ComponentKind.LIBRARY,
            ))
            content_hash = parse_integrity(package.content_hash)
            if content_hash is not None:
                context.graph.set_hash(component, content_hash)
            self._attach_license(context, component, directory, package)

            if package.optional:
                optional.add(package.name)
            pairs.append((component, package.dependencies))

        # If we got errors, then abort
        if context.has_errors:
            return

        linker = DependencyLinker(
            context, Ecosystem.NPM, self.label, build_lock_index(pairs),
            NpmVersionRange, optional,
        )
        for group_name, dependencies in manifest.dependency_groups.items():
            if group_name in self._excluded_groups:
                logger.info("Skipping excluded npm dependency group '%s'", group_name)
                continue
            linker.link(root, dependencies)

    def _attach_license(self, context: AnalysisContext, component: Component,
                        directory: str, package) -> None:
        if package.license:
            context.graph.set_license(component, parse_license(package.license))
            return
        found, raw = lookup_license(directory, package.location)
        if found:
            context.graph.set_license(component, parse_license(raw))
        else:
            logger.debug("No installed package.json for %s at %s", component.name, package.location)
            context.add_warning(
                f"Could not find license metadata for package {component.name}@{package.version}"
            )

    def after_analysis(self, settings: AnalysisSettings) -> None:
        if self._enabled:
            logger.info("npm analyzer processed %d manifest(s).", self._analyzed)
