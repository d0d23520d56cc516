""".NET NuGet analyzer: MSBuild project files + packages.lock.json."""
from __future__ import annotations

import argparse
import logging
import os
from typing import Dict, Mapping, Optional, Set

from analysis.analyzer import Analyzer
from analysis.context import AnalysisContext, AnalysisSettings, as_bool
from analysis.linking import DependencyLinker, build_lock_index
from bom.models import Component, ComponentKind
from common.hashing import decode_base64_digest
from common.spdx import parse_license
from constants import Constants
from versioning.models import Ecosystem, parse_version
from versioning.ranges import NuGetVersionRange

from .license import default_packages_path, lookup_license
from .lockfile_parser import parse_nuget_lock, parse_project_file

logger = logging.getLogger(__name__)

CONTENT_HASH_ALGORITHM = "sha512"


def _with_lock_casing(dependencies: Mapping[str, Optional[str]],
                      casing: Mapping[str, str]) -> Dict[str, Optional[str]]:
    """NuGet ids are case-insensitive; use the spelling recorded in the lock file."""
    return {casing.get(name.lower(), name): constraint for name, constraint in dependencies.items()}


class NuGetAnalyzer(Analyzer):
    """Builds the graph for .NET projects with NuGet lock files enabled."""

    EXCLUDE_GROUP_FLAG = "--nuget-exclude-group"
    DISABLE_FLAG = "--disable-nuget"
    PACKAGES_PATH_FLAG = "--nuget-packages-path"

    name = "nuget"
    label = "NuGet"
    patterns = tuple("**/*" + suffix for suffix in Constants.NUGET_PROJECT_SUFFIXES)

    def __init__(self):
        super().__init__()
        self._excluded_groups: Set[str] = set()
        self._packages_path: Optional[str] = None
        self._analyzed = 0

    def initialize(self, parser: argparse.ArgumentParser) -> None:
        group = parser.add_argument_group(".NET NuGet")
        group.add_argument(self.EXCLUDE_GROUP_FLAG,
                           dest="NUGET_EXCLUDE_GROUP",
                           help="Excludes a NuGet dependency group, e.g. private "
                                "(can be used multiple times)",
                           action="append",
                           type=str)
        group.add_argument(self.DISABLE_FLAG,
                           dest="DISABLE_NUGET",
                           help="Disables the NuGet analyzer",
                           action="store_true")
        group.add_argument(self.PACKAGES_PATH_FLAG,
                           dest="NUGET_PACKAGES_PATH",
                           help="The NuGet global packages folder used for license lookup",
                           action="store",
                           type=str)

    def before_analysis(self, settings: AnalysisSettings) -> None:
        if settings.get_option(self.DISABLE_FLAG, False, as_bool):
            self._enabled = False
        self._excluded_groups = set(settings.get_list(self.EXCLUDE_GROUP_FLAG))
        configured = settings.get_option(self.PACKAGES_PATH_FLAG)
        self._packages_path = (
            os.path.abspath(os.path.join(settings.root, configured)) if configured
            else default_packages_path()
        )

    @property
    def packages_path(self) -> Optional[str]:
        return self._packages_path

    def can_handle(self, context: AnalysisContext, path: str) -> bool:
        if not path.lower().endswith(Constants.NUGET_PROJECT_SUFFIXES):
            return False
        if not os.path.isfile(os.path.join(os.path.dirname(path), Constants.NUGET_LOCK_FILE)):
            logger.debug("Skipping %s: no %s alongside", path, Constants.NUGET_LOCK_FILE)
            return False
        return True

    def should_traverse(self, directory: str) -> bool:
        return os.path.basename(os.path.normpath(directory)).lower() not in Constants.NUGET_BUILD_DIRS

    def analyze(self, context: AnalysisContext, path: str) -> None:
        directory = os.path.dirname(os.path.abspath(path))
        project_file = self.filename(path)
        self._analyzed += 1

        # Read the manifest
        manifest = parse_project_file(os.path.abspath(path))
        if manifest is None:
            context.add_error(f"Could not read {project_file}")
            return

        root = context.add_component(Component(
            Ecosystem.NUGET,
            manifest.project_name or os.path.splitext(project_file)[0],
            parse_version(Ecosystem.NUGET, manifest.project_version) if manifest.project_version else None,
            ComponentKind.ROOT,
        ))

        # Read the lock file
        lock = parse_nuget_lock(os.path.join(directory, Constants.NUGET_LOCK_FILE))
        if lock is None:
            context.add_error(f"Could not read {Constants.NUGET_LOCK_FILE}")
            return

        packages_available = bool(self._packages_path) and os.path.isdir(self._packages_path)
        if not packages_available:
            logger.info("NuGet packages folder %s not found; licenses are not resolved",
                        self._packages_path)

        # Add all packages
        casing = {p.name.lower(): p.name for p in lock.packages if p.name}
        pairs = []
        populated = set()
        for package in lock.packages:
            if not package.name or not package.version:
                context.add_error(
                    f"Invalid package entry in {Constants.NUGET_LOCK_FILE} "
                    f"(name={package.name!r}, version={package.version!r})"
                )
                continue

            component = context.add_component(Component(
                Ecosystem.NUGET,
                package.name,
                parse_version(Ecosystem.NUGET, package.version),
                ComponentKind.LIBRARY,
            ))
            pairs.append((component, _with_lock_casing(package.dependencies, casing)))
            # Same package listed under another target framework
            if component.key in populated:
                continue
            populated.add(component.key)

            content_hash = decode_base64_digest(CONTENT_HASH_ALGORITHM, package.content_hash)
            if content_hash is not None:
                context.graph.set_hash(component, content_hash)
            self._attach_license(context, component, package.version, packages_available)

        # If we got errors, then abort
        if context.has_errors:
            return

        linker = DependencyLinker(
            context, Ecosystem.NUGET, self.label, build_lock_index(pairs), NuGetVersionRange,
        )
        requested = {name.lower(): constraint for name, constraint in lock.requested.items()}
        for group_name, dependencies in manifest.dependency_groups.items():
            if group_name in self._excluded_groups:
                logger.info("Skipping excluded NuGet dependency group '%s'", group_name)
                continue
            filled = {
                name: constraint if constraint is not None else requested.get(name.lower())
                for name, constraint in dependencies.items()
            }
            linker.link(root, _with_lock_casing(filled, casing))

    def _attach_license(self, context: AnalysisContext, component: Component,
                        version: str, packages_available: bool) -> None:
        found, raw = False, None
        if packages_available:
            found, raw = lookup_license(self._packages_path, component.name, version)
        if not found:
            context.add_warning(f"Could not find license metadata for package {component.name}@{version}")
            return
        context.graph.set_license(component, parse_license(raw))

    def after_analysis(self, settings: AnalysisSettings) -> None:
        if self._enabled:
            logger.info("NuGet analyzer processed %d project(s).", self._analyzed)
