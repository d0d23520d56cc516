"""Analysis orchestration: walk a project tree and dispatch files to analyzers."""
from __future__ import annotations

import fnmatch
import logging
import os
from dataclasses import dataclass
from typing import List, Optional, Sequence

from bom.graph import ComponentGraph, GraphContractError
from common.logging_utils import Timer, extra_context, is_debug_enabled
from constants import Constants

from .analyzer import Analyzer
from .context import AnalysisContext, AnalysisSettings
from .diagnostics import Diagnostics

logger = logging.getLogger(__name__)


def matches_pattern(relative_path: str, pattern: str) -> bool:
    """Glob-match a POSIX relative path; ``**/`` also matches at the top level."""
    relative_path = relative_path.replace(os.sep, "/")
    if fnmatch.fnmatchcase(relative_path, pattern):
        return True
    if pattern.startswith("**/"):
        tail = pattern[3:]
        if "/" not in tail:
            return fnmatch.fnmatchcase(relative_path.rsplit("/", 1)[-1], tail)
        return fnmatch.fnmatchcase(relative_path, tail)
    return False


@dataclass
class AnalysisResult:
    """Finished graph and diagnostics handed to reporting."""
    graph: ComponentGraph
    diagnostics: Diagnostics
    dispatched: int = 0


class Orchestrator:
    """Owns the graph and diagnostics for one run and drives the analyzers."""

    def __init__(self, analyzers: Sequence[Analyzer], settings: AnalysisSettings,
                 graph: Optional[ComponentGraph] = None,
                 diagnostics: Optional[Diagnostics] = None):
        self.analyzers = list(analyzers)
        self.settings = settings
        self.graph = graph if graph is not None else ComponentGraph()
        self.diagnostics = diagnostics if diagnostics is not None else Diagnostics()
        self._context = AnalysisContext(settings, self.graph, self.diagnostics)

    @property
    def active_analyzers(self) -> List[Analyzer]:
        return [a for a in self.analyzers if a.enabled]

    def run(self) -> AnalysisResult:
        """Run every analyzer over the settings' root directory."""
        for analyzer in self.analyzers:
            analyzer.before_analysis(self.settings)
            if not analyzer.enabled:
                logger.info("%s analyzer disabled.", analyzer.name)

        dispatched = 0
        with Timer() as t:
            for dirpath, dirnames, filenames in os.walk(self.settings.root, topdown=True):
                dirnames[:] = [
                    d for d in sorted(dirnames)
                    if self.should_traverse(os.path.join(dirpath, d))
                ]
                for filename in sorted(filenames):
                    dispatched += self.dispatch(os.path.join(dirpath, filename))

        if is_debug_enabled(logger):
            logger.debug("Walk finished", extra=extra_context(
                event="function_exit", component="orchestrator", action="run",
                count=dispatched, duration_ms=t.duration_ms()
            ))

        for analyzer in self.analyzers:
            analyzer.after_analysis(self.settings)

        return AnalysisResult(self.graph, self.diagnostics, dispatched)

    def should_traverse(self, directory: str) -> bool:
        """A directory is skipped if any enabled analyzer vetoes it."""
        if os.path.basename(directory) in Constants.IGNORED_DIRECTORIES:
            return False
        for analyzer in self.active_analyzers:
            if not analyzer.should_traverse(directory):
                if is_debug_enabled(logger):
                    logger.debug("Directory pruned", extra=extra_context(
                        event="decision", component="orchestrator", action="should_traverse",
                        outcome="skip", target=directory, analyzer=analyzer.name
                    ))
                return False
        return True

    def dispatch(self, path: str) -> int:
        """Hand a file to every enabled analyzer that claims it; returns dispatch count."""
        relative = os.path.relpath(path, self.settings.root)
        count = 0
        for analyzer in self.active_analyzers:
            if not any(matches_pattern(relative, p) for p in analyzer.patterns):
                continue
            context = self._context.scoped(analyzer.name, path)
            if not analyzer.can_handle(context, path):
                continue
            count += 1
            logger.info("%s analyzer processing %s", analyzer.name, relative)
            try:
                analyzer.analyze(context, path)
            except GraphContractError:
                raise
            except Exception as exc:  # pylint: disable=broad-exception-caught
                logger.debug("Analyzer failure", exc_info=True)
                context.add_error(f"Unexpected failure while analyzing {relative}: {exc}")
        return count
