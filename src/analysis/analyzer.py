"""Base interface for per-ecosystem analyzers."""

from __future__ import annotations

import argparse
import os
from abc import ABC, abstractmethod
from typing import Sequence

from .context import AnalysisContext, AnalysisSettings


class Analyzer(ABC):
    """Unit of ecosystem-specific logic driven by the orchestrator.

    Lifecycle per run: ``initialize`` (option registration), ``before_analysis``,
    any number of ``can_handle``/``analyze`` dispatches interleaved with
    ``should_traverse`` checks, then ``after_analysis``.
    """

    name: str = "analyzer"
    patterns: Sequence[str] = ()

    def __init__(self):
        self._enabled = True

    @property
    def enabled(self) -> bool:
        return self._enabled

    def initialize(self, parser: argparse.ArgumentParser) -> None:
        """Register analyzer-specific CLI options."""

    def before_analysis(self, settings: AnalysisSettings) -> None:
        """One-time setup; may disable the analyzer."""

    def can_handle(self, context: AnalysisContext, path: str) -> bool:
        """Fine-grained acceptance beyond the glob patterns."""
        return True

    def should_traverse(self, directory: str) -> bool:
        """Return False to keep the orchestrator out of a directory."""
        return True

    @abstractmethod
    def analyze(self, context: AnalysisContext, path: str) -> None:
        """Read the manifest at path and populate the shared graph."""

    def after_analysis(self, settings: AnalysisSettings) -> None:
        """Teardown or summary hook."""

    @staticmethod
    def filename(path: str) -> str:
        return os.path.basename(path)
