"""Per-ecosystem analyzers."""

from typing import List

from analysis.analyzer import Analyzer

from .npm import NpmAnalyzer
from .nuget import NuGetAnalyzer
from .poetry import PoetryAnalyzer


def default_analyzers() -> List[Analyzer]:
    """Fresh instances of every built-in analyzer, in dispatch order."""
    return [PoetryAnalyzer(), NpmAnalyzer(), NuGetAnalyzer()]
