"""npm ecosystem support."""

from .analyzer import NpmAnalyzer

__all__ = ["NpmAnalyzer"]
