""".NET NuGet ecosystem support."""

from .analyzer import NuGetAnalyzer

__all__ = ["NuGetAnalyzer"]
