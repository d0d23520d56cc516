"""Python Poetry ecosystem support."""

from .analyzer import PoetryAnalyzer

__all__ = ["PoetryAnalyzer"]
