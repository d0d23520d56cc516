"""Diagnostics sink for warnings and errors raised during analysis."""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from typing import List, Optional

from constants import Severity

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Diagnostic:
    """A single warning or error."""
    severity: Severity
    message: str
    analyzer: Optional[str] = None
    path: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "severity": self.severity.value,
            "message": self.message,
            "analyzer": self.analyzer,
            "path": self.path,
        }


class Diagnostics:
    """Ordered, thread-safe collection of diagnostics for one run."""

    def __init__(self):
        self._lock = threading.RLock()
        self._items: List[Diagnostic] = []

    def add(self, diagnostic: Diagnostic) -> Diagnostic:
        with self._lock:
            self._items.append(diagnostic)
        prefix = f"[{diagnostic.analyzer}] " if diagnostic.analyzer else ""
        if diagnostic.severity == Severity.ERROR:
            logger.error("%s%s", prefix, diagnostic.message)
        else:
            logger.warning("%s%s", prefix, diagnostic.message)
        return diagnostic

    def add_warning(self, message: str, analyzer: Optional[str] = None,
                    path: Optional[str] = None) -> Diagnostic:
        return self.add(Diagnostic(Severity.WARNING, message, analyzer, path))

    def add_error(self, message: str, analyzer: Optional[str] = None,
                  path: Optional[str] = None) -> Diagnostic:
        return self.add(Diagnostic(Severity.ERROR, message, analyzer, path))

    @property
    def items(self) -> List[Diagnostic]:
        with self._lock:
            return list(self._items)

    @property
    def warnings(self) -> List[Diagnostic]:
        return [d for d in self.items if d.severity == Severity.WARNING]

    @property
    def errors(self) -> List[Diagnostic]:
        return [d for d in self.items if d.severity == Severity.ERROR]

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    @property
    def has_warnings(self) -> bool:
        return bool(self.warnings)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)
