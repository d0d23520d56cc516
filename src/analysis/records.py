"""Intermediate records produced by manifest and lock readers.

Readers resolve ecosystem-specific shapes (tables vs strings, nested
structures) once, so the resolution algorithm only sees plain names and
constraint strings.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional

# group name -> {package name -> constraint expression or None when absent}
DependencyGroups = Dict[str, Dict[str, Optional[str]]]


@dataclass
class ManifestRecord:
    """Human-authored dependency declaration."""
    project_name: Optional[str]
    project_version: Optional[str]
    dependency_groups: DependencyGroups = field(default_factory=dict)
    optional_packages: List[str] = field(default_factory=list)


@dataclass
class LockedPackage:
    """One pinned package from a lock file."""
    name: Optional[str]
    version: Optional[str]
    file_hashes: List[Optional[str]] = field(default_factory=list)
    dependencies: Dict[str, Optional[str]] = field(default_factory=dict)
    content_hash: Optional[str] = None
    license: Optional[str] = None
    location: Optional[str] = None
    optional: bool = False


@dataclass
class LockRecord:
    """Machine-generated pinning of resolved versions."""
    packages: List[LockedPackage] = field(default_factory=list)
    # direct dependency name -> constraint as requested by the project
    requested: Dict[str, str] = field(default_factory=dict)
