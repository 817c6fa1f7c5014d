"""
Core functionality exports for cratecompat.

This module provides convenient access to the core subsystems of cratecompat.
Importing from here keeps user-facing imports clean and stable:

    from cratecompat.core import CompatibilityEngine, CompatRequest
"""

from __future__ import annotations

from cratecompat.core.lockfile import parse_lockfile
from cratecompat.core.manifest import WorkspaceManifests
from cratecompat.core.registry import RegistryTransport, SparseIndexTransport
from cratecompat.core.registry_cache import CacheLookup, RegistryCache
from cratecompat.core.extractor import ExtractionResult, find_dependents
from cratecompat.core.resolver import ConstraintConflict, Resolution, resolve
from cratecompat.core.filters import filter_candidates
from cratecompat.core.engine import (
    CompatibilityEngine,
    CompatReport,
    CompatRequest,
    Outcome,
)

__all__ = [
    "parse_lockfile",
    "WorkspaceManifests",
    "RegistryTransport",
    "SparseIndexTransport",
    "RegistryCache",
    "CacheLookup",
    "find_dependents",
    "ExtractionResult",
    "resolve",
    "Resolution",
    "ConstraintConflict",
    "filter_candidates",
    "CompatibilityEngine",
    "CompatRequest",
    "CompatReport",
    "Outcome",
]
