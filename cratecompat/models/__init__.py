"""
Data models for cratecompat.
"""

from __future__ import annotations

from cratecompat.models.candidate import (
    ALL_CANDIDATES,
    DEFAULT_CANDIDATE_LIMIT,
    CandidateResult,
    Limit,
)
from cratecompat.models.lockfile import DependencyEdge, LockfileGraph, PackageNode
from cratecompat.models.requirement import (
    Bound,
    Comparator,
    DependentConstraint,
    Interval,
    VersionRequirement,
)
from cratecompat.models.version import CacheEntry, DeclaredDependency, VersionRecord

__all__ = [
    "ALL_CANDIDATES",
    "DEFAULT_CANDIDATE_LIMIT",
    "Bound",
    "CacheEntry",
    "CandidateResult",
    "Comparator",
    "DeclaredDependency",
    "DependencyEdge",
    "DependentConstraint",
    "Interval",
    "Limit",
    "LockfileGraph",
    "PackageNode",
    "VersionRecord",
    "VersionRequirement",
]
