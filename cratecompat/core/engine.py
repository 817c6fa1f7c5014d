"""Compatibility engine for cratecompat.

Ties the pipeline together for one request::

    lockfile ─► extractor ─► resolver ◄─ registry cache
                                │
                                ▼
                         filter & rank ─► CompatReport

Usage::

    async with HTTPClient() as client:
        cache = RegistryCache(SparseIndexTransport(client), cache_dir)
        engine = CompatibilityEngine(cache)
        report = await engine.check(CompatRequest(target="syn"))
        for candidate in report.candidates:
            print(candidate)
"""

from __future__ import annotations

import asyncio
from enum import Enum
from pathlib import Path
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Union

from packaging.version import Version

from cratecompat.utils.logger import get_logger
from cratecompat.core.lockfile import parse_lockfile
from cratecompat.core.manifest import WorkspaceManifests
from cratecompat.core.registry_cache import RegistryCache
from cratecompat.core.extractor import find_dependents
from cratecompat.core.resolver import ConstraintConflict, Resolution, resolve
from cratecompat.core.filters import drop_yanked, filter_candidates, rank
from cratecompat.constants import DEFAULT_INCLUDE_YANKED, DEFAULT_LOCKFILE
from cratecompat.exceptions import DependentMetadataUnavailable
from cratecompat.models.requirement import DependentConstraint
from cratecompat.models.candidate import DEFAULT_CANDIDATE_LIMIT, CandidateResult, Limit
from cratecompat.utils.version_utils import parse_toolchain_version

logger = get_logger("engine")

__all__ = ["Outcome", "CompatRequest", "CompatReport", "CompatibilityEngine"]


class Outcome(str, Enum):
    """How a compatibility check ended. None of these is an error."""

    COMPATIBLE = "compatible"
    UNSATISFIABLE = "unsatisfiable"
    ONLY_YANKED = "only_yanked"
    TOOLCHAIN_EXCLUDED = "toolchain_excluded"


@dataclass(frozen=True)
class CompatRequest:
    """One compatibility question.

    Attributes:
        target: Crate whose compatible versions are wanted.
        lockfile_path: Resolved ``Cargo.lock`` of the project.
        include_yanked: Keep yanked versions in the result.
        max_toolchain_version: Drop versions needing a newer toolchain.
        limit: How many candidates to return.
        refresh: Refetch registry metadata even if the cache is fresh.
    """

    target: str
    lockfile_path: Union[str, Path] = DEFAULT_LOCKFILE
    include_yanked: bool = DEFAULT_INCLUDE_YANKED
    max_toolchain_version: Optional[str] = None
    limit: Limit = DEFAULT_CANDIDATE_LIMIT
    refresh: bool = False


@dataclass
class CompatReport:
    """Answer to a :class:`CompatRequest`.

    Attributes:
        target: Crate that was examined.
        outcome: How the check ended.
        candidates: Compatible versions, newest first, truncated to the limit.
        constraints: Requirement of every dependent that was understood.
        unavailable: Dependents whose requirement is unknown.
        conflict: Explanation when the outcome is ``UNSATISFIABLE``.
        warnings: Degraded reads and other notices.
        notes: Hints about the outcome.
    """

    target: str
    outcome: Outcome
    candidates: List[CandidateResult] = field(default_factory=list)
    constraints: List[DependentConstraint] = field(default_factory=list)
    unavailable: List[DependentMetadataUnavailable] = field(default_factory=list)
    conflict: Optional[ConstraintConflict] = None
    warnings: List[str] = field(default_factory=list)
    notes: List[str] = field(default_factory=list)

    def to_json(self) -> Dict[str, Any]:
        """Return a JSON-serializable representation."""
        return {
            "target": self.target,
            "outcome": self.outcome.value,
            "candidates": [c.to_json() for c in self.candidates],
            "constraints": [c.to_json() for c in self.constraints],
            "unavailable": [
                {"dependent": u.dependent, "version": u.version, "reason": u.reason}
                for u in self.unavailable
            ],
            "conflict": self.conflict.to_json() if self.conflict else None,
            "warnings": list(self.warnings),
            "notes": list(self.notes),
        }


class CompatibilityEngine:
    """Runs compatibility checks against one registry cache.

    Args:
        cache: Registry cache shared by every check.
    """

    def __init__(self, cache: RegistryCache) -> None:
        self.cache = cache

    async def check(self, request: CompatRequest) -> CompatReport:
        """Answer ``request``.

        Raises:
            InvalidToolchainVersion: ``max_toolchain_version`` is malformed.
            LockfileError: The lockfile is missing or invalid.
            InvalidCrateName: ``target`` cannot be a crate name.
            RegistryUnavailable: The target's metadata cannot be fetched
                and is not cached.
        """
        ceiling = (
            parse_toolchain_version(request.max_toolchain_version)
            if request.max_toolchain_version
            else None
        )
        graph = await asyncio.to_thread(parse_lockfile, request.lockfile_path)
        manifests = WorkspaceManifests.for_lockfile(graph.path or request.lockfile_path)
        target = request.target

        if request.refresh:
            self.cache.invalidate(target)
            for package in graph.dependents_of(target):
                if package.is_registry:
                    self.cache.invalidate(package.name)

        target_lookup, extraction = await asyncio.gather(
            self.cache.lookup(target),
            find_dependents(graph, target, self.cache, manifests),
        )

        warnings: List[str] = []
        if target_lookup.warning:
            warnings.append(target_lookup.warning)
        warnings.extend(extraction.warnings)
        warnings.extend(exc.message for exc in extraction.unavailable)

        if not extraction.constraints and not extraction.unavailable:
            warnings.append(
                f"No package in the lockfile depends on '{target}'; "
                f"every published version is a candidate"
            )

        report = CompatReport(
            target=target,
            outcome=Outcome.COMPATIBLE,
            constraints=extraction.constraints,
            unavailable=extraction.unavailable,
            warnings=warnings,
        )

        resolution = resolve(target_lookup.records, extraction.constraints)
        if resolution.is_satisfiable:
            self._select(report, resolution, request, ceiling)
        else:
            report.outcome = Outcome.UNSATISFIABLE
            report.conflict = resolution.conflict
            if resolution.conflict is not None:
                report.notes.append(resolution.conflict.caveat)

        logger.info("Check of %s ended with %s", target, report.outcome.value)
        return report

    @staticmethod
    def _select(
        report: CompatReport,
        resolution: Resolution,
        request: CompatRequest,
        ceiling: Optional[Version],
    ) -> None:
        """Filter the compatible versions and classify an empty result."""
        compatible = [CandidateResult.from_record(r) for r in resolution.candidates]
        report.candidates = filter_candidates(
            compatible,
            include_yanked=request.include_yanked,
            max_toolchain_version=ceiling,
            limit=request.limit,
        )
        if report.candidates:
            return

        unyanked = drop_yanked(compatible, request.include_yanked)
        if not unyanked:
            report.outcome = Outcome.ONLY_YANKED
            report.notes.append(
                f"Only yanked versions of '{report.target}' satisfy every dependent; "
                f"include yanked versions to list them"
            )
            return

        report.outcome = Outcome.TOOLCHAIN_EXCLUDED
        oldest = rank(unyanked)[-1]
        report.notes.append(
            f"Every compatible version needs a toolchain newer than "
            f"{request.max_toolchain_version}; the oldest, {oldest.version}, "
            f"requires {oldest.min_toolchain_version}"
        )
