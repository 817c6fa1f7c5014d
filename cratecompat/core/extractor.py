"""Constraint extraction for cratecompat.

A lockfile says *which* version of the target crate each dependent was
resolved against, but not *which range* the dependent asked for. This
module reconstructs those ranges:

* registry dependents: from the dependent's own published metadata,
  looked up through the :class:`~cratecompat.core.registry_cache.RegistryCache`;
* local dependents (workspace members, path crates): from the
  ``Cargo.toml`` files next to the lockfile.

Dependents whose range cannot be reconstructed are not dropped: each one
becomes a :class:`~cratecompat.exceptions.DependentMetadataUnavailable`
in the result so the caller can report it.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import List, Optional, Sequence, Tuple, Union

import semantic_version

from cratecompat.utils.logger import get_logger
from cratecompat.core.manifest import WorkspaceManifests
from cratecompat.core.registry_cache import RegistryCache
from cratecompat.models.version import DeclaredDependency
from cratecompat.models.lockfile import LockfileGraph, PackageNode
from cratecompat.models.requirement import DependentConstraint, VersionRequirement
from cratecompat.exceptions import (
    CrateCompatError,
    DependentMetadataUnavailable,
    InvalidRequirement,
)

logger = get_logger("extractor")

__all__ = ["ExtractionResult", "find_dependents", "combine_declarations"]


@dataclass
class ExtractionResult:
    """Constraints placed on one crate by its dependents.

    Attributes:
        constraints: One entry per dependent, sorted by (name, version).
        unavailable: Dependents whose requirement could not be determined,
            sorted the same way.
        warnings: Degraded-read notices raised while looking up dependents.
    """

    constraints: List[DependentConstraint] = field(default_factory=list)
    unavailable: List[DependentMetadataUnavailable] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)


async def find_dependents(
    graph: LockfileGraph,
    target: str,
    cache: RegistryCache,
    manifests: Optional[WorkspaceManifests] = None,
) -> ExtractionResult:
    """Collect the requirement every dependent of ``target`` declares on it.

    Lookups for distinct dependents run concurrently; the result order
    does not depend on which finishes first.

    Args:
        graph: Parsed lockfile.
        target: Crate whose dependents are examined.
        cache: Registry cache used for registry dependents.
        manifests: Workspace manifests used for local dependents.
    """
    dependents = graph.dependents_of(target)
    locked = [package.version for package in graph.find(target)]
    logger.info("Found %d dependent(s) of %s", len(dependents), target)

    if manifests is not None and any(package.is_local for package in dependents):
        await asyncio.to_thread(manifests.load)

    outcomes = await asyncio.gather(
        *(
            _extract_one(package, graph, target, locked, cache, manifests)
            for package in dependents
        )
    )

    result = ExtractionResult()
    for package, (outcome, warning) in sorted(
        zip(dependents, outcomes),
        key=lambda pair: (pair[0].name, pair[0].version),
    ):
        if warning:
            result.warnings.append(warning)
        if isinstance(outcome, DependentMetadataUnavailable):
            logger.warning("%s", outcome.message)
            result.unavailable.append(outcome)
        else:
            logger.debug("%s", outcome)
            result.constraints.append(outcome)

    return result


def combine_declarations(
    declared: Sequence[DeclaredDependency],
    locked_versions: Sequence[semantic_version.Version] = (),
) -> VersionRequirement:
    """Merge the declarations a dependent makes on one crate.

    Non-dev declarations win over dev ones. When several differ (one per
    target platform, say), only those satisfied by a currently locked
    version are kept, and the survivors must all hold.

    Raises:
        InvalidRequirement: A declared range cannot be parsed.
        ValueError: ``declared`` is empty.
    """
    if not declared:
        raise ValueError("No declarations to combine")

    pool = [dep for dep in declared if dep.kind != "dev"] or list(declared)

    raws: List[str] = []
    for dep in pool:
        raw = dep.requirement.strip() or "*"
        if raw not in raws:
            raws.append(raw)

    requirements = [VersionRequirement.parse(raw) for raw in raws]
    if len(requirements) == 1:
        return requirements[0]

    if locked_versions:
        matching = [
            req for req in requirements if any(req.matches(v) for v in locked_versions)
        ]
        requirements = matching or requirements

    if len(requirements) == 1:
        return requirements[0]
    return VersionRequirement.parse(", ".join(req.raw for req in requirements))


# ---------------------------------------------------------------------------
# Per-dependent extraction
# ---------------------------------------------------------------------------

_Outcome = Tuple[Union[DependentConstraint, DependentMetadataUnavailable], Optional[str]]


async def _extract_one(
    package: PackageNode,
    graph: LockfileGraph,
    target: str,
    locked: Sequence[semantic_version.Version],
    cache: RegistryCache,
    manifests: Optional[WorkspaceManifests],
) -> _Outcome:
    version = str(package.version)

    def unavailable(reason: str) -> DependentMetadataUnavailable:
        return DependentMetadataUnavailable(package.name, version, reason)

    warning: Optional[str] = None

    if package.is_local:
        if manifests is None:
            return unavailable("local package and no workspace manifest"), None
        declared = manifests.requirements_for(package.name, target)
        if declared is None:
            return unavailable("no Cargo.toml found for local package"), None

    elif package.is_registry:
        try:
            lookup = await cache.lookup(package.name)
        except CrateCompatError as exc:
            return unavailable(exc.message), None

        warning = lookup.warning
        record = lookup.entry.find(package.version)
        if record is None:
            return unavailable("version not found in registry"), warning
        declared = record.requirements_for(target, include_dev=True)

    else:
        return unavailable(f"unsupported source {package.source}"), None

    if not declared:
        return unavailable(f"does not declare a dependency on {target}"), warning

    # Prefer the versions this dependent was actually resolved against
    edge_versions = [graph.locked_version_for(edge) for edge in package.edges_to(target)]
    pinned = [v for v in edge_versions if v is not None] or list(locked)

    try:
        requirement = combine_declarations(declared, pinned)
    except InvalidRequirement as exc:
        return unavailable(exc.message), warning

    return DependentConstraint(package.name, version, requirement), warning
