"""
Lockfile graph data models for cratecompat.

A ``Cargo.lock`` records, for every package in the resolved graph, its
exact version, where it came from and which packages it resolved its
dependencies against. It does not record the version *requirements* that
produced those resolutions; those are reconstructed by
:mod:`cratecompat.core.extractor` as
:class:`~cratecompat.models.requirement.DependentConstraint` values.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple

import semantic_version


@dataclass(frozen=True)
class DependencyEdge:
    """A directed edge from a package to one of its dependencies.

    Attributes:
        name: Dependency crate name.
        version: Pinned dependency version, present when the lockfile
            disambiguates between several locked versions of ``name``.
        source: Dependency source, present when the lockfile disambiguates
            between sources.
    """

    name: str
    version: Optional[semantic_version.Version] = None
    source: Optional[str] = None


@dataclass(frozen=True)
class PackageNode:
    """One ``[[package]]`` entry of a lockfile.

    Attributes:
        name: Package name.
        version: Exact resolved version.
        source: Registry or git source; ``None`` for path and workspace
            packages.
        dependencies: Edges to the packages this one resolved against.
    """

    name: str
    version: semantic_version.Version
    source: Optional[str] = None
    dependencies: Tuple[DependencyEdge, ...] = ()

    @property
    def is_local(self) -> bool:
        """True for packages without a source (workspace members, path deps)."""
        return self.source is None

    @property
    def is_registry(self) -> bool:
        """True for packages resolved from a crates registry."""
        return self.source is not None and (
            self.source.startswith("registry+") or self.source.startswith("sparse+")
        )

    def depends_on(self, name: str) -> bool:
        return any(edge.name == name for edge in self.dependencies)

    def edges_to(self, name: str) -> List[DependencyEdge]:
        return [edge for edge in self.dependencies if edge.name == name]

    def __str__(self) -> str:
        return f"{self.name} {self.version}"


@dataclass
class LockfileGraph:
    """The resolved package graph of a lockfile.

    Read-only after construction: the parser builds it once and the rest
    of a run only queries it.

    Attributes:
        packages: Package entries in lockfile order.
        path: File the graph was loaded from, if any.
        format_version: The lockfile's ``version`` header, if present.
    """

    packages: List[PackageNode] = field(default_factory=list)
    path: Optional[Path] = None
    format_version: Optional[int] = None

    _by_name: Dict[str, List[PackageNode]] = field(
        default_factory=dict,
        init=False,
        repr=False,
        compare=False,
    )

    def __post_init__(self) -> None:
        for package in self.packages:
            self._by_name.setdefault(package.name, []).append(package)

    def __iter__(self) -> Iterator[PackageNode]:
        return iter(self.packages)

    def __len__(self) -> int:
        return len(self.packages)

    def __contains__(self, name: object) -> bool:
        return name in self._by_name

    def find(self, name: str) -> List[PackageNode]:
        """Return every locked version of ``name`` (usually one)."""
        return list(self._by_name.get(name, ()))

    def get(
        self,
        name: str,
        version: semantic_version.Version,
    ) -> Optional[PackageNode]:
        for package in self._by_name.get(name, ()):
            if package.version == version:
                return package
        return None

    def dependents_of(self, name: str) -> List[PackageNode]:
        """Return packages with a direct dependency edge to ``name``."""
        return [package for package in self.packages if package.depends_on(name)]

    def locked_version_for(
        self,
        edge: DependencyEdge,
    ) -> Optional[semantic_version.Version]:
        """Return the version an edge resolves to in this graph.

        Edges only spell out a version when it is ambiguous; otherwise the
        single locked package of that name is used.
        """
        if edge.version is not None:
            return edge.version
        candidates = self._by_name.get(edge.name, ())
        if len(candidates) == 1:
            return candidates[0].version
        return None
