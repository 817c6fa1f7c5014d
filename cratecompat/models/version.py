"""
Published version data models for cratecompat.

A :class:`VersionRecord` is one published version of a crate as the
registry describes it; a :class:`CacheEntry` is the full, ordered set of
records for one crate together with the time it was fetched. Both are
immutable and serialize to plain JSON-compatible dictionaries so that
``CacheEntry.from_dict(entry.to_dict()) == entry``.
"""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

import semantic_version

from cratecompat.constants import CACHE_SCHEMA_VERSION
from cratecompat.utils.version_utils import parse_semver


@dataclass(frozen=True)
class DeclaredDependency:
    """A dependency declared by one published crate version.

    Attributes:
        name: Real crate name. For renamed dependencies this is the
            registry name, not the alias used in the manifest.
        requirement: Version requirement string, e.g. ``"^1.0"``.
        kind: ``"normal"``, ``"build"`` or ``"dev"``.
        optional: Whether the dependency is behind a feature.
        target: ``cfg(...)`` or target triple, ``None`` if unconditional.
    """

    name: str
    requirement: str
    kind: str = "normal"
    optional: bool = False
    target: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "req": self.requirement,
            "kind": self.kind,
            "optional": self.optional,
            "target": self.target,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DeclaredDependency":
        return cls(
            name=data["name"],
            requirement=data["req"],
            kind=data.get("kind") or "normal",
            optional=bool(data.get("optional", False)),
            target=data.get("target"),
        )


@dataclass(frozen=True)
class VersionRecord:
    """One published version of a crate.

    Only the ``yanked`` flag of a published version can change over time;
    everything else is fixed at publication.

    Attributes:
        version: Parsed semantic version.
        dependencies: Declared dependencies of this version.
        yanked: Whether the version has been withdrawn.
        min_toolchain_version: Declared ``rust-version``, if any.
    """

    version: semantic_version.Version
    dependencies: Tuple[DeclaredDependency, ...] = ()
    yanked: bool = False
    min_toolchain_version: Optional[str] = None

    def requirements_for(
        self,
        name: str,
        *,
        include_dev: bool = False,
    ) -> List[DeclaredDependency]:
        """Return the declared dependencies on ``name``.

        A crate may declare the same dependency several times (per target
        platform or per kind). Dev-dependencies are skipped unless
        ``include_dev`` is set, because they never constrain dependents.
        """
        wanted = name.lower()
        return [
            dep
            for dep in self.dependencies
            if dep.name.lower() == wanted and (include_dev or dep.kind != "dev")
        ]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": str(self.version),
            "yanked": self.yanked,
            "min_toolchain_version": self.min_toolchain_version,
            "dependencies": [dep.to_dict() for dep in self.dependencies],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "VersionRecord":
        return cls(
            version=parse_semver(data["version"]),
            dependencies=tuple(
                DeclaredDependency.from_dict(dep) for dep in data.get("dependencies", ())
            ),
            yanked=bool(data.get("yanked", False)),
            min_toolchain_version=data.get("min_toolchain_version"),
        )


def sort_records(records: Iterable[VersionRecord]) -> Tuple[VersionRecord, ...]:
    """Return ``records`` in ascending semantic-version precedence."""
    return tuple(sorted(records, key=lambda record: record.version))


@dataclass(frozen=True)
class CacheEntry:
    """Persisted version metadata for one crate.

    Attributes:
        crate: Crate name as requested.
        records: Every known version, ascending precedence.
        fetched_at: Epoch seconds of the fetch that produced the entry.
    """

    crate: str
    records: Tuple[VersionRecord, ...] = ()
    fetched_at: float = field(default_factory=time.time)

    def age(self, now: Optional[float] = None) -> float:
        """Seconds elapsed since the entry was fetched."""
        return (time.time() if now is None else now) - self.fetched_at

    def is_stale(self, max_age: float, now: Optional[float] = None) -> bool:
        """Return True when the entry is older than ``max_age`` seconds."""
        return self.age(now) > max_age

    def find(self, version: semantic_version.Version) -> Optional[VersionRecord]:
        """Return the record for ``version``, or ``None`` if unknown."""
        for record in self.records:
            if record.version == version:
                return record
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "schema": CACHE_SCHEMA_VERSION,
            "crate": self.crate,
            "fetched_at": self.fetched_at,
            "versions": [record.to_dict() for record in self.records],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CacheEntry":
        """Rebuild an entry from :meth:`to_dict` output.

        Raises:
            ValueError: Unsupported schema or malformed content.
            KeyError: A required field is missing.
        """
        if data.get("schema") != CACHE_SCHEMA_VERSION:
            raise ValueError(f"Unsupported cache schema: {data.get('schema')!r}")

        return cls(
            crate=data["crate"],
            records=tuple(VersionRecord.from_dict(item) for item in data["versions"]),
            fetched_at=float(data["fetched_at"]),
        )
