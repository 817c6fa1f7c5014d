"""Cargo lockfile parser for cratecompat.

Loads a ``Cargo.lock`` into a :class:`~cratecompat.models.lockfile.LockfileGraph`.
Only ``[[package]]`` entries are interpreted; every other table and field
(``version`` header, ``[metadata]`` checksums of format v1, ``checksum``,
``[patch.unused]``…) is tolerated and ignored.

Dependency entries come in three shapes depending on how ambiguous the
name is within the lockfile::

    "serde"
    "syn 1.0.109"
    "rand 0.8.5 (registry+https://github.com/rust-lang/crates.io-index)"

Typical usage::

    from cratecompat.core.lockfile import parse_lockfile

    graph = parse_lockfile("Cargo.lock")
    for package in graph.dependents_of("syn"):
        print(package.name, package.version)
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Dict, List, Optional, Set, Tuple, Union

import tomli as tomllib

from cratecompat.utils.logger import get_logger
from cratecompat.utils.filesystem import safe_read_file
from cratecompat.utils.version_utils import parse_semver
from cratecompat.models.lockfile import DependencyEdge, LockfileGraph, PackageNode
from cratecompat.exceptions import (
    DuplicatePackage,
    FileOperationError,
    LockfileMalformed,
    LockfileNotFound,
)

logger = get_logger("lockfile")

__all__ = ["parse_lockfile", "parse_lockfile_text", "parse_dependency_entry"]

_DEPENDENCY_RE = re.compile(
    r"^(?P<name>[A-Za-z0-9_-]+)(?:\s+(?P<version>[^\s(]+))?(?:\s+\((?P<source>[^)]+)\))?$"
)


def parse_lockfile(path: Union[str, Path]) -> LockfileGraph:
    """Read and parse a lockfile.

    Args:
        path: Path to ``Cargo.lock``.

    Returns:
        The package graph.

    Raises:
        LockfileNotFound: ``path`` does not exist or is not a file.
        LockfileMalformed: The file is not valid TOML or an entry lacks a
            name, has an invalid version or a malformed dependency.
        DuplicatePackage: The same ``(name, version)`` appears twice.
    """
    lock_path = Path(path)
    if not lock_path.is_file():
        raise LockfileNotFound(
            f"Lockfile not found: {lock_path}",
            file_path=str(lock_path),
        )

    try:
        content = safe_read_file(lock_path)
    except FileOperationError as exc:
        raise LockfileMalformed(
            f"Cannot read lockfile: {exc.message}",
            file_path=str(lock_path),
        ) from exc

    graph = parse_lockfile_text(content, file_path=str(lock_path))
    graph.path = lock_path
    logger.info("Loaded %d package(s) from %s", len(graph), lock_path)
    return graph


def parse_lockfile_text(
    content: str,
    *,
    file_path: Optional[str] = None,
) -> LockfileGraph:
    """Parse lockfile content already in memory.

    See :func:`parse_lockfile` for the errors raised.
    """
    try:
        data = tomllib.loads(content)
    except tomllib.TOMLDecodeError as exc:
        raise LockfileMalformed(
            f"Invalid TOML: {exc}",
            file_path=file_path,
        ) from exc

    raw_packages = data.get("package", [])
    if not isinstance(raw_packages, list):
        raise LockfileMalformed(
            "Expected an array of [[package]] tables",
            file_path=file_path,
        )

    packages: List[PackageNode] = []
    seen: Set[Tuple[str, str]] = set()

    for index, raw in enumerate(raw_packages):
        package = _parse_package(raw, index, file_path)

        key = (package.name, str(package.version))
        if key in seen:
            raise DuplicatePackage(package.name, str(package.version), file_path=file_path)
        seen.add(key)

        packages.append(package)

    format_version = data.get("version")
    return LockfileGraph(
        packages=packages,
        format_version=format_version if isinstance(format_version, int) else None,
    )


def parse_dependency_entry(entry: str) -> DependencyEdge:
    """Parse one string of a package's ``dependencies`` array.

    Raises:
        ValueError: The entry does not have the ``name [version] [(source)]``
            shape or the version is not a semantic version.

    Example::

        >>> edge = parse_dependency_entry("syn 1.0.109")
        >>> edge.name, str(edge.version)
        ('syn', '1.0.109')
    """
    match = _DEPENDENCY_RE.match(entry.strip())
    if not match:
        raise ValueError(f"Malformed dependency entry: {entry!r}")

    version = match.group("version")
    return DependencyEdge(
        name=match.group("name"),
        version=parse_semver(version) if version else None,
        source=match.group("source"),
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _parse_package(
    raw: Any,
    index: int,
    file_path: Optional[str],
) -> PackageNode:
    if not isinstance(raw, dict):
        raise LockfileMalformed(
            "Package entry is not a table",
            file_path=file_path,
            entry_index=index,
        )

    name = raw.get("name")
    if not isinstance(name, str) or not name.strip():
        raise LockfileMalformed(
            "Package entry is missing a name",
            file_path=file_path,
            entry_index=index,
        )

    raw_version = raw.get("version")
    if not isinstance(raw_version, str):
        raise LockfileMalformed(
            "Package entry is missing a version",
            file_path=file_path,
            package=name,
            entry_index=index,
        )
    try:
        version = parse_semver(raw_version)
    except ValueError as exc:
        raise LockfileMalformed(
            f"Invalid version '{raw_version}'",
            file_path=file_path,
            package=name,
            entry_index=index,
        ) from exc

    source = raw.get("source")
    if source is not None and not isinstance(source, str):
        raise LockfileMalformed(
            "Package source must be a string",
            file_path=file_path,
            package=name,
            entry_index=index,
        )

    return PackageNode(
        name=name,
        version=version,
        source=source,
        dependencies=_parse_dependencies(raw, name, index, file_path),
    )


def _parse_dependencies(
    raw: Dict[str, Any],
    name: str,
    index: int,
    file_path: Optional[str],
) -> Tuple[DependencyEdge, ...]:
    entries = raw.get("dependencies", [])
    if not isinstance(entries, list):
        raise LockfileMalformed(
            "Package dependencies must be an array",
            file_path=file_path,
            package=name,
            entry_index=index,
        )

    edges: List[DependencyEdge] = []
    for entry in entries:
        if not isinstance(entry, str):
            raise LockfileMalformed(
                f"Dependency entry is not a string: {entry!r}",
                file_path=file_path,
                package=name,
                entry_index=index,
            )
        try:
            edges.append(parse_dependency_entry(entry))
        except ValueError as exc:
            raise LockfileMalformed(
                str(exc),
                file_path=file_path,
                package=name,
                entry_index=index,
            ) from exc

    return tuple(edges)
