"""Shared fixtures for the cratecompat test-suite."""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import pytest

from cratecompat.exceptions import RegistryError
from cratecompat.core.registry_cache import RegistryCache
from cratecompat.utils.version_utils import parse_semver
from cratecompat.models.version import DeclaredDependency, VersionRecord

CRATES_IO = "registry+https://github.com/rust-lang/crates.io-index"


def record(
    version: str,
    *,
    deps: Iterable[Tuple[str, str]] = (),
    yanked: bool = False,
    rust: Optional[str] = None,
) -> VersionRecord:
    """Build a :class:`VersionRecord` from short-hand arguments."""
    return VersionRecord(
        version=parse_semver(version),
        dependencies=tuple(DeclaredDependency(name, req) for name, req in deps),
        yanked=yanked,
        min_toolchain_version=rust,
    )


class StubTransport:
    """In-memory registry transport that counts fetches per crate.

    Args:
        crates: Crate name → published records.
        delay: Seconds each fetch sleeps, to let concurrent callers overlap.
        failing: Crates whose fetch raises :class:`RegistryError`.
    """

    def __init__(
        self,
        crates: Optional[Dict[str, Sequence[VersionRecord]]] = None,
        *,
        delay: float = 0.0,
        failing: Iterable[str] = (),
    ) -> None:
        self.crates: Dict[str, List[VersionRecord]] = {
            name: list(records) for name, records in (crates or {}).items()
        }
        self.delay = delay
        self.failing = set(failing)
        self.calls: List[str] = []

    def fetch_count(self, name: str) -> int:
        return self.calls.count(name)

    async def fetch(self, crate_name: str) -> List[VersionRecord]:
        self.calls.append(crate_name)
        if self.delay:
            await asyncio.sleep(self.delay)
        if crate_name in self.failing:
            raise RegistryError("registry unreachable", crate_name=crate_name)
        if crate_name not in self.crates:
            raise RegistryError(
                f"Crate '{crate_name}' not found in registry",
                crate_name=crate_name,
                status_code=404,
            )
        return list(self.crates[crate_name])


def lockfile_text(*packages: Tuple[str, str, Optional[str], Sequence[str]]) -> str:
    """Render ``(name, version, source, dependencies)`` tuples as a Cargo.lock."""
    lines = ["# This file is automatically @generated by Cargo.", "version = 3", ""]
    for name, version, source, dependencies in packages:
        lines.append("[[package]]")
        lines.append(f'name = "{name}"')
        lines.append(f'version = "{version}"')
        if source is not None:
            lines.append(f'source = "{source}"')
        if dependencies:
            lines.append("dependencies = [")
            lines.extend(f' "{dep}",' for dep in dependencies)
            lines.append("]")
        lines.append("")
    return "\n".join(lines)


@pytest.fixture
def cache_dir(tmp_path: Path) -> Path:
    return tmp_path / "cache"


@pytest.fixture
def scenario_transport() -> StubTransport:
    """Registry where ``a`` needs ``t ^1.0`` and ``b`` needs ``t ^1.5``.

    ``t`` publishes 1.0.0 through 1.7.0 plus 2.0.0; 1.7.0 is yanked and
    1.6.0 onwards needs Rust 1.70.
    """
    return StubTransport(
        {
            "t": [
                record("1.0.0", rust="1.56"),
                record("1.4.0", rust="1.56"),
                record("1.5.0", rust="1.60"),
                record("1.6.0", rust="1.70"),
                record("1.7.0", yanked=True, rust="1.70"),
                record("2.0.0", rust="1.70"),
            ],
            "a": [record("0.1.0", deps=[("t", "^1.0")])],
            "b": [record("0.2.0", deps=[("t", "^1.5")])],
        }
    )


@pytest.fixture
def scenario_lockfile(tmp_path: Path) -> Path:
    """Lockfile of an application using ``a`` and ``b``, both on ``t 1.6.0``."""
    path = tmp_path / "Cargo.lock"
    path.write_text(
        lockfile_text(
            ("app", "0.1.0", None, ["a", "b"]),
            ("a", "0.1.0", CRATES_IO, ["t"]),
            ("b", "0.2.0", CRATES_IO, ["t"]),
            ("t", "1.6.0", CRATES_IO, []),
        ),
        encoding="utf-8",
    )
    (tmp_path / "Cargo.toml").write_text(
        '[package]\nname = "app"\nversion = "0.1.0"\n\n'
        '[dependencies]\na = "0.1"\nb = "0.2"\n',
        encoding="utf-8",
    )
    return path


@pytest.fixture
def scenario_cache(scenario_transport: StubTransport, cache_dir: Path) -> RegistryCache:
    return RegistryCache(scenario_transport, cache_dir)
