"""Registry transports for cratecompat.

A transport turns a crate name into the list of every published
:class:`~cratecompat.models.version.VersionRecord` of that crate. The
:class:`~cratecompat.core.registry_cache.RegistryCache` is the only
caller; it decides *when* to fetch, the transport only knows *how*.

The shipped implementation reads the crates.io sparse index, where each
crate is a newline-delimited JSON file, one line per published version::

    {"name":"serde","vers":"1.0.0","deps":[...],"yanked":false,"rust_version":"1.31"}

Typical usage::

    from cratecompat.utils.http import HTTPClient
    from cratecompat.core.registry import SparseIndexTransport

    async with HTTPClient() as client:
        transport = SparseIndexTransport(client)
        records = await transport.fetch("serde")
"""

from __future__ import annotations

import json
from typing import Any, List, Optional, Protocol, Tuple

from cratecompat.utils.http import HTTPClient
from cratecompat.utils.logger import get_logger
from cratecompat.exceptions import RegistryError
from cratecompat.constants import DEFAULT_INDEX_URL
from cratecompat.models.version import DeclaredDependency, VersionRecord, sort_records
from cratecompat.utils.version_utils import try_parse_semver

logger = get_logger("registry")

__all__ = [
    "RegistryTransport",
    "SparseIndexTransport",
    "index_path",
    "parse_index_lines",
]


class RegistryTransport(Protocol):
    """Anything that can list the published versions of a crate."""

    async def fetch(self, crate_name: str) -> List[VersionRecord]:
        """Return every published version of ``crate_name``.

        Raises:
            RegistryError: The crate does not exist or the registry could
                not be reached.
        """
        ...


def index_path(crate_name: str) -> str:
    """Return the sparse-index path of a crate.

    Examples:
        >>> index_path("a")
        '1/a'
        >>> index_path("syn")
        '3/s/syn'
        >>> index_path("Serde")
        'se/rd/serde'
    """
    name = crate_name.lower()
    if len(name) == 1:
        return f"1/{name}"
    if len(name) == 2:
        return f"2/{name}"
    if len(name) == 3:
        return f"3/{name[0]}/{name}"
    return f"{name[:2]}/{name[2:4]}/{name}"


def parse_index_lines(text: str, crate_name: str) -> List[VersionRecord]:
    """Parse a sparse-index document into version records.

    Blank lines are ignored. Lines that are not JSON objects or carry a
    version that is not valid semver are skipped with a debug message so
    that one bad publication does not hide every other version. Malformed
    entries of a line's ``deps`` array are skipped the same way.

    Returns:
        Records in ascending version order.
    """
    records: List[VersionRecord] = []

    for line_no, line in enumerate(text.splitlines(), start=1):
        line = line.strip()
        if not line:
            continue

        try:
            data = json.loads(line)
        except json.JSONDecodeError as exc:
            logger.debug("Skipping invalid index line %d for %s: %s", line_no, crate_name, exc)
            continue

        if not isinstance(data, dict):
            continue

        version = try_parse_semver(data.get("vers"))
        if version is None:
            logger.debug(
                "Skipping unparsable version %r of %s",
                data.get("vers"),
                crate_name,
            )
            continue

        records.append(
            VersionRecord(
                version=version,
                dependencies=_parse_dependencies(data.get("deps"), crate_name, version),
                yanked=bool(data.get("yanked", False)),
                min_toolchain_version=_optional_str(data.get("rust_version")),
            )
        )

    return list(sort_records(records))


def _parse_dependencies(
    raw: Any,
    crate_name: str,
    version: Any,
) -> Tuple[DeclaredDependency, ...]:
    """Parse the ``deps`` array of one index line, skipping bad entries."""
    if not isinstance(raw, list):
        if raw is not None:
            logger.debug("Ignoring non-list deps of %s %s", crate_name, version)
        return ()

    dependencies: List[DeclaredDependency] = []
    for item in raw:
        dependency = _parse_dependency(item)
        if dependency is None:
            logger.debug("Skipping malformed dependency %r of %s %s", item, crate_name, version)
            continue
        dependencies.append(dependency)
    return tuple(dependencies)


def _parse_dependency(data: Any) -> Optional[DeclaredDependency]:
    if not isinstance(data, dict):
        return None

    # Renamed dependencies keep the alias in "name" and the crate in "package"
    name = data.get("package") or data.get("name")
    requirement = data.get("req") or "*"
    if not isinstance(name, str) or not name or not isinstance(requirement, str):
        return None

    return DeclaredDependency(
        name=name,
        requirement=requirement,
        kind=_optional_str(data.get("kind")) or "normal",
        optional=bool(data.get("optional", False)),
        target=_optional_str(data.get("target")),
    )


def _optional_str(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


class SparseIndexTransport:
    """Fetch crate metadata from a Cargo sparse registry index.

    Args:
        http_client: Shared :class:`HTTPClient` (owns the connection pool).
        index_url: Base URL of the index. Defaults to crates.io.
    """

    def __init__(
        self,
        http_client: HTTPClient,
        index_url: Optional[str] = None,
    ) -> None:
        self.http_client = http_client
        self.index_url = (index_url or DEFAULT_INDEX_URL).rstrip("/") + "/"

    def url_for(self, crate_name: str) -> str:
        return self.index_url + index_path(crate_name)

    async def fetch(self, crate_name: str) -> List[VersionRecord]:
        url = self.url_for(crate_name)
        logger.debug("Fetching index entry %s", url)

        try:
            text = await self.http_client.get_text(url)
        except RegistryError as exc:
            if exc.status_code == 404:
                raise RegistryError(
                    f"Crate '{crate_name}' not found in registry",
                    crate_name=crate_name,
                    url=url,
                    status_code=404,
                ) from exc
            raise

        records = parse_index_lines(text, crate_name)
        if not records:
            raise RegistryError(
                f"Registry returned no versions for '{crate_name}'",
                crate_name=crate_name,
                url=url,
            )
        return records
