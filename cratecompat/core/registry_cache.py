"""Persistent registry metadata cache for cratecompat.

Every crate's published versions are stored as one JSON document under
``<cache_dir>/versions/<crate>.json``. The cache is the only component
that calls the registry transport: callers ask for a crate and get
either the persisted copy (fresh), a newly fetched one, or, when the
registry cannot be reached, the persisted copy flagged as stale.

Concurrency model:

* Per-key single-flight: concurrent lookups of one crate share a single
  in-flight :class:`asyncio.Task`. Callers await it through
  :func:`asyncio.shield`, so cancelling one caller never cancels the
  fetch the others are waiting on.
* Distinct crates never wait on each other. The transport's HTTP client
  bounds how many requests are on the wire.
* Disk I/O runs in a worker thread. Writes go through
  :func:`~cratecompat.utils.filesystem.atomic_write`, so a reader in this
  or any other process sees the old entry or the new one, never a torn
  file.

Typical usage::

    cache = RegistryCache(transport, "~/.cache/cratecompat")
    records = await cache.get_versions("serde")
"""

from __future__ import annotations

import re
import json
import time
import asyncio
from pathlib import Path
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Set, Union

from cratecompat.utils.logger import get_logger
from cratecompat.core.registry import RegistryTransport
from cratecompat.models.version import CacheEntry, VersionRecord, sort_records
from cratecompat.utils.filesystem import (
    atomic_write,
    remove_path,
    safe_read_file,
    validate_path,
)
from cratecompat.exceptions import (
    CrateCompatError,
    FileOperationError,
    InvalidCrateName,
    RegistryUnavailable,
)
from cratecompat.constants import (
    CACHE_VERSIONS_DIR,
    DEFAULT_CACHE_MAX_AGE,
    MAX_CRATE_NAME_LENGTH,
)

logger = get_logger("registry_cache")

__all__ = ["RegistryCache", "CacheLookup", "cache_key", "entry_path", "clear_entries"]

_CRATE_NAME_RE = re.compile(r"^[A-Za-z0-9_-]+$")


def cache_key(name: str) -> str:
    """Validate a crate name and return its cache key.

    Raises:
        InvalidCrateName: ``name`` contains characters crates.io does not
            allow or is too long.
    """
    if not name or len(name) > MAX_CRATE_NAME_LENGTH or not _CRATE_NAME_RE.match(name):
        raise InvalidCrateName(name)
    return name.lower()


def entry_path(cache_dir: Union[str, Path], name: str) -> Path:
    """Return the file holding the persisted entry of ``name``.

    Raises:
        InvalidCrateName: ``name`` is not a valid crate name.
        FileOperationError: The path would leave the cache directory.
    """
    versions_dir = Path(cache_dir).expanduser() / CACHE_VERSIONS_DIR
    return validate_path(versions_dir / f"{cache_key(name)}.json", base_dir=versions_dir)


def clear_entries(
    cache_dir: Union[str, Path],
    names: Optional[Iterable[str]] = None,
) -> int:
    """Delete persisted entries under ``cache_dir``.

    Args:
        cache_dir: Cache root directory.
        names: Crates to remove. ``None`` removes every entry.

    Returns:
        Number of entries deleted.
    """
    if names is not None:
        return sum(1 for name in names if remove_path(entry_path(cache_dir, name)))

    versions_dir = Path(cache_dir).expanduser() / CACHE_VERSIONS_DIR
    if not versions_dir.is_dir():
        return 0
    removed = len(list(versions_dir.glob("*.json")))
    remove_path(versions_dir)
    logger.info("Cleared %d cache entries from %s", removed, versions_dir)
    return removed


@dataclass(frozen=True)
class CacheLookup:
    """The outcome of one cache lookup.

    Attributes:
        entry: The metadata returned to the caller.
        from_cache: ``True`` if no successful fetch produced ``entry``.
        stale: ``True`` if the registry could not be reached and an
            outdated persisted copy was served instead.
        warning: Human-readable note describing a degraded read.
    """

    entry: CacheEntry
    from_cache: bool
    stale: bool = False
    warning: Optional[str] = None

    @property
    def records(self) -> List[VersionRecord]:
        return list(self.entry.records)


class RegistryCache:
    """Directory-backed, async-safe cache of crate version metadata.

    Args:
        transport: Registry transport used on misses.
        cache_dir: Cache root directory. Created on first write.
        max_age: Seconds after which a persisted entry is refetched.
    """

    def __init__(
        self,
        transport: RegistryTransport,
        cache_dir: Union[str, Path],
        *,
        max_age: float = DEFAULT_CACHE_MAX_AGE,
    ) -> None:
        self.transport = transport
        self.cache_dir = Path(cache_dir).expanduser()
        self.versions_dir = self.cache_dir / CACHE_VERSIONS_DIR
        self.max_age = max_age

        # Lookups already served in this process, by cache key
        self._memo: Dict[str, CacheLookup] = {}
        self._inflight: Dict[str, "asyncio.Task[CacheLookup]"] = {}
        self._invalidated: Set[str] = set()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def lookup(self, name: str, *, refresh: bool = False) -> CacheLookup:
        """Return the metadata of ``name``, fetching it if needed.

        Args:
            name: Crate name.
            refresh: Ignore a fresh persisted copy and refetch.

        Raises:
            InvalidCrateName: ``name`` is not a valid crate name.
            RegistryUnavailable: The fetch failed and nothing is cached.
        """
        key = cache_key(name)
        if refresh:
            self.invalidate(name)

        memo = self._memo.get(key)
        if memo is not None:
            return memo

        task = self._inflight.get(key)
        if task is None:
            task = asyncio.ensure_future(self._load(key, name))
            self._inflight[key] = task
            task.add_done_callback(lambda done, key=key: self._finish(key, done))
        else:
            logger.debug("Joining in-flight load of %s", key)

        return await asyncio.shield(task)

    async def get_versions(self, name: str, *, refresh: bool = False) -> List[VersionRecord]:
        """Return every known version of ``name`` in ascending order."""
        return (await self.lookup(name, refresh=refresh)).records

    def invalidate(self, name: str) -> None:
        """Force the next lookup of ``name`` to refetch.

        The persisted copy is kept as a fallback in case the refetch fails.
        """
        key = cache_key(name)
        self._memo.pop(key, None)
        self._invalidated.add(key)

    def clear(self, names: Optional[Iterable[str]] = None) -> int:
        """Delete persisted entries, all of them when ``names`` is ``None``."""
        if names is None:
            self._memo.clear()
        else:
            names = list(names)
            for name in names:
                self._memo.pop(cache_key(name), None)
        return clear_entries(self.cache_dir, names)

    def entry_path(self, name: str) -> Path:
        """Return the file holding ``name``'s entry."""
        return entry_path(self.cache_dir, name)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------

    def _finish(self, key: str, task: "asyncio.Task[CacheLookup]") -> None:
        if self._inflight.get(key) is task:
            del self._inflight[key]
        if not task.cancelled() and task.exception() is None:
            self._memo[key] = task.result()

    async def _load(self, key: str, name: str) -> CacheLookup:
        forced = key in self._invalidated
        self._invalidated.discard(key)

        cached = await asyncio.to_thread(self._read_entry, key)
        if cached is not None and not forced and not cached.is_stale(self.max_age):
            logger.debug("Cache hit for %s (%.0fs old)", key, cached.age())
            return CacheLookup(entry=cached, from_cache=True)

        logger.debug("Cache %s for %s", "refresh" if cached is not None else "miss", key)

        try:
            records = await self.transport.fetch(name)
        except CrateCompatError as exc:
            if cached is None:
                raise RegistryUnavailable(name, original_error=exc) from exc

            warning = (
                f"Registry unreachable for '{name}', using cached metadata "
                f"from {_format_age(cached.age())} ago"
            )
            logger.warning("%s: %s", warning, exc)
            return CacheLookup(entry=cached, from_cache=True, stale=True, warning=warning)

        entry = CacheEntry(crate=key, records=sort_records(records), fetched_at=time.time())
        try:
            await asyncio.to_thread(self._write_entry, key, entry)
        except FileOperationError as exc:
            logger.warning("Could not persist cache entry for %s: %s", key, exc)

        logger.info("Fetched %d version(s) of %s", len(entry.records), key)
        return CacheLookup(entry=entry, from_cache=False)

    def _read_entry(self, key: str) -> Optional[CacheEntry]:
        path = self.entry_path(key)
        if not path.is_file():
            return None

        try:
            return CacheEntry.from_dict(json.loads(safe_read_file(path, max_size=None)))
        except (FileOperationError, ValueError, KeyError, TypeError) as exc:
            logger.debug("Ignoring unreadable cache entry %s: %s", path, exc)
            return None

    def _write_entry(self, key: str, entry: CacheEntry) -> None:
        path = self.entry_path(key)
        atomic_write(path, json.dumps(entry.to_dict(), separators=(",", ":")))
        logger.debug("Wrote cache entry %s", path)


def _format_age(seconds: float) -> str:
    if seconds < 3600:
        return f"{max(int(seconds // 60), 0)} minute(s)"
    if seconds < 86400:
        return f"{int(seconds // 3600)} hour(s)"
    return f"{int(seconds // 86400)} day(s)"
