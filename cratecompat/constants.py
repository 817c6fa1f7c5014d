"""
Centralized constants for cratecompat.

This module defines immutable configuration values used across cratecompat,
including registry endpoints, network settings, cache layout, and logging
formats. All values are intended to be treated as read-only.
"""

from typing import Final

# ---------------------------------------------------------------------------
# Project metadata
# ---------------------------------------------------------------------------

#: HTTP User-Agent template used for outbound requests. crates.io rejects
#: requests without an identifying User-Agent.
USER_AGENT_TEMPLATE: Final[str] = (
    "cratecompat/{version} (https://github.com/cratecompat/cratecompat)"
)

# ---------------------------------------------------------------------------
# Registry endpoints
# ---------------------------------------------------------------------------

#: Base URL of the crates.io sparse index.
DEFAULT_INDEX_URL: Final[str] = "https://index.crates.io/"

#: Maximum length of a crate name accepted by crates.io.
MAX_CRATE_NAME_LENGTH: Final[int] = 64

# ---------------------------------------------------------------------------
# HTTP configuration
# ---------------------------------------------------------------------------

#: Default network timeout in seconds.
DEFAULT_TIMEOUT: Final[int] = 30

#: Maximum number of retries for failed HTTP requests.
DEFAULT_MAX_RETRIES: Final[int] = 3

#: Maximum number of registry fetches in flight at once.
DEFAULT_MAX_CONCURRENCY: Final[int] = 10

# ---------------------------------------------------------------------------
# Cache configuration
# ---------------------------------------------------------------------------

#: Age (in seconds) after which a cached registry entry is refetched.
DEFAULT_CACHE_MAX_AGE: Final[int] = 60 * 60 * 24 * 7  # 1 week

#: Sub-directory of the cache root holding per-crate version entries.
CACHE_VERSIONS_DIR: Final[str] = "versions"

#: On-disk schema version of cache entries. Entries with another schema
#: are treated as misses.
CACHE_SCHEMA_VERSION: Final[int] = 1

# ---------------------------------------------------------------------------
# Lockfile / manifest
# ---------------------------------------------------------------------------

#: Default lockfile name.
DEFAULT_LOCKFILE: Final[str] = "Cargo.lock"

#: Manifest file name.
MANIFEST_FILE: Final[str] = "Cargo.toml"

#: Maximum allowed file size (in bytes) when reading lockfiles and manifests.
MAX_FILE_SIZE: Final[int] = 10 * 1024 * 1024  # 10 MB

# ---------------------------------------------------------------------------
# Result defaults
# ---------------------------------------------------------------------------

#: Default number of candidate versions shown.
DEFAULT_LIMIT: Final[int] = 5

#: Sentinel accepted by ``--count`` to show every candidate.
LIMIT_ALL: Final[str] = "all"

#: Default for including yanked versions.
DEFAULT_INCLUDE_YANKED: Final[bool] = False

# ---------------------------------------------------------------------------
# Logging configuration
# ---------------------------------------------------------------------------

#: Timestamp format for verbose logging.
LOG_DATE_FORMAT: Final[str] = "%Y-%m-%d %H:%M:%S"

#: Default log format (non-verbose).
LOG_DEFAULT_FORMAT: Final[str] = "%(levelname)s: %(message)s"

#: Verbose log format including timestamp and logger name.
LOG_VERBOSE_FORMAT: Final[str] = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
