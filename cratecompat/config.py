"""Configuration file loader for cratecompat.

Handles discovery, loading, parsing, and validation of configuration files.
Supports two formats:

- ``cratecompat.toml`` — settings under ``[cratecompat]`` table
- ``Cargo.toml`` — settings under ``[workspace.metadata.cratecompat]`` or
  ``[package.metadata.cratecompat]``

Discovery order:

1. Explicit path from ``--config`` or ``CRATECOMPAT_CONFIG``
2. ``cratecompat.toml`` in current directory
3. ``Cargo.toml`` with a ``metadata.cratecompat`` section in current directory

Configuration precedence: defaults < config file < environment < CLI args.

Typical usage::

    config = load_config()  # Auto-discover
    config = load_config(Path("custom.toml"))  # Explicit path

Example (``cratecompat.toml``)::

    [cratecompat]
    include_yanked = false
    limit = "all"
    max_toolchain_version = "1.70"
"""

from __future__ import annotations

import os
import tomli as tomllib
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Union
from dataclasses import dataclass, field

from cratecompat.exceptions import ConfigError, InvalidToolchainVersion
from cratecompat.utils.logger import get_logger
from cratecompat.models.candidate import DEFAULT_CANDIDATE_LIMIT, Limit
from cratecompat.utils.version_utils import parse_toolchain_version
from cratecompat.constants import (
    DEFAULT_CACHE_MAX_AGE,
    DEFAULT_INCLUDE_YANKED,
    DEFAULT_INDEX_URL,
    DEFAULT_MAX_CONCURRENCY,
    DEFAULT_TIMEOUT,
    MANIFEST_FILE,
)

logger = get_logger("config")

CONFIG_FILE = "cratecompat.toml"


def default_cache_dir() -> Path:
    """Return ``$XDG_CACHE_HOME/cratecompat`` (``~/.cache/cratecompat``)."""
    base = os.environ.get("XDG_CACHE_HOME") or Path.home() / ".cache"
    return Path(base) / "cratecompat"


@dataclass
class CrateCompatConfig:
    """Parsed and validated cratecompat configuration.

    All fields have defaults, so empty config files are valid.

    Attributes:
        cache_dir: Root of the registry metadata cache.
        cache_max_age: Seconds before a cached crate is refetched.
        index_url: Sparse registry index base URL.
        include_yanked: Keep yanked versions in results.
        limit: Number of candidates to show.
        max_toolchain_version: Drop versions needing a newer toolchain.
        max_concurrency: Maximum concurrent registry fetches.
        timeout: HTTP timeout in seconds.
        source_path: Path to loaded config file, or ``None`` if using defaults.
    """

    cache_dir: Path = field(default_factory=default_cache_dir)
    cache_max_age: int = DEFAULT_CACHE_MAX_AGE
    index_url: str = DEFAULT_INDEX_URL
    include_yanked: bool = DEFAULT_INCLUDE_YANKED
    limit: Limit = DEFAULT_CANDIDATE_LIMIT
    max_toolchain_version: Optional[str] = None
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    timeout: int = DEFAULT_TIMEOUT

    # Metadata (not a user-facing option)
    source_path: Optional[Path] = field(default=None, repr=False)

    def to_log_dict(self) -> Dict[str, Any]:
        """Return configuration as dictionary for debug logging.

        Excludes ``source_path`` metadata.
        """
        return {
            "cache_dir": str(self.cache_dir),
            "cache_max_age": self.cache_max_age,
            "index_url": self.index_url,
            "include_yanked": self.include_yanked,
            "limit": str(self.limit),
            "max_toolchain_version": self.max_toolchain_version,
            "max_concurrency": self.max_concurrency,
            "timeout": self.timeout,
        }


def discover_config_file(explicit_path: Optional[Path] = None) -> Optional[Path]:
    """Find the configuration file to load.

    Search order:

    1. ``explicit_path`` (from ``--config`` or ``CRATECOMPAT_CONFIG``)
    2. ``cratecompat.toml`` in current directory
    3. ``Cargo.toml`` with a ``metadata.cratecompat`` section in current directory

    Raises:
        ConfigError: Explicit path provided but does not exist.
    """
    if explicit_path is not None:
        resolved = explicit_path.resolve()
        if not resolved.is_file():
            raise ConfigError(
                f"Configuration file not found: {explicit_path}",
                config_path=str(explicit_path),
            )
        logger.debug("Using explicit config: %s", resolved)
        return resolved

    cwd = Path.cwd()

    cratecompat_toml = cwd / CONFIG_FILE
    if cratecompat_toml.is_file():
        logger.debug("Found %s: %s", CONFIG_FILE, cratecompat_toml)
        return cratecompat_toml

    cargo_toml = cwd / MANIFEST_FILE
    if cargo_toml.is_file():
        try:
            has_section = _cargo_section(_read_toml(cargo_toml)) is not None
        except ConfigError as exc:
            logger.debug("Ignoring unreadable %s: %s", cargo_toml, exc)
            has_section = False
        if has_section:
            logger.debug("Found cratecompat metadata in Cargo.toml: %s", cargo_toml)
            return cargo_toml

    logger.debug("No configuration file found")
    return None


def load_config(config_path: Optional[Path] = None) -> CrateCompatConfig:
    """Load and validate cratecompat configuration.

    Returns config with defaults if no file found.

    Raises:
        ConfigError: File cannot be parsed, has unknown keys, or invalid values.
    """
    resolved = discover_config_file(config_path)

    if resolved is None:
        logger.debug("No config file found, using defaults")
        return CrateCompatConfig()

    logger.info("Loading configuration from %s", resolved)
    raw = _read_toml(resolved)

    if resolved.name == MANIFEST_FILE:
        section = _cargo_section(raw) or {}
    else:
        section = raw.get("cratecompat", {})

    if not section:
        logger.debug("Config file found but no cratecompat section, using defaults")
        return CrateCompatConfig(source_path=resolved)

    config = _parse_section(section, config_path=str(resolved))
    config.source_path = resolved

    logger.debug("Loaded configuration: %s", config.to_log_dict())
    return config


def _cargo_section(raw: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    for table in ("workspace", "package"):
        metadata = (raw.get(table) or {}).get("metadata") or {}
        if "cratecompat" in metadata:
            return metadata["cratecompat"]
    return None


def _read_toml(path: Path) -> Dict[str, Any]:
    """Read and parse a TOML file.

    Raises:
        ConfigError: File cannot be read or is invalid TOML.
    """
    try:
        with open(path, "rb") as fh:
            return tomllib.load(fh)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(
            f"Invalid TOML in {path.name}: {exc}",
            config_path=str(path),
        ) from exc
    except OSError as exc:
        raise ConfigError(
            f"Cannot read configuration file {path}: {exc}",
            config_path=str(path),
        ) from exc


# ---------------------------------------------------------------------------
# Option parsers: raw TOML value -> validated value, ValueError on mismatch
# ---------------------------------------------------------------------------


def _boolean(value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"must be a boolean, got {type(value).__name__}")
    return value


def _positive_int(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValueError(f"must be a positive integer, got {value!r}")
    return value


def _non_negative_int(value: Any) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise ValueError(f"must be a non-negative integer, got {value!r}")
    return value


def _string(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(f"must be a non-empty string, got {value!r}")
    return value


def _path(value: Any) -> Path:
    return Path(_string(value)).expanduser()


def _limit(value: Any) -> Limit:
    if isinstance(value, (int, str)) and not isinstance(value, bool):
        try:
            return Limit.parse(value)
        except ValueError:
            pass
    raise ValueError(f'must be "all" or a positive integer, got {value!r}')


def _toolchain(value: Any) -> str:
    text = _string(value)
    try:
        parse_toolchain_version(text)
    except InvalidToolchainVersion as exc:
        raise ValueError(exc.message) from exc
    return text


_OPTIONS: Dict[str, Callable[[Any], Union[bool, int, str, Path, Limit]]] = {
    "cache_dir": _path,
    "cache_max_age": _non_negative_int,
    "index_url": _string,
    "include_yanked": _boolean,
    "limit": _limit,
    "max_toolchain_version": _toolchain,
    "max_concurrency": _positive_int,
    "timeout": _positive_int,
}


def _parse_section(
    section: Dict[str, Any],
    *,
    config_path: str,
) -> CrateCompatConfig:
    """Parse and validate a cratecompat configuration section.

    Rejects unknown keys and type mismatches.

    Raises:
        ConfigError: Unknown keys or invalid values.
    """
    unknown = set(section.keys()) - set(_OPTIONS)
    if unknown:
        raise ConfigError(
            f"Unknown configuration keys: {', '.join(sorted(unknown))}",
            config_path=config_path,
        )

    config = CrateCompatConfig()
    for option, parse in _OPTIONS.items():
        if option not in section:
            continue
        try:
            setattr(config, option, parse(section[option]))
        except ValueError as exc:
            raise ConfigError(
                f"{option} {exc}",
                config_path=config_path,
                option=option,
            ) from exc

    return config
