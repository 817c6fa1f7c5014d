"""
cratecompat version information.

Single source of truth for the package version, following Semantic
Versioning (https://semver.org/). The version is also embedded in the
HTTP User-Agent sent to the registry.
"""

from __future__ import annotations

__version__ = "0.3.0"

#: ``(major, minor, patch)`` of the running release.
VERSION_INFO = tuple(int(part) for part in __version__.split(".")[:3])

#: Human-readable version (for CLI).
VERSION_STRING = f"cratecompat {__version__}"
