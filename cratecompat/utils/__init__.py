"""
Utility helpers for cratecompat.

This package provides reusable utilities used across cratecompat, including:

- Console output helpers (Rich-based)
- Logging configuration and retrieval
- Filesystem safety helpers
- Async HTTP client utilities
- Semantic and toolchain version helpers

Only symbols listed in ``__all__`` are considered part of the public API.
"""

from __future__ import annotations

# ---------------------------------------------------------------------------
# Filesystem utilities
# ---------------------------------------------------------------------------

from cratecompat.utils.filesystem import (
    atomic_write,
    remove_path,
    safe_read_file,
    validate_path,
)

# ---------------------------------------------------------------------------
# Logging utilities
# ---------------------------------------------------------------------------

from cratecompat.utils.logger import (
    disable_logging,
    get_logger,
    is_logging_configured,
    setup_logging,
)

# ---------------------------------------------------------------------------
# Console utilities
# ---------------------------------------------------------------------------

from cratecompat.utils.console import (
    colorize_outcome,
    get_raw_console,
    print_error,
    print_success,
    print_table,
    print_warning,
    reconfigure_console,
)

# ---------------------------------------------------------------------------
# HTTP utilities
# ---------------------------------------------------------------------------

from cratecompat.utils.http import HTTPClient

# ---------------------------------------------------------------------------
# Version utilities
# ---------------------------------------------------------------------------

from cratecompat.utils.version_utils import (
    exceeds_toolchain,
    parse_semver,
    parse_toolchain_version,
    try_parse_semver,
)

# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

__all__ = [
    # Console
    "print_error",
    "print_table",
    "print_success",
    "print_warning",
    "get_raw_console",
    "reconfigure_console",
    "colorize_outcome",
    # Logging
    "get_logger",
    "setup_logging",
    "disable_logging",
    "is_logging_configured",
    # Filesystem
    "atomic_write",
    "remove_path",
    "safe_read_file",
    "validate_path",
    # HTTP
    "HTTPClient",
    # Version utilities
    "parse_semver",
    "try_parse_semver",
    "parse_toolchain_version",
    "exceeds_toolchain",
]
