"""
Version parsing utilities for cratecompat.

Crate versions follow Semantic Versioning 2.0 and are handled with
:mod:`semantic_version`, whose ordering implements semver precedence
(major, minor, patch, then pre-release identifiers, pre-releases before
the release). Toolchain versions such as ``1.60`` are plain dotted release
numbers and are compared with :class:`packaging.version.Version`.
"""

from __future__ import annotations

import re
from typing import Optional

import semantic_version
from packaging.version import InvalidVersion, Version

from cratecompat.exceptions import InvalidToolchainVersion

_TOOLCHAIN_RE = re.compile(r"^\s*\d+(?:\.\d+){0,2}\s*$")


def parse_semver(value: str) -> semantic_version.Version:
    """Parse a full ``MAJOR.MINOR.PATCH[-PRE][+BUILD]`` version.

    Raises:
        ValueError: ``value`` is not a valid semantic version.

    Examples:
        >>> str(parse_semver("1.2.3-alpha.1"))
        '1.2.3-alpha.1'
    """
    return semantic_version.Version(value.strip())


def try_parse_semver(value: Optional[str]) -> Optional[semantic_version.Version]:
    """Like :func:`parse_semver` but return ``None`` instead of raising."""
    if not value:
        return None
    try:
        return parse_semver(value)
    except ValueError:
        return None


def parse_toolchain_version(value: str) -> Version:
    """Parse a toolchain version (``1``, ``1.60`` or ``1.60.1``).

    Missing components compare as zero, so ``1.60`` equals ``1.60.0``.

    Raises:
        InvalidToolchainVersion: ``value`` is not a dotted release number.
    """
    if not _TOOLCHAIN_RE.match(value or ""):
        raise InvalidToolchainVersion(value)
    try:
        return Version(value.strip())
    except InvalidVersion as exc:
        raise InvalidToolchainVersion(value) from exc


def exceeds_toolchain(
    min_toolchain_version: Optional[str],
    ceiling: Version,
) -> bool:
    """Return True if a declared minimum toolchain is above ``ceiling``.

    Absent or unparsable minimums never exceed the ceiling.

    Examples:
        >>> exceeds_toolchain("1.70", Version("1.65"))
        True
        >>> exceeds_toolchain(None, Version("1.65"))
        False
    """
    if not min_toolchain_version:
        return False
    try:
        required = parse_toolchain_version(min_toolchain_version)
    except InvalidToolchainVersion:
        return False
    return required > ceiling
