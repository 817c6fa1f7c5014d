"""
cratecompat — find the versions of a crate your lockfile can accept

Given a Rust project's ``Cargo.lock`` and one of its dependencies,
cratecompat reconstructs the version requirement every dependent places
on that crate, intersects them, and lists the published versions that
satisfy all of them.

Features include:
    • Requirement reconstruction from registry metadata and workspace manifests
    • Cargo-accurate requirement semantics (caret, tilde, wildcards, pre-releases)
    • Persistent registry cache with offline fallback
    • Yanked-version and minimum-toolchain filtering
    • Explanations when dependents cannot agree
"""

from __future__ import annotations

from cratecompat.__version__ import __version__

# ---------------------------------------------------------------------------
# Package Metadata
# ---------------------------------------------------------------------------

__author__ = "cratecompat Contributors"
__license__ = "Apache-2.0"
__description__ = "Find the published versions of a crate compatible with a Cargo lockfile."

__all__ = [
    "__version__",
]
