"""Candidate filtering and ranking for cratecompat.

Each stage is a pure function over a sequence of
:class:`~cratecompat.models.candidate.CandidateResult` and
:func:`filter_candidates` chains them in a fixed order:

1. drop yanked versions (unless asked to keep them);
2. drop versions needing a newer toolchain than the given ceiling;
3. sort newest first;
4. keep the first ``limit`` entries.

Running the pipeline twice with the same arguments gives the same list.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Union

from packaging.version import Version

from cratecompat.models.candidate import DEFAULT_CANDIDATE_LIMIT, CandidateResult, Limit
from cratecompat.utils.version_utils import exceeds_toolchain, parse_toolchain_version

__all__ = [
    "drop_yanked",
    "drop_toolchain_incompatible",
    "rank",
    "filter_candidates",
]


def drop_yanked(
    candidates: Iterable[CandidateResult],
    include_yanked: bool = False,
) -> List[CandidateResult]:
    if include_yanked:
        return list(candidates)
    return [c for c in candidates if not c.yanked]


def drop_toolchain_incompatible(
    candidates: Iterable[CandidateResult],
    max_toolchain_version: Optional[Union[str, Version]] = None,
) -> List[CandidateResult]:
    """Remove candidates whose minimum toolchain exceeds the ceiling.

    Candidates without a declared minimum, or with one that does not
    parse, are kept.

    Raises:
        InvalidToolchainVersion: ``max_toolchain_version`` is a malformed
            string.
    """
    if max_toolchain_version is None:
        return list(candidates)

    ceiling = (
        max_toolchain_version
        if isinstance(max_toolchain_version, Version)
        else parse_toolchain_version(max_toolchain_version)
    )
    return [c for c in candidates if not exceeds_toolchain(c.min_toolchain_version, ceiling)]


def rank(candidates: Iterable[CandidateResult]) -> List[CandidateResult]:
    """Sort candidates newest first."""
    return sorted(candidates, key=lambda c: c.version, reverse=True)


def filter_candidates(
    candidates: Iterable[CandidateResult],
    include_yanked: bool = False,
    max_toolchain_version: Optional[Union[str, Version]] = None,
    limit: Limit = DEFAULT_CANDIDATE_LIMIT,
) -> List[CandidateResult]:
    """Apply every filter stage and return the ranked, truncated list."""
    remaining = drop_yanked(candidates, include_yanked)
    remaining = drop_toolchain_incompatible(remaining, max_toolchain_version)
    return Limit.parse(limit).apply(rank(remaining))
