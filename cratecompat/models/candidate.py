"""
Candidate result models for cratecompat.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, TypeVar, Union

import semantic_version

from cratecompat.constants import DEFAULT_LIMIT, LIMIT_ALL
from cratecompat.models.version import VersionRecord

T = TypeVar("T")


@dataclass(frozen=True)
class CandidateResult:
    """A version of the target crate compatible with every known dependent.

    Attributes:
        version: Candidate version.
        min_toolchain_version: Declared minimum toolchain, if known.
        yanked: Whether the version is yanked.
    """

    version: semantic_version.Version
    min_toolchain_version: Optional[str] = None
    yanked: bool = False

    @classmethod
    def from_record(cls, record: VersionRecord) -> "CandidateResult":
        return cls(
            version=record.version,
            min_toolchain_version=record.min_toolchain_version,
            yanked=record.yanked,
        )

    def to_json(self) -> Dict[str, Any]:
        """Return a JSON-serializable representation."""
        return {
            "version": str(self.version),
            "min_toolchain_version": self.min_toolchain_version,
            "yanked": self.yanked,
        }

    def __str__(self) -> str:
        if self.min_toolchain_version:
            return f"{self.version}    min-rust-version = {self.min_toolchain_version}"
        return str(self.version)


@dataclass(frozen=True)
class Limit:
    """How many candidates to keep: a positive count or every one.

    ``Limit()`` keeps every candidate; :data:`DEFAULT_CANDIDATE_LIMIT` keeps five.
    """

    count: Optional[int] = None

    def __post_init__(self) -> None:
        if self.count is not None and self.count < 1:
            raise ValueError(f"Limit must be a positive integer, got {self.count}")

    @property
    def is_all(self) -> bool:
        return self.count is None

    @classmethod
    def parse(cls, value: Union[str, int, "Limit"]) -> "Limit":
        """Parse ``"all"`` or a positive integer.

        Raises:
            ValueError: ``value`` is neither.

        Examples:
            >>> Limit.parse("all").is_all
            True
            >>> Limit.parse("3").count
            3
        """
        if isinstance(value, Limit):
            return value
        if isinstance(value, bool):
            raise ValueError(f'Expected "{LIMIT_ALL}" or a number, got {value!r}')
        if isinstance(value, int):
            return cls(value)

        text = str(value).strip().lower()
        if text == LIMIT_ALL:
            return cls(None)
        try:
            return cls(int(text))
        except ValueError:
            raise ValueError(f'Expected "{LIMIT_ALL}" or a number, got {value!r}') from None

    def apply(self, items: Sequence[T]) -> List[T]:
        """Return the first ``count`` items, or all of them."""
        if self.count is None:
            return list(items)
        return list(items[: self.count])

    def __str__(self) -> str:
        return LIMIT_ALL if self.count is None else str(self.count)


#: Default candidate limit.
DEFAULT_CANDIDATE_LIMIT = Limit(DEFAULT_LIMIT)

#: Keep every candidate.
ALL_CANDIDATES = Limit(None)
