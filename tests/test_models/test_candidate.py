from __future__ import annotations

import pytest

from cratecompat.utils.version_utils import parse_semver
from cratecompat.models.version import VersionRecord
from cratecompat.models.candidate import (
    ALL_CANDIDATES,
    DEFAULT_CANDIDATE_LIMIT,
    CandidateResult,
    Limit,
)


@pytest.mark.unit
class TestCandidateResult:
    """Tests for CandidateResult."""

    def test_from_record(self) -> None:
        record = VersionRecord(parse_semver("1.5.0"), yanked=True, min_toolchain_version="1.60")

        candidate = CandidateResult.from_record(record)

        assert candidate.version == parse_semver("1.5.0")
        assert candidate.yanked is True
        assert candidate.min_toolchain_version == "1.60"

    def test_str_with_toolchain(self) -> None:
        candidate = CandidateResult(parse_semver("1.5.0"), min_toolchain_version="1.60")

        assert str(candidate) == "1.5.0    min-rust-version = 1.60"

    def test_str_without_toolchain(self) -> None:
        assert str(CandidateResult(parse_semver("1.5.0"))) == "1.5.0"

    def test_to_json(self) -> None:
        assert CandidateResult(parse_semver("1.5.0")).to_json() == {
            "version": "1.5.0",
            "min_toolchain_version": None,
            "yanked": False,
        }


@pytest.mark.unit
class TestLimit:
    """Tests for Limit."""

    def test_defaults(self) -> None:
        assert DEFAULT_CANDIDATE_LIMIT.count == 5
        assert ALL_CANDIDATES.is_all

    @pytest.mark.parametrize("value", ["all", "ALL", " all "])
    def test_parse_all(self, value: str) -> None:
        assert Limit.parse(value).is_all

    @pytest.mark.parametrize("value, expected", [("3", 3), (7, 7), (" 2 ", 2)])
    def test_parse_number(self, value, expected: int) -> None:
        assert Limit.parse(value).count == expected

    @pytest.mark.parametrize("value", ["0", "-1", "many", "", True, 0])
    def test_parse_invalid(self, value) -> None:
        with pytest.raises(ValueError):
            Limit.parse(value)

    def test_parse_passes_limit_through(self) -> None:
        assert Limit.parse(ALL_CANDIDATES) is ALL_CANDIDATES

    def test_apply(self) -> None:
        items = [5, 4, 3, 2, 1]

        assert Limit(2).apply(items) == [5, 4]
        assert Limit(10).apply(items) == items
        assert ALL_CANDIDATES.apply(items) == items

    def test_str(self) -> None:
        assert str(ALL_CANDIDATES) == "all"
        assert str(Limit(3)) == "3"
