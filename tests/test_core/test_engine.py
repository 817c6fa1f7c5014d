"""Integration tests for cratecompat.core.engine.

Test Coverage:
- Compatible, unsatisfiable, only-yanked and toolchain-excluded outcomes
- Target without dependents
- Unavailable dependents reported as warnings
- Refresh, invalid input and fatal errors
- JSON representation of reports
"""

from __future__ import annotations

import json
import threading
from pathlib import Path
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from conftest import CRATES_IO, StubTransport, lockfile_text, record
from cratecompat.utils.http import HTTPClient
from cratecompat.core.registry import SparseIndexTransport
from cratecompat.core.lockfile import parse_lockfile
from cratecompat.core.registry_cache import RegistryCache
from cratecompat.models.candidate import ALL_CANDIDATES, Limit
from cratecompat.core.resolver import CONFLICT_CAVEAT
from cratecompat.core.engine import (
    CompatibilityEngine,
    CompatRequest,
    Outcome,
)
from cratecompat.exceptions import (
    InvalidCrateName,
    InvalidToolchainVersion,
    LockfileNotFound,
    RegistryUnavailable,
)


def _write_lockfile(directory: Path, *packages) -> Path:
    path = directory / "Cargo.lock"
    path.write_text(lockfile_text(*packages), encoding="utf-8")
    return path


@pytest.fixture
def engine(scenario_cache: RegistryCache) -> CompatibilityEngine:
    return CompatibilityEngine(scenario_cache)


@pytest.mark.integration
class TestOutcomes:
    """One test per outcome of a check."""

    @pytest.mark.asyncio
    async def test_compatible(self, engine: CompatibilityEngine, scenario_lockfile: Path) -> None:
        report = await engine.check(CompatRequest("t", scenario_lockfile))

        assert report.outcome is Outcome.COMPATIBLE
        assert [str(c.version) for c in report.candidates] == ["1.6.0", "1.5.0"]
        assert [c.dependent for c in report.constraints] == ["a", "b"]
        assert report.warnings == []
        assert report.conflict is None

    @pytest.mark.asyncio
    async def test_yanked_included_on_request(
        self, engine: CompatibilityEngine, scenario_lockfile: Path
    ) -> None:
        report = await engine.check(CompatRequest("t", scenario_lockfile, include_yanked=True))

        assert [str(c.version) for c in report.candidates] == ["1.7.0", "1.6.0", "1.5.0"]
        assert report.candidates[0].yanked is True

    @pytest.mark.asyncio
    async def test_limit(self, engine: CompatibilityEngine, scenario_lockfile: Path) -> None:
        report = await engine.check(CompatRequest("t", scenario_lockfile, limit=Limit(1)))

        assert [str(c.version) for c in report.candidates] == ["1.6.0"]

    @pytest.mark.asyncio
    async def test_toolchain_ceiling(
        self, engine: CompatibilityEngine, scenario_lockfile: Path
    ) -> None:
        report = await engine.check(
            CompatRequest("t", scenario_lockfile, max_toolchain_version="1.65")
        )

        assert report.outcome is Outcome.COMPATIBLE
        assert [str(c.version) for c in report.candidates] == ["1.5.0"]

    @pytest.mark.asyncio
    async def test_toolchain_excluded(
        self, engine: CompatibilityEngine, scenario_lockfile: Path
    ) -> None:
        report = await engine.check(
            CompatRequest("t", scenario_lockfile, max_toolchain_version="1.56")
        )

        assert report.outcome is Outcome.TOOLCHAIN_EXCLUDED
        assert report.candidates == []
        assert report.notes == [
            "Every compatible version needs a toolchain newer than 1.56; "
            "the oldest, 1.5.0, requires 1.60"
        ]

    @pytest.mark.asyncio
    async def test_only_yanked(self, tmp_path: Path, cache_dir: Path) -> None:
        lockfile = _write_lockfile(
            tmp_path,
            ("a", "0.1.0", CRATES_IO, ["t"]),
            ("t", "1.0.0", CRATES_IO, []),
        )
        transport = StubTransport(
            {
                "a": [record("0.1.0", deps=[("t", ">=1.5")])],
                "t": [record("1.0.0"), record("1.5.0", yanked=True)],
            }
        )
        engine = CompatibilityEngine(RegistryCache(transport, cache_dir))

        report = await engine.check(CompatRequest("t", lockfile))

        assert report.outcome is Outcome.ONLY_YANKED
        assert report.candidates == []
        assert "include yanked versions" in report.notes[0]

    @pytest.mark.asyncio
    async def test_unsatisfiable(self, tmp_path: Path, cache_dir: Path) -> None:
        lockfile = _write_lockfile(
            tmp_path,
            ("a", "0.1.0", CRATES_IO, ["t 1.0.0"]),
            ("b", "0.2.0", CRATES_IO, ["t 2.0.0"]),
            ("t", "1.0.0", CRATES_IO, []),
            ("t", "2.0.0", CRATES_IO, []),
        )
        transport = StubTransport(
            {
                "a": [record("0.1.0", deps=[("t", "^1.0")])],
                "b": [record("0.2.0", deps=[("t", "^2.0")])],
                "t": [record("1.0.0"), record("2.0.0")],
            }
        )
        engine = CompatibilityEngine(RegistryCache(transport, cache_dir))

        report = await engine.check(CompatRequest("t", lockfile))

        assert report.outcome is Outcome.UNSATISFIABLE
        assert report.candidates == []
        assert {c.dependent for c in report.conflict.culprits} == {"a", "b"}
        assert report.notes == [CONFLICT_CAVEAT]


@pytest.mark.integration
class TestDegradedChecks:
    """Checks that complete with warnings."""

    @pytest.mark.asyncio
    async def test_local_dependent_constraint(
        self, engine: CompatibilityEngine, scenario_lockfile: Path
    ) -> None:
        report = await engine.check(CompatRequest("a", scenario_lockfile, limit=ALL_CANDIDATES))

        assert report.outcome is Outcome.COMPATIBLE
        assert [str(c) for c in report.constraints] == ["app 0.1.0 requires 0.1"]
        assert [str(c.version) for c in report.candidates] == ["0.1.0"]

    @pytest.mark.asyncio
    async def test_missing_manifest_for_local_dependent(
        self, engine: CompatibilityEngine, scenario_lockfile: Path
    ) -> None:
        (scenario_lockfile.parent / "Cargo.toml").unlink()

        report = await engine.check(CompatRequest("a", scenario_lockfile))

        assert report.constraints == []
        assert report.warnings == [
            "Unknown constraint from app 0.1.0: no Cargo.toml found for local package"
        ]
        assert [str(c.version) for c in report.candidates] == ["0.1.0"]

    @pytest.mark.asyncio
    async def test_workspace_listing_its_root_as_member(
        self, tmp_path: Path, cache_dir: Path
    ) -> None:
        lockfile = _write_lockfile(
            tmp_path,
            ("app", "0.1.0", None, ["t"]),
            ("t", "1.2.0", CRATES_IO, []),
        )
        (tmp_path / "Cargo.toml").write_text(
            '[package]\nname = "app"\nversion = "0.1.0"\n\n'
            '[workspace]\nmembers = ["."]\n\n'
            '[dependencies]\nt = "1.1"\n',
            encoding="utf-8",
        )
        transport = StubTransport({"t": [record("1.0.0"), record("1.2.0")]})
        engine = CompatibilityEngine(RegistryCache(transport, cache_dir))

        report = await engine.check(CompatRequest("t", lockfile))

        assert report.outcome is Outcome.COMPATIBLE
        assert [str(c) for c in report.constraints] == ["app 0.1.0 requires 1.1"]
        assert [str(c.version) for c in report.candidates] == ["1.2.0"]

    @pytest.mark.asyncio
    async def test_malformed_index_data_of_one_dependent(
        self, tmp_path: Path, cache_dir: Path
    ) -> None:
        lockfile = _write_lockfile(
            tmp_path,
            ("a", "0.1.0", CRATES_IO, ["t"]),
            ("b", "0.2.0", CRATES_IO, ["t"]),
            ("t", "1.2.0", CRATES_IO, []),
        )
        documents = {
            "a": json.dumps({"name": "a", "vers": "0.1.0", "deps": [{"req": "^1"}]}),
            "b": json.dumps(
                {"name": "b", "vers": "0.2.0", "deps": [{"name": "t", "req": "^1.0"}]}
            ),
            "t": "\n".join(
                json.dumps({"name": "t", "vers": v, "deps": []}) for v in ("1.0.0", "1.2.0")
            ),
        }
        http = MagicMock(spec=HTTPClient)
        http.get_text = AsyncMock(side_effect=lambda url: documents[url.rsplit("/", 1)[-1]])
        engine = CompatibilityEngine(RegistryCache(SparseIndexTransport(http), cache_dir))

        report = await engine.check(CompatRequest("t", lockfile))

        assert [u.dependent for u in report.unavailable] == ["a"]
        assert [str(c) for c in report.constraints] == ["b 0.2.0 requires ^1.0"]
        assert [str(c.version) for c in report.candidates] == ["1.2.0", "1.0.0"]

    @pytest.mark.asyncio
    async def test_unreferenced_crate_warns(self, tmp_path: Path, cache_dir: Path) -> None:
        lockfile = _write_lockfile(tmp_path, ("app", "0.1.0", None, []))
        transport = StubTransport({"rand": [record("0.8.0"), record("0.7.0")]})
        engine = CompatibilityEngine(RegistryCache(transport, cache_dir))

        report = await engine.check(CompatRequest("rand", lockfile))

        assert report.outcome is Outcome.COMPATIBLE
        assert [str(c.version) for c in report.candidates] == ["0.8.0", "0.7.0"]
        assert report.warnings == [
            "No package in the lockfile depends on 'rand'; "
            "every published version is a candidate"
        ]

    @pytest.mark.asyncio
    async def test_unavailable_dependent_is_reported(
        self, scenario_lockfile: Path, scenario_transport: StubTransport, cache_dir: Path
    ) -> None:
        scenario_transport.failing.add("b")
        engine = CompatibilityEngine(RegistryCache(scenario_transport, cache_dir))

        report = await engine.check(CompatRequest("t", scenario_lockfile))

        assert [c.dependent for c in report.constraints] == ["a"]
        assert [u.dependent for u in report.unavailable] == ["b"]
        assert len(report.warnings) == 1
        assert report.warnings[0].startswith("Unknown constraint from b 0.2.0")
        assert [str(c.version) for c in report.candidates][:2] == ["1.6.0", "1.5.0"]


@pytest.mark.integration
class TestRequestHandling:
    """Refresh, validation and fatal errors."""

    @pytest.mark.asyncio
    async def test_refresh_refetches_target_and_dependents(
        self,
        engine: CompatibilityEngine,
        scenario_lockfile: Path,
        scenario_transport: StubTransport,
    ) -> None:
        await engine.check(CompatRequest("t", scenario_lockfile))
        await engine.check(CompatRequest("t", scenario_lockfile, refresh=True))

        assert scenario_transport.fetch_count("t") == 2
        assert scenario_transport.fetch_count("a") == 2
        assert scenario_transport.fetch_count("b") == 2

    @pytest.mark.asyncio
    async def test_second_check_uses_cache(
        self,
        engine: CompatibilityEngine,
        scenario_lockfile: Path,
        scenario_transport: StubTransport,
    ) -> None:
        await engine.check(CompatRequest("t", scenario_lockfile))
        await engine.check(CompatRequest("t", scenario_lockfile))

        assert scenario_transport.fetch_count("t") == 1

    @pytest.mark.asyncio
    async def test_lockfile_parsed_in_worker_thread(
        self, engine: CompatibilityEngine, scenario_lockfile: Path
    ) -> None:
        threads = []

        def recording_parse(path):
            threads.append(threading.get_ident())
            return parse_lockfile(path)

        with patch("cratecompat.core.engine.parse_lockfile", side_effect=recording_parse):
            report = await engine.check(CompatRequest("t", scenario_lockfile))

        assert report.outcome is Outcome.COMPATIBLE
        assert threads and threads[0] != threading.get_ident()

    @pytest.mark.asyncio
    async def test_invalid_toolchain(
        self,
        engine: CompatibilityEngine,
        scenario_lockfile: Path,
        scenario_transport: StubTransport,
    ) -> None:
        with pytest.raises(InvalidToolchainVersion):
            await engine.check(CompatRequest("t", scenario_lockfile, max_toolchain_version="1.x"))

        assert scenario_transport.calls == []

    @pytest.mark.asyncio
    async def test_missing_lockfile(self, engine: CompatibilityEngine, tmp_path: Path) -> None:
        with pytest.raises(LockfileNotFound):
            await engine.check(CompatRequest("t", tmp_path / "Cargo.lock"))

    @pytest.mark.asyncio
    async def test_invalid_target_name(
        self, engine: CompatibilityEngine, scenario_lockfile: Path
    ) -> None:
        with pytest.raises(InvalidCrateName):
            await engine.check(CompatRequest("../t", scenario_lockfile))

    @pytest.mark.asyncio
    async def test_unknown_target(self, engine: CompatibilityEngine, scenario_lockfile: Path) -> None:
        with pytest.raises(RegistryUnavailable):
            await engine.check(CompatRequest("nope", scenario_lockfile))


@pytest.mark.integration
class TestReportJson:
    """Tests for CompatReport.to_json."""

    @pytest.mark.asyncio
    async def test_serializable(self, engine: CompatibilityEngine, scenario_lockfile: Path) -> None:
        report = await engine.check(CompatRequest("t", scenario_lockfile))

        data = json.loads(json.dumps(report.to_json()))

        assert data["target"] == "t"
        assert data["outcome"] == "compatible"
        assert data["candidates"][0] == {
            "version": "1.6.0",
            "min_toolchain_version": "1.70",
            "yanked": False,
        }
        assert data["constraints"][1] == {
            "dependent": "b",
            "version": "0.2.0",
            "requirement": "^1.5",
        }
        assert data["conflict"] is None
