"""End-to-end tests for the cratecompat command line.

The registry is replaced by an in-memory transport; everything else
(config loading, cache directory, engine, rendering) runs for real.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import Generator
from unittest.mock import patch

import pytest
from click.testing import CliRunner

from conftest import StubTransport
from cratecompat.cli import cli, main
from cratecompat.__version__ import __version__
from cratecompat.utils.console import reconfigure_console
from cratecompat.utils.logger import disable_logging


@pytest.fixture
def runner(monkeypatch: pytest.MonkeyPatch) -> CliRunner:
    monkeypatch.delenv("CRATECOMPAT_CONFIG", raising=False)
    monkeypatch.delenv("CRATECOMPAT_CACHE_DIR", raising=False)
    monkeypatch.setenv("NO_COLOR", "1")
    return CliRunner()


@pytest.fixture(autouse=True)
def fresh_console() -> Generator[None, None, None]:
    reconfigure_console()
    yield
    reconfigure_console()
    # The CLI binds its log handler to the runner's stderr, closed after invoke
    disable_logging()


@pytest.fixture
def registry(scenario_transport: StubTransport) -> Generator[StubTransport, None, None]:
    with patch(
        "cratecompat.commands.compat._build_transport",
        return_value=scenario_transport,
    ):
        yield scenario_transport


def _invoke(runner: CliRunner, cache_dir: Path, *args: str):
    return runner.invoke(cli, ["--no-color", "--cache-dir", str(cache_dir), *args])


@pytest.mark.integration
class TestCompatCommand:
    """Tests for ``cratecompat compat``."""

    def test_json_output(
        self, runner: CliRunner, registry: StubTransport, scenario_lockfile: Path, cache_dir: Path
    ) -> None:
        result = _invoke(runner, cache_dir, "compat", "t", "-p", str(scenario_lockfile), "-f", "json")

        assert result.exit_code == 0, result.output
        data = json.loads(result.stdout)
        assert data["outcome"] == "compatible"
        assert [c["version"] for c in data["candidates"]] == ["1.6.0", "1.5.0"]

    def test_simple_output(
        self, runner: CliRunner, registry: StubTransport, scenario_lockfile: Path, cache_dir: Path
    ) -> None:
        result = _invoke(
            runner, cache_dir, "compat", "t", "-p", str(scenario_lockfile), "-f", "simple", "-i"
        )

        assert result.exit_code == 0
        assert result.stdout.splitlines() == [
            "1.7.0    min-rust-version = 1.70    (yanked)",
            "1.6.0    min-rust-version = 1.70",
            "1.5.0    min-rust-version = 1.60",
        ]

    def test_count_and_max_version(
        self, runner: CliRunner, registry: StubTransport, scenario_lockfile: Path, cache_dir: Path
    ) -> None:
        result = _invoke(
            runner,
            cache_dir,
            "compat", "t",
            "--path", str(scenario_lockfile),
            "--count", "all",
            "--max-version", "1.65",
            "--format", "json",
        )

        data = json.loads(result.stdout)
        assert [c["version"] for c in data["candidates"]] == ["1.5.0"]

    def test_table_output(
        self, runner: CliRunner, registry: StubTransport, scenario_lockfile: Path, cache_dir: Path
    ) -> None:
        result = _invoke(runner, cache_dir, "compat", "t", "-p", str(scenario_lockfile))

        assert result.exit_code == 0
        assert "Compatible versions of t" in result.stdout
        assert "Outcome: compatible" in result.stdout
        assert "2 compatible version(s) of t shown" in result.stdout

    def test_toolchain_excluded_is_not_an_error(
        self, runner: CliRunner, registry: StubTransport, scenario_lockfile: Path, cache_dir: Path
    ) -> None:
        result = _invoke(
            runner, cache_dir, "compat", "t", "-p", str(scenario_lockfile), "-m", "1.50", "-f", "json"
        )

        assert result.exit_code == 0
        assert json.loads(result.stdout)["outcome"] == "toolchain_excluded"

    def test_metadata_is_cached(
        self, runner: CliRunner, registry: StubTransport, scenario_lockfile: Path, cache_dir: Path
    ) -> None:
        for _ in range(2):
            _invoke(runner, cache_dir, "compat", "t", "-p", str(scenario_lockfile), "-f", "json")

        assert registry.fetch_count("t") == 1
        assert (cache_dir / "versions" / "t.json").is_file()

    def test_refresh(
        self, runner: CliRunner, registry: StubTransport, scenario_lockfile: Path, cache_dir: Path
    ) -> None:
        _invoke(runner, cache_dir, "compat", "t", "-p", str(scenario_lockfile), "-f", "json")
        _invoke(runner, cache_dir, "compat", "t", "-p", str(scenario_lockfile), "-f", "json", "--refresh")

        assert registry.fetch_count("t") == 2

    def test_config_file_defaults(
        self,
        runner: CliRunner,
        registry: StubTransport,
        scenario_lockfile: Path,
        cache_dir: Path,
        tmp_path: Path,
    ) -> None:
        config = tmp_path / "cratecompat.toml"
        config.write_text("[cratecompat]\ninclude_yanked = true\nlimit = 1\n", encoding="utf-8")

        result = runner.invoke(
            cli,
            ["--config", str(config), "--cache-dir", str(cache_dir),
             "compat", "t", "-p", str(scenario_lockfile), "-f", "json"],
        )

        data = json.loads(result.stdout)
        assert [c["version"] for c in data["candidates"]] == ["1.7.0"]

    @pytest.mark.parametrize(
        "option, value",
        [("--count", "0"), ("--count", "lots"), ("--max-version", "stable")],
    )
    def test_invalid_options(
        self, runner: CliRunner, cache_dir: Path, option: str, value: str
    ) -> None:
        result = _invoke(runner, cache_dir, "compat", "t", option, value)

        assert result.exit_code == 2

    def test_missing_lockfile(
        self, runner: CliRunner, registry: StubTransport, tmp_path: Path, cache_dir: Path
    ) -> None:
        result = _invoke(runner, cache_dir, "compat", "t", "-p", str(tmp_path / "Cargo.lock"))

        assert result.exit_code == 1
        assert "Lockfile not found" in result.output

    def test_unknown_crate(
        self, runner: CliRunner, registry: StubTransport, scenario_lockfile: Path, cache_dir: Path
    ) -> None:
        result = _invoke(runner, cache_dir, "compat", "nope", "-p", str(scenario_lockfile))

        assert result.exit_code == 1
        assert "unavailable" in result.output


@pytest.mark.integration
class TestCacheCommand:
    """Tests for ``cratecompat cache``."""

    def test_path(self, runner: CliRunner, cache_dir: Path) -> None:
        result = _invoke(runner, cache_dir, "cache", "path")

        assert result.exit_code == 0
        assert result.stdout.strip() == str(cache_dir)

    def test_clear_named_and_all(self, runner: CliRunner, cache_dir: Path) -> None:
        versions = cache_dir / "versions"
        versions.mkdir(parents=True)
        for name in ("serde", "syn", "rand"):
            (versions / f"{name}.json").write_text("{}", encoding="utf-8")

        named = _invoke(runner, cache_dir, "cache", "clear", "serde")
        everything = _invoke(runner, cache_dir, "cache", "clear")

        assert "Removed 1 cache entry" in named.stdout
        assert "Removed 2 cache entries" in everything.stdout
        assert not versions.exists()

    def test_clear_invalid_name(self, runner: CliRunner, cache_dir: Path) -> None:
        result = _invoke(runner, cache_dir, "cache", "clear", "../evil")

        assert result.exit_code == 1


@pytest.mark.unit
class TestGlobalOptions:
    """Tests for the top-level group and main()."""

    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--version"])

        assert result.exit_code == 0
        assert result.output.strip() == f"cratecompat {__version__}"

    def test_help_lists_commands(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--help"])

        assert "compat" in result.output
        assert "cache" in result.output

    def test_invalid_config_exits_one(self, runner: CliRunner, tmp_path: Path) -> None:
        config = tmp_path / "cratecompat.toml"
        config.write_text("[cratecompat]\nbogus = 1\n", encoding="utf-8")

        result = runner.invoke(cli, ["--config", str(config), "cache", "path"])

        assert result.exit_code == 1
        assert "Unknown configuration keys" in result.output

    def test_cache_dir_from_environment(
        self, runner: CliRunner, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("CRATECOMPAT_CACHE_DIR", str(tmp_path / "env-cache"))

        result = runner.invoke(cli, ["cache", "path"])

        assert result.stdout.strip() == str(tmp_path / "env-cache")

    @pytest.mark.parametrize(
        "raised, code",
        [(KeyboardInterrupt(), 130), (RuntimeError("boom"), 1), (SystemExit(3), 3)],
        ids=["interrupt", "unexpected", "system-exit"],
    )
    def test_main_exit_codes(self, raised: BaseException, code: int) -> None:
        with patch("cratecompat.cli.cli", side_effect=raised):
            assert main() == code

    def test_main_usage_error(self, runner: CliRunner) -> None:
        with patch("sys.argv", ["cratecompat", "compat"]):
            assert main() == 2
