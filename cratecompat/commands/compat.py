"""Compat command implementation for cratecompat.

Lists the published versions of one dependency that every package
depending on it in ``Cargo.lock`` can accept.

The command wires three pieces together for one invocation:

1. an :class:`HTTPClient` and the sparse-index transport built on it;
2. the persistent :class:`RegistryCache` shared by every lookup;
3. the :class:`CompatibilityEngine`, which parses the lockfile, extracts
   each dependent's requirement, intersects them and filters the result.

Typical usage::

    # Five newest compatible versions of syn
    $ cratecompat compat syn

    # Everything, yanked included, usable with Rust 1.65
    $ cratecompat compat syn --count all --include-yanked --max-version 1.65

    # Machine-readable output
    $ cratecompat compat syn --format json
"""

from __future__ import annotations

import json
import click
import asyncio
from pathlib import Path
from typing import Dict, Optional

from cratecompat.config import CrateCompatConfig
from cratecompat.constants import DEFAULT_LOCKFILE, LIMIT_ALL
from cratecompat.context import CrateCompatContext, pass_context
from cratecompat.exceptions import CrateCompatError, InvalidToolchainVersion
from cratecompat.models.candidate import CandidateResult, Limit
from cratecompat.models.requirement import DependentConstraint
from cratecompat.core import (
    CompatibilityEngine,
    CompatReport,
    CompatRequest,
    Outcome,
    RegistryCache,
    RegistryTransport,
    SparseIndexTransport,
)
from cratecompat.utils import (
    HTTPClient,
    colorize_outcome,
    get_logger,
    get_raw_console,
    parse_toolchain_version,
    print_error,
    print_success,
    print_table,
    print_warning,
)

logger = get_logger("commands.compat")


def _parse_count(ctx: click.Context, param: click.Parameter, value: Optional[str]) -> Optional[Limit]:
    if value is None:
        return None
    try:
        return Limit.parse(value)
    except ValueError:
        raise click.BadParameter(f'expected "{LIMIT_ALL}" or a positive number, got {value!r}') from None


def _validate_max_version(
    ctx: click.Context,
    param: click.Parameter,
    value: Optional[str],
) -> Optional[str]:
    if value is None:
        return None
    try:
        parse_toolchain_version(value)
    except InvalidToolchainVersion:
        raise click.BadParameter(f"expected a version like 1.60 or 1.60.1, got {value!r}") from None
    return value


@click.command()
@click.argument("dependency")
@click.option(
    "--path",
    "-p",
    "lockfile",
    type=click.Path(dir_okay=False, path_type=Path),
    default=DEFAULT_LOCKFILE,
    show_default=True,
    help="Path to the Cargo.lock file.",
)
@click.option(
    "--include-yanked",
    "-i",
    is_flag=True,
    default=None,
    help="Include yanked versions in the result.",
)
@click.option(
    "--count",
    "--limit",
    "-c",
    "limit",
    metavar="N|all",
    callback=_parse_count,
    help="Number of versions to show (default 5), or 'all'.",
)
@click.option(
    "--max-version",
    "-m",
    metavar="X.Y[.Z]",
    callback=_validate_max_version,
    help="Only show versions buildable with this Rust version.",
)
@click.option(
    "--refresh",
    is_flag=True,
    help="Refetch registry metadata even if the cache is fresh.",
)
@click.option(
    "--format",
    "-f",
    type=click.Choice(["table", "simple", "json"], case_sensitive=False),
    default="table",
    help="Output format.",
)
@pass_context
def compat(
    ctx: CrateCompatContext,
    dependency: str,
    lockfile: Path,
    include_yanked: Optional[bool],
    limit: Optional[Limit],
    max_version: Optional[str],
    refresh: bool,
    format: str,
) -> None:
    """List versions of DEPENDENCY compatible with every package using it.

    Reads the lockfile, reconstructs the version requirement each dependent
    declares on DEPENDENCY, and prints the published versions satisfying
    all of them, newest first.

    \b
    Examples:
      cratecompat compat syn
      cratecompat compat rand -p path/to/Cargo.lock -c all
      cratecompat compat serde -m 1.60 -f simple
    """
    config = ctx.config
    request = CompatRequest(
        target=dependency,
        lockfile_path=lockfile,
        include_yanked=config.include_yanked if include_yanked is None else include_yanked,
        max_toolchain_version=max_version or config.max_toolchain_version,
        limit=limit or config.limit,
        refresh=refresh,
    )
    logger.debug("Request: %s", request)

    try:
        report = asyncio.run(_compat_async(config, request))
    except CrateCompatError as exc:
        print_error(str(exc))
        raise SystemExit(1) from exc

    if format == "json":
        click.echo(json.dumps(report.to_json(), indent=2))
    elif format == "simple":
        _display_simple(report)
    else:
        _display_table(report, request)


# ---------------------------------------------------------------------------
# Async orchestration
# ---------------------------------------------------------------------------


def _build_transport(config: CrateCompatConfig, http: HTTPClient) -> RegistryTransport:
    """Return the registry transport for this invocation."""
    return SparseIndexTransport(http, config.index_url)


async def _compat_async(config: CrateCompatConfig, request: CompatRequest) -> CompatReport:
    async with HTTPClient(
        timeout=config.timeout,
        max_concurrency=config.max_concurrency,
    ) as http:
        cache = RegistryCache(
            _build_transport(config, http),
            config.cache_dir,
            max_age=config.cache_max_age,
        )
        return await CompatibilityEngine(cache).check(request)


# ---------------------------------------------------------------------------
# Display renderers
# ---------------------------------------------------------------------------


def _display_simple(report: CompatReport) -> None:
    """Print one candidate per line, as ``cargo``-style text.

    Example::

        1.7.0    min-rust-version = 1.60
        1.6.0    min-rust-version = 1.60
        1.5.0
    """
    for warning in report.warnings:
        click.echo(f"warning: {warning}", err=True)

    for candidate in report.candidates:
        suffix = "    (yanked)" if candidate.yanked else ""
        click.echo(f"{candidate}{suffix}")

    if report.conflict is not None:
        click.echo(f"error: {report.conflict.message}", err=True)
    for note in report.notes:
        click.echo(f"note: {note}", err=True)


def _display_table(report: CompatReport, request: CompatRequest) -> None:
    """Render candidates as a Rich table followed by a summary."""
    console = get_raw_console()

    for warning in report.warnings:
        print_warning(warning)

    if report.constraints:
        print_table(
            [_constraint_row(c) for c in report.constraints],
            title=f"Dependents of {report.target}",
            column_styles={
                "Dependent": {"style": "bold cyan", "no_wrap": True},
                "Version": {"style": "dim"},
                "Requirement": {"justify": "left"},
            },
        )

    if report.candidates:
        print_table(
            [_candidate_row(c) for c in report.candidates],
            title=f"Compatible versions of {report.target}",
            column_styles={
                "Version": {"style": "version", "no_wrap": True},
                "Min Rust": {"justify": "center"},
                "Yanked": {"justify": "center"},
            },
        )

    console.print(f"Outcome: {colorize_outcome(report.outcome.value)}")

    if report.outcome is Outcome.COMPATIBLE:
        shown = len(report.candidates)
        print_success(f"{shown} compatible version(s) of {report.target} shown (limit {request.limit})")
    elif report.conflict is not None:
        print_error(report.conflict.message)

    for note in report.notes:
        console.print(f"[dim]{note}[/dim]")


def _constraint_row(constraint: DependentConstraint) -> Dict[str, str]:
    return {
        "Dependent": constraint.dependent,
        "Version": constraint.version,
        "Requirement": constraint.requirement.raw,
    }


def _candidate_row(candidate: CandidateResult) -> Dict[str, str]:
    return {
        "Version": str(candidate.version),
        "Min Rust": candidate.min_toolchain_version or "-",
        "Yanked": "[yellow]yes[/yellow]" if candidate.yanked else "-",
    }

