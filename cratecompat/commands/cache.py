"""Cache command implementation for cratecompat.

Inspect or clear the registry metadata cache::

    $ cratecompat cache path
    /home/me/.cache/cratecompat

    $ cratecompat cache clear syn serde
    $ cratecompat cache clear
"""

from __future__ import annotations

import click
from typing import Tuple

from cratecompat.exceptions import CrateCompatError
from cratecompat.context import CrateCompatContext, pass_context
from cratecompat.core.registry_cache import clear_entries
from cratecompat.utils import get_logger, print_error, print_success

logger = get_logger("commands.cache")


@click.group()
def cache() -> None:
    """Inspect or clear the registry metadata cache."""


@cache.command("path")
@pass_context
def cache_path(ctx: CrateCompatContext) -> None:
    """Print the cache directory."""
    click.echo(str(ctx.config.cache_dir))


@cache.command("clear")
@click.argument("crates", nargs=-1)
@pass_context
def cache_clear(ctx: CrateCompatContext, crates: Tuple[str, ...]) -> None:
    """Remove cached metadata for CRATES, or for every crate."""
    try:
        removed = clear_entries(ctx.config.cache_dir, list(crates) if crates else None)
    except CrateCompatError as exc:
        print_error(str(exc))
        raise SystemExit(1) from exc

    logger.debug("Removed %d cache file(s) from %s", removed, ctx.config.cache_dir)
    print_success(f"Removed {removed} cache entr{'y' if removed == 1 else 'ies'}")
