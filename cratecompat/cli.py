"""
Command-line interface for cratecompat.

This module provides the main CLI entry point and handles global options,
configuration loading, and command registration.
"""

from __future__ import annotations

import os
import sys
import logging
from pathlib import Path
from typing import Optional

import click

from cratecompat.config import load_config
from cratecompat.__version__ import __version__
from cratecompat.context import CrateCompatContext
from cratecompat.exceptions import ConfigError, CrateCompatError
from cratecompat.utils.console import print_error, print_warning, reconfigure_console
from cratecompat.utils.logger import get_logger, level_for_verbosity, setup_logging

logger = get_logger("cli")


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.option(
    "--config",
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
    help="Path to configuration file.",
    envvar="CRATECOMPAT_CONFIG",
)
@click.option(
    "--verbose",
    "-v",
    count=True,
    help="Increase verbosity (can be repeated: -v, -vv).",
)
@click.option(
    "--color/--no-color",
    default=True,
    help="Enable or disable colored output.",
    envvar="CRATECOMPAT_COLOR",
)
@click.option(
    "--cache-dir",
    type=click.Path(file_okay=False, path_type=Path),
    help="Registry metadata cache directory.",
    envvar="CRATECOMPAT_CACHE_DIR",
)
@click.version_option(
    version=__version__,
    prog_name="cratecompat",
    message="%(prog)s %(version)s",
)
@click.pass_context
def cli(
    ctx: click.Context,
    config: Optional[Path],
    verbose: int,
    color: bool,
    cache_dir: Optional[Path],
) -> None:
    """cratecompat — find the versions of a crate your Cargo.lock can accept.

    \b
    Available commands:
      cratecompat compat DEPENDENCY   List compatible versions
      cratecompat cache path          Show the cache directory
      cratecompat cache clear         Remove cached registry metadata

    \b
    Examples:
      cratecompat compat syn
      cratecompat compat rand --count all
      cratecompat -v compat serde --max-version 1.60

    Use ``cratecompat COMMAND --help`` for command-specific options.
    """
    _configure_logging(verbose)

    try:
        loaded_config = load_config(config)
    except ConfigError as exc:
        print_error(str(exc))
        raise SystemExit(1) from exc

    if cache_dir is not None:
        loaded_config.cache_dir = cache_dir.expanduser()

    crate_ctx = CrateCompatContext()
    crate_ctx.config_path = config or loaded_config.source_path
    crate_ctx.color = color
    crate_ctx.verbose = verbose
    crate_ctx.config = loaded_config
    ctx.obj = crate_ctx

    # Respect NO_COLOR for downstream libraries
    if color:
        os.environ.pop("NO_COLOR", None)
    else:
        os.environ["NO_COLOR"] = "1"
    reconfigure_console()

    logger.debug("cratecompat v%s", __version__)
    logger.debug("Config path: %s", crate_ctx.config_path)
    logger.debug("Effective configuration: %s", loaded_config.to_log_dict())
    logger.debug("Verbosity: %s | Color: %s", verbose, color)


def _configure_logging(verbose: int) -> None:
    """Configure logging level based on verbosity flags."""
    level = level_for_verbosity(verbose)
    setup_logging(level=level)
    logger.debug("Logging initialized at %s level", logging.getLevelName(level))


# Register CLI subcommands
from cratecompat.commands.cache import cache  # noqa: E402
from cratecompat.commands.compat import compat  # noqa: E402

cli.add_command(compat)
cli.add_command(cache)


def main() -> int:
    """Main entry point for the cratecompat CLI.

    Returns:
        Exit code:
            0   Success, including "no compatible version" outcomes
            1   Unhandled or application error
            2   Usage error (Click)
            130 Interrupted by user (Ctrl+C)
    """
    try:
        result = cli(standalone_mode=False)
        return result if isinstance(result, int) else 0

    except click.ClickException as exc:
        exc.show()
        return exc.exit_code

    except CrateCompatError as exc:
        print_error(str(exc))
        logger.debug(
            "CrateCompatError details: %s",
            exc.details or "<none>",
            exc_info=True,
        )
        return 1

    except SystemExit as exc:
        return exc.code if isinstance(exc.code, int) else 1

    except (KeyboardInterrupt, click.Abort):
        print_warning("\nOperation cancelled by user")
        return 130

    except Exception as exc:
        print_error(f"Unexpected error: {exc}")
        logger.exception("Unhandled exception in CLI")
        return 1


if __name__ == "__main__":
    sys.exit(main())
