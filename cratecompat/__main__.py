"""
Executable module for cratecompat.

Running:
    python -m cratecompat

is equivalent to:
    cratecompat

This module simply forwards execution to the CLI entrypoint defined in
`cratecompat.cli`.
"""

from __future__ import annotations

import sys


def _print_startup_error(exc: ImportError) -> None:
    """Explain on stderr why the CLI could not be imported."""
    sys.stderr.write("cratecompat could not start: a dependency failed to import.\n")
    sys.stderr.write(f"Python version : {sys.version}\n")
    try:
        from cratecompat.__version__ import __version__

        sys.stderr.write(f"cratecompat version: {__version__}\n")
    except ImportError:
        sys.stderr.write("cratecompat version: <unknown>\n")
    sys.stderr.write(f"ImportError: {exc}\n")


def main() -> int:
    """
    Main entrypoint when executing `python -m cratecompat`.

    Returns:
        Exit code returned by the CLI.
    """
    try:
        # Import lazily so dependencies are only loaded during CLI use
        from cratecompat.cli import main as cli_main
    except ImportError as exc:
        _print_startup_error(exc)
        return 1

    return cli_main()


if __name__ == "__main__":
    sys.exit(main())
