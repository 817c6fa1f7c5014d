"""
Shared context object for cratecompat CLI commands.

This module defines the global Click context used to share configuration
and runtime options across CLI subcommands.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

import click

from cratecompat.config import CrateCompatConfig


class CrateCompatContext:
    """Global context object for cratecompat CLI commands.

    An instance of this class is created once per CLI invocation and
    passed to commands using Click's context mechanism.

    Attributes:
        config_path: Path to the configuration file, if one was loaded.
        verbose: Verbosity level (0=WARNING, 1=INFO, 2+=DEBUG).
        color: Whether colored terminal output is enabled.
        config: Effective configuration, CLI overrides applied.
    """

    __slots__ = ("config_path", "verbose", "color", "config")

    def __init__(self) -> None:
        self.config_path: Optional[Path] = None
        self.verbose: int = 0
        self.color: bool = True
        self.config: CrateCompatConfig = CrateCompatConfig()


#: Click decorator for injecting :class:`CrateCompatContext` into commands.
pass_context = click.make_pass_decorator(CrateCompatContext, ensure=True)
