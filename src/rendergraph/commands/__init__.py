"""Subcommand modules for rendergraph.

register_commands() imports each command module only when the CLI is
built, so ``rendergraph --help`` stays fast.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register the standalone commands on the root CLI group."""
    from rendergraph.commands.check import check
    from rendergraph.commands.connect import connect
    from rendergraph.commands.run import run

    cli.add_command(run)
    cli.add_command(check)
    cli.add_command(connect)
