"""Subcommand modules for covrest.

Provides register_commands() which uses deferred imports to keep
``covrest --help`` fast.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    import click


def register_commands(cli: click.Group) -> None:
    """Register all standalone commands on the root CLI group."""
    from covrest.commands.capabilities import capabilities
    from covrest.commands.query import query
    from covrest.commands.subset import subset

    cli.add_command(capabilities)
    cli.add_command(subset)
    cli.add_command(query)
