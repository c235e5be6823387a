"""Command: show what a remote coverage API can do."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import click

from covrest.commands._base import CovCommand

if TYPE_CHECKING:
    from covrest.commands._context import AppContext


@click.command(
    cls=CovCommand,
    examples="""\
  covrest capabilities https://example.org/coverages
  covrest --json capabilities https://example.org/coverages/1""",
)
@click.argument("url")
@click.pass_obj
def capabilities(app: AppContext, url: str) -> None:
    """Load URL and print its discovered capability table."""
    from covrest.services import operations

    result = asyncio.run(operations.capabilities(url, app.settings, plugins=app.plugins))
    app.emit(result)
