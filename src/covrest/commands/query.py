"""Command: query a coverage collection."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import click

from covrest.commands._base import CovCommand
from covrest.commands._params import VALUE_SPEC

if TYPE_CHECKING:
    from covrest.commands._context import AppContext


@click.command(
    cls=CovCommand,
    examples="""\
  covrest query https://example.org/coverages --filter t=2020-01-01T00:00:00Z/2020-01-31T00:00:00Z
  covrest query https://example.org/coverages --subset x=-10/10 --subset y=40/50 --embed domain""",
)
@click.argument("url")
@click.option("--filter", "filters", type=VALUE_SPEC, multiple=True, help="Keep coverages matching AXIS=SPEC.")
@click.option("--subset", "subsets", type=VALUE_SPEC, multiple=True, help="Subset every coverage by AXIS=SPEC.")
@click.option(
    "--embed",
    "embed",
    type=click.Choice(["domain", "range"]),
    multiple=True,
    help="Ask the server to inline a part.",
)
@click.pass_obj
def query(
    app: AppContext,
    url: str,
    filters: tuple[tuple[str, Any], ...],
    subsets: tuple[tuple[str, Any], ...],
    embed: tuple[str, ...],
) -> None:
    """Filter and subset the collection at URL."""
    from covrest.services import operations

    result = asyncio.run(
        operations.query(
            url,
            app.settings,
            filter=dict(filters),
            subset=dict(subsets),
            embed={part: True for part in embed},
            plugins=app.plugins,
        )
    )
    app.emit(result)
