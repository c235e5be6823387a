"""Command: subset a single coverage by value and/or index."""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

import click

from covrest.commands._base import CovCommand
from covrest.commands._params import INDEX_SPEC, VALUE_SPEC

if TYPE_CHECKING:
    from covrest.commands._context import AppContext


@click.command(
    cls=CovCommand,
    examples="""\
  covrest subset https://example.org/coverages/1 --value t=2020-01-01/2020-01-02
  covrest subset https://example.org/coverages/1 --value z=~12
  covrest subset https://example.org/coverages/1 --index x=0:10:2""",
)
@click.argument("url")
@click.option("--value", "values", type=VALUE_SPEC, multiple=True, help="AXIS=v | start/stop | ~target")
@click.option("--index", "indices", type=INDEX_SPEC, multiple=True, help="AXIS=i | start:stop[:step]")
@click.pass_obj
def subset(
    app: AppContext,
    url: str,
    values: tuple[tuple[str, Any], ...],
    indices: tuple[tuple[str, Any], ...],
) -> None:
    """Subset the coverage at URL, remotely where the API allows it."""
    from covrest.services import operations

    result = asyncio.run(
        operations.subset(
            url,
            app.settings,
            by_value=dict(values),
            by_index=dict(indices),
            plugins=app.plugins,
        )
    )
    app.emit(result)
