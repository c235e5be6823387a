"""Click base classes for covrest commands.

Commands take an optional ``examples`` block shown by ``--examples``, and
any command with ``AXIS=SPEC`` options lists the constraint syntax at the
end of ``--help``.
"""

from __future__ import annotations

from typing import Any

import click

from covrest.commands._params import AxisSpec

VALUE_SYNTAX = (
    ("AXIS=v", "exact value"),
    ("AXIS=start/stop", "inclusive value range"),
    ("AXIS=~target", "value nearest to target"),
)
INDEX_SYNTAX = (
    ("AXIS=i", "single index"),
    ("AXIS=start:stop[:step]", "index range, stop exclusive"),
)


def _print_examples(ctx: click.Context, _param: click.Parameter, value: bool) -> None:
    if not value or ctx.resilient_parsing:
        return
    click.echo(f"Examples for '{ctx.command_path}':\n")
    click.echo(getattr(ctx.command, "examples", ""))
    ctx.exit(0)


class CovCommand(click.Command):
    """Command with ``--examples`` and a constraint syntax help section."""

    def __init__(self, *args: Any, examples: str | None = None, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.examples = examples
        if examples:
            self.params.append(
                click.Option(
                    ["--examples"],
                    is_flag=True,
                    expose_value=False,
                    is_eager=True,
                    callback=_print_examples,
                    help="Show usage examples.",
                )
            )

    def constraint_syntax(self) -> list[tuple[str, str]]:
        """Syntax rows for the kinds of ``AXIS=SPEC`` options this command takes."""
        kinds = {p.type.index for p in self.params if isinstance(p.type, AxisSpec)}
        rows: list[tuple[str, str]] = []
        if False in kinds:
            rows.extend(VALUE_SYNTAX)
        if True in kinds:
            rows.extend(INDEX_SYNTAX)
        return rows

    def format_epilog(self, ctx: click.Context, formatter: click.HelpFormatter) -> None:
        rows = self.constraint_syntax()
        if rows:
            with formatter.section("Constraint syntax"):
                formatter.write_dl(rows)
        super().format_epilog(ctx, formatter)


class CovGroup(click.Group):
    """Click Group whose subcommands default to :class:`CovCommand`."""

    command_class = CovCommand
