"""Operation-specific Rich renderers for ServiceResult.

Renderers are dispatched by ``result.op`` in :func:`render_result`.
Unknown ops fall through to a generic key-value renderer.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any

from rich.table import Table
from rich.text import Text

from covrest.output.console import create_console, get_output

if TYPE_CHECKING:
    from rich.console import Console

    from covrest.services.result import ServiceResult

_MATCH_KINDS = ("exact", "range", "nearest")


def render_result(result: ServiceResult, *, verbose: bool = False) -> str:
    """Render a ServiceResult to a styled string via Rich.

    Returns plain text (no ANSI) when Rich detects no terminal,
    which is the case inside Click's CliRunner and piped output.
    """
    console = create_console()
    if result.ok:
        renderer = _OP_RENDERERS.get(result.op, _render_generic)
        renderer(result, console, verbose=verbose)
    else:
        _render_error(result, console, verbose=verbose)
    return get_output(console).rstrip("\n")


# ── Helpers ───────────────────────────────────────────────────────────


def _status_line(console: Console, result: ServiceResult) -> None:
    console.print(Text("OK", style="cov.ok"), Text(f"  {result.op}", style="cov.op"), sep="")


def _field(console: Console, key: str, value: Any) -> None:
    """Print a single indented key-value field."""
    if isinstance(value, dict | list):
        value = json.dumps(value, separators=(",", ":"))
    style = "cov.id" if key == "id" else ""
    console.print(Text(f"  {key}: ", style="cov.key"), Text(str(value), style=style), sep="")


def capability_table(data: dict[str, Any]) -> Table:
    """One row per (operation, concept) with a column per match kind."""
    table = Table(show_header=True, pad_edge=False, expand=False)
    table.add_column("Operation", style="cov.op")
    table.add_column("Concept", style="cov.concept")
    for match in _MATCH_KINDS:
        table.add_column(match.title(), justify="center")
    for operation in ("filter", "subset"):
        for concept, matches in sorted(data.get(operation, {}).items()):
            marks = [Text("yes", style="cov.match") if m in matches else Text("-") for m in _MATCH_KINDS]
            table.add_row(operation, concept, *marks)
    return table


# ── Renderers ─────────────────────────────────────────────────────────


def _render_error(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    err = result.error
    msg = err.message if err else "Unknown error"
    console.print(Text("ERROR", style="cov.error"), Text(f"  {result.op}", style="cov.op"), Text(" - "), msg, sep="")
    if verbose and err and err.detail:
        console.print(Text("  detail:", style="dim"))
        for k, v in err.detail.items():
            console.print(f"    {k}: {v}")


def _render_capabilities(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    data = result.data
    _status_line(console, result)
    _field(console, "id", data.get("id"))
    _field(console, "kind", data.get("kind"))
    if data.get("filter") or data.get("subset"):
        console.print(capability_table(data))
    else:
        console.print(Text("  no remote capabilities; every operation runs locally", style="cov.local"))
    _field(console, "embed", ", ".join(data.get("embed", [])) or "-")
    _field(console, "paged", data.get("paged", False))
    if verbose and data.get("template"):
        _field(console, "template", data["template"])


def _render_summary(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    data = result.data
    _status_line(console, result)
    for key in ("id", "kind", "coverages", "total"):
        if data.get(key) is not None:
            _field(console, key, data[key])
    remote = Text("yes", style="cov.remote") if data.get("remote_capable") else Text("no", style="cov.local")
    console.print(Text("  remote_capable: ", style="cov.key"), remote, sep="")
    axes = data.get("axes")
    if axes:
        table = Table(show_header=True, pad_edge=False, expand=False)
        table.add_column("Axis", style="cov.concept")
        table.add_column("Size", justify="right")
        for key, size in axes.items():
            table.add_row(key, str(size))
        console.print(table)


def _render_generic(result: ServiceResult, console: Console, *, verbose: bool = False) -> None:
    """Fallback renderer: status line + all data as key-value pairs."""
    _status_line(console, result)
    for key, value in result.data.items():
        _field(console, key, value)


# ── Dispatch table ────────────────────────────────────────────────────

_OP_RENDERERS: dict[str, Any] = {
    "capabilities": _render_capabilities,
    "subset": _render_summary,
    "query": _render_summary,
}
