"""Click parameter types for ``AXIS=SPEC`` constraint options.

Value specs: ``v`` (exact), ``start/stop`` (range), ``~target`` (nearest).
Index specs: ``i`` (single index), ``start:stop[:step]`` (stop exclusive).
Numeric text becomes a float; anything else (e.g. ISO 8601 times) stays a string.
"""

from __future__ import annotations

from typing import Any

import click


def _scalar(text: str) -> float | str:
    try:
        return float(text)
    except ValueError:
        return text


def parse_value_spec(text: str) -> Any:
    """Turn a value spec into the raw constraint shape ``wrap()`` accepts."""
    if text.startswith("~"):
        return {"target": _scalar(text[1:])}
    if "/" in text:
        start, stop = text.split("/", 1)
        return {"start": _scalar(start), "stop": _scalar(stop)}
    return _scalar(text)


def parse_index_spec(text: str) -> Any:
    """Turn an index spec into an int or a ``{start, stop[, step]}`` dict."""
    parts = text.split(":")
    if len(parts) == 1:
        return int(parts[0])
    if len(parts) not in (2, 3):
        msg = f"Expected start:stop[:step], got {text!r}"
        raise ValueError(msg)
    spec: dict[str, int] = {"start": int(parts[0]), "stop": int(parts[1])}
    if len(parts) == 3:
        spec["step"] = int(parts[2])
    return spec


class AxisSpec(click.ParamType):
    """``AXIS=SPEC`` converted to ``(axis, raw constraint)``."""

    name = "axis=spec"

    def __init__(self, *, index: bool = False) -> None:
        self.index = index

    def convert(self, value: Any, param: click.Parameter | None, ctx: click.Context | None) -> Any:
        if isinstance(value, tuple):
            return value
        axis, sep, spec = str(value).partition("=")
        if not sep or not axis or not spec:
            self.fail(f"{value!r} is not of the form AXIS=SPEC", param, ctx)
        try:
            raw = parse_index_spec(spec) if self.index else parse_value_spec(spec)
        except ValueError as exc:
            self.fail(str(exc), param, ctx)
        return axis, raw


VALUE_SPEC = AxisSpec()
INDEX_SPEC = AxisSpec(index=True)
