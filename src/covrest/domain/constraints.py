"""Constraint values — one tagged value per constrained axis.

Value constraints (Exact, Range, Nearest) drive ``subset_by_value`` and
collection filtering; index constraints (Index, IndexRange) drive
``subset_by_index``. Raw specs in the JSON shape used by coverage clients
(``{"start": .., "stop": ..}``, ``{"target": ..}``, scalars) are coerced
by :func:`coerce_value_constraint` and :func:`coerce_index_constraint`.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel

from covrest.domain.types import MatchKind

AxisValue = float | str | datetime


class Exact(BaseModel):
    """Match exactly one axis value."""

    model_config = {"frozen": True}

    value: AxisValue


class Range(BaseModel):
    """Match every axis value intersecting ``[start, stop]``."""

    model_config = {"frozen": True}

    start: AxisValue
    stop: AxisValue


class Nearest(BaseModel):
    """Match the single axis value closest to ``target``."""

    model_config = {"frozen": True}

    target: AxisValue


class Index(BaseModel):
    """Select one axis step by position."""

    model_config = {"frozen": True}

    index: int


class IndexRange(BaseModel):
    """Select axis steps ``start`` up to but excluding ``stop``."""

    model_config = {"frozen": True}

    start: int
    stop: int
    step: int | None = None

    @property
    def unit_step(self) -> bool:
        return self.step is None or self.step == 1


ValueConstraint = Exact | Range | Nearest
IndexConstraint = Index | IndexRange
Constraint = ValueConstraint | IndexConstraint


def match_kind(constraint: ValueConstraint) -> MatchKind:
    """Return the match kind a value constraint needs from a capability."""
    if isinstance(constraint, Exact):
        return MatchKind.EXACT
    if isinstance(constraint, Nearest):
        return MatchKind.NEAREST
    return MatchKind.RANGE


def coerce_value_constraint(raw: Any) -> ValueConstraint:
    """Turn a raw value spec into a typed constraint.

    Examples:
        >>> coerce_value_constraint(5)
        Exact(value=5.0)
        >>> coerce_value_constraint({"start": 0, "stop": 10})
        Range(start=0.0, stop=10.0)
        >>> coerce_value_constraint({"target": 12})
        Nearest(target=12.0)
    """
    if isinstance(raw, Exact | Range | Nearest):
        return raw
    if isinstance(raw, dict):
        if "target" in raw:
            return Nearest(target=raw["target"])
        if "start" in raw and "stop" in raw:
            return Range(start=raw["start"], stop=raw["stop"])
        msg = f"Unrecognized value constraint: {raw!r}"
        raise ValueError(msg)
    return Exact(value=raw)


def coerce_index_constraint(raw: Any) -> IndexConstraint:
    """Turn a raw index spec (int or ``{start, stop[, step]}``) into a typed constraint."""
    if isinstance(raw, Index | IndexRange):
        return raw
    if isinstance(raw, bool):
        msg = f"Unrecognized index constraint: {raw!r}"
        raise ValueError(msg)
    if isinstance(raw, int):
        return Index(index=raw)
    if isinstance(raw, dict) and "start" in raw and "stop" in raw:
        return IndexRange(start=raw["start"], stop=raw["stop"], step=raw.get("step"))
    msg = f"Unrecognized index constraint: {raw!r}"
    raise ValueError(msg)
