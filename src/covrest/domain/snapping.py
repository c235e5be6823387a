"""Value snapping — nearest-neighbour lookup over axis values.

Axis values are compared on a linear numeric scale: ISO 8601 times become
POSIX timestamps and longitudes outside the axis's own range are wrapped
into the 360 degree window starting at the axis minimum, so that -170
matches 190 on a 0..360 axis.

Lookups use binary search over the (possibly descending) axis and compare
the candidate at the insertion point with its predecessor. Ties resolve
toward the lower index.
"""

from __future__ import annotations

import math
from bisect import bisect_left
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from covrest.domain.concepts import is_longitude_axis, resolve_axis_concepts
from covrest.domain.constraints import AxisValue
from covrest.domain.model import Axis, Domain
from covrest.domain.types import Concept

_FULL_CIRCLE = 360.0


def to_timestamp(value: AxisValue) -> float:
    """Convert an ISO 8601 string or datetime to POSIX seconds (naive means UTC)."""
    if isinstance(value, int | float):
        return float(value)
    dt = value if isinstance(value, datetime) else datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.timestamp()


def index_of_nearest(values: Sequence[float], value: float) -> int:
    """Index of the element of monotonic *values* closest to *value*.

    Examples:
        >>> index_of_nearest([0, 10, 20, 30], 12)
        1
        >>> index_of_nearest([30, 20, 10, 0], 12)
        2
        >>> index_of_nearest([0, 10], 5)
        0
    """
    n = len(values)
    if n == 0:
        msg = "Cannot snap to an empty axis"
        raise ValueError(msg)
    descending = n > 1 and values[0] > values[-1]
    if descending:
        pos = bisect_left([-v for v in values], -value)
    else:
        pos = bisect_left(values, value)
    if pos == 0:
        return 0
    if pos == n:
        return n - 1
    lower, upper = pos - 1, pos
    if abs(values[lower] - value) <= abs(values[upper] - value):
        return lower
    return upper


@dataclass(frozen=True)
class AxisScale:
    """An axis projected onto a linear numeric scale for comparisons.

    Attributes:
        axis: The underlying axis.
        time: Values are ISO 8601 times compared as timestamps.
        longitude: Query values are wrapped into the axis's 360 degree window.
    """

    axis: Axis
    time: bool = False
    longitude: bool = False
    numeric: tuple[float, ...] = field(init=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "numeric", tuple(self._linear(v) for v in self.axis.values))

    def _linear(self, value: AxisValue) -> float:
        if self.time or isinstance(value, str | datetime):
            return to_timestamp(value)
        return float(value)

    def normalize(self, value: AxisValue) -> float:
        """Project a query value onto this axis's numeric scale."""
        number = self._linear(value)
        if self.longitude and self.numeric:
            lo, hi = min(self.numeric), max(self.numeric)
            if number < lo or number > hi:
                number = (number - lo) % _FULL_CIRCLE + lo
        return number

    def nearest_index(self, value: AxisValue) -> int:
        return index_of_nearest(self.numeric, self.normalize(value))

    def nearest_value(self, value: AxisValue) -> AxisValue:
        return self.axis.values[self.nearest_index(value)]

    def same_value(self, a: AxisValue, b: AxisValue) -> bool:
        """Compare two values after normalization (e.g. as timestamps)."""
        return self.normalize(a) == self.normalize(b)

    def extent(self) -> tuple[float, float]:
        """Covered extent on the numeric scale.

        Uses explicit bounds when present. Otherwise the outermost values
        are extended by half a cell width; a single-valued axis without
        bounds has an unbounded extent.
        """
        if self.axis.bounds:
            bounds = [self._linear(b) for b in self.axis.bounds]
            return min(bounds), max(bounds)
        ordered = sorted(self.numeric)
        if len(ordered) < 2:
            return -math.inf, math.inf
        lo = ordered[0] - (ordered[1] - ordered[0]) / 2
        hi = ordered[-1] + (ordered[-1] - ordered[-2]) / 2
        return lo, hi

    def contains(self, value: AxisValue) -> bool:
        lo, hi = self.extent()
        return lo <= self.normalize(value) <= hi

    def ordered(self, a: AxisValue, b: AxisValue) -> tuple[AxisValue, AxisValue]:
        """Return *a*, *b* sorted by their normalized value."""
        if self.normalize(a) <= self.normalize(b):
            return a, b
        return b, a

    def spans_full_circle(self, start: AxisValue, stop: AxisValue) -> bool:
        """Whether a longitude range covers every meridian."""
        return self.longitude and abs(self._linear(stop) - self._linear(start)) >= _FULL_CIRCLE

    def crosses_seam(self, start: AxisValue, stop: AxisValue) -> bool:
        """Whether a longitude range wraps past the end of the axis window.

        The unwrapped endpoints are ordered first; the range crosses the
        seam when wrapping puts them in the opposite order.
        """
        if not self.longitude or self.spans_full_circle(start, stop):
            return False
        lo, hi = sorted((self._linear(start), self._linear(stop)))
        return self.normalize(lo) > self.normalize(hi)

    def indices_within(self, start: AxisValue, stop: AxisValue) -> list[int]:
        """Indices of axis steps intersecting ``[start, stop]``, in axis order.

        A step intersects when its value (or, with bounds, its cell) overlaps
        the interval. A longitude range spanning the full circle selects the
        whole axis; one crossing the seam selects both ends of the axis.
        """
        if self.spans_full_circle(start, stop):
            return list(range(len(self.numeric)))
        raw_lo, raw_hi = sorted((self._linear(start), self._linear(stop)))
        lo, hi = self.normalize(raw_lo), self.normalize(raw_hi)
        if lo > hi:
            intervals = [(lo, math.inf), (-math.inf, hi)]
        else:
            intervals = [(lo, hi)]
        bounds = self.axis.bounds
        hits: list[int] = []
        for i, number in enumerate(self.numeric):
            if bounds:
                b0, b1 = sorted((self._linear(bounds[2 * i]), self._linear(bounds[2 * i + 1])))
            else:
                b0 = b1 = number
            if any(b1 >= a and b0 <= b for a, b in intervals):
                hits.append(i)
        return hits


def scale_for(domain: Domain, axis_key: str) -> AxisScale:
    """Build the comparison scale for one axis of *domain*."""
    concepts = resolve_axis_concepts(domain)
    return AxisScale(
        axis=domain.axis(axis_key),
        time=concepts.get(axis_key) == Concept.TIME,
        longitude=is_longitude_axis(domain, axis_key),
    )


def nearest_index(axis: Axis, value: AxisValue, *, longitude: bool = False) -> int:
    """Index of the axis value nearest to *value*."""
    return AxisScale(axis=axis, longitude=longitude).nearest_index(value)


def nearest_value(axis: Axis, value: AxisValue, *, longitude: bool = False) -> AxisValue:
    """The axis value nearest to *value*, in the axis's own representation."""
    return AxisScale(axis=axis, longitude=longitude).nearest_value(value)
