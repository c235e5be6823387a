"""CoverageJSON reader — in-memory coverages and collections.

Implements the local data-object surface that ``wrap()`` decorates:
``load_domain``, ``subset_by_index``, ``subset_by_value`` on coverages and
``query()`` on collections. Range arrays are held as numpy arrays with
one dimension per entry of ``axisNames``.

Domains and ranges given by URL are fetched through an optional async
``resolve(url) -> dict`` callable on first use.

INVARIANT: Objects produced by local subsetting or querying carry no
``id``, so discovering capabilities for them yields an empty descriptor.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import numpy as np

from covrest.domain.constraints import (
    Constraint,
    Exact,
    Index,
    IndexConstraint,
    IndexRange,
    Nearest,
    Range,
    ValueConstraint,
)
from covrest.domain.model import Axis, Domain, ReferenceSystem, Referencing
from covrest.domain.snapping import AxisScale, scale_for
from covrest.domain.types import SystemType
from covrest.errors import DocumentError, QueryError

Resolver = Callable[[str], Awaitable[Mapping[str, Any]]]

_NUMERIC_TYPES = frozenset({"float", "integer"})
_STRUCTURAL_KEYS = frozenset({"domain", "ranges", "coverages", "domainTemplate"})


# ---------------------------------------------------------------------------
# Reading
# ---------------------------------------------------------------------------


def read_axis(key: str, doc: Mapping[str, Any]) -> Axis:
    """Read one primitive axis from ``values`` or regular ``start/stop/num``."""
    if "values" in doc:
        values = tuple(doc["values"])
    elif {"start", "stop", "num"} <= doc.keys():
        values = tuple(np.linspace(doc["start"], doc["stop"], int(doc["num"])).tolist())
    else:
        msg = f"Axis '{key}' has neither values nor start/stop/num"
        raise DocumentError(msg)
    if doc.get("dataType", "primitive") != "primitive":
        msg = f"Axis '{key}' uses unsupported data type '{doc['dataType']}'"
        raise DocumentError(msg)
    bounds = doc.get("bounds")
    return Axis(key=key, values=values, bounds=tuple(bounds) if bounds else None)


def read_referencing(entries: Sequence[Mapping[str, Any]]) -> tuple[Referencing, ...]:
    """Read referencing entries (``coordinates`` or legacy ``components``)."""
    result: list[Referencing] = []
    for entry in entries:
        components = entry.get("coordinates", entry.get("components", ()))
        system = entry.get("system") or {}
        result.append(
            Referencing(
                components=tuple(components),
                system=ReferenceSystem(type=SystemType.parse(system.get("type")), id=system.get("id")),
            )
        )
    return tuple(result)


def read_domain(
    doc: Mapping[str, Any],
    referencing: Sequence[Mapping[str, Any]] = (),
) -> Domain:
    """Read a domain object; *referencing* is used when the domain has none."""
    axes = {key: read_axis(key, axis) for key, axis in (doc.get("axes") or {}).items()}
    return Domain(axes=axes, referencing=read_referencing(doc.get("referencing") or referencing))


def read_ndarray(doc: Mapping[str, Any]) -> NdArray:
    """Read an NdArray range; ``null`` becomes NaN for numeric data."""
    if doc.get("type", "NdArray") != "NdArray":
        msg = f"Unsupported range type '{doc.get('type')}'"
        raise DocumentError(msg)
    data_type = doc.get("dataType", "float")
    raw = doc.get("values", [])
    if data_type in _NUMERIC_TYPES:
        values = np.array([np.nan if v is None else v for v in raw], dtype=float)
    else:
        values = np.array(raw, dtype=object)
    shape = tuple(doc.get("shape", ()))
    axis_names = tuple(doc.get("axisNames", ()))
    return NdArray(values=values.reshape(shape), axis_names=axis_names, data_type=data_type)


def read_document(doc: Mapping[str, Any], *, resolve: Resolver | None = None) -> Any:
    """Read a CoverageJSON ``Coverage`` or ``CoverageCollection`` document."""
    kind = doc.get("type")
    if kind == "Coverage":
        return _read_coverage(doc, resolve=resolve)
    if kind == "CoverageCollection":
        referencing = doc.get("referencing") or ()
        coverages = [_read_coverage(c, referencing=referencing, resolve=resolve) for c in doc.get("coverages", [])]
        template = doc.get("domainTemplate")
        return CovJsonCollection(
            id=doc.get("id"),
            ld=_linked_data(doc),
            coverages=coverages,
            domain_template=read_domain(template, referencing) if template else None,
            parameters=dict(doc.get("parameters") or {}),
        )
    msg = f"Unsupported CoverageJSON type '{kind}'"
    raise DocumentError(msg)


def _linked_data(doc: Mapping[str, Any]) -> dict[str, Any]:
    return {k: v for k, v in doc.items() if k not in _STRUCTURAL_KEYS}


def _read_coverage(
    doc: Mapping[str, Any],
    *,
    referencing: Sequence[Mapping[str, Any]] = (),
    resolve: Resolver | None = None,
) -> CovJsonCoverage:
    return CovJsonCoverage(
        id=doc.get("id"),
        ld=_linked_data(doc),
        domain=doc.get("domain"),
        ranges=dict(doc.get("ranges") or {}),
        parameters=dict(doc.get("parameters") or {}),
        referencing=tuple(referencing),
        resolve=resolve,
    )


# ---------------------------------------------------------------------------
# Data objects
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NdArray:
    """A range array with one named dimension per domain axis."""

    values: np.ndarray
    axis_names: tuple[str, ...]
    data_type: str = "float"

    def take(self, selection: Mapping[str, Sequence[int]]) -> NdArray:
        values = self.values
        for position, name in enumerate(self.axis_names):
            if name in selection:
                values = values.take(list(selection[name]), axis=position)
        return NdArray(values=values, axis_names=self.axis_names, data_type=self.data_type)


class CovJsonCoverage:
    """A single coverage held in memory."""

    def __init__(
        self,
        *,
        id: str | None,
        ld: Mapping[str, Any],
        domain: Domain | Mapping[str, Any] | str | None,
        ranges: Mapping[str, NdArray | Mapping[str, Any] | str],
        parameters: Mapping[str, Any] | None = None,
        referencing: Sequence[Mapping[str, Any]] = (),
        resolve: Resolver | None = None,
    ) -> None:
        self.id = id
        self.ld = dict(ld)
        self.parameters = dict(parameters or {})
        self._domain = domain
        self._ranges = dict(ranges)
        self._referencing = tuple(referencing)
        self._resolve = resolve

    async def _fetch(self, url: str, what: str) -> Mapping[str, Any]:
        if self._resolve is None:
            msg = f"{what} of coverage {self.id} is not embedded and no resolver is configured"
            raise DocumentError(msg)
        return await self._resolve(url)

    async def load_domain(self) -> Domain:
        if isinstance(self._domain, Domain):
            return self._domain
        doc = self._domain
        if doc is None:
            msg = f"Coverage {self.id} has no domain"
            raise DocumentError(msg)
        if isinstance(doc, str):
            doc = await self._fetch(doc, "Domain")
        self._domain = read_domain(doc, self._referencing)
        return self._domain

    async def load_range(self, key: str) -> NdArray:
        value = self._ranges[key]
        if isinstance(value, NdArray):
            return value
        if isinstance(value, str):
            value = await self._fetch(value, f"Range '{key}'")
        array = read_ndarray(value)
        self._ranges[key] = array
        return array

    async def load_ranges(self) -> dict[str, NdArray]:
        return {key: await self.load_range(key) for key in self._ranges}

    async def subset_by_index(self, constraints: Mapping[str, IndexConstraint]) -> CovJsonCoverage:
        domain = await self.load_domain()
        selection: dict[str, list[int]] = {}
        for key, constraint in constraints.items():
            axis = _require_axis(domain, key)
            selection[key] = _index_selection(axis, constraint)
        return await self._take(domain, selection)

    async def subset_by_value(self, constraints: Mapping[str, ValueConstraint]) -> CovJsonCoverage:
        domain = await self.load_domain()
        selection: dict[str, list[int]] = {}
        for key, constraint in constraints.items():
            _require_axis(domain, key)
            selection[key] = value_selection(scale_for(domain, key), constraint)
        return await self._take(domain, selection)

    async def subset(self, constraints: Mapping[str, Constraint]) -> CovJsonCoverage:
        """Subset by a mix of index and value constraints."""
        by_index = {k: c for k, c in constraints.items() if isinstance(c, Index | IndexRange)}
        by_value = {k: c for k, c in constraints.items() if not isinstance(c, Index | IndexRange)}
        result = self
        if by_value:
            result = await result.subset_by_value(by_value)
        if by_index:
            result = await result.subset_by_index(by_index)
        return result

    async def _take(self, domain: Domain, selection: Mapping[str, list[int]]) -> CovJsonCoverage:
        axes = dict(domain.axes)
        for key, indices in selection.items():
            axes[key] = _take_axis(domain.axis(key), indices)
        ranges = {key: array.take(selection) for key, array in (await self.load_ranges()).items()}
        return CovJsonCoverage(
            id=None,
            ld={k: v for k, v in self.ld.items() if k != "id"},
            domain=Domain(axes=axes, referencing=domain.referencing),
            ranges=ranges,
            parameters=self.parameters,
        )


class CovJsonCollection:
    """An ordered set of in-memory coverages."""

    def __init__(
        self,
        *,
        id: str | None,
        ld: Mapping[str, Any],
        coverages: Sequence[CovJsonCoverage],
        domain_template: Domain | None = None,
        parameters: Mapping[str, Any] | None = None,
    ) -> None:
        self.id = id
        self.ld = dict(ld)
        self.coverages = list(coverages)
        self.domain_template = domain_template
        self.parameters = dict(parameters or {})

    def query(self) -> CovJsonQuery:
        return CovJsonQuery(self)


class CovJsonQuery:
    """Local collection query.

    Filtering keeps the coverages whose axes meet every constraint; subsetting
    subsets every remaining coverage; embedding is a no-op because all data
    is already in memory.
    """

    def __init__(self, collection: CovJsonCollection) -> None:
        self._collection = collection
        self._filter: dict[str, Constraint] = {}
        self._subset: dict[str, Constraint] = {}
        self._embed: dict[str, bool] = {}

    def filter(self, spec: Mapping[str, Constraint]) -> CovJsonQuery:
        self._filter.update(spec)
        return self

    def subset(self, spec: Mapping[str, Constraint]) -> CovJsonQuery:
        self._subset.update(spec)
        return self

    def embed(self, spec: Mapping[str, bool]) -> CovJsonQuery:
        self._embed.update(spec)
        return self

    async def execute(self) -> CovJsonCollection:
        coverages: list[CovJsonCoverage] = []
        for coverage in self._collection.coverages:
            if self._filter and not await self._matches(coverage):
                continue
            if self._subset:
                coverage = await coverage.subset(self._subset)
            coverages.append(coverage)
        return CovJsonCollection(
            id=None,
            ld={k: v for k, v in self._collection.ld.items() if k not in ("id", "view")},
            coverages=coverages,
            domain_template=None if self._subset else self._collection.domain_template,
            parameters=self._collection.parameters,
        )

    async def _matches(self, coverage: CovJsonCoverage) -> bool:
        domain = await coverage.load_domain()
        for key, constraint in self._filter.items():
            if key not in domain.axes:
                return False
            axis = domain.axis(key)
            if isinstance(constraint, Index | IndexRange):
                selected = _index_selection(axis, constraint, strict=False)
            else:
                selected = value_selection(scale_for(domain, key), constraint, strict=False)
            if not selected:
                return False
        return True


# ---------------------------------------------------------------------------
# Selection helpers
# ---------------------------------------------------------------------------


def _require_axis(domain: Domain, key: str) -> Axis:
    if key not in domain.axes:
        msg = f"Unknown axis '{key}'"
        raise QueryError(msg, operation="subset", axis=key)
    return domain.axis(key)


def _index_selection(axis: Axis, constraint: IndexConstraint, *, strict: bool = True) -> list[int]:
    size = len(axis)
    if isinstance(constraint, Index):
        if 0 <= constraint.index < size:
            return [constraint.index]
        if not strict:
            return []
        msg = f"Index {constraint.index} out of bounds for axis '{axis.key}' of size {size}"
        raise QueryError(msg, operation="subset", axis=axis.key)
    return list(range(constraint.start, min(constraint.stop, size), constraint.step or 1))


def value_selection(scale: AxisScale, constraint: ValueConstraint, *, strict: bool = True) -> list[int]:
    """Indices of *scale*'s axis selected by a value constraint.

    With ``strict``, an exact value that is not an axis value raises.
    """
    if isinstance(constraint, Exact):
        hits = [i for i, v in enumerate(scale.axis.values) if scale.same_value(v, constraint.value)]
        if hits or not strict:
            return hits
        msg = f"Value {constraint.value!r} not found on axis '{scale.axis.key}'"
        raise QueryError(msg, operation="subset", axis=scale.axis.key)
    if isinstance(constraint, Nearest):
        if not scale.axis.values:
            return []
        return [scale.nearest_index(constraint.target)]
    if isinstance(constraint, Range):
        return scale.indices_within(constraint.start, constraint.stop)
    msg = f"Unsupported constraint {constraint!r}"
    raise QueryError(msg, operation="subset", axis=scale.axis.key)


def _take_axis(axis: Axis, indices: Sequence[int]) -> Axis:
    values = tuple(axis.values[i] for i in indices)
    bounds = None
    if axis.bounds:
        bounds = tuple(b for i in indices for b in axis.bounds[2 * i : 2 * i + 2])
    return Axis(key=axis.key, values=values, bounds=bounds)
