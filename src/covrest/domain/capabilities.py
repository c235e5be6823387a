"""Capability descriptor — what a remote API can do, per concept and match kind.

A descriptor is built once per data object from discovered URL-template
metadata and is read-only afterwards, so it may be shared between
concurrent plans for the same object. It is a closed table:
``(operation kind, concept) -> CapabilityRecord``.

URL construction (:meth:`CapabilityDescriptor.build_url`) maps concepts to
template variables through a fixed property table. Asking for a concept
without a known variable is a programming error and raises
:class:`~covrest.errors.UnsupportedConceptError`.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field
from uritemplate import URITemplate

from covrest.domain.constraints import (
    AxisValue,
    Exact,
    Index,
    IndexConstraint,
    IndexRange,
    Nearest,
    ValueConstraint,
)
from covrest.domain.types import Concept, EmbedPart, MatchKind, OperationKind
from covrest.errors import QueryError, UnsupportedConceptError

COVAPI_NS = "http://coverageapi.org/ns#"
COVJSON_NS = "http://coveragejson.org/def#"
OSGEO_NS = "http://a9.com/-/opensearch/extensions/geo/1.0/"
OSTIME_NS = "http://a9.com/-/opensearch/extensions/time/1.0/"

EMBED_IRIS: dict[EmbedPart, str] = {
    EmbedPart.DOMAIN: COVJSON_NS + "Domain",
    EmbedPart.RANGE: COVJSON_NS + "Range",
}


class UrlProperty(StrEnum):
    """Template-variable properties recognized in ``hydra:mapping`` entries."""

    FILTER_BBOX = OSGEO_NS + "box"
    FILTER_TIME_START = OSTIME_NS + "start"
    FILTER_TIME_END = OSTIME_NS + "end"
    FILTER_VERTICAL_START = COVAPI_NS + "verticalStart"
    FILTER_VERTICAL_END = COVAPI_NS + "verticalEnd"
    SUBSET_BBOX = COVAPI_NS + "subsetBbox"
    SUBSET_TIME_START = COVAPI_NS + "subsetTimeStart"
    SUBSET_TIME_END = COVAPI_NS + "subsetTimeEnd"
    SUBSET_VERTICAL_START = COVAPI_NS + "subsetVerticalStart"
    SUBSET_VERTICAL_END = COVAPI_NS + "subsetVerticalEnd"
    SUBSET_VERTICAL_TARGET = COVAPI_NS + "subsetVerticalTarget"
    SUBSET_INDEX = COVAPI_NS + "subsetIndex"


_BBOX_PROPERTIES: dict[OperationKind, UrlProperty] = {
    OperationKind.FILTER: UrlProperty.FILTER_BBOX,
    OperationKind.SUBSET: UrlProperty.SUBSET_BBOX,
}

_START_STOP_PROPERTIES: dict[tuple[OperationKind, Concept], tuple[UrlProperty, UrlProperty]] = {
    (OperationKind.FILTER, Concept.TIME): (
        UrlProperty.FILTER_TIME_START,
        UrlProperty.FILTER_TIME_END,
    ),
    (OperationKind.FILTER, Concept.VERTICAL): (
        UrlProperty.FILTER_VERTICAL_START,
        UrlProperty.FILTER_VERTICAL_END,
    ),
    (OperationKind.SUBSET, Concept.TIME): (
        UrlProperty.SUBSET_TIME_START,
        UrlProperty.SUBSET_TIME_END,
    ),
    (OperationKind.SUBSET, Concept.VERTICAL): (
        UrlProperty.SUBSET_VERTICAL_START,
        UrlProperty.SUBSET_VERTICAL_END,
    ),
}

_TARGET_PROPERTIES: dict[tuple[OperationKind, Concept], UrlProperty] = {
    (OperationKind.SUBSET, Concept.VERTICAL): UrlProperty.SUBSET_VERTICAL_TARGET,
}


class CapabilityRecord(BaseModel):
    """Support flags for one concept of one operation kind."""

    model_config = {"frozen": True}

    exact: bool = False
    range: bool = False
    nearest: bool = False
    depends_on: frozenset[Concept] = frozenset()

    def supports(self, match: MatchKind) -> bool:
        return bool(getattr(self, match.value))


class PagingInfo(BaseModel):
    """Navigation links of a paged collection view."""

    model_config = {"frozen": True}

    total: int | None = None
    first: str | None = None
    previous: str | None = None
    next: str | None = None
    last: str | None = None


class RemoteRequest(BaseModel):
    """A fully built remote call."""

    model_config = {"frozen": True}

    url: str
    headers: dict[str, str] = Field(default_factory=dict)


class CapabilityDescriptor(BaseModel):
    """Negotiated description of a remote API for one data object.

    Attributes:
        filter: Concept -> capability for collection filtering.
        subset: Concept -> capability for subsetting; ``Concept.INDEX``
            present means generic index-based subsetting.
        embed: Parts the server can inline on request.
        paging: Collection paging links, if the object is a paged view.
        template: RFC 6570 URL template, if one was discovered.
        variables: Recognized property -> template variable name.
        base_url: The data object's own identifier.
    """

    model_config = {"frozen": True}

    filter: dict[Concept, CapabilityRecord] = Field(default_factory=dict)
    subset: dict[Concept, CapabilityRecord] = Field(default_factory=dict)
    embed: frozenset[EmbedPart] = frozenset()
    paging: PagingInfo | None = None
    template: str | None = None
    variables: dict[UrlProperty, str] = Field(default_factory=dict)
    base_url: str | None = None

    # ------------------------------------------------------------------
    # Construction
    # ------------------------------------------------------------------

    @classmethod
    def from_url_template(
        cls,
        template: str | None,
        variables: Mapping[UrlProperty, str],
        *,
        can_include: bool = False,
        paging: PagingInfo | None = None,
        base_url: str | None = None,
    ) -> CapabilityDescriptor:
        """Derive the capability table from the recognized template variables."""
        present = set(variables) if template else set()
        tables: dict[OperationKind, dict[Concept, CapabilityRecord]] = {
            OperationKind.FILTER: {},
            OperationKind.SUBSET: {},
        }

        for kind, prop in _BBOX_PROPERTIES.items():
            if prop in present:
                tables[kind][Concept.X] = CapabilityRecord(
                    range=True, depends_on=frozenset({Concept.Y})
                )
                tables[kind][Concept.Y] = CapabilityRecord(
                    range=True, depends_on=frozenset({Concept.X})
                )

        for (kind, concept), (start, stop) in _START_STOP_PROPERTIES.items():
            if start in present and stop in present:
                tables[kind][concept] = CapabilityRecord(range=True)

        for (kind, concept), prop in _TARGET_PROPERTIES.items():
            if prop in present:
                existing = tables[kind].get(concept, CapabilityRecord())
                tables[kind][concept] = existing.model_copy(update={"nearest": True})

        if UrlProperty.SUBSET_INDEX in present:
            tables[OperationKind.SUBSET][Concept.INDEX] = CapabilityRecord(exact=True, range=True)

        return cls(
            filter=tables[OperationKind.FILTER],
            subset=tables[OperationKind.SUBSET],
            embed=frozenset(EmbedPart) if can_include else frozenset(),
            paging=paging,
            template=template,
            variables=dict(variables) if template else {},
            base_url=base_url,
        )

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def table(self, kind: OperationKind) -> dict[Concept, CapabilityRecord]:
        return self.filter if kind == OperationKind.FILTER else self.subset

    def record(self, kind: OperationKind, concept: Concept | None) -> CapabilityRecord | None:
        if concept is None:
            return None
        return self.table(kind).get(concept)

    def supports(self, kind: OperationKind, concept: Concept, match: MatchKind) -> bool:
        record = self.record(kind, concept)
        return record is not None and record.supports(match)

    def dependencies_of(self, kind: OperationKind, concept: Concept) -> frozenset[Concept]:
        record = self.record(kind, concept)
        return record.depends_on if record is not None else frozenset()

    def can_embed(self, part: EmbedPart) -> bool:
        return part in self.embed

    @property
    def supports_index(self) -> bool:
        return Concept.INDEX in self.subset

    @property
    def is_paged(self) -> bool:
        return self.paging is not None

    def describe(self) -> dict[str, Any]:
        """Plain-data summary (used for logging and CLI output)."""

        def _flags(table: dict[Concept, CapabilityRecord]) -> dict[str, list[str]]:
            return {
                str(concept): [str(m) for m in MatchKind if record.supports(m)]
                for concept, record in table.items()
            }

        return {
            "filter": _flags(self.filter),
            "subset": _flags(self.subset),
            "embed": sorted(str(p) for p in self.embed),
            "paged": self.is_paged,
            "template": self.template,
        }

    # ------------------------------------------------------------------
    # URL construction
    # ------------------------------------------------------------------

    def build_url(
        self,
        *,
        filter: Mapping[Concept, ValueConstraint] | None = None,  # noqa: A002
        subset: Mapping[Concept, ValueConstraint] | None = None,
        index: Mapping[str, IndexConstraint] | None = None,
        embed: Iterable[EmbedPart] = (),
    ) -> RemoteRequest:
        """Build the URL and headers for one remote call.

        Callers must only pass concepts this descriptor reports as supported.
        """
        template_vars: dict[str, Any] = {}
        template_vars.update(self._value_vars(OperationKind.FILTER, filter or {}))
        template_vars.update(self._value_vars(OperationKind.SUBSET, subset or {}))
        if index:
            variable = self._variable(UrlProperty.SUBSET_INDEX, OperationKind.SUBSET, Concept.INDEX)
            template_vars[variable] = [
                index_subset_string(axis, constraint) for axis, constraint in index.items()
            ]

        headers = self._embed_headers(embed)
        if not template_vars and not headers:
            msg = "A remote request needs at least one constraint or embed part"
            raise QueryError(msg, operation="request")

        if self.template is not None:
            url = URITemplate(self.template).expand(template_vars)
        elif not template_vars and self.base_url:
            url = self.base_url
        else:
            msg = "No URL template was discovered for this data object"
            raise UnsupportedConceptError(msg, operation="request")
        return RemoteRequest(url=url, headers=headers)

    def _variable(self, prop: UrlProperty, kind: OperationKind, concept: Concept) -> str:
        variable = self.variables.get(prop)
        if variable is None:
            msg = f"No template variable for {kind} on concept '{concept}'"
            raise UnsupportedConceptError(msg, operation=str(kind), concept=str(concept))
        return variable

    def _value_vars(
        self,
        kind: OperationKind,
        constraints: Mapping[Concept, ValueConstraint],
    ) -> dict[str, str]:
        out: dict[str, str] = {}
        pending = dict(constraints)

        if Concept.X in pending or Concept.Y in pending:
            x, y = pending.pop(Concept.X, None), pending.pop(Concept.Y, None)
            if x is None or y is None:
                missing = Concept.Y if y is None else Concept.X
                msg = f"Bounding-box {kind} needs both x and y; '{missing}' is missing"
                raise QueryError(msg, operation=str(kind), concept=str(missing))
            x0, x1 = _start_stop(x, kind, Concept.X)
            y0, y1 = _start_stop(y, kind, Concept.Y)
            variable = self._variable(_BBOX_PROPERTIES[kind], kind, Concept.X)
            out[variable] = ",".join(number_string(v) for v in (x0, y0, x1, y1))

        for concept, constraint in pending.items():
            if isinstance(constraint, Nearest):
                prop = _TARGET_PROPERTIES.get((kind, concept))
                if prop is None:
                    msg = f"Nearest-value {kind} is not expressible for concept '{concept}'"
                    raise UnsupportedConceptError(msg, operation=str(kind), concept=str(concept))
                out[self._variable(prop, kind, concept)] = format_value(constraint.target)
                continue
            props = _START_STOP_PROPERTIES.get((kind, concept))
            if props is None:
                msg = f"Range {kind} is not expressible for concept '{concept}'"
                raise UnsupportedConceptError(msg, operation=str(kind), concept=str(concept))
            start, stop = _start_stop(constraint, kind, concept)
            out[self._variable(props[0], kind, concept)] = format_value(start)
            out[self._variable(props[1], kind, concept)] = format_value(stop)
        return out

    def _embed_headers(self, parts: Iterable[EmbedPart]) -> dict[str, str]:
        iris = [EMBED_IRIS[part] for part in EmbedPart if part in set(parts) and self.can_embed(part)]
        if not iris:
            return {}
        return {"Prefer": 'return=representation; include="' + " ".join(iris) + '"'}


def _start_stop(
    constraint: ValueConstraint, kind: OperationKind, concept: Concept
) -> tuple[AxisValue, AxisValue]:
    if isinstance(constraint, Exact):
        return constraint.value, constraint.value
    if isinstance(constraint, Nearest):
        msg = f"Nearest-value {kind} cannot be encoded as a range for concept '{concept}'"
        raise UnsupportedConceptError(msg, operation=str(kind), concept=str(concept))
    return constraint.start, constraint.stop


def number_string(value: AxisValue) -> str:
    """Render a number in plain decimal notation (never scientific).

    Examples:
        >>> number_string(10.0)
        '10'
        >>> number_string(0.5)
        '0.5'
        >>> number_string(1e-7)
        '0.0000001'
    """
    if isinstance(value, str | datetime):
        return format_value(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    text = repr(value)
    if "e" in text or "E" in text:
        text = f"{value:.20f}".rstrip("0").rstrip(".")
    return text


def format_value(value: AxisValue) -> str:
    """Render a constraint value for a template variable."""
    if isinstance(value, datetime):
        if value.tzinfo is not None and value.utcoffset() == UTC.utcoffset(None):
            return value.replace(tzinfo=None).isoformat() + "Z"
        return value.isoformat()
    if isinstance(value, str):
        return value
    return number_string(value)


def index_subset_string(axis: str, constraint: IndexConstraint) -> str:
    """Render one ``axis[slice]`` entry of a generic index subset.

    Examples:
        >>> index_subset_string("t", Index(index=3))
        't[3]'
        >>> index_subset_string("x", IndexRange(start=0, stop=10, step=2))
        'x[0:10:2]'
    """
    if isinstance(constraint, Index):
        slice_ = str(constraint.index)
    elif constraint.stop - constraint.start == 1 and constraint.unit_step:
        slice_ = str(constraint.start)
    else:
        slice_ = f"{constraint.start}:{constraint.stop}"
        if not constraint.unit_step:
            slice_ += f":{constraint.step}"
    return f"{axis}[{slice_}]"
