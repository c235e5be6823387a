"""Domain model — axes, referencing, domains, and the local data-object protocols.

Axes, referencing entries, and domains are immutable once constructed. The
``Coverage`` and ``CoverageCollection`` protocols describe the in-memory
data objects covrest wraps: their own local subset/filter implementations
are treated as black boxes and are never reimplemented here.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping, Sequence
from typing import Any, Protocol, runtime_checkable

from pydantic import BaseModel, Field

from covrest.domain.constraints import AxisValue, Constraint, IndexConstraint, ValueConstraint
from covrest.domain.types import SystemType


class Axis(BaseModel):
    """One dimension of a domain.

    Attributes:
        key: Identifier, unique within its domain.
        values: Monotonic (increasing or decreasing) coordinate values;
            numbers or ISO 8601 strings.
        bounds: Optional flat ``[lo0, hi0, lo1, hi1, ...]`` cell bounds.
    """

    model_config = {"frozen": True}

    key: str
    values: tuple[AxisValue, ...]
    bounds: tuple[AxisValue, ...] | None = None

    def __len__(self) -> int:
        return len(self.values)


class ReferenceSystem(BaseModel):
    """Coordinate reference system descriptor attached to a referencing entry."""

    model_config = {"frozen": True}

    type: SystemType = SystemType.OTHER
    id: str | None = None


class Referencing(BaseModel):
    """Associates axis identifiers (components) with a reference system."""

    model_config = {"frozen": True}

    components: tuple[str, ...]
    system: ReferenceSystem


class Domain(BaseModel):
    """Axes plus the referencing entries describing them."""

    model_config = {"frozen": True}

    axes: dict[str, Axis] = Field(default_factory=dict)
    referencing: tuple[Referencing, ...] = ()

    def axis(self, key: str) -> Axis:
        return self.axes[key]


# ---------------------------------------------------------------------------
# Local data-object protocols
# ---------------------------------------------------------------------------


@runtime_checkable
class Coverage(Protocol):
    """A single in-memory coverage."""

    id: str | None
    ld: Mapping[str, Any]

    async def load_domain(self) -> Domain: ...

    async def subset_by_index(self, constraints: Mapping[str, IndexConstraint]) -> Any: ...

    async def subset_by_value(self, constraints: Mapping[str, ValueConstraint]) -> Any: ...


class LocalQuery(Protocol):
    """A collection's own query accumulator, evaluated locally."""

    def filter(self, spec: Mapping[str, Constraint]) -> LocalQuery: ...

    def subset(self, spec: Mapping[str, Constraint]) -> LocalQuery: ...

    def embed(self, spec: Mapping[str, bool]) -> LocalQuery: ...

    async def execute(self) -> Any: ...


@runtime_checkable
class CoverageCollection(Protocol):
    """An ordered set of coverages, optionally sharing a domain template."""

    id: str | None
    ld: Mapping[str, Any]
    coverages: Sequence[Coverage]
    domain_template: Domain | None

    def query(self) -> LocalQuery: ...


Loader = Callable[..., Awaitable[Any]]
"""Injected ``(url, headers=None) -> awaitable data object`` fetch function."""
