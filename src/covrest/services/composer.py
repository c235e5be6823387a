"""Wrapping and result composition.

``wrap()`` attaches a discovered CapabilityDescriptor to a local coverage
or collection. Wrapped objects route their subset/query operations through
the planner: the remote part is fetched first, then the local remainder is
applied to the fetched (or original) object.

INVARIANT: A result with any locally applied constraint is returned as the
literal local result, never re-wrapped. Its extent no longer matches the
discovered metadata, so a later remote call could silently re-request the
excluded region.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from covrest.domain.capabilities import CapabilityDescriptor
from covrest.domain.constraints import coerce_index_constraint, coerce_value_constraint
from covrest.domain.model import Domain
from covrest.domain.types import OperationKind
from covrest.errors import QueryError
from covrest.infrastructure.hydra import discover as hydra_discover
from covrest.plugins.manager import PluginManager
from covrest.services.executor import RemoteExecutor, RemoteOutcome
from covrest.services.planner import (
    Plan,
    check_axes,
    clean_constraints,
    requires_subsetting,
    split,
    split_index,
)

if TYPE_CHECKING:
    from covrest.services.query import CollectionQuery

logger = logging.getLogger(__name__)

Discoverer = Callable[[Any], Awaitable[CapabilityDescriptor]]


class WrapOptions(BaseModel):
    """Behaviour shared by a wrapper and everything derived from it.

    Attributes:
        loader: ``(url, headers) -> awaitable data object``.
        headers: Headers sent with paging follow-ups.
        plugins: Optional plugin manager notified at extension points.
        discover: Capability discovery collaborator.
        snap_ranges: Snap subset ranges to axis values before delegating.
    """

    model_config = {"frozen": True, "arbitrary_types_allowed": True}

    loader: Callable[..., Awaitable[Any]]
    headers: dict[str, str] = Field(default_factory=dict)
    plugins: PluginManager | None = None
    discover: Discoverer = hydra_discover
    snap_ranges: bool = True

    def with_headers(self, headers: Mapping[str, str]) -> WrapOptions:
        """Copy with *headers* merged over the carried-over ones."""
        if not headers:
            return self
        return self.model_copy(update={"headers": {**self.headers, **headers}})

    def notify(self, hook_name: str, **payload: Any) -> None:
        if self.plugins is not None:
            self.plugins.notify(hook_name, **payload)

    def notify_plan(self, plan: Plan) -> None:
        summary = plan.summary()
        self.notify(
            "post_plan",
            operation=summary["kind"],
            remote=summary["remote"],
            local=summary["local"],
        )


def wrap(
    data: Any,
    loader: Callable[..., Awaitable[Any]] | None,
    *,
    headers: Mapping[str, str] | None = None,
    plugins: PluginManager | None = None,
    discover: Discoverer | None = None,
    snap_ranges: bool = True,
) -> Awaitable[WrappedCoverage | WrappedCollection]:
    """Wrap a coverage or collection so operations may run remotely.

    The loader is validated immediately; discovery happens when the
    returned awaitable is awaited.
    """
    if not callable(loader):
        msg = "A callable loader is required to wrap a data object"
        raise QueryError(msg, operation="wrap")
    options = WrapOptions(
        loader=loader,
        headers=dict(headers or {}),
        plugins=plugins,
        discover=discover or hydra_discover,
        snap_ranges=snap_ranges,
    )
    return wrap_with(data, options)


async def wrap_with(data: Any, options: WrapOptions) -> WrappedCoverage | WrappedCollection:
    """Discover capabilities for *data* and attach them."""
    capabilities = await options.discover(data)
    data_id = getattr(data, "id", None)
    logger.debug("capabilities.discovered %s %s", data_id, capabilities.describe())
    options.notify("post_discover", data_id=data_id, capabilities=capabilities.describe())
    if hasattr(data, "coverages"):
        return WrappedCollection(data, capabilities, options)
    return WrappedCoverage(data, capabilities, options)


async def compose(
    outcome: RemoteOutcome,
    *,
    has_local: bool,
    apply_local: Callable[[Any], Awaitable[Any]],
    options: WrapOptions,
) -> Any:
    """Apply the local remainder, or re-wrap when nothing local remains.

    Re-wrapping carries the request headers over so that paging through
    the result keeps asking for the same embedded parts.
    """
    if has_local:
        return await apply_local(outcome.data)
    headers = outcome.request.headers if outcome.request is not None else {}
    return await wrap_with(outcome.data, options.with_headers(headers))


class _Wrapped:
    """Common surface of wrapped objects; unknown attributes read through."""

    def __init__(self, data: Any, capabilities: CapabilityDescriptor, options: WrapOptions) -> None:
        self._data = data
        self._capabilities = capabilities
        self._options = options

    @property
    def data(self) -> Any:
        """The underlying local data object."""
        return self._data

    @property
    def capabilities(self) -> CapabilityDescriptor:
        return self._capabilities

    @property
    def options(self) -> WrapOptions:
        return self._options

    @property
    def id(self) -> str | None:
        return getattr(self._data, "id", None)

    @property
    def ld(self) -> Mapping[str, Any]:
        return getattr(self._data, "ld", None) or {}

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        return getattr(self._data, name)


class WrappedCoverage(_Wrapped):
    """A coverage whose subsetting may be delegated to a remote API."""

    async def load_domain(self) -> Domain:
        return await self._data.load_domain()

    async def subset_by_value(self, constraints: Mapping[str, Any]) -> Any:
        """Subset by axis values (Exact, Range, Nearest per axis)."""
        domain = await self._data.load_domain()
        cleaned = clean_constraints(constraints, coerce_value_constraint, operation="subset")
        check_axes(domain, cleaned, operation="subset")
        if not requires_subsetting(domain, cleaned):
            return self
        plan = split(
            OperationKind.SUBSET,
            cleaned,
            domain,
            self._capabilities,
            snap_ranges=self._options.snap_ranges,
        )
        return await self._run(plan, lambda cov: cov.subset_by_value(plan.local))

    async def subset_by_index(self, constraints: Mapping[str, Any]) -> Any:
        """Subset by axis positions (Index, IndexRange per axis)."""
        domain = await self._data.load_domain()
        cleaned = clean_constraints(constraints, coerce_index_constraint, operation="subset")
        check_axes(domain, cleaned, operation="subset")
        if not requires_subsetting(domain, cleaned):
            return self
        plan = split_index(cleaned, domain, self._capabilities)
        return await self._run(plan, lambda cov: cov.subset_by_index(plan.local))

    async def _run(self, plan: Plan, apply_local: Callable[[Any], Awaitable[Any]]) -> Any:
        self._options.notify_plan(plan)
        executor = RemoteExecutor(self._capabilities, self._options)
        outcome = await executor.execute(self._data, subset_plan=plan)
        return await compose(
            outcome,
            has_local=plan.has_local,
            apply_local=apply_local,
            options=self._options,
        )


@dataclass(frozen=True)
class PageLink:
    """A lazily followed paging link."""

    url: str
    options: WrapOptions

    async def load(self) -> WrappedCoverage | WrappedCollection:
        headers = dict(self.options.headers)
        self.options.notify("pre_request", url=self.url, headers=headers)
        page = await self.options.loader(self.url, headers)
        return await wrap_with(page, self.options)


@dataclass(frozen=True)
class Paging:
    """Navigation over the pages of a collection view."""

    total: int | None = None
    first: PageLink | None = None
    previous: PageLink | None = None
    next: PageLink | None = None
    last: PageLink | None = None


class WrappedCollection(_Wrapped):
    """A coverage collection whose queries may be delegated to a remote API."""

    def __init__(self, data: Any, capabilities: CapabilityDescriptor, options: WrapOptions) -> None:
        super().__init__(data, capabilities, options)
        self.paging = self._build_paging()

    @property
    def coverages(self) -> Any:
        return self._data.coverages

    @property
    def domain_template(self) -> Domain | None:
        return getattr(self._data, "domain_template", None)

    def query(self) -> CollectionQuery:
        from covrest.services.query import CollectionQuery

        return CollectionQuery(self)

    def _build_paging(self) -> Paging | None:
        info = self._capabilities.paging
        if info is None:
            return None

        def link(url: str | None) -> PageLink | None:
            return PageLink(url=url, options=self._options) if url else None

        return Paging(
            total=info.total,
            first=link(info.first),
            previous=link(info.previous),
            next=link(info.next),
            last=link(info.last),
        )
