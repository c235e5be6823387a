"""Collection queries — accumulate filter/subset/embed, then execute once."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from covrest.domain.constraints import Constraint, coerce_value_constraint
from covrest.domain.model import Domain
from covrest.domain.types import EmbedPart, OperationKind
from covrest.errors import QueryError
from covrest.services.composer import compose
from covrest.services.executor import RemoteExecutor
from covrest.services.planner import check_axes, clean_constraints, split

if TYPE_CHECKING:
    from covrest.services.composer import WrappedCollection

logger = logging.getLogger(__name__)


class CollectionQuery:
    """Chainable query over a wrapped collection.

    ``filter``, ``subset`` and ``embed`` merge their spec into the
    accumulator and return the same query. ``execute`` may be called once.
    """

    def __init__(self, collection: WrappedCollection) -> None:
        self._collection = collection
        self._filter: dict[str, Any] = {}
        self._subset: dict[str, Any] = {}
        self._embed: dict[str, bool] = {}
        self._executed = False

    def filter(self, spec: Mapping[str, Any]) -> CollectionQuery:
        self._filter.update(spec)
        return self

    def subset(self, spec: Mapping[str, Any]) -> CollectionQuery:
        self._subset.update(spec)
        return self

    def embed(self, spec: Mapping[str, bool]) -> CollectionQuery:
        self._embed.update(spec)
        return self

    def embed_parts(self) -> frozenset[EmbedPart]:
        """Requested embed parts; unknown part names are rejected."""
        parts: set[EmbedPart] = set()
        for name, wanted in self._embed.items():
            try:
                part = EmbedPart(name)
            except ValueError:
                msg = f"Unknown embeddable part '{name}'"
                raise QueryError(msg, operation="embed") from None
            if wanted:
                parts.add(part)
        return frozenset(parts)

    async def execute(self) -> Any:
        """Run the query: at most one remote call, then the local remainder."""
        if self._executed:
            msg = "Query has already been executed"
            raise QueryError(msg, operation="query")
        self._executed = True

        collection = self._collection
        options = collection.options
        capabilities = collection.capabilities
        filters = clean_constraints(self._filter, coerce_value_constraint, operation="filter")
        subsets = clean_constraints(self._subset, coerce_value_constraint, operation="subset")
        parts = self.embed_parts()

        if not (filters or subsets or parts):
            return collection

        domain = await self._resolve_domain()
        if domain is None:
            logger.debug("No domain available for %s, querying locally", collection.id)
            return await _apply_local(collection.data, filters, subsets, parts)

        check_axes(domain, filters, operation="filter")
        check_axes(domain, subsets, operation="subset")
        filter_plan = split(OperationKind.FILTER, filters, domain, capabilities)
        subset_plan = split(
            OperationKind.SUBSET,
            subsets,
            domain,
            capabilities,
            snap_ranges=options.snap_ranges,
        )
        options.notify_plan(filter_plan)
        options.notify_plan(subset_plan)

        embed_remote = bool(parts) and all(capabilities.can_embed(p) for p in parts)

        if not (filter_plan.has_remote or subset_plan.has_remote or embed_remote):
            return await _apply_local(collection.data, filters, subsets, parts)

        # Unsupported embeds are dropped once a remote call happens; the
        # remote result is wrapped and loads its parts on demand.
        executor = RemoteExecutor(capabilities, options)
        outcome = await executor.execute(
            collection.data,
            filter_plan=filter_plan,
            subset_plan=subset_plan,
            embed=parts if embed_remote else (),
        )

        async def apply_local(data: Any) -> Any:
            return await _apply_local(data, filter_plan.local, subset_plan.local, frozenset())

        return await compose(
            outcome,
            has_local=bool(filter_plan.local or subset_plan.local),
            apply_local=apply_local,
            options=options,
        )

    async def _resolve_domain(self) -> Domain | None:
        template = self._collection.domain_template
        if template is not None:
            return template
        coverages = list(self._collection.coverages or [])
        if not coverages:
            return None
        return await coverages[0].load_domain()


async def _apply_local(
    data: Any,
    filters: Mapping[str, Constraint],
    subsets: Mapping[str, Constraint],
    parts: frozenset[EmbedPart],
) -> Any:
    query = data.query()
    if filters:
        query = query.filter(dict(filters))
    if subsets:
        query = query.subset(dict(subsets))
    if parts:
        query = query.embed({str(p): True for p in parts})
    return await query.execute()
