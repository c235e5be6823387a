"""CLI-facing operations — load, wrap, run, and summarize as ServiceResult.

Each operation converts covrest errors and HTTP failures into a failed
ServiceResult so the CLI never sees a traceback for expected problems.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Mapping
from typing import Any

import httpx

from covrest.config.settings import CovrestSettings
from covrest.errors import CovrestError, QueryError
from covrest.infrastructure.http import HttpLoader
from covrest.plugins.manager import PluginManager
from covrest.services.client import read
from covrest.services.composer import WrappedCollection, WrappedCoverage
from covrest.services.result import ServiceResult


async def _guarded(op: str, run: Callable[[], Awaitable[dict[str, Any]]]) -> ServiceResult:
    try:
        data = await run()
    except QueryError as exc:
        return ServiceResult.failure(
            op,
            type(exc).__name__,
            str(exc),
            operation=exc.operation,
            axis=exc.axis,
            concept=exc.concept,
        )
    except CovrestError as exc:
        return ServiceResult.failure(op, type(exc).__name__, str(exc))
    except httpx.HTTPStatusError as exc:
        return ServiceResult.failure(
            op,
            "HTTPStatusError",
            str(exc),
            status=exc.response.status_code,
            url=str(exc.request.url),
        )
    except httpx.HTTPError as exc:
        return ServiceResult.failure(op, type(exc).__name__, str(exc))
    return ServiceResult(ok=True, op=op, data=data)


async def summarize(obj: Any) -> dict[str, Any]:
    """Describe a data object: kind, identifier, axis sizes, remote capability."""
    wrapped = isinstance(obj, WrappedCoverage | WrappedCollection)
    summary: dict[str, Any] = {"id": getattr(obj, "id", None), "remote_capable": wrapped}
    if hasattr(obj, "coverages"):
        summary["kind"] = "collection"
        summary["coverages"] = len(obj.coverages)
        if isinstance(obj, WrappedCollection) and obj.paging is not None:
            summary["total"] = obj.paging.total
    else:
        summary["kind"] = "coverage"
        domain = await obj.load_domain()
        summary["axes"] = {key: len(axis) for key, axis in domain.axes.items()}
    return summary


async def capabilities(
    url: str,
    settings: CovrestSettings,
    *,
    plugins: PluginManager | None = None,
    loader: HttpLoader | None = None,
) -> ServiceResult:
    """Load *url* and report the discovered capability table."""

    async def run() -> dict[str, Any]:
        wrapped = await read(url, settings, plugins=plugins, loader=loader)
        data = wrapped.capabilities.describe()
        data["id"] = wrapped.id
        data["kind"] = "collection" if isinstance(wrapped, WrappedCollection) else "coverage"
        return data

    return await _guarded("capabilities", run)


async def subset(
    url: str,
    settings: CovrestSettings,
    *,
    by_value: Mapping[str, Any] | None = None,
    by_index: Mapping[str, Any] | None = None,
    plugins: PluginManager | None = None,
    loader: HttpLoader | None = None,
) -> ServiceResult:
    """Load the coverage at *url* and subset it by value, then by index."""

    async def run() -> dict[str, Any]:
        result: Any = await read(url, settings, plugins=plugins, loader=loader)
        if not isinstance(result, WrappedCoverage):
            msg = f"{url} is not a coverage"
            raise QueryError(msg, operation="subset")
        if by_value:
            result = await result.subset_by_value(by_value)
        if by_index:
            result = await result.subset_by_index(by_index)
        return await summarize(result)

    return await _guarded("subset", run)


async def query(
    url: str,
    settings: CovrestSettings,
    *,
    filter: Mapping[str, Any] | None = None,  # noqa: A002
    subset: Mapping[str, Any] | None = None,
    embed: Mapping[str, bool] | None = None,
    plugins: PluginManager | None = None,
    loader: HttpLoader | None = None,
) -> ServiceResult:
    """Load the collection at *url* and run a query against it."""

    async def run() -> dict[str, Any]:
        collection = await read(url, settings, plugins=plugins, loader=loader)
        if not isinstance(collection, WrappedCollection):
            msg = f"{url} is not a coverage collection"
            raise QueryError(msg, operation="query")
        q = collection.query()
        if filter:
            q = q.filter(filter)
        if subset:
            q = q.subset(subset)
        if embed:
            q = q.embed(embed)
        return await summarize(await q.execute())

    return await _guarded("query", run)
