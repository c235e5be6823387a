"""One-step loading: fetch a document over HTTP and wrap it."""

from __future__ import annotations

from typing import TYPE_CHECKING

from covrest.config.settings import CovrestSettings
from covrest.infrastructure.http import HttpLoader
from covrest.services.composer import WrappedCollection, WrappedCoverage, wrap

if TYPE_CHECKING:
    import httpx

    from covrest.plugins.manager import PluginManager


def http_loader(
    settings: CovrestSettings | None = None,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> HttpLoader:
    """Build the default loader from the ``[http]`` settings section."""
    http = (settings or CovrestSettings()).http
    headers = {"Accept": http.accept, "User-Agent": http.user_agent, **http.headers}
    return HttpLoader(headers=headers, timeout=http.timeout, transport=transport)


async def read(
    url: str,
    settings: CovrestSettings | None = None,
    *,
    plugins: PluginManager | None = None,
    loader: HttpLoader | None = None,
) -> WrappedCoverage | WrappedCollection:
    """Load the coverage or collection at *url* and attach its capabilities."""
    settings = settings or CovrestSettings()
    loader = loader or http_loader(settings)
    data = await loader(url)
    return await wrap(
        data,
        loader,
        plugins=plugins,
        snap_ranges=settings.query.snap_ranges,
    )
