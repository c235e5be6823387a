"""HTTP loader — fetch a CoverageJSON document and decode it into a data object.

The loader is the injected ``(url, headers=None)`` collaborator the wrapping
layer calls. It performs no retries and no caching; HTTP and decoding errors
propagate to the caller unchanged.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

import httpx

from covrest.infrastructure.covjson import read_document

logger = logging.getLogger(__name__)


class HttpLoader:
    """Async loader backed by :class:`httpx.AsyncClient`.

    Args:
        headers: Default headers sent with every request; per-call headers
            win on conflict.
        timeout: Request timeout in seconds.
        transport: Optional transport, e.g. ``httpx.MockTransport`` in tests.
    """

    def __init__(
        self,
        *,
        headers: Mapping[str, str] | None = None,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.headers = dict(headers or {})
        self.timeout = timeout
        self._transport = transport

    async def fetch_json(self, url: str, headers: Mapping[str, str] | None = None) -> Any:
        """GET *url* and return the decoded JSON body."""
        merged = {**self.headers, **(headers or {})}
        logger.debug("GET %s", url)
        async with httpx.AsyncClient(
            timeout=self.timeout,
            transport=self._transport,
            follow_redirects=True,
        ) as client:
            response = await client.get(url, headers=merged)
            response.raise_for_status()
            return response.json()

    async def __call__(self, url: str, headers: Mapping[str, str] | None = None) -> Any:
        doc = await self.fetch_json(url, headers)
        return read_document(doc, resolve=self.fetch_json)
