"""Tests for the httpx-backed loader."""

from __future__ import annotations

import httpx
import pytest

from covrest.infrastructure.covjson import CovJsonCoverage
from covrest.infrastructure.http import HttpLoader
from tests.conftest import run

DOC = {
    "type": "Coverage",
    "id": "http://api.example.org/coverages/1",
    "domain": {"type": "Domain", "axes": {"z": {"values": [0, 10]}}},
    "ranges": {},
}


class TestHttpLoader:
    def test_decodes_coverage(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=DOC))
        loader = HttpLoader(transport=transport)
        cov = run(loader("http://api.example.org/coverages/1"))
        assert isinstance(cov, CovJsonCoverage)
        assert cov.id == "http://api.example.org/coverages/1"

    def test_per_call_headers_override_defaults(self) -> None:
        seen: list[httpx.Headers] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request.headers)
            return httpx.Response(200, json=DOC)

        loader = HttpLoader(
            headers={"Accept": "application/json", "User-Agent": "covrest-test"},
            transport=httpx.MockTransport(handler),
        )
        run(loader("http://api.example.org/coverages/1", {"Accept": "application/prs.coverage+json"}))
        assert seen[0]["accept"] == "application/prs.coverage+json"
        assert seen[0]["user-agent"] == "covrest-test"

    def test_http_errors_propagate(self) -> None:
        loader = HttpLoader(transport=httpx.MockTransport(lambda request: httpx.Response(503)))
        with pytest.raises(httpx.HTTPStatusError):
            run(loader("http://api.example.org/coverages/1"))

    def test_domain_urls_resolved_through_the_same_client(self) -> None:
        doc = dict(DOC, domain="http://api.example.org/coverages/1/domain")
        requested: list[str] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requested.append(str(request.url))
            if request.url.path.endswith("/domain"):
                return httpx.Response(200, json=DOC["domain"])
            return httpx.Response(200, json=doc)

        loader = HttpLoader(transport=httpx.MockTransport(handler))
        cov = run(loader("http://api.example.org/coverages/1"))
        domain = run(cov.load_domain())
        assert domain.axis("z").values == (0.0, 10.0)
        assert requested[-1] == "http://api.example.org/coverages/1/domain"
