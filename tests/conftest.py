"""Shared pytest fixtures and test helpers for covrest tests."""

from __future__ import annotations

import asyncio
from collections.abc import Coroutine, Mapping, Sequence
from typing import Any

import httpx
import pytest
from click.testing import CliRunner

from covrest.domain.capabilities import CapabilityDescriptor, PagingInfo, UrlProperty
from covrest.domain.model import Axis, Domain, ReferenceSystem, Referencing
from covrest.domain.types import SystemType
from covrest.services.composer import WrapOptions

TEMPLATE = (
    "http://api.example.org/coverages{?bbox,timeStart,timeEnd,verticalStart,verticalEnd,"
    "subsetBbox,subsetTimeStart,subsetTimeEnd,subsetVerticalStart,subsetVerticalEnd,"
    "subsetVerticalTarget,subsetIndex}"
)

ALL_VARIABLES: dict[UrlProperty, str] = {
    UrlProperty.FILTER_BBOX: "bbox",
    UrlProperty.FILTER_TIME_START: "timeStart",
    UrlProperty.FILTER_TIME_END: "timeEnd",
    UrlProperty.FILTER_VERTICAL_START: "verticalStart",
    UrlProperty.FILTER_VERTICAL_END: "verticalEnd",
    UrlProperty.SUBSET_BBOX: "subsetBbox",
    UrlProperty.SUBSET_TIME_START: "subsetTimeStart",
    UrlProperty.SUBSET_TIME_END: "subsetTimeEnd",
    UrlProperty.SUBSET_VERTICAL_START: "subsetVerticalStart",
    UrlProperty.SUBSET_VERTICAL_END: "subsetVerticalEnd",
    UrlProperty.SUBSET_VERTICAL_TARGET: "subsetVerticalTarget",
    UrlProperty.SUBSET_INDEX: "subsetIndex",
}


def run(coro: Coroutine[Any, Any, Any]) -> Any:
    """Drive a coroutine to completion."""
    return asyncio.run(coro)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------


def make_domain(
    axes: Mapping[str, Sequence[Any]],
    referencing: Sequence[tuple[Sequence[str], SystemType]] = (),
) -> Domain:
    """Build a domain from ``{key: values}`` and ``[(components, system type)]``."""
    return Domain(
        axes={key: Axis(key=key, values=tuple(values)) for key, values in axes.items()},
        referencing=tuple(
            Referencing(components=tuple(components), system=ReferenceSystem(type=system_type))
            for components, system_type in referencing
        ),
    )


def grid_domain() -> Domain:
    """x/y geodetic, t temporal, z vertical."""
    return make_domain(
        {
            "x": [-20.0, -10.0, 0.0, 10.0, 20.0],
            "y": [40.0, 45.0, 50.0],
            "t": ["2020-01-01", "2020-01-02", "2020-01-03"],
            "z": [0.0, 10.0, 20.0, 30.0],
        },
        [
            (("x", "y"), SystemType.GEODETIC),
            (("t",), SystemType.TEMPORAL),
            (("z",), SystemType.VERTICAL),
        ],
    )


def descriptor(
    *props: UrlProperty,
    can_include: bool = False,
    paging: PagingInfo | None = None,
    base_url: str | None = "http://api.example.org/coverages/1",
) -> CapabilityDescriptor:
    """Descriptor for the shared template exposing only *props*."""
    return CapabilityDescriptor.from_url_template(
        TEMPLATE,
        {p: ALL_VARIABLES[p] for p in props},
        can_include=can_include,
        paging=paging,
        base_url=base_url,
    )


# ---------------------------------------------------------------------------
# Fakes
# ---------------------------------------------------------------------------


class FakeCoverage:
    """In-memory coverage recording every local operation."""

    def __init__(self, domain: Domain, *, id: str | None = None, label: str = "original") -> None:
        self.id = id
        self.ld: dict[str, Any] = {"id": id} if id else {}
        self.domain = domain
        self.label = label
        self.calls: list[tuple[str, dict[str, Any]]] = []

    async def load_domain(self) -> Domain:
        return self.domain

    async def subset_by_value(self, constraints: Mapping[str, Any]) -> FakeCoverage:
        self.calls.append(("subset_by_value", dict(constraints)))
        return FakeCoverage(self.domain, label="local-subset")

    async def subset_by_index(self, constraints: Mapping[str, Any]) -> FakeCoverage:
        self.calls.append(("subset_by_index", dict(constraints)))
        return FakeCoverage(self.domain, label="local-subset")


class FakeQuery:
    def __init__(self, collection: FakeCollection) -> None:
        self.collection = collection
        self.filters: dict[str, Any] = {}
        self.subsets: dict[str, Any] = {}
        self.embeds: dict[str, bool] = {}

    def filter(self, spec: Mapping[str, Any]) -> FakeQuery:
        self.filters.update(spec)
        return self

    def subset(self, spec: Mapping[str, Any]) -> FakeQuery:
        self.subsets.update(spec)
        return self

    def embed(self, spec: Mapping[str, bool]) -> FakeQuery:
        self.embeds.update(spec)
        return self

    async def execute(self) -> FakeCollection:
        self.collection.executed.append(self)
        return FakeCollection([], label="local-query")


class FakeCollection:
    """In-memory collection recording executed local queries."""

    def __init__(
        self,
        coverages: Sequence[FakeCoverage],
        *,
        id: str | None = None,
        domain_template: Domain | None = None,
        label: str = "original",
    ) -> None:
        self.id = id
        self.ld: dict[str, Any] = {"id": id} if id else {}
        self.coverages = list(coverages)
        self.domain_template = domain_template
        self.label = label
        self.executed: list[FakeQuery] = []

    def query(self) -> FakeQuery:
        return FakeQuery(self)


class RecordingLoader:
    """Loader returning a fixed object and recording ``(url, headers)`` calls."""

    def __init__(self, result: Any = None) -> None:
        self.result = result
        self.calls: list[tuple[str, dict[str, str]]] = []

    async def __call__(self, url: str, headers: Mapping[str, str] | None = None) -> Any:
        self.calls.append((url, dict(headers or {})))
        return self.result


def static_discover(result: CapabilityDescriptor) -> Any:
    """Discovery collaborator answering *result* for every object."""

    async def discover(data: Any) -> CapabilityDescriptor:
        return result

    return discover


def make_options(
    capabilities: CapabilityDescriptor,
    loader: RecordingLoader,
    **kwargs: Any,
) -> WrapOptions:
    return WrapOptions(loader=loader, discover=static_discover(capabilities), **kwargs)


# ---------------------------------------------------------------------------
# Mock coverage API (httpx.MockTransport)
# ---------------------------------------------------------------------------

API_ROOT = "http://api.example.org/coverages"
API_TIMES = ["2020-01-01T00:00:00Z", "2020-01-02T00:00:00Z", "2020-01-03T00:00:00Z"]


def api_coverage_doc(cov_id: str, times: Sequence[str] = API_TIMES, *, api: bool = True) -> dict[str, Any]:
    """A temperature time series at one point, optionally advertising a subset API."""
    doc: dict[str, Any] = {
        "@context": ["https://covjson.org/context.jsonld"],
        "type": "Coverage",
        "id": cov_id,
        "domain": {
            "type": "Domain",
            "axes": {"x": {"values": [5.0]}, "y": {"values": [45.0]}, "t": {"values": list(times)}},
            "referencing": [
                {"coordinates": ["x", "y"], "system": {"type": "GeodeticCRS"}},
                {"coordinates": ["t"], "system": {"type": "TemporalRS", "calendar": "Gregorian"}},
            ],
        },
        "ranges": {
            "temp": {
                "type": "NdArray",
                "dataType": "float",
                "axisNames": ["t"],
                "shape": [len(times)],
                "values": [float(i) for i in range(len(times))],
            }
        },
    }
    if api:
        doc["api"] = {
            "type": "IriTemplate",
            "template": cov_id + "{?subsetTimeStart,subsetTimeEnd}",
            "mapping": [
                {"type": "IriTemplateMapping", "variable": "subsetTimeStart", "property": "covapi:subsetTimeStart"},
                {"type": "IriTemplateMapping", "variable": "subsetTimeEnd", "property": "covapi:subsetTimeEnd"},
            ],
        }
    return doc


def api_collection_doc(members: Sequence[int] = (1, 2)) -> dict[str, Any]:
    """A collection advertising time filtering."""
    return {
        "@context": ["https://covjson.org/context.jsonld"],
        "type": "CoverageCollection",
        "id": API_ROOT,
        "coverages": [api_coverage_doc(f"{API_ROOT}/{n}", api=False) for n in members],
        "api": {
            "type": "IriTemplate",
            "template": API_ROOT + "{?timeStart,timeEnd}",
            "mapping": [
                {
                    "type": "IriTemplateMapping",
                    "variable": "timeStart",
                    "property": "http://a9.com/-/opensearch/extensions/time/1.0/start",
                },
                {
                    "type": "IriTemplateMapping",
                    "variable": "timeEnd",
                    "property": "http://a9.com/-/opensearch/extensions/time/1.0/end",
                },
            ],
        },
    }


class MockApi:
    """Serves coverage documents and records every request it sees."""

    def __init__(self) -> None:
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.rstrip("/")
        params = request.url.params
        if path == "/coverages":
            members = (1,) if "timeStart" in params else (1, 2)
            return httpx.Response(200, json=api_collection_doc(members))
        if path == "/coverages/1":
            times = _between(params.get("subsetTimeStart"), params.get("subsetTimeEnd"))
            return httpx.Response(200, json=api_coverage_doc(API_ROOT + "/1", times))
        if path == "/plain":
            return httpx.Response(200, json=api_coverage_doc("http://api.example.org/plain", api=False))
        return httpx.Response(404, json={"error": "not found"})

    @property
    def urls(self) -> list[str]:
        return [str(r.url) for r in self.requests]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def _between(start: str | None, stop: str | None) -> list[str]:
    return [t for t in API_TIMES if (start is None or t >= start) and (stop is None or t <= stop)]


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def cli_runner() -> CliRunner:
    """Provide a Click CLI test runner."""
    return CliRunner()


@pytest.fixture
def domain() -> Domain:
    return grid_domain()


@pytest.fixture
def loader() -> RecordingLoader:
    return RecordingLoader(result=FakeCoverage(grid_domain(), id="http://api.example.org/coverages/remote"))


@pytest.fixture
def mock_api() -> MockApi:
    return MockApi()
