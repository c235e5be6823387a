"""Tests for collection queries: filter/subset/embed planning and paging."""

from __future__ import annotations

from typing import Any
from urllib.parse import parse_qs, urlsplit

import pytest

from covrest.domain.capabilities import EMBED_IRIS, CapabilityDescriptor, PagingInfo, UrlProperty
from covrest.domain.constraints import Range
from covrest.domain.types import EmbedPart, SystemType
from covrest.errors import QueryError
from covrest.services.composer import WrappedCollection, wrap
from tests.conftest import (
    FakeCollection,
    FakeCoverage,
    RecordingLoader,
    descriptor,
    grid_domain,
    make_domain,
    run,
    static_discover,
)

TIME_FILTER = (UrlProperty.FILTER_TIME_START, UrlProperty.FILTER_TIME_END)


def time_domain() -> Any:
    return make_domain(
        {"t": ["2020-01-01", "2020-01-02", "2020-01-03"]},
        [(("t",), SystemType.TEMPORAL)],
    )


def wrapped(data: Any, caps: CapabilityDescriptor, loader: RecordingLoader) -> WrappedCollection:
    return run(wrap(data, loader, discover=static_discover(caps)))


class TestTimeFilterScenario:
    def test_one_remote_call_with_iso_strings(self) -> None:
        loader = RecordingLoader(result=FakeCollection([], id="http://api.example.org/coverages?page=1"))
        coll = wrapped(FakeCollection([], domain_template=time_domain()), descriptor(*TIME_FILTER), loader)
        result = run(
            coll.query().filter({"t": Range(start="2020-01-01T12:00:00Z", stop="2020-01-02T12:00:00Z")}).execute()
        )
        assert len(loader.calls) == 1
        query = parse_qs(urlsplit(loader.calls[0][0]).query)
        assert query["timeStart"] == ["2020-01-01T12:00:00Z"]
        assert query["timeEnd"] == ["2020-01-02T12:00:00Z"]
        assert isinstance(result, WrappedCollection)
        assert result.data is loader.result
        assert coll.data.executed == []


class TestCollectionQuery:
    def test_chainable(self, loader: RecordingLoader) -> None:
        q = wrapped(FakeCollection([]), descriptor(), loader).query()
        assert q.filter({}) is q
        assert q.subset({}) is q
        assert q.embed({}) is q

    def test_no_constraints_returns_collection(self, loader: RecordingLoader) -> None:
        coll = wrapped(FakeCollection([], domain_template=time_domain()), descriptor(*TIME_FILTER), loader)
        assert run(coll.query().execute()) is coll
        assert loader.calls == []

    def test_execute_only_once(self, loader: RecordingLoader) -> None:
        q = wrapped(FakeCollection([]), descriptor(), loader).query()
        run(q.execute())
        with pytest.raises(QueryError, match="already been executed"):
            run(q.execute())

    def test_domain_from_first_coverage(self) -> None:
        loader = RecordingLoader(result=FakeCollection([]))
        coll = wrapped(FakeCollection([FakeCoverage(time_domain())]), descriptor(*TIME_FILTER), loader)
        run(coll.query().filter({"t": {"start": "2020-01-01", "stop": "2020-01-02"}}).execute())
        assert len(loader.calls) == 1

    def test_without_any_domain_runs_locally(self, loader: RecordingLoader) -> None:
        original = FakeCollection([])
        coll = wrapped(original, descriptor(*TIME_FILTER), loader)
        result = run(coll.query().filter({"t": {"start": "2020-01-01", "stop": "2020-01-02"}}).execute())
        assert loader.calls == []
        assert result.label == "local-query"
        assert original.executed[0].filters == {"t": Range(start="2020-01-01", stop="2020-01-02")}

    def test_bbox_without_y_subset_is_local(self, loader: RecordingLoader) -> None:
        original = FakeCollection([], domain_template=grid_domain())
        coll = wrapped(original, descriptor(UrlProperty.SUBSET_BBOX), loader)
        result = run(coll.query().subset({"x": Range(start=-10.0, stop=10.0)}).execute())
        assert loader.calls == []
        assert original.executed[0].subsets == {"x": Range(start=-10.0, stop=10.0)}
        assert not isinstance(result, WrappedCollection)

    def test_remote_filter_with_local_subset(self) -> None:
        remote = FakeCollection([])
        loader = RecordingLoader(result=remote)
        original = FakeCollection([], domain_template=grid_domain())
        caps = descriptor(UrlProperty.FILTER_TIME_START, UrlProperty.FILTER_TIME_END)
        coll = wrapped(original, caps, loader)
        result = run(
            coll.query()
            .filter({"t": {"start": "2020-01-01", "stop": "2020-01-02"}})
            .subset({"z": {"start": 0, "stop": 10}})
            .execute()
        )
        assert len(loader.calls) == 1
        assert original.executed == []
        assert remote.executed[0].filters == {}
        assert remote.executed[0].subsets == {"z": Range(start=0.0, stop=10.0)}
        assert result.label == "local-query"

    def test_unknown_filter_axis_raises(self, loader: RecordingLoader) -> None:
        coll = wrapped(FakeCollection([], domain_template=time_domain()), descriptor(*TIME_FILTER), loader)
        with pytest.raises(QueryError) as excinfo:
            run(coll.query().filter({"w": 1}).execute())
        assert excinfo.value.operation == "filter"


class TestEmbed:
    def test_supported_embed_goes_remote_with_prefer_header(self, loader: RecordingLoader) -> None:
        loader.result = FakeCollection([])
        coll = wrapped(FakeCollection([], domain_template=time_domain()), descriptor(can_include=True), loader)
        result = run(coll.query().embed({"domain": True, "range": True}).execute())
        url, headers = loader.calls[0]
        assert url == "http://api.example.org/coverages"
        assert EMBED_IRIS[EmbedPart.DOMAIN] in headers["Prefer"]
        assert isinstance(result, WrappedCollection)

    def test_unsupported_embed_applied_locally(self, loader: RecordingLoader) -> None:
        original = FakeCollection([], domain_template=time_domain())
        coll = wrapped(original, descriptor(), loader)
        run(coll.query().embed({"domain": True}).execute())
        assert loader.calls == []
        assert original.executed[0].embeds == {"domain": True}

    def test_unsupported_embed_dropped_with_remote_filter(self) -> None:
        remote = FakeCollection([])
        loader = RecordingLoader(result=remote)
        original = FakeCollection([], domain_template=time_domain())
        coll = wrapped(original, descriptor(*TIME_FILTER), loader)
        result = run(
            coll.query()
            .filter({"t": {"start": "2020-01-01", "stop": "2020-01-02"}})
            .embed({"domain": True})
            .execute()
        )
        assert len(loader.calls) == 1
        assert "Prefer" not in loader.calls[0][1]
        assert remote.executed == []
        assert isinstance(result, WrappedCollection)
        assert result.data is remote

    def test_false_embed_flags_are_ignored(self, loader: RecordingLoader) -> None:
        coll = wrapped(FakeCollection([]), descriptor(can_include=True), loader)
        assert run(coll.query().embed({"domain": False}).execute()) is coll

    def test_unknown_part_rejected(self, loader: RecordingLoader) -> None:
        coll = wrapped(FakeCollection([]), descriptor(can_include=True), loader)
        with pytest.raises(QueryError) as excinfo:
            run(coll.query().embed({"metadata": True}).execute())
        assert excinfo.value.operation == "embed"

    def test_embed_headers_carry_over_to_paging(self, loader: RecordingLoader) -> None:
        paging = PagingInfo(total=3, next="http://api.example.org/coverages?page=2")
        caps = descriptor(can_include=True, paging=paging)
        loader.result = FakeCollection([])
        coll = wrapped(FakeCollection([], domain_template=time_domain()), caps, loader)
        first_page = run(coll.query().embed({"range": True}).execute())
        run(first_page.paging.next.load())
        assert len(loader.calls) == 2
        follow_url, follow_headers = loader.calls[1]
        assert follow_url == "http://api.example.org/coverages?page=2"
        assert EMBED_IRIS[EmbedPart.RANGE] in follow_headers["Prefer"]
