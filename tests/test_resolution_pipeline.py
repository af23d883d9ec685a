from __future__ import annotations

import asyncio
from datetime import timedelta

import pytest

from fakes import (
    NEW_YORK,
    NEW_YORK_POINT,
    FakeClock,
    FakeGeoResolver,
    FakeStore,
    make_record,
    make_retry,
    make_settings,
)
from timevault.application import ResolutionPipeline
from timevault.domain import (
    ErrorKind,
    GeoCoordinate,
    LocationKey,
    ResolutionSource,
    TransientUpstreamError,
    UpstreamError,
)


def _pipeline(store, geo, clock, id_factory, **overrides) -> ResolutionPipeline:
    settings = make_settings(**overrides)
    return ResolutionPipeline(
        store,
        geo,
        settings,
        retry_policy=make_retry(settings),
        clock=clock,
        id_factory=id_factory,
    )


def test_resolves_and_caches_new_location(store, geo, clock, id_factory) -> None:
    pipeline = _pipeline(store, geo, clock, id_factory)

    result = asyncio.run(pipeline.resolve(NEW_YORK))

    assert result.ok
    assert result.iana_code == "America/New_York"
    assert result.source is ResolutionSource.RESOLVED
    assert geo.geocode_calls == ["new york, ny, us"]
    assert geo.timezone_calls == [NEW_YORK_POINT]

    [record] = store.records.values()
    assert record.id == "rec-0001"
    assert record.location == NEW_YORK
    assert record.coordinate == NEW_YORK_POINT
    assert record.last_updated == clock.now


def test_second_resolution_is_served_from_cache(store, geo, clock, id_factory) -> None:
    pipeline = _pipeline(store, geo, clock, id_factory)

    first = asyncio.run(pipeline.resolve(NEW_YORK))
    calls_after_first = geo.total_calls
    second = asyncio.run(pipeline.resolve(NEW_YORK))

    assert first.iana_code == second.iana_code
    assert second.source is ResolutionSource.CACHE
    assert geo.total_calls == calls_after_first
    assert len(store.records) == 1


def test_partial_key_matches_cached_record(store, geo, clock, id_factory) -> None:
    store.records["a"] = make_record(
        "a", "America/New_York", NEW_YORK, NEW_YORK_POINT, clock.now
    )
    pipeline = _pipeline(store, geo, clock, id_factory)

    result = asyncio.run(pipeline.resolve(LocationKey(city="new york")))

    assert result.iana_code == "America/New_York"
    assert geo.total_calls == 0


def test_stale_record_is_refreshed_keeping_its_id(store, geo, clock, id_factory) -> None:
    store.records["rec-antigo"] = make_record(
        "rec-antigo",
        "America/Detroit",
        NEW_YORK,
        GeoCoordinate(0.0, 0.0),
        clock.now - timedelta(minutes=61),
    )
    pipeline = _pipeline(store, geo, clock, id_factory, staleness_minutes=60)

    result = asyncio.run(pipeline.resolve(NEW_YORK))

    assert result.iana_code == "America/New_York"
    assert result.source is ResolutionSource.RESOLVED
    assert list(store.records) == ["rec-antigo"]
    record = store.records["rec-antigo"]
    assert record.coordinate == NEW_YORK_POINT
    assert record.last_updated == clock.now


def test_fresh_record_within_window_is_not_refreshed(store, geo, clock, id_factory) -> None:
    store.records["a"] = make_record(
        "a", "America/New_York", NEW_YORK, NEW_YORK_POINT, clock.now
    )
    pipeline = _pipeline(store, geo, clock, id_factory, staleness_minutes=60)

    clock.advance(timedelta(minutes=59))
    assert asyncio.run(pipeline.resolve(NEW_YORK)).source is ResolutionSource.CACHE
    assert geo.total_calls == 0

    clock.advance(timedelta(minutes=2))
    assert asyncio.run(pipeline.resolve(NEW_YORK)).source is ResolutionSource.RESOLVED
    assert geo.total_calls == 2


def test_stale_record_is_returned_when_refresh_fails(store, geo, clock, id_factory) -> None:
    store.records["a"] = make_record(
        "a", "America/New_York", NEW_YORK, NEW_YORK_POINT, clock.now - timedelta(days=60)
    )
    geo.geocode_errors["new york, ny, us"] = [UpstreamError("401")]
    pipeline = _pipeline(store, geo, clock, id_factory)

    result = asyncio.run(pipeline.resolve(NEW_YORK))

    assert result.ok
    assert result.iana_code == "America/New_York"
    assert result.source is ResolutionSource.STALE
    assert store.upserts == []


def test_transient_geocode_failure_is_retried(store, geo, clock, id_factory) -> None:
    geo.geocode_errors["new york, ny, us"] = [TransientUpstreamError("503")]
    pipeline = _pipeline(store, geo, clock, id_factory)

    result = asyncio.run(pipeline.resolve(NEW_YORK))

    assert result.iana_code == "America/New_York"
    assert geo.geocode_calls == ["new york, ny, us", "new york, ny, us"]


def test_upstream_error_after_retries_are_exhausted(store, geo, clock, id_factory) -> None:
    geo.timezone_errors[NEW_YORK_POINT] = [TransientUpstreamError("503")] * 3
    pipeline = _pipeline(store, geo, clock, id_factory)

    result = asyncio.run(pipeline.resolve(NEW_YORK))

    assert result.error_kind is ErrorKind.UPSTREAM_ERROR
    assert len(geo.timezone_calls) == 3
    assert store.records == {}


def test_persistence_failure_still_returns_code(store, geo, clock, id_factory) -> None:
    store.always_fail_upsert = UpstreamError("escrita recusada")
    pipeline = _pipeline(store, geo, clock, id_factory)

    result = asyncio.run(pipeline.resolve(NEW_YORK))

    assert result.ok
    assert result.iana_code == "America/New_York"
    assert result.persistence_warning is not None
    assert "escrita recusada" in result.persistence_warning


def test_lowest_id_wins_among_duplicates(store, geo, clock, id_factory) -> None:
    store.records["b"] = make_record("b", "Europe/Paris", NEW_YORK, NEW_YORK_POINT, clock.now)
    store.records["a"] = make_record("a", "Europe/Berlin", NEW_YORK, NEW_YORK_POINT, clock.now)
    pipeline = _pipeline(store, geo, clock, id_factory)

    result = asyncio.run(pipeline.resolve(NEW_YORK))

    assert result.iana_code == "Europe/Berlin"


def test_geocode_without_results_is_not_found(store, clock, id_factory) -> None:
    geo = FakeGeoResolver()
    pipeline = _pipeline(store, geo, clock, id_factory)

    result = asyncio.run(pipeline.resolve(LocationKey(city="atlantis")))

    assert result.error_kind is ErrorKind.NOT_FOUND
    assert geo.timezone_calls == []
    assert store.upserts == []


def test_empty_key_is_invalid_input_without_calls(store, geo, clock, id_factory) -> None:
    pipeline = _pipeline(store, geo, clock, id_factory)

    result = asyncio.run(pipeline.resolve(LocationKey()))

    assert result.error_kind is ErrorKind.INVALID_INPUT
    assert store.query_calls == []
    assert geo.total_calls == 0


def test_store_read_failure_is_upstream_error(store, geo, clock, id_factory) -> None:
    store.query_errors.append(UpstreamError("sem permissão"))
    pipeline = _pipeline(store, geo, clock, id_factory)

    result = asyncio.run(pipeline.resolve(NEW_YORK))

    assert result.error_kind is ErrorKind.UPSTREAM_ERROR
    assert geo.total_calls == 0


def test_resolve_coordinate_skips_geocoding(store, geo, clock, id_factory) -> None:
    pipeline = _pipeline(store, geo, clock, id_factory)

    first = asyncio.run(pipeline.resolve_coordinate(NEW_YORK_POINT))
    second = asyncio.run(pipeline.resolve_coordinate(NEW_YORK_POINT))

    assert first.iana_code == "America/New_York"
    assert first.source is ResolutionSource.RESOLVED
    assert second.source is ResolutionSource.CACHE
    assert geo.geocode_calls == []
    assert geo.timezone_calls == [NEW_YORK_POINT]
    [record] = store.records.values()
    assert record.location.is_empty()


def test_search_uses_cache_only(store, geo, clock, id_factory) -> None:
    pipeline = _pipeline(store, geo, clock, id_factory, staleness_minutes=60)

    missing = asyncio.run(pipeline.search(NEW_YORK))
    assert missing.error_kind is ErrorKind.NOT_FOUND

    store.records["a"] = make_record(
        "a", "America/New_York", NEW_YORK, NEW_YORK_POINT, clock.now - timedelta(hours=2)
    )
    stale = asyncio.run(pipeline.search(NEW_YORK))
    by_point = asyncio.run(pipeline.search_coordinate(NEW_YORK_POINT))

    assert stale.iana_code == "America/New_York"
    assert stale.source is ResolutionSource.STALE
    assert by_point.iana_code == "America/New_York"
    assert geo.total_calls == 0
    assert store.upserts == []


def test_pipeline_requires_settings() -> None:
    with pytest.raises(ValueError):
        ResolutionPipeline(FakeStore(), FakeGeoResolver(), None)  # type: ignore[arg-type]


def test_clock_is_used_for_record_timestamps(store, geo, id_factory) -> None:
    clock = FakeClock()
    clock.advance(timedelta(days=3))
    pipeline = _pipeline(store, geo, clock, id_factory)

    asyncio.run(pipeline.resolve(NEW_YORK))

    [record] = store.records.values()
    assert record.last_updated == clock.now


def test_new_york_usa_is_resolved_and_persisted_once(store, clock, id_factory) -> None:
    key = LocationKey(city="new york", country="usa")
    point = GeoCoordinate(40.71, -74.00)
    geo = FakeGeoResolver({"new york, usa": point}, {point: "America/New_York"})
    pipeline = _pipeline(store, geo, clock, id_factory)

    result = asyncio.run(pipeline.resolve(key))

    assert result.iana_code == "America/New_York"
    [record] = store.records.values()
    assert record.location == key
    assert record.coordinate == point
