from __future__ import annotations

import asyncio
from datetime import datetime, timezone
from zoneinfo import ZoneInfo

import pytest

from fakes import LONDON, NEW_YORK, TOKYO, make_retry, make_settings
from timevault.application import (
    BatchResolver,
    ConversionRequest,
    TimeConverter,
    convert_between,
)
from timevault.domain import ErrorKind, LocationKey


def _converter(store, geo, clock, id_factory) -> TimeConverter:
    settings = make_settings()
    resolver = BatchResolver(
        store,
        geo,
        settings,
        retry_policy=make_retry(settings),
        clock=clock,
        id_factory=id_factory,
    )
    return TimeConverter(resolver)


def test_convert_between_treats_naive_time_as_source_local() -> None:
    source, target = convert_between(
        datetime(2024, 1, 15, 12, 0), "America/New_York", "Asia/Tokyo"
    )

    assert source.tzinfo == ZoneInfo("America/New_York")
    assert target == datetime(2024, 1, 16, 2, 0, tzinfo=ZoneInfo("Asia/Tokyo"))
    assert target.hour == 2 and target.day == 16


def test_convert_between_converts_aware_time_into_source_zone_first() -> None:
    source, target = convert_between(
        datetime(2024, 7, 1, 16, 0, tzinfo=timezone.utc), "America/New_York", "Europe/London"
    )

    assert source.hour == 12
    assert target.hour == 17


def test_convert_resolves_both_locations(store, geo, clock, id_factory) -> None:
    converter = _converter(store, geo, clock, id_factory)

    result = asyncio.run(converter.convert(NEW_YORK, LONDON, datetime(2024, 1, 15, 12, 0)))

    assert result.ok
    assert result.from_timezone == "America/New_York"
    assert result.to_timezone == "Europe/London"
    assert result.to_time is not None and result.to_time.hour == 17
    mapping = result.to_mapping()
    assert mapping["toTime"] == "2024-01-15T17:00:00+00:00"
    assert mapping["fromLocation"]["city"] == "new york"


def test_convert_many_deduplicates_locations(store, geo, clock, id_factory) -> None:
    converter = _converter(store, geo, clock, id_factory)
    moment = datetime(2024, 3, 1, 9, 30)
    requests = [
        ConversionRequest(NEW_YORK, LONDON, moment),
        ConversionRequest(LONDON, NEW_YORK, moment),
        ConversionRequest(TOKYO, LONDON, moment),
    ]

    results = asyncio.run(converter.convert_many(requests))

    assert all(result.ok for result in results)
    assert [sorted(call) for call in geo.geocode_batch_calls] == [
        sorted(["new york, ny, us", "london, gb", "tokyo, jp"])
    ]
    assert results[1].to_time is not None and results[1].to_time.hour == 4


def test_empty_location_is_invalid_input(store, geo, clock, id_factory) -> None:
    converter = _converter(store, geo, clock, id_factory)

    result = asyncio.run(converter.convert(LocationKey(), LONDON, datetime(2024, 1, 1)))

    assert result.error_kind is ErrorKind.INVALID_INPUT
    assert "origem" in (result.message or "")
    assert result.to_mapping()["error"] == "invalid_input"


def test_unresolved_location_propagates_failure(store, geo, clock, id_factory) -> None:
    converter = _converter(store, geo, clock, id_factory)

    result = asyncio.run(
        converter.convert(NEW_YORK, LocationKey(city="atlantis"), datetime(2024, 1, 1))
    )

    assert result.error_kind is ErrorKind.NOT_FOUND


def test_unknown_iana_code_is_not_found(store, geo, clock, id_factory) -> None:
    geo.zones[next(iter(geo.zones))] = "Mars/Olympus_Mons"
    converter = _converter(store, geo, clock, id_factory)

    result = asyncio.run(converter.convert(NEW_YORK, LONDON, datetime(2024, 1, 1)))

    assert result.error_kind is ErrorKind.NOT_FOUND
    assert "Mars/Olympus_Mons" in (result.message or "")


@pytest.mark.parametrize("code", ["Europe/Lisbon", "UTC"])
def test_same_zone_conversion_is_identity(code: str) -> None:
    moment = datetime(2024, 5, 5, 8, 15)

    source, target = convert_between(moment, code, code)

    assert source == target
    assert target.replace(tzinfo=None) == moment
