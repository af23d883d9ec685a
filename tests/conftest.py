from __future__ import annotations

import pytest

from fakes import (
    LONDON,
    LONDON_POINT,
    NEW_YORK,
    NEW_YORK_POINT,
    TOKYO,
    TOKYO_POINT,
    FakeClock,
    FakeGeoResolver,
    FakeStore,
)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def store() -> FakeStore:
    return FakeStore()


@pytest.fixture
def geo() -> FakeGeoResolver:
    return FakeGeoResolver(
        coordinates={
            NEW_YORK.query_string(): NEW_YORK_POINT,
            LONDON.query_string(): LONDON_POINT,
            TOKYO.query_string(): TOKYO_POINT,
        },
        zones={
            NEW_YORK_POINT: "America/New_York",
            LONDON_POINT: "Europe/London",
            TOKYO_POINT: "Asia/Tokyo",
        },
    )


@pytest.fixture
def id_factory():
    counter = iter(range(1, 10_000))
    return lambda: f"rec-{next(counter):04d}"
