from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from fakes import NEW_YORK, make_settings
from timevault import cli
from timevault.container import build_services
from timevault.domain import LocationKey
from timevault.schemas import ConversionPayload, LocationBatchPayload, LocationPayload


@pytest.fixture
def container(store, geo):
    return build_services(store, geo, make_settings())


def test_location_payload_normalizes_and_accepts_aliases() -> None:
    payload = LocationPayload.model_validate(
        {"city": " New York ", "state": "NY", "postalCode": None, "country": "US"}
    )

    assert payload.to_domain() == NEW_YORK


def test_location_batch_payload_keeps_order() -> None:
    payload = LocationBatchPayload.model_validate(
        {"body": [{"city": "Tokyo"}, {}, {"postalCode": "10001"}]}
    )

    assert payload.to_domain() == [
        LocationKey(city="tokyo"),
        LocationKey(),
        LocationKey(postal_code="10001"),
    ]


def test_conversion_payload_requires_from_time() -> None:
    with pytest.raises(ValidationError):
        ConversionPayload.model_validate({"fromCity": "Tokyo", "toCity": "London"})

    request = ConversionPayload.model_validate(
        {"fromCity": "Tokyo", "toCity": "London", "fromTime": "2024-01-01T09:00:00"}
    ).to_domain()
    assert request.from_location == LocationKey(city="tokyo")
    assert request.to_location == LocationKey(city="london")
    assert request.from_time.hour == 9


def test_parse_args_for_resolve() -> None:
    args = cli.parse_args(
        ["resolve", "--city", "New York", "--state", "NY", "--country", "US", "--log-level", "DEBUG"]
    )

    assert args.command == "resolve"
    assert args.log_level == "DEBUG"
    assert cli._location_from_args(args) == NEW_YORK


def test_run_resolve_outputs_mapping(container, store) -> None:
    args = cli.parse_args(["resolve", "--city", "New York", "--state", "ny", "--country", "us"])

    output = asyncio.run(cli._run(args, container))

    assert output == {"ianaCode": "America/New_York", "source": "resolved"}
    assert len(store.records) == 1


def test_run_resolve_coordinate_rejects_invalid_numbers(container) -> None:
    args = cli.parse_args(["resolve-coordinate", "norte", "10"])

    output = asyncio.run(cli._run(args, container))

    assert output["error"] == "invalid_input"


def test_run_resolve_batch_from_file(container, tmp_path: Path) -> None:
    path = tmp_path / "lote.json"
    path.write_text(
        json.dumps(
            [
                {"city": "Tokyo", "country": "JP"},
                {"city": "Tokyo", "country": "JP"},
                {},
            ]
        ),
        encoding="utf-8",
    )
    args = cli.parse_args(["resolve-batch", str(path)])

    output = asyncio.run(cli._run(args, container))

    assert [item.get("ianaCode") for item in output] == ["Asia/Tokyo", "Asia/Tokyo", None]
    assert output[2]["error"] == "invalid_input"
    assert output[0]["location"]["city"] == "Tokyo"


def test_run_convert_time(container) -> None:
    args = cli.parse_args(
        [
            "convert-time",
            "--from-city", "Tokyo",
            "--from-country", "JP",
            "--to-city", "London",
            "--to-country", "GB",
            "--from-time", "2024-01-01T09:00:00",
        ]
    )

    output = asyncio.run(cli._run(args, container))

    assert output["fromTimezone"] == "Asia/Tokyo"
    assert output["toTimezone"] == "Europe/London"
    assert output["toTime"] == "2024-01-01T00:00:00+00:00"


def test_run_convert_time_rejects_bad_timestamp(container) -> None:
    args = cli.parse_args(
        ["convert-time", "--from-city", "Tokyo", "--to-city", "London", "--from-time", "ontem"]
    )

    output = asyncio.run(cli._run(args, container))

    assert output["error"] == "invalid_input"


def test_run_convert_batch_from_file(container, tmp_path: Path) -> None:
    path = tmp_path / "conversoes.json"
    path.write_text(
        json.dumps(
            [
                {
                    "fromCity": "New York",
                    "fromState": "NY",
                    "fromCountry": "US",
                    "toCity": "Tokyo",
                    "toCountry": "JP",
                    "fromTime": "2024-01-15T12:00:00",
                }
            ]
        ),
        encoding="utf-8",
    )
    args = cli.parse_args(["convert-batch", str(path)])

    [output] = asyncio.run(cli._run(args, container))

    assert output["toTime"] == "2024-01-16T02:00:00+09:00"


def test_run_convert_batch_accepts_body_envelope(container, tmp_path: Path) -> None:
    path = tmp_path / "conversoes.json"
    path.write_text(
        json.dumps(
            {
                "body": [
                    {
                        "fromCity": "London",
                        "fromCountry": "GB",
                        "toCity": "New York",
                        "toState": "NY",
                        "toCountry": "US",
                        "fromTime": "2024-07-01T12:00:00",
                    }
                ]
            }
        ),
        encoding="utf-8",
    )
    args = cli.parse_args(["convert-batch", str(path)])

    [output] = asyncio.run(cli._run(args, container))

    assert output["toTime"] == "2024-07-01T07:00:00-04:00"


@pytest.mark.parametrize(
    "content",
    [
        {"fromCity": "London", "fromTime": "2024-07-01T12:00:00"},
        [],
        "texto",
    ],
)
def test_run_convert_batch_rejects_malformed_file(
    container, tmp_path: Path, content: object
) -> None:
    path = tmp_path / "conversoes.json"
    path.write_text(json.dumps(content), encoding="utf-8")
    args = cli.parse_args(["convert-batch", str(path)])

    with pytest.raises(ValidationError):
        asyncio.run(cli._run(args, container))


def test_container_aclose_closes_collaborators(container, store, geo) -> None:
    asyncio.run(container.aclose())

    assert store.closed
    assert geo.closed
