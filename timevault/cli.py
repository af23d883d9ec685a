"""Interface de linha de comando para operar o Timevault."""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from datetime import datetime
from pathlib import Path
from typing import Any, Sequence

from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler

from timevault.container import TimevaultContainer, build_timevault_container
from timevault.domain import GeoCoordinate, LocationKey, ResolutionResult
from timevault.domain.errors import ConfigurationError
from timevault.schemas import ConversionBatchPayload, LocationBatchPayload, LocationPayload


def _add_location_arguments(parser: argparse.ArgumentParser, prefix: str = "") -> None:
    label = f"{prefix}-" if prefix else ""
    parser.add_argument(f"--{label}city", default="", help="Cidade")
    parser.add_argument(f"--{label}state", default="", help="Estado ou região")
    parser.add_argument(f"--{label}postal-code", default="", help="Código postal")
    parser.add_argument(f"--{label}country", default="", help="País")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Timevault - resolução de fusos horários IANA com cache"
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    resolve = subparsers.add_parser(
        "resolve", help="Resolve o fuso horário de uma localização"
    )
    _add_location_arguments(resolve)

    search = subparsers.add_parser(
        "search", help="Consulta somente o cache, sem chamar o serviço externo"
    )
    _add_location_arguments(search)

    resolve_coordinate = subparsers.add_parser(
        "resolve-coordinate", help="Resolve o fuso horário de uma coordenada"
    )
    resolve_coordinate.add_argument("latitude", help="Latitude em graus decimais")
    resolve_coordinate.add_argument("longitude", help="Longitude em graus decimais")

    resolve_batch = subparsers.add_parser(
        "resolve-batch",
        help="Resolve um lote de localizações lido de um arquivo JSON",
    )
    resolve_batch.add_argument(
        "path", help="Arquivo JSON com a lista de localizações ('-' para stdin)"
    )

    convert = subparsers.add_parser(
        "convert-time", help="Converte um horário entre duas localizações"
    )
    _add_location_arguments(convert, "from")
    _add_location_arguments(convert, "to")
    convert.add_argument(
        "--from-time", required=True, help="Horário de origem em ISO 8601"
    )

    convert_batch = subparsers.add_parser(
        "convert-batch",
        help="Converte horários em lote a partir de um arquivo JSON",
    )
    convert_batch.add_argument(
        "path", help="Arquivo JSON com a lista de pedidos ('-' para stdin)"
    )

    for sp in (resolve, search, resolve_coordinate, resolve_batch, convert, convert_batch):
        sp.add_argument(
            "--log-level",
            default=None,
            help="Nível de log: DEBUG, INFO, WARNING, ERROR (padrão INFO)",
        )

    return parser.parse_args(argv)


def _location_from_args(args: argparse.Namespace, prefix: str = "") -> LocationKey:
    label = f"{prefix}_" if prefix else ""
    return LocationPayload(
        city=getattr(args, f"{label}city"),
        state=getattr(args, f"{label}state"),
        postal_code=getattr(args, f"{label}postal_code"),
        country=getattr(args, f"{label}country"),
    ).to_domain()


def _read_json(path: str) -> Any:
    if path == "-":
        return json.load(sys.stdin)
    with Path(path).open("r", encoding="utf-8") as handle:
        return json.load(handle)


def _result_payload(result: ResolutionResult) -> dict[str, Any]:
    return result.to_mapping()


async def _run(args: argparse.Namespace, container: TimevaultContainer) -> Any:
    if args.command == "resolve":
        result = await container.pipeline.resolve(_location_from_args(args))
        return _result_payload(result)
    if args.command == "search":
        result = await container.pipeline.search(_location_from_args(args))
        return _result_payload(result)
    if args.command == "resolve-coordinate":
        try:
            coordinate = GeoCoordinate.parse(args.latitude, args.longitude)
        except ValueError as exc:
            return ResolutionResult.invalid_input(str(exc)).to_mapping()
        result = await container.pipeline.resolve_coordinate(coordinate)
        return _result_payload(result)
    if args.command == "resolve-batch":
        raw = _read_json(args.path)
        payload = LocationBatchPayload.model_validate(
            {"body": raw} if isinstance(raw, list) else raw
        )
        locations = payload.to_domain()
        results = await container.batch_resolver.resolve_many(locations)
        return [
            {"location": item.model_dump(by_alias=True), **_result_payload(result)}
            for item, result in zip(payload.body, results)
        ]
    if args.command == "convert-time":
        try:
            from_time = datetime.fromisoformat(args.from_time)
        except ValueError:
            return {
                "error": "invalid_input",
                "message": "O parâmetro 'fromTime' não é uma data válida em ISO 8601.",
            }
        conversion = await container.time_converter.convert(
            _location_from_args(args, "from"),
            _location_from_args(args, "to"),
            from_time,
        )
        return conversion.to_mapping()
    if args.command == "convert-batch":
        raw = _read_json(args.path)
        requests = ConversionBatchPayload.model_validate(
            {"body": raw} if isinstance(raw, list) else raw
        ).to_domain()
        conversions = await container.time_converter.convert_many(requests)
        return [conversion.to_mapping() for conversion in conversions]
    raise ValueError(f"Comando desconhecido: {args.command}")


async def _execute(args: argparse.Namespace) -> Any:
    container = build_timevault_container()
    try:
        return await _run(args, container)
    finally:
        await container.aclose()


def main(argv: Sequence[str] | None = None) -> None:
    load_dotenv()
    args = parse_args(argv)
    console = Console()
    level_name = (
        getattr(args, "log_level", None) or os.getenv("TIMEVAULT_LOG_LEVEL", "INFO")
    )
    handler = RichHandler(console=Console(stderr=True), markup=False, rich_tracebacks=True)
    logging.basicConfig(
        level=getattr(logging, str(level_name).upper(), logging.INFO),
        format="%(message)s",
        datefmt="[%X]",
        handlers=[handler],
        force=True,
    )
    logger = logging.getLogger("timevault.cli")

    try:
        output = asyncio.run(_execute(args))
    except ConfigurationError as exc:
        console.print(f"[red]Configuração inválida:[/red] {exc}")
        raise SystemExit(2) from exc
    except (ValidationError, ValueError, OSError) as exc:
        logger.error("Entrada inválida: %s", exc)
        console.print(f"[red]Entrada inválida:[/red] {exc}")
        raise SystemExit(1) from exc

    console.print_json(data=output, default=str)


if __name__ == "__main__":  # pragma: no cover
    main()
