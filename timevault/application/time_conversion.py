"""Conversão de horários entre os fusos de dois lugares."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from timevault.domain import ErrorKind, LocationKey, ResolutionResult

from .batch import BatchResolver

log = logging.getLogger(__name__)


@dataclass(frozen=True)
class ConversionRequest:
    """Pedido de conversão do horário ``from_time`` entre dois lugares."""

    from_location: LocationKey
    to_location: LocationKey
    from_time: datetime


@dataclass(frozen=True)
class ConversionResult:
    """Resultado de uma conversão: horários convertidos ou uma falha tipada."""

    request: ConversionRequest
    from_time: Optional[datetime] = None
    to_time: Optional[datetime] = None
    from_timezone: Optional[str] = None
    to_timezone: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    message: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error_kind is None

    def to_mapping(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "fromLocation": _location_mapping(self.request.from_location),
            "toLocation": _location_mapping(self.request.to_location),
        }
        if self.ok:
            assert self.from_time is not None and self.to_time is not None
            payload.update(
                {
                    "fromTime": self.from_time.isoformat(),
                    "toTime": self.to_time.isoformat(),
                    "fromTimezone": self.from_timezone,
                    "toTimezone": self.to_timezone,
                }
            )
        else:
            assert self.error_kind is not None
            payload.update({"error": self.error_kind.value, "message": self.message})
        return payload


def _location_mapping(location: LocationKey) -> Dict[str, str]:
    return {
        "city": location.city,
        "state": location.state,
        "postalCode": location.postal_code,
        "country": location.country,
    }


def convert_between(from_time: datetime, from_code: str, to_code: str) -> tuple[datetime, datetime]:
    """Converte ``from_time`` do fuso ``from_code`` para ``to_code``.

    Um horário sem fuso é interpretado como horário local de ``from_code``;
    um horário com fuso é primeiro levado para ``from_code``.

    Raises:
        ZoneInfoNotFoundError: Quando algum dos códigos não é reconhecido.
    """

    source = ZoneInfo(from_code)
    target = ZoneInfo(to_code)
    if from_time.tzinfo is None:
        source_time = from_time.replace(tzinfo=source)
    else:
        source_time = from_time.astimezone(source)
    return source_time, source_time.astimezone(target)


class TimeConverter:
    """Resolve os fusos de origem e destino e converte horários entre eles."""

    def __init__(self, batch_resolver: BatchResolver) -> None:
        self._resolver = batch_resolver

    async def convert(
        self, from_location: LocationKey, to_location: LocationKey, from_time: datetime
    ) -> ConversionResult:
        results = await self.convert_many(
            [ConversionRequest(from_location, to_location, from_time)]
        )
        return results[0]

    async def convert_many(
        self, requests: Sequence[ConversionRequest]
    ) -> List[ConversionResult]:
        """Converte vários pedidos resolvendo todos os lugares em um único lote.

        Origens e destinos são deduplicados em conjunto, reduzindo as
        consultas ao cache e ao serviço externo.
        """

        locations = list(
            dict.fromkeys(
                location
                for request in requests
                for location in (request.from_location, request.to_location)
                if not location.is_empty()
            )
        )
        resolved = await self._resolver.resolve_many(locations)
        codes = dict(zip(locations, resolved))
        return [self._convert_one(request, codes) for request in requests]

    def _convert_one(
        self, request: ConversionRequest, codes: Dict[LocationKey, ResolutionResult]
    ) -> ConversionResult:
        if request.from_location.is_empty():
            return ConversionResult(
                request,
                error_kind=ErrorKind.INVALID_INPUT,
                message="Ao menos um atributo da localização de origem deve ser informado.",
            )
        if request.to_location.is_empty():
            return ConversionResult(
                request,
                error_kind=ErrorKind.INVALID_INPUT,
                message="Ao menos um atributo da localização de destino deve ser informado.",
            )

        source = codes[request.from_location]
        if not source.ok:
            return ConversionResult(
                request,
                error_kind=source.error_kind,
                message=source.message
                or f"Nenhum fuso horário encontrado para: {request.from_location}",
            )
        target = codes[request.to_location]
        if not target.ok:
            return ConversionResult(
                request,
                error_kind=target.error_kind,
                message=target.message
                or f"Nenhum fuso horário encontrado para: {request.to_location}",
            )

        assert source.iana_code is not None and target.iana_code is not None
        try:
            from_time, to_time = convert_between(
                request.from_time, source.iana_code, target.iana_code
            )
        except (ZoneInfoNotFoundError, ValueError) as exc:
            log.warning(
                "Código IANA não reconhecido ao converter %s -> %s: %s",
                source.iana_code,
                target.iana_code,
                exc,
            )
            return ConversionResult(
                request,
                error_kind=ErrorKind.NOT_FOUND,
                message=f"Fuso horário desconhecido: {exc}",
            )
        return ConversionResult(
            request,
            from_time=from_time,
            to_time=to_time,
            from_timezone=source.iana_code,
            to_timezone=target.iana_code,
        )


__all__ = [
    "ConversionRequest",
    "ConversionResult",
    "TimeConverter",
    "convert_between",
]
