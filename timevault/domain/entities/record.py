"""Entidade persistida que associa um lugar ao seu fuso horário IANA."""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta
from typing import Callable, Sequence

from .location import GeoCoordinate, LocationKey

log = logging.getLogger(__name__)


def new_record_id() -> str:
    """Gera um identificador opaco para um novo registro."""

    return uuid.uuid4().hex


@dataclass(frozen=True)
class CachedRecord:
    """Entrada durável do cache de fusos horários."""

    #: Identificador estável atribuído na criação.
    id: str
    #: Código IANA resolvido, por exemplo ``America/New_York``.
    iana_code: str
    #: Chave de localização que originou o registro.
    location: LocationKey
    #: Coordenada obtida na geocodificação.
    coordinate: GeoCoordinate
    #: Momento (UTC) da última resolução.
    last_updated: datetime = field(compare=False)

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("O identificador do registro não pode ser vazio")
        if not self.iana_code:
            raise ValueError("O código IANA do registro não pode ser vazio")

    @classmethod
    def create(
        cls,
        iana_code: str,
        location: LocationKey,
        coordinate: GeoCoordinate,
        now: datetime,
        *,
        id_factory: Callable[[], str] = new_record_id,
    ) -> "CachedRecord":
        return cls(
            id=id_factory(),
            iana_code=iana_code,
            location=location,
            coordinate=coordinate,
            last_updated=now,
        )

    def is_fresh(self, now: datetime, staleness: timedelta) -> bool:
        """Indica se o registro ainda pode ser usado sem nova verificação."""

        return now - self.last_updated < staleness

    def refreshed(
        self, iana_code: str, coordinate: GeoCoordinate, now: datetime
    ) -> "CachedRecord":
        """Retorna uma cópia atualizada preservando o identificador."""

        return replace(self, iana_code=iana_code, coordinate=coordinate, last_updated=now)


def pick_canonical(records: Sequence[CachedRecord], subject: object) -> CachedRecord | None:
    """Escolhe deterministicamente um registro entre vários candidatos.

    Mais de um registro para a mesma chave é uma inconsistência do cache;
    nesse caso o menor ``id`` vence.
    """

    if not records:
        return None
    if len(records) > 1:
        log.warning(
            "1 registro esperado para %s, mas %d encontrados. Usando o de menor id.",
            subject,
            len(records),
        )
    return min(records, key=lambda record: record.id)


__all__ = ["CachedRecord", "new_record_id", "pick_canonical"]
