"""Contrato de persistência dos registros de fuso horário."""
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Dict, List, Sequence

from timevault.domain.entities import CachedRecord, GeoCoordinate, LocationKey


class DocumentStore(ABC):
    """Define consultas por atributos e gravação idempotente de registros.

    Falhas de acesso devem ser sinalizadas com
    :class:`~timevault.domain.errors.TransientUpstreamError` quando puderem
    ser repetidas e :class:`~timevault.domain.errors.UpstreamError` caso
    contrário.
    """

    @abstractmethod
    async def query_by_attributes(self, filter: LocationKey) -> List[CachedRecord]:
        """Buscar registros cujos atributos preenchidos do filtro coincidam."""

    @abstractmethod
    async def query_by_attributes_batch(
        self, filters: Sequence[LocationKey]
    ) -> Dict[LocationKey, List[CachedRecord]]:
        """Executar várias consultas por atributos no menor número de viagens.

        Todo filtro recebido aparece no resultado, com lista vazia quando
        nenhum registro corresponde.
        """

    @abstractmethod
    async def query_by_coordinate(self, coordinate: GeoCoordinate) -> List[CachedRecord]:
        """Buscar registros com latitude e longitude exatamente iguais."""

    @abstractmethod
    async def upsert(self, record: CachedRecord) -> None:
        """Inserir ou substituir o registro identificado por ``record.id``."""

    async def close(self) -> None:
        """Liberar recursos do cliente subjacente."""


__all__ = ["DocumentStore"]
