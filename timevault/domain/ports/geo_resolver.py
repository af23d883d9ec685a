"""Porta para o serviço externo de geocodificação e fusos horários."""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Generic, Optional, Sequence, TypeVar

from timevault.domain.entities import GeoCoordinate
from timevault.domain.errors import TransientUpstreamError

T = TypeVar("T")


@dataclass(frozen=True)
class GeoLookup(Generic[T]):
    """Desfecho individual de uma entrada em uma consulta em lote."""

    value: Optional[T] = None
    error: Optional[Exception] = None

    @classmethod
    def found(cls, value: T) -> "GeoLookup[T]":
        return cls(value=value)

    @classmethod
    def not_found(cls) -> "GeoLookup[T]":
        return cls()

    @classmethod
    def failed(cls, error: Exception) -> "GeoLookup[T]":
        return cls(error=error)

    @property
    def is_found(self) -> bool:
        return self.value is not None

    @property
    def is_failed(self) -> bool:
        return self.error is not None

    @property
    def is_transient(self) -> bool:
        return isinstance(self.error, TransientUpstreamError)


class GeoResolver(ABC):
    """Resolve endereços em coordenadas e coordenadas em códigos IANA.

    Operações individuais retornam ``None`` quando o provedor responde sem
    resultado e levantam exceções para falhas. Operações em lote retornam um
    :class:`GeoLookup` por entrada.
    """

    @abstractmethod
    async def geocode(self, query: str) -> Optional[GeoCoordinate]:
        """Geocodificar uma consulta textual."""

    @abstractmethod
    async def geocode_batch(
        self, queries: Sequence[str]
    ) -> Dict[str, GeoLookup[GeoCoordinate]]:
        """Geocodificar várias consultas em uma única requisição."""

    @abstractmethod
    async def timezone_for(self, coordinate: GeoCoordinate) -> Optional[str]:
        """Obter o código IANA de uma coordenada."""

    @abstractmethod
    async def timezone_for_batch(
        self, coordinates: Sequence[GeoCoordinate]
    ) -> Dict[GeoCoordinate, GeoLookup[str]]:
        """Obter o código IANA de várias coordenadas."""

    async def close(self) -> None:
        """Liberar recursos do cliente subjacente."""


__all__ = ["GeoLookup", "GeoResolver"]
