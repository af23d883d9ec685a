"""Modelos Pydantic para validar as respostas da API REST do Azure Maps."""
from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from timevault.domain import GeoCoordinate


class Position(BaseModel):
    """Posição retornada por um resultado de busca de endereço."""

    lat: float
    lon: float


class SearchResult(BaseModel):
    """Resultado individual de uma busca de endereço."""

    model_config = ConfigDict(extra="ignore")

    #: Relevância atribuída pelo provedor; maior é melhor.
    score: float = 0.0
    position: Position


class SearchAddressResponse(BaseModel):
    """Corpo de ``/search/address/json`` e de cada item do lote."""

    model_config = ConfigDict(extra="ignore")

    results: list[SearchResult] = Field(default_factory=list)

    def best_coordinate(self) -> Optional[GeoCoordinate]:
        """Retorna a posição do resultado de maior pontuação, se houver."""

        if not self.results:
            return None
        best = max(self.results, key=lambda result: result.score)
        return GeoCoordinate(latitude=best.position.lat, longitude=best.position.lon)


class BatchItem(BaseModel):
    """Item da resposta de ``/search/address/batch/sync/json``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    status_code: int = Field(alias="statusCode")
    response: dict[str, Any] = Field(default_factory=dict)

    def error_message(self) -> str:
        error = self.response.get("error")
        if isinstance(error, dict):
            return str(error.get("message") or error.get("code") or self.status_code)
        return f"HTTP {self.status_code}"


class SearchAddressBatchResponse(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    batch_items: list[BatchItem] = Field(default_factory=list, alias="batchItems")


class TimezoneEntry(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    id: str = Field(alias="Id")


class TimezoneResponse(BaseModel):
    """Corpo de ``/timezone/byCoordinates/json``."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    time_zones: list[TimezoneEntry] = Field(default_factory=list, alias="TimeZones")

    def iana_code(self) -> Optional[str]:
        for entry in self.time_zones:
            if entry.id:
                return entry.id
        return None


__all__ = [
    "BatchItem",
    "Position",
    "SearchAddressBatchResponse",
    "SearchAddressResponse",
    "SearchResult",
    "TimezoneEntry",
    "TimezoneResponse",
]
