"""Cliente HTTP assíncrono para a API REST do Azure Maps."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional, Sequence
from urllib.parse import urlencode

import httpx
from pydantic import BaseModel, ValidationError

from timevault.domain import (
    GeoCoordinate,
    GeoLookup,
    GeoResolver,
    TransientUpstreamError,
    UpstreamError,
)
from timevault.settings import get_env, get_float

from .schemas import (
    BatchItem,
    SearchAddressBatchResponse,
    SearchAddressResponse,
    TimezoneResponse,
)

log = logging.getLogger(__name__)

RETRYABLE_STATUS_CODES = {408, 425, 429, 500, 502, 503, 504}

_DEFAULT_BASE_URL = "https://atlas.microsoft.com"
_API_VERSION = "1.0"


@dataclass(frozen=True)
class AzureMapsSettings:
    subscription_key: str
    client_id: Optional[str] = None
    base_url: str = _DEFAULT_BASE_URL
    timeout: float = 10.0

    @classmethod
    def from_env(cls) -> "AzureMapsSettings":
        return cls(
            subscription_key=get_env("AZURE_MAPS_SUBSCRIPTION_KEY"),
            client_id=get_env("AZURE_MAPS_CLIENT_ID", "") or None,
            base_url=get_env("AZURE_MAPS_BASE_URL", _DEFAULT_BASE_URL),
            timeout=get_float("AZURE_MAPS_TIMEOUT", 10.0),
        )


def _error_for_status(status_code: int, message: str) -> UpstreamError:
    if status_code in RETRYABLE_STATUS_CODES:
        return TransientUpstreamError(f"Status HTTP repetível {status_code}: {message}")
    return UpstreamError(f"Status HTTP {status_code}: {message}")


class AzureMapsGeoResolver(GeoResolver):
    """Geocodifica endereços e consulta fusos horários no Azure Maps."""

    def __init__(
        self,
        settings: AzureMapsSettings,
        *,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Cria o cliente configurando autenticação e o cliente HTTP interno.

        Parameters
        ----------
        settings:
            Credenciais e parâmetros de acesso ao Azure Maps.
        client:
            Instância de :class:`httpx.AsyncClient` reutilizável. Quando
            omitida, o resolvedor cria e gerencia uma instância própria.
        """

        self._settings = settings
        headers = {"Accept": "application/json"}
        if settings.client_id:
            headers["x-ms-client-id"] = settings.client_id

        managed_client = client or httpx.AsyncClient(
            base_url=settings.base_url.rstrip("/"),
            timeout=settings.timeout,
            headers=headers,
        )
        owns_client = client is None

        self._client: httpx.AsyncClient = managed_client
        """Cliente HTTP usado para efetuar chamadas à API."""

        self._owns_client: bool = owns_client
        """Indica se o cliente HTTP é gerenciado internamente."""

    async def geocode(self, query: str) -> Optional[GeoCoordinate]:
        payload = await self._request(
            "GET",
            "/search/address/json",
            params={"query": query, "limit": 5},
        )
        response = self._validate(SearchAddressResponse, payload)
        coordinate = self._coordinate_from(response)
        if coordinate is None:
            log.warning("Nenhum resultado encontrado para a consulta: %s", query)
        return coordinate

    async def geocode_batch(
        self, queries: Sequence[str]
    ) -> Dict[str, GeoLookup[GeoCoordinate]]:
        unique = list(dict.fromkeys(queries))
        if not unique:
            return {}
        body = {
            "batchItems": [
                {"query": "?" + urlencode({"query": query, "limit": 5})}
                for query in unique
            ]
        }
        payload = await self._request(
            "POST", "/search/address/batch/sync/json", json=body
        )
        response = self._validate(SearchAddressBatchResponse, payload)
        if len(response.batch_items) != len(unique):
            raise UpstreamError(
                f"Resposta em lote com {len(response.batch_items)} itens para "
                f"{len(unique)} consultas"
            )
        # Os itens retornam na mesma ordem das consultas enviadas.
        return {
            query: self._lookup_from_item(query, item)
            for query, item in zip(unique, response.batch_items)
        }

    async def timezone_for(self, coordinate: GeoCoordinate) -> Optional[str]:
        payload = await self._request(
            "GET",
            "/timezone/byCoordinates/json",
            params={"query": f"{coordinate.latitude},{coordinate.longitude}"},
        )
        response = self._validate(TimezoneResponse, payload)
        iana_code = response.iana_code()
        if iana_code is None:
            log.warning("Nenhum fuso horário retornado para %s", coordinate)
        return iana_code

    async def timezone_for_batch(
        self, coordinates: Sequence[GeoCoordinate]
    ) -> Dict[GeoCoordinate, GeoLookup[str]]:
        """Consulta fusos um a um; a API não oferece lote síncrono para fusos.

        As chamadas são sequenciais, então a concorrência fica a cargo de quem
        chama.
        """

        outcome: Dict[GeoCoordinate, GeoLookup[str]] = {}
        for coordinate in dict.fromkeys(coordinates):
            try:
                iana_code = await self.timezone_for(coordinate)
            except UpstreamError as exc:
                outcome[coordinate] = GeoLookup.failed(exc)
                continue
            outcome[coordinate] = (
                GeoLookup.found(iana_code) if iana_code is not None else GeoLookup.not_found()
            )
        return outcome

    async def close(self) -> None:
        """Fecha o cliente HTTP quando a instância é de responsabilidade local."""

        if self._owns_client:
            await self._client.aclose()

    async def _request(
        self,
        method: str,
        path: str,
        *,
        params: Dict[str, Any] | None = None,
        json: Any = None,
    ) -> Any:
        query = {"api-version": _API_VERSION, "subscription-key": self._settings.subscription_key}
        if params:
            query.update(params)
        try:
            response = await self._client.request(method, path, params=query, json=json)
        except httpx.TimeoutException as exc:
            raise TransientUpstreamError(f"Tempo limite excedido no Azure Maps ({path})") from exc
        except httpx.TransportError as exc:
            raise TransientUpstreamError(
                f"Não foi possível conectar ao Azure Maps ({path}): {exc}"
            ) from exc

        if response.status_code >= 400:
            raise _error_for_status(response.status_code, path)
        try:
            return response.json()
        except ValueError as exc:
            raise UpstreamError(f"Resposta JSON inválida do Azure Maps ({path})") from exc

    @staticmethod
    def _validate(model: type[BaseModel], payload: Any) -> Any:
        try:
            return model.model_validate(payload)
        except ValidationError as exc:
            raise UpstreamError(f"Resposta inesperada do Azure Maps: {exc}") from exc

    @staticmethod
    def _coordinate_from(response: SearchAddressResponse) -> Optional[GeoCoordinate]:
        try:
            return response.best_coordinate()
        except ValueError as exc:
            raise UpstreamError(f"Coordenada inválida retornada pelo Azure Maps: {exc}") from exc

    def _lookup_from_item(self, query: str, item: BatchItem) -> GeoLookup[GeoCoordinate]:
        if item.status_code >= 400:
            return GeoLookup.failed(_error_for_status(item.status_code, item.error_message()))
        try:
            response = SearchAddressResponse.model_validate(item.response)
            coordinate = self._coordinate_from(response)
        except (ValidationError, UpstreamError) as exc:
            return GeoLookup.failed(UpstreamError(f"Item inválido para '{query}': {exc}"))
        if coordinate is None:
            log.warning("Nenhuma coordenada encontrada para a consulta: %s", query)
            return GeoLookup.not_found()
        return GeoLookup.found(coordinate)


__all__ = ["AzureMapsGeoResolver", "AzureMapsSettings", "RETRYABLE_STATUS_CODES"]
