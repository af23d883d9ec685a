"""Pipeline cache-aside para resolver um único lugar em um fuso horário IANA."""
from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from typing import Callable, Optional

from timevault.domain import (
    CachedRecord,
    DocumentStore,
    GeoCoordinate,
    GeoResolver,
    LocationKey,
    ResolutionResult,
    ResolutionSource,
    UpstreamError,
)
from timevault.domain.entities import new_record_id, pick_canonical
from timevault.settings import ResolverSettings

from .retry import RetryPolicy

log = logging.getLogger(__name__)

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


async def persist_record(
    store: DocumentStore,
    retry: RetryPolicy,
    record: CachedRecord,
    result: ResolutionResult,
    *,
    gate: Optional[asyncio.Semaphore] = None,
) -> ResolutionResult:
    """Grava ``record`` no cache sem comprometer ``result``.

    A gravação é best-effort: se falhar, o resultado continua bem-sucedido e
    recebe um aviso de persistência.
    """

    try:
        await retry.call(
            lambda: store.upsert(record),
            gate=gate,
            description=f"gravação do registro {record.id}",
        )
    except UpstreamError as exc:
        message = f"Falha ao gravar o registro {record.id} no cache: {exc}"
        log.warning(message)
        return result.with_persistence_warning(message)
    return result


def stale_fallback(
    existing: Optional[CachedRecord], failure: ResolutionResult, subject: object
) -> ResolutionResult:
    """Prefere um registro vencido a nenhuma resposta quando a atualização falha."""

    if existing is None:
        return failure
    log.warning(
        "Não foi possível atualizar o registro %s de %s (%s). Retornando o valor vencido.",
        existing.id,
        subject,
        failure.message,
    )
    return ResolutionResult.success(existing.iana_code, ResolutionSource.STALE)


class ResolutionPipeline:
    """Resolve um lugar ou coordenada consultando primeiro o cache persistente.

    Fluxo:

    1. Consulta o banco de documentos pelos atributos preenchidos.
    2. Registro fresco encontrado: retorna o código sem chamadas externas.
    3. Ausente ou vencido: geocodifica e consulta o fuso da coordenada.
    4. Cria ou atualiza o registro (mesmo ``id``) e grava no banco.
    """

    def __init__(
        self,
        store: DocumentStore,
        geo_resolver: GeoResolver,
        settings: ResolverSettings,
        *,
        retry_policy: RetryPolicy | None = None,
        clock: Clock = utc_now,
        id_factory: Callable[[], str] = new_record_id,
    ) -> None:
        if settings is None:
            raise ValueError("settings é obrigatório para o pipeline de resolução")
        self._store = store
        self._geo = geo_resolver
        self._settings = settings
        self._retry = retry_policy or RetryPolicy.from_settings(settings)
        self._clock = clock
        self._id_factory = id_factory

    async def resolve(self, key: LocationKey) -> ResolutionResult:
        """Retorna o código IANA de ``key`` ou uma falha tipada."""

        if key.is_empty():
            return ResolutionResult.invalid_input(
                "Ao menos um atributo de localização deve ser informado."
            )

        try:
            records = await self._retry.call(
                lambda: self._store.query_by_attributes(key),
                description=f"consulta ao cache para {key}",
            )
        except UpstreamError as exc:
            log.error("Erro ao consultar o cache para %s: %s", key, exc)
            return ResolutionResult.upstream_error(f"Falha ao consultar o cache: {exc}")

        existing = pick_canonical(records, key)
        if existing is not None and existing.is_fresh(self._clock(), self._settings.staleness):
            return ResolutionResult.success(existing.iana_code, ResolutionSource.CACHE)

        query = key.query_string()
        try:
            coordinate = await self._retry.call(
                lambda: self._geo.geocode(query),
                description=f"geocodificação de '{query}'",
            )
        except UpstreamError as exc:
            log.error("Erro ao geocodificar '%s': %s", query, exc)
            return stale_fallback(
                existing,
                ResolutionResult.upstream_error(f"Falha ao geocodificar '{query}': {exc}"),
                key,
            )
        if coordinate is None:
            log.warning("Nenhuma coordenada encontrada para a consulta: %s", query)
            return stale_fallback(
                existing,
                ResolutionResult.not_found(f"Nenhuma coordenada encontrada para: {key}"),
                key,
            )

        return await self._resolve_timezone(key, coordinate, existing)

    async def resolve_coordinate(self, coordinate: GeoCoordinate) -> ResolutionResult:
        """Resolve uma coordenada, dispensando a etapa de geocodificação."""

        try:
            records = await self._retry.call(
                lambda: self._store.query_by_coordinate(coordinate),
                description=f"consulta ao cache para {coordinate}",
            )
        except UpstreamError as exc:
            log.error("Erro ao consultar o cache para %s: %s", coordinate, exc)
            return ResolutionResult.upstream_error(f"Falha ao consultar o cache: {exc}")

        existing = pick_canonical(records, coordinate)
        if existing is not None and existing.is_fresh(self._clock(), self._settings.staleness):
            return ResolutionResult.success(existing.iana_code, ResolutionSource.CACHE)

        location = existing.location if existing is not None else LocationKey()
        return await self._resolve_timezone(location, coordinate, existing)

    async def search(self, key: LocationKey) -> ResolutionResult:
        """Consulta somente o cache, sem chamadas externas nem gravações."""

        if key.is_empty():
            return ResolutionResult.invalid_input(
                "Ao menos um atributo de localização deve ser informado."
            )
        try:
            records = await self._retry.call(
                lambda: self._store.query_by_attributes(key),
                description=f"consulta ao cache para {key}",
            )
        except UpstreamError as exc:
            return ResolutionResult.upstream_error(f"Falha ao consultar o cache: {exc}")
        return self._from_cache_only(pick_canonical(records, key), key)

    async def search_coordinate(self, coordinate: GeoCoordinate) -> ResolutionResult:
        """Consulta somente o cache por coordenada exata."""

        try:
            records = await self._retry.call(
                lambda: self._store.query_by_coordinate(coordinate),
                description=f"consulta ao cache para {coordinate}",
            )
        except UpstreamError as exc:
            return ResolutionResult.upstream_error(f"Falha ao consultar o cache: {exc}")
        return self._from_cache_only(pick_canonical(records, coordinate), coordinate)

    def _from_cache_only(
        self, record: Optional[CachedRecord], subject: object
    ) -> ResolutionResult:
        if record is None:
            log.warning("Nenhum registro encontrado no cache para: %s", subject)
            return ResolutionResult.not_found(f"Nenhum registro encontrado para: {subject}")
        source = (
            ResolutionSource.CACHE
            if record.is_fresh(self._clock(), self._settings.staleness)
            else ResolutionSource.STALE
        )
        return ResolutionResult.success(record.iana_code, source)

    async def _resolve_timezone(
        self,
        location: LocationKey,
        coordinate: GeoCoordinate,
        existing: Optional[CachedRecord],
    ) -> ResolutionResult:
        try:
            iana_code = await self._retry.call(
                lambda: self._geo.timezone_for(coordinate),
                description=f"consulta de fuso para {coordinate}",
            )
        except UpstreamError as exc:
            log.error("Erro ao consultar o fuso de %s: %s", coordinate, exc)
            return stale_fallback(
                existing,
                ResolutionResult.upstream_error(
                    f"Falha ao consultar o fuso de {coordinate}: {exc}"
                ),
                coordinate,
            )
        if not iana_code:
            log.warning("Nenhum fuso horário encontrado para %s", coordinate)
            return stale_fallback(
                existing,
                ResolutionResult.not_found(f"Nenhum fuso horário encontrado para {coordinate}"),
                coordinate,
            )

        now = self._clock()
        if existing is not None:
            record = existing.refreshed(iana_code, coordinate, now)
        else:
            record = CachedRecord.create(
                iana_code, location, coordinate, now, id_factory=self._id_factory
            )
        return await persist_record(
            self._store, self._retry, record, ResolutionResult.success(iana_code)
        )


__all__ = ["ResolutionPipeline", "persist_record", "stale_fallback", "utc_now"]
