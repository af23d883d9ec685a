"""Resolvedor em lote com deduplicação, fan-out limitado e isolamento de falhas."""
from __future__ import annotations

import asyncio
import logging
from typing import (
    Awaitable,
    Callable,
    Dict,
    Hashable,
    List,
    Optional,
    Sequence,
    TypeVar,
    Union,
)

from timevault.domain import (
    CachedRecord,
    DocumentStore,
    GeoCoordinate,
    GeoLookup,
    GeoResolver,
    LocationKey,
    ResolutionResult,
    ResolutionSource,
    UpstreamError,
)
from timevault.domain.entities import new_record_id, pick_canonical
from timevault.settings import ResolverSettings

from .resolution import Clock, persist_record, stale_fallback, utc_now
from .retry import RetryPolicy

log = logging.getLogger(__name__)

K = TypeVar("K", bound=Hashable)
V = TypeVar("V")

StoreLookup = Union[List[CachedRecord], UpstreamError]


def chunked(items: Sequence[K], size: int) -> List[Sequence[K]]:
    return [items[start : start + size] for start in range(0, len(items), size)]


class BatchResolver:
    """Resolve uma lista ordenada de chaves preservando ordem e cardinalidade.

    Entradas repetidas são resolvidas uma única vez; entradas vazias recebem
    ``InvalidInput`` sem qualquer chamada externa. Cada chamada a
    :meth:`resolve_many` cria seus próprios portões de concorrência (um para o
    banco e outro para o serviço de geocodificação), então nenhum estado é
    compartilhado entre requisições.
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
            raise ValueError("settings é obrigatório para o resolvedor em lote")
        self._store = store
        self._geo = geo_resolver
        self._settings = settings
        self._retry = retry_policy or RetryPolicy.from_settings(settings)
        self._clock = clock
        self._id_factory = id_factory

    async def resolve_many(self, keys: Sequence[LocationKey]) -> List[ResolutionResult]:
        """Retorna um :class:`ResolutionResult` por entrada, na mesma ordem."""

        results: List[Optional[ResolutionResult]] = [None] * len(keys)
        positions: Dict[LocationKey, List[int]] = {}
        for index, key in enumerate(keys):
            if key.is_empty():
                results[index] = ResolutionResult.invalid_input(
                    "Ao menos um atributo de localização deve ser informado."
                )
            else:
                positions.setdefault(key, []).append(index)

        if positions:
            store_gate = asyncio.Semaphore(self._settings.max_concurrent_store_requests)
            geo_gate = asyncio.Semaphore(self._settings.max_concurrent_geo_requests)
            resolved = await self._resolve_canonical(list(positions), store_gate, geo_gate)
            for key, indexes in positions.items():
                for index in indexes:
                    results[index] = resolved[key]

        log.debug(
            "Lote resolvido: %d entradas, %d chaves únicas", len(keys), len(positions)
        )
        return [result for result in results if result is not None]

    async def _resolve_canonical(
        self,
        keys: List[LocationKey],
        store_gate: asyncio.Semaphore,
        geo_gate: asyncio.Semaphore,
    ) -> Dict[LocationKey, ResolutionResult]:
        resolved: Dict[LocationKey, ResolutionResult] = {}
        misses: Dict[LocationKey, Optional[CachedRecord]] = {}

        lookups = await self._query_store(keys, store_gate)
        now = self._clock()
        for key in keys:
            outcome = lookups[key]
            if isinstance(outcome, UpstreamError):
                resolved[key] = ResolutionResult.upstream_error(
                    f"Falha ao consultar o cache: {outcome}"
                )
                continue
            existing = pick_canonical(outcome, key)
            if existing is not None and existing.is_fresh(now, self._settings.staleness):
                resolved[key] = ResolutionResult.success(
                    existing.iana_code, ResolutionSource.CACHE
                )
            else:
                misses[key] = existing

        if misses:
            log.info(
                "%d de %d chaves ausentes ou vencidas no cache", len(misses), len(keys)
            )
            resolved.update(await self._resolve_misses(misses, store_gate, geo_gate))
        return resolved

    async def _query_store(
        self, keys: List[LocationKey], gate: asyncio.Semaphore
    ) -> Dict[LocationKey, StoreLookup]:
        async def query_chunk(chunk: Sequence[LocationKey]) -> Dict[LocationKey, StoreLookup]:
            try:
                found = await self._retry.call(
                    lambda: self._store.query_by_attributes_batch(chunk),
                    gate=gate,
                    description=f"consulta em lote ao cache ({len(chunk)} chaves)",
                )
            except UpstreamError as exc:
                log.error("Erro ao consultar o cache em lote: %s", exc)
                return {key: exc for key in chunk}
            return {key: list(found.get(key, ())) for key in chunk}

        merged: Dict[LocationKey, StoreLookup] = {}
        chunks = chunked(keys, self._settings.store_batch_size)
        for partial in await asyncio.gather(*(query_chunk(chunk) for chunk in chunks)):
            merged.update(partial)
        return merged

    async def _resolve_misses(
        self,
        misses: Dict[LocationKey, Optional[CachedRecord]],
        store_gate: asyncio.Semaphore,
        geo_gate: asyncio.Semaphore,
    ) -> Dict[LocationKey, ResolutionResult]:
        queries = list(dict.fromkeys(key.query_string() for key in misses))
        coordinates = await self._lookup_all(
            queries,
            self._geo.geocode_batch,
            self._geo.geocode,
            geo_gate,
            "geocodificação",
        )
        unique_coordinates = list(
            dict.fromkeys(
                lookup.value
                for lookup in coordinates.values()
                if lookup.is_found and lookup.value is not None
            )
        )
        # Uma chamada por coordenada: cada uma com seu timeout e sua vaga no portão.
        zone_lookups = await asyncio.gather(
            *(
                self._lookup_single(
                    coordinate, self._geo.timezone_for, geo_gate, "consulta de fuso"
                )
                for coordinate in unique_coordinates
            )
        )
        zones: Dict[GeoCoordinate, GeoLookup[str]] = dict(
            zip(unique_coordinates, zone_lookups)
        )

        resolved: Dict[LocationKey, ResolutionResult] = {}
        pending: Dict[LocationKey, CachedRecord] = {}
        now = self._clock()
        for key, existing in misses.items():
            geocoded = coordinates[key.query_string()]
            if geocoded.is_failed:
                failure = ResolutionResult.upstream_error(
                    f"Falha ao geocodificar '{key.query_string()}': {geocoded.error}"
                )
                resolved[key] = stale_fallback(existing, failure, key)
                continue
            if not geocoded.is_found or geocoded.value is None:
                failure = ResolutionResult.not_found(
                    f"Nenhuma coordenada encontrada para: {key}"
                )
                resolved[key] = stale_fallback(existing, failure, key)
                continue

            coordinate = geocoded.value
            zone = zones[coordinate]
            if zone.is_failed:
                failure = ResolutionResult.upstream_error(
                    f"Falha ao consultar o fuso de {coordinate}: {zone.error}"
                )
                resolved[key] = stale_fallback(existing, failure, key)
                continue
            if not zone.is_found or not zone.value:
                failure = ResolutionResult.not_found(
                    f"Nenhum fuso horário encontrado para {coordinate}"
                )
                resolved[key] = stale_fallback(existing, failure, key)
                continue

            if existing is not None:
                pending[key] = existing.refreshed(zone.value, coordinate, now)
            else:
                pending[key] = CachedRecord.create(
                    zone.value, key, coordinate, now, id_factory=self._id_factory
                )

        if pending:
            persisted = await asyncio.gather(
                *(
                    persist_record(
                        self._store,
                        self._retry,
                        record,
                        ResolutionResult.success(record.iana_code),
                        gate=store_gate,
                    )
                    for record in pending.values()
                )
            )
            resolved.update(zip(pending.keys(), persisted))
        return resolved

    async def _lookup_all(
        self,
        items: Sequence[K],
        batch_call: Callable[[Sequence[K]], Awaitable[Dict[K, GeoLookup[V]]]],
        single_call: Callable[[K], Awaitable[Optional[V]]],
        gate: asyncio.Semaphore,
        label: str,
    ) -> Dict[K, GeoLookup[V]]:
        """Consulta ``items`` em blocos, isolando falhas por entrada.

        Entradas que voltam do lote com falha transitória (ou sem resposta)
        são repetidas individualmente. Um bloco que falha após todas as
        tentativas afeta apenas as próprias entradas.
        """

        async def lookup_chunk(chunk: Sequence[K]) -> Dict[K, GeoLookup[V]]:
            try:
                outcome = await self._retry.call(
                    lambda: batch_call(chunk),
                    gate=gate,
                    description=f"{label} em lote ({len(chunk)} itens)",
                )
            except UpstreamError as exc:
                log.error("Erro na %s em lote: %s", label, exc)
                return {item: GeoLookup.failed(exc) for item in chunk}

            results: Dict[K, GeoLookup[V]] = {}
            retry_items: List[K] = []
            for item in chunk:
                lookup = outcome.get(item)
                if lookup is None or lookup.is_transient:
                    retry_items.append(item)
                else:
                    results[item] = lookup
            if retry_items:
                singles = await asyncio.gather(
                    *(
                        self._lookup_single(item, single_call, gate, label)
                        for item in retry_items
                    )
                )
                results.update(zip(retry_items, singles))
            return results

        merged: Dict[K, GeoLookup[V]] = {}
        chunks = chunked(list(items), self._settings.geo_batch_size)
        for partial in await asyncio.gather(*(lookup_chunk(chunk) for chunk in chunks)):
            merged.update(partial)
        return merged

    async def _lookup_single(
        self,
        item: K,
        single_call: Callable[[K], Awaitable[Optional[V]]],
        gate: asyncio.Semaphore,
        label: str,
    ) -> GeoLookup[V]:
        try:
            value = await self._retry.call(
                lambda: single_call(item), gate=gate, description=f"{label} de {item}"
            )
        except UpstreamError as exc:
            log.error("Erro na %s de %s: %s", label, item, exc)
            return GeoLookup.failed(exc)
        return GeoLookup.found(value) if value is not None else GeoLookup.not_found()


__all__ = ["BatchResolver", "chunked"]
