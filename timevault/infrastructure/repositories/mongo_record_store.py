"""Implementação MongoDB do banco de registros de fuso horário."""
from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, List, Sequence, TypeVar

from pymongo.errors import (
    ConnectionFailure,
    DuplicateKeyError,
    ExecutionTimeout,
    PyMongoError,
)

from timevault.domain import (
    CachedRecord,
    DocumentStore,
    GeoCoordinate,
    LocationKey,
    TransientUpstreamError,
    UpstreamError,
)

from .record_indexes import ensure_record_indexes

log = logging.getLogger(__name__)

T = TypeVar("T")

_LOCATION_FIELDS = {
    "city": "location.city",
    "state": "location.state",
    "postal_code": "location.postalCode",
    "country": "location.country",
}


class MongoRecordStore(DocumentStore):
    """Persiste entidades :class:`CachedRecord` em uma coleção MongoDB.

    Os documentos usam o ``id`` do registro como ``_id``, o que torna a
    gravação idempotente.
    """

    def __init__(self, collection: Any, *, ensure_indexes: bool = True) -> None:
        """Inicializa o repositório com a coleção assíncrona de registros.

        Parameters
        ----------
        collection:
            Coleção do ``AsyncMongoClient`` onde os registros são gravados e
            consultados.
        ensure_indexes:
            Quando ``True``, cria os índices de consulta antes da primeira
            operação.
        """

        self._collection = collection
        """Coleção MongoDB onde os registros são armazenados."""

        self._indexes_ready = not ensure_indexes
        """Indica se os índices já foram garantidos nesta instância."""

    async def query_by_attributes(self, filter: LocationKey) -> List[CachedRecord]:
        criteria = self._location_criteria(filter)
        return await self._guard(lambda: self._find(criteria), f"consulta por {filter}")

    async def query_by_attributes_batch(
        self, filters: Sequence[LocationKey]
    ) -> Dict[LocationKey, List[CachedRecord]]:
        unique = list(dict.fromkeys(filters))
        result: Dict[LocationKey, List[CachedRecord]] = {key: [] for key in unique}
        if not unique:
            return result

        criteria = {"$or": [self._location_criteria(key) for key in unique]}
        records = await self._guard(
            lambda: self._find(criteria), f"consulta em lote ({len(unique)} filtros)"
        )
        # Um mesmo registro pode satisfazer mais de um filtro.
        for record in records:
            for key in unique:
                if key.matches(record.location):
                    result[key].append(record)
        return result

    async def query_by_coordinate(self, coordinate: GeoCoordinate) -> List[CachedRecord]:
        criteria = {
            "coordinate.latitude": coordinate.latitude,
            "coordinate.longitude": coordinate.longitude,
        }
        return await self._guard(lambda: self._find(criteria), f"consulta por {coordinate}")

    async def upsert(self, record: CachedRecord) -> None:
        document = self._serialize_record(record)

        async def replace() -> None:
            try:
                await self._collection.replace_one(
                    {"_id": record.id}, document, upsert=True
                )
            except DuplicateKeyError:
                # Gravação concorrente do mesmo id: o registro já existe.
                log.debug("Registro %s já existente ao gravar", record.id)

        await self._guard(replace, f"gravação do registro {record.id}")

    async def close(self) -> None:
        return None

    async def _find(self, criteria: Dict[str, Any]) -> List[CachedRecord]:
        records: List[CachedRecord] = []
        async for data in self._collection.find(criteria):
            try:
                records.append(self._deserialize_record(data))
            except (KeyError, TypeError, ValueError) as exc:
                log.warning("Documento inválido ignorado (%s): %s", data.get("_id"), exc)
        return records

    async def _guard(self, operation: Callable[[], Awaitable[T]], description: str) -> T:
        """Traduz erros do driver para os erros do domínio."""

        if not self._indexes_ready:
            await self._ensure_indexes()
        try:
            return await operation()
        except (ConnectionFailure, ExecutionTimeout) as exc:
            raise TransientUpstreamError(f"Falha temporária do MongoDB na {description}: {exc}") from exc
        except PyMongoError as exc:
            raise UpstreamError(f"Erro do MongoDB na {description}: {exc}") from exc

    async def _ensure_indexes(self) -> None:
        try:
            await ensure_record_indexes(self._collection)
        except PyMongoError as exc:
            log.warning("Não foi possível criar os índices da coleção: %s", exc)
            return
        self._indexes_ready = True

    @staticmethod
    def _location_criteria(key: LocationKey) -> Dict[str, str]:
        attributes = key.attributes()
        if not attributes:
            raise ValueError("Filtro vazio não é permitido em consultas ao cache")
        return {_LOCATION_FIELDS[name]: value for name, value in attributes.items()}

    @staticmethod
    def _serialize_record(record: CachedRecord) -> Dict[str, Any]:
        return {
            "_id": record.id,
            "ianaCode": record.iana_code,
            "location": {
                "city": record.location.city,
                "state": record.location.state,
                "postalCode": record.location.postal_code,
                "country": record.location.country,
            },
            "coordinate": {
                "latitude": record.coordinate.latitude,
                "longitude": record.coordinate.longitude,
            },
            "lastUpdated": record.last_updated,
        }

    @staticmethod
    def _deserialize_record(data: Dict[str, Any]) -> CachedRecord:
        location = data.get("location") or {}
        coordinate = data["coordinate"]
        last_updated: datetime = data["lastUpdated"]
        if last_updated.tzinfo is None:
            last_updated = last_updated.replace(tzinfo=timezone.utc)
        return CachedRecord(
            id=str(data["_id"]),
            iana_code=data["ianaCode"],
            location=LocationKey(
                city=location.get("city") or "",
                state=location.get("state") or "",
                postal_code=location.get("postalCode") or "",
                country=location.get("country") or "",
            ),
            coordinate=GeoCoordinate(
                latitude=float(coordinate["latitude"]),
                longitude=float(coordinate["longitude"]),
            ),
            last_updated=last_updated,
        )


__all__ = ["MongoRecordStore"]
