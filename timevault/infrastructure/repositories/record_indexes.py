"""Utilitários para criação de índices da coleção de registros de fuso."""
from __future__ import annotations

from typing import Any


async def ensure_record_indexes(collection: Any) -> None:
    """Garante que os índices usados pelas consultas do cache existam."""

    definitions: tuple[tuple[list[tuple[str, int]], dict[str, object]], ...] = (
        (
            [
                ("location.city", 1),
                ("location.state", 1),
                ("location.postalCode", 1),
                ("location.country", 1),
            ],
            {"name": "location_attributes"},
        ),
        (
            [("location.postalCode", 1)],
            {"name": "location_postal_code"},
        ),
        (
            [("location.country", 1)],
            {"name": "location_country"},
        ),
        (
            [("coordinate.latitude", 1), ("coordinate.longitude", 1)],
            {"name": "coordinate"},
        ),
        (
            [("ianaCode", 1)],
            {"name": "iana_code"},
        ),
    )

    for keys, options in definitions:
        await collection.create_index(keys, **options)


__all__ = ["ensure_record_indexes"]
