"""Modelos de validação para entradas externas."""
from .location_payload import (
    ConversionBatchPayload,
    ConversionPayload,
    LocationBatchPayload,
    LocationPayload,
)

__all__ = [
    "ConversionBatchPayload",
    "ConversionPayload",
    "LocationBatchPayload",
    "LocationPayload",
]
