"""Entidades de domínio utilizadas na resolução de fusos horários."""
from .location import GeoCoordinate, LocationKey
from .record import CachedRecord, new_record_id, pick_canonical
from .result import ErrorKind, ResolutionResult, ResolutionSource

__all__ = [
    "CachedRecord",
    "ErrorKind",
    "GeoCoordinate",
    "LocationKey",
    "ResolutionResult",
    "ResolutionSource",
    "new_record_id",
    "pick_canonical",
]
