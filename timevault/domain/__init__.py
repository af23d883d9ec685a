"""API pública do domínio do Timevault.

O módulo centraliza entidades, erros e portas para que possam ser
importados diretamente de ``timevault.domain``.
"""

from .entities import (
    CachedRecord,
    ErrorKind,
    GeoCoordinate,
    LocationKey,
    ResolutionResult,
    ResolutionSource,
)
from .errors import (
    ConfigurationError,
    TimevaultError,
    TransientUpstreamError,
    UpstreamError,
)
from .ports import DocumentStore, GeoLookup, GeoResolver

__all__ = [
    "CachedRecord",
    "ConfigurationError",
    "DocumentStore",
    "ErrorKind",
    "GeoCoordinate",
    "GeoLookup",
    "GeoResolver",
    "LocationKey",
    "ResolutionResult",
    "ResolutionSource",
    "TimevaultError",
    "TransientUpstreamError",
    "UpstreamError",
]
