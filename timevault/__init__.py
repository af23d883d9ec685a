"""Timevault - resolução de fusos horários IANA com cache persistente."""
from .application import BatchResolver, ResolutionPipeline, TimeConverter
from .container import TimevaultContainer, build_services, build_timevault_container
from .domain import (
    CachedRecord,
    ErrorKind,
    GeoCoordinate,
    LocationKey,
    ResolutionResult,
    ResolutionSource,
)
from .settings import ResolverSettings

__all__ = [
    "BatchResolver",
    "CachedRecord",
    "ErrorKind",
    "GeoCoordinate",
    "LocationKey",
    "ResolutionPipeline",
    "ResolutionResult",
    "ResolutionSource",
    "ResolverSettings",
    "TimeConverter",
    "TimevaultContainer",
    "build_services",
    "build_timevault_container",
]
