"""Serviços de aplicação: pipeline de resolução, lote e conversão de horários."""
from .batch import BatchResolver
from .resolution import ResolutionPipeline
from .retry import RetryPolicy
from .time_conversion import (
    ConversionRequest,
    ConversionResult,
    TimeConverter,
    convert_between,
)

__all__ = [
    "BatchResolver",
    "ConversionRequest",
    "ConversionResult",
    "ResolutionPipeline",
    "RetryPolicy",
    "TimeConverter",
    "convert_between",
]
