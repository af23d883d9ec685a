"""Exceções levantadas na fronteira com os colaboradores externos."""
from __future__ import annotations


class TimevaultError(Exception):
    """Classe base para falhas do Timevault."""


class ConfigurationError(TimevaultError):
    """Configuração ausente ou inválida."""


class UpstreamError(TimevaultError):
    """Falha de um colaborador externo que não deve ser repetida."""


class TransientUpstreamError(UpstreamError):
    """Falha temporária (timeout, 429, 5xx, rede) elegível a nova tentativa."""


__all__ = [
    "ConfigurationError",
    "TimevaultError",
    "TransientUpstreamError",
    "UpstreamError",
]
