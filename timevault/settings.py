"""Configurações do resolvedor carregadas a partir de variáveis de ambiente."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from datetime import timedelta
from enum import Enum

from dotenv import load_dotenv

from timevault.domain.errors import ConfigurationError

load_dotenv()

log = logging.getLogger(__name__)

_TRUE_VALUES = {"1", "true", "yes", "on", "sim"}
_FALSE_VALUES = {"0", "false", "no", "off", "nao", "não"}


class BackoffType(str, Enum):
    """Estratégias de espera entre tentativas."""

    FIXED = "fixed"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


def get_env(name: str, default: str | None = None) -> str:
    value = os.getenv(name, default)
    if value is None:
        raise ConfigurationError(f"Environment variable '{name}' is not set")
    return value


def get_int(name: str, default: int) -> int:
    """Lê um inteiro do ambiente, usando ``default`` se ausente ou inválido."""

    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        log.warning("Valor inválido para %s: %r. Usando o padrão %s.", name, value, default)
        return default


def get_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return float(value)
    except ValueError:
        log.warning("Valor inválido para %s: %r. Usando o padrão %s.", name, value, default)
        return default


def get_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized in _TRUE_VALUES:
        return True
    if normalized in _FALSE_VALUES:
        return False
    log.warning("Valor inválido para %s: %r. Usando o padrão %s.", name, value, default)
    return default


@dataclass(frozen=True)
class ResolverSettings:
    """Parâmetros do pipeline de resolução e do resolvedor em lote.

    A instância é criada na inicialização e passada explicitamente aos
    construtores; não existe configuração global.
    """

    #: Intervalo, em minutos, após o qual um registro deixa de ser confiável.
    staleness_minutes: int = 43200
    #: Limite de requisições simultâneas ao banco de documentos por lote.
    max_concurrent_store_requests: int = 10
    #: Limite de requisições simultâneas ao serviço de geocodificação por lote.
    max_concurrent_geo_requests: int = 5
    #: Quantidade máxima de tentativas por chamada externa.
    retry_max_attempts: int = 3
    #: Espera base entre tentativas, em segundos.
    retry_base_delay: float = 0.5
    #: Espera máxima entre tentativas, em segundos.
    retry_max_delay: float = 10.0
    #: Estratégia de crescimento da espera.
    retry_backoff: BackoffType = BackoffType.EXPONENTIAL
    #: Adiciona variação aleatória à espera.
    retry_jitter: bool = True
    #: Tempo limite de cada chamada externa, em segundos.
    call_timeout: float = 10.0
    #: Tamanho máximo de cada requisição de geocodificação em lote.
    geo_batch_size: int = 100
    #: Quantidade máxima de filtros por consulta em lote ao banco.
    store_batch_size: int = 50

    def __post_init__(self) -> None:
        if self.staleness_minutes < 0:
            raise ConfigurationError("staleness_minutes não pode ser negativo")
        for name in (
            "max_concurrent_store_requests",
            "max_concurrent_geo_requests",
            "retry_max_attempts",
            "geo_batch_size",
            "store_batch_size",
        ):
            if getattr(self, name) <= 0:
                raise ConfigurationError(f"{name} deve ser maior que zero")
        if self.retry_base_delay < 0 or self.retry_max_delay < 0:
            raise ConfigurationError("As esperas entre tentativas não podem ser negativas")
        if self.call_timeout <= 0:
            raise ConfigurationError("call_timeout deve ser maior que zero")
        if not isinstance(self.retry_backoff, BackoffType):
            object.__setattr__(self, "retry_backoff", parse_backoff(str(self.retry_backoff)))

    @property
    def staleness(self) -> timedelta:
        return timedelta(minutes=self.staleness_minutes)

    @classmethod
    def from_env(cls) -> "ResolverSettings":
        defaults = cls()
        return cls(
            staleness_minutes=get_int(
                "TIMEVAULT_STALENESS_MINUTES", defaults.staleness_minutes
            ),
            max_concurrent_store_requests=get_int(
                "TIMEVAULT_MAX_CONCURRENT_STORE_REQUESTS",
                defaults.max_concurrent_store_requests,
            ),
            max_concurrent_geo_requests=get_int(
                "TIMEVAULT_MAX_CONCURRENT_GEO_REQUESTS",
                defaults.max_concurrent_geo_requests,
            ),
            retry_max_attempts=get_int(
                "TIMEVAULT_RETRY_MAX_ATTEMPTS", defaults.retry_max_attempts
            ),
            retry_base_delay=get_float(
                "TIMEVAULT_RETRY_BASE_DELAY", defaults.retry_base_delay
            ),
            retry_max_delay=get_float(
                "TIMEVAULT_RETRY_MAX_DELAY", defaults.retry_max_delay
            ),
            retry_backoff=parse_backoff(
                os.getenv("TIMEVAULT_RETRY_BACKOFF", defaults.retry_backoff.value)
            ),
            retry_jitter=get_bool("TIMEVAULT_RETRY_JITTER", defaults.retry_jitter),
            call_timeout=get_float("TIMEVAULT_CALL_TIMEOUT", defaults.call_timeout),
            geo_batch_size=get_int("TIMEVAULT_GEO_BATCH_SIZE", defaults.geo_batch_size),
            store_batch_size=get_int(
                "TIMEVAULT_STORE_BATCH_SIZE", defaults.store_batch_size
            ),
        )


def parse_backoff(value: str) -> BackoffType:
    try:
        return BackoffType(value.strip().lower())
    except ValueError as exc:
        options = ", ".join(item.value for item in BackoffType)
        raise ConfigurationError(
            f"Estratégia de backoff desconhecida: {value!r} (use {options})"
        ) from exc


__all__ = [
    "BackoffType",
    "ResolverSettings",
    "get_bool",
    "get_env",
    "get_float",
    "get_int",
    "parse_backoff",
]
