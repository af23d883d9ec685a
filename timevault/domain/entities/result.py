"""Resultado explícito de uma resolução de fuso horário."""
from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Dict, Optional


class ErrorKind(str, Enum):
    """Tipos de falha reconhecidos pelo pipeline."""

    INVALID_INPUT = "invalid_input"
    NOT_FOUND = "not_found"
    UPSTREAM_ERROR = "upstream_error"
    PERSISTENCE_WARNING = "persistence_warning"


class ResolutionSource(str, Enum):
    """Origem do código retornado em uma resolução bem-sucedida."""

    CACHE = "cache"
    RESOLVED = "resolved"
    STALE = "stale"


@dataclass(frozen=True)
class ResolutionResult:
    """Desfecho da resolução de uma entrada.

    Contém ``iana_code`` em caso de sucesso ou ``error_kind`` e ``message`` em
    caso de falha. Use :attr:`ok` para discriminar; não há conversão
    implícita para booleano.
    """

    iana_code: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    message: Optional[str] = None
    source: Optional[ResolutionSource] = None
    #: Mensagem registrada quando a gravação no cache falhou.
    persistence_warning: Optional[str] = None

    def __post_init__(self) -> None:
        if (self.iana_code is None) == (self.error_kind is None):
            raise ValueError("ResolutionResult exige exatamente um entre iana_code e error_kind")
        if self.error_kind is ErrorKind.PERSISTENCE_WARNING:
            raise ValueError("PERSISTENCE_WARNING não é uma falha de resolução")

    @property
    def ok(self) -> bool:
        return self.iana_code is not None

    @classmethod
    def success(
        cls, iana_code: str, source: ResolutionSource = ResolutionSource.RESOLVED
    ) -> "ResolutionResult":
        return cls(iana_code=iana_code, source=source)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> "ResolutionResult":
        return cls(error_kind=kind, message=message)

    @classmethod
    def invalid_input(cls, message: str) -> "ResolutionResult":
        return cls.failure(ErrorKind.INVALID_INPUT, message)

    @classmethod
    def not_found(cls, message: str) -> "ResolutionResult":
        return cls.failure(ErrorKind.NOT_FOUND, message)

    @classmethod
    def upstream_error(cls, message: str) -> "ResolutionResult":
        return cls.failure(ErrorKind.UPSTREAM_ERROR, message)

    def with_persistence_warning(self, message: str) -> "ResolutionResult":
        return replace(self, persistence_warning=message)

    def to_mapping(self) -> Dict[str, Any]:
        """Serializa o resultado para saída em JSON."""

        if self.ok:
            payload: Dict[str, Any] = {
                "ianaCode": self.iana_code,
                "source": self.source.value if self.source else None,
            }
            if self.persistence_warning:
                payload["warning"] = {
                    "kind": ErrorKind.PERSISTENCE_WARNING.value,
                    "message": self.persistence_warning,
                }
            return payload
        assert self.error_kind is not None
        return {"error": self.error_kind.value, "message": self.message}


__all__ = ["ErrorKind", "ResolutionResult", "ResolutionSource"]
