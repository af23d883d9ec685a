"""Entidades que identificam um lugar: chave de localização e coordenada."""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict


@dataclass(frozen=True)
class LocationKey:
    """Identifica um lugar pelos seus atributos administrativos.

    Todos os campos são strings e nunca ``None``; informação ausente é
    representada por string vazia. A igualdade é exata em todos os campos,
    por isso a normalização (caixa, espaços) fica a cargo de quem constrói a
    chave.
    """

    #: Nome da cidade.
    city: str = ""
    #: Estado, província ou região.
    state: str = ""
    #: Código postal.
    postal_code: str = ""
    #: País.
    country: str = ""

    def __post_init__(self) -> None:
        for name in ("city", "state", "postal_code", "country"):
            if not isinstance(getattr(self, name), str):
                raise TypeError(f"LocationKey.{name} deve ser uma string")

    def is_empty(self) -> bool:
        """Indica se nenhum atributo foi informado."""

        return not (self.city or self.state or self.postal_code or self.country)

    def attributes(self) -> Dict[str, str]:
        """Retorna apenas os atributos preenchidos, usados como filtro conjuntivo."""

        values = {
            "city": self.city,
            "state": self.state,
            "postal_code": self.postal_code,
            "country": self.country,
        }
        return {name: value for name, value in values.items() if value}

    def matches(self, other: "LocationKey") -> bool:
        """Verifica se ``other`` satisfaz esta chave usada como filtro.

        Atributos vazios funcionam como curinga.
        """

        return all(
            getattr(other, name) == value for name, value in self.attributes().items()
        )

    def query_string(self) -> str:
        """Monta a consulta textual enviada ao serviço de geocodificação."""

        parts = (self.city, self.state, self.postal_code, self.country)
        return ", ".join(part for part in parts if part)

    def normalized(self) -> "LocationKey":
        """Cria uma cópia sem espaços nas bordas e em caixa baixa."""

        return LocationKey(
            city=self.city.strip().lower(),
            state=self.state.strip().lower(),
            postal_code=self.postal_code.strip().lower(),
            country=self.country.strip().lower(),
        )

    def __str__(self) -> str:
        return (
            f"City: {self.city}, State: {self.state}, "
            f"PostalCode: {self.postal_code}, Country: {self.country}"
        )


@dataclass(frozen=True)
class GeoCoordinate:
    """Ponto na superfície terrestre em graus decimais."""

    latitude: float
    longitude: float

    def __post_init__(self) -> None:
        if not (math.isfinite(self.latitude) and math.isfinite(self.longitude)):
            raise ValueError("latitude e longitude devem ser números finitos")

    @classmethod
    def parse(cls, latitude: str, longitude: str) -> "GeoCoordinate":
        """Constrói a coordenada a partir de strings.

        Raises:
            ValueError: Quando algum dos valores não representa um número
                finito.
        """

        try:
            lat = float(latitude)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Latitude inválida: {latitude!r}") from exc
        try:
            lon = float(longitude)
        except (TypeError, ValueError) as exc:
            raise ValueError(f"Longitude inválida: {longitude!r}") from exc
        return cls(latitude=lat, longitude=lon)

    def __str__(self) -> str:
        return f"Latitude: {self.latitude}, Longitude: {self.longitude}"


__all__ = ["GeoCoordinate", "LocationKey"]
