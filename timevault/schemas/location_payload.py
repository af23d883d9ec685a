"""Modelos Pydantic para localizações recebidas por integrações externas."""
from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from timevault.application import ConversionRequest
from timevault.domain import LocationKey


class LocationPayload(BaseModel):
    """Localização informada em arquivos de lote ou linha de comando."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    city: str | None = None
    state: str | None = None
    postal_code: str | None = Field(default=None, alias="postalCode")
    country: str | None = None

    def to_domain(self) -> LocationKey:
        """Converte o payload em uma chave normalizada (sem ``None``)."""

        return LocationKey(
            city=self.city or "",
            state=self.state or "",
            postal_code=self.postal_code or "",
            country=self.country or "",
        ).normalized()


class LocationBatchPayload(BaseModel):
    """Lote de localizações; aceita tanto uma lista quanto ``{"body": [...]}``."""

    body: list[LocationPayload] = Field(default_factory=list)

    def to_domain(self) -> list[LocationKey]:
        return [item.to_domain() for item in self.body]


class ConversionPayload(BaseModel):
    """Pedido de conversão de horário entre duas localizações."""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    from_city: str | None = Field(default=None, alias="fromCity")
    from_state: str | None = Field(default=None, alias="fromState")
    from_postal_code: str | None = Field(default=None, alias="fromPostalCode")
    from_country: str | None = Field(default=None, alias="fromCountry")
    to_city: str | None = Field(default=None, alias="toCity")
    to_state: str | None = Field(default=None, alias="toState")
    to_postal_code: str | None = Field(default=None, alias="toPostalCode")
    to_country: str | None = Field(default=None, alias="toCountry")
    from_time: datetime = Field(alias="fromTime")

    def to_domain(self) -> ConversionRequest:
        from_location = LocationPayload(
            city=self.from_city,
            state=self.from_state,
            postal_code=self.from_postal_code,
            country=self.from_country,
        ).to_domain()
        to_location = LocationPayload(
            city=self.to_city,
            state=self.to_state,
            postal_code=self.to_postal_code,
            country=self.to_country,
        ).to_domain()
        return ConversionRequest(from_location, to_location, self.from_time)


class ConversionBatchPayload(BaseModel):
    """Lote de pedidos de conversão; aceita uma lista ou ``{"body": [...]}``."""

    body: list[ConversionPayload] = Field(min_length=1)

    def to_domain(self) -> list[ConversionRequest]:
        return [item.to_domain() for item in self.body]


__all__ = [
    "ConversionBatchPayload",
    "ConversionPayload",
    "LocationBatchPayload",
    "LocationPayload",
]
