"""Clientes de geocodificação e fusos horários."""
from .azure_maps_client import AzureMapsGeoResolver, AzureMapsSettings

__all__ = ["AzureMapsGeoResolver", "AzureMapsSettings"]
