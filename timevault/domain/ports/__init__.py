"""Portas que conectam o domínio com serviços e adaptadores externos."""
from .document_store import DocumentStore
from .geo_resolver import GeoLookup, GeoResolver

__all__ = ["DocumentStore", "GeoLookup", "GeoResolver"]
