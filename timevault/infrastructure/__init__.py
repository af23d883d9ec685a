"""Adaptadores de infraestrutura: MongoDB e Azure Maps."""
from .database import MongoClientFactory, MongoSettings
from .geo import AzureMapsGeoResolver, AzureMapsSettings
from .repositories import MongoRecordStore, ensure_record_indexes

__all__ = [
    "AzureMapsGeoResolver",
    "AzureMapsSettings",
    "MongoClientFactory",
    "MongoRecordStore",
    "MongoSettings",
    "ensure_record_indexes",
]
