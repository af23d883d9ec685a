"""Implementações concretas de repositórios usados pelo Timevault."""
from .mongo_record_store import MongoRecordStore
from .record_indexes import ensure_record_indexes

__all__ = ["MongoRecordStore", "ensure_record_indexes"]
