"""
Document store package.

The only consumer-facing surface of the ledger: one DocumentStore object,
built once at process start (see src.orchestrator.create_app_components).
"""

from src.store.collections import COLLECTIONS, CollectionSpec, get_collection_spec
from src.store.document_store import DocumentStore, serialize_collection
from src.store.healing import HealedCollection, build_record, heal_collection, heal_record
from src.store.results import Found, LookupResult, NotFound

__all__ = [
    "COLLECTIONS",
    "CollectionSpec",
    "DocumentStore",
    "Found",
    "HealedCollection",
    "build_record",
    "LookupResult",
    "NotFound",
    "get_collection_spec",
    "heal_collection",
    "heal_record",
    "serialize_collection",
]
