"""
Storage Services Package

Provides the abstract key-value contract the document store is built on,
and concrete backends for it. Google Sheets is the durable backend; the
in-memory backend serves tests and throwaway sessions.
"""

from src.services.storage.interface import (
    AuditStorageInterface,
    BackendUnavailableError,
    ConnectionError,
    KeyValueBackend,
    MalformedStoredValueError,
    NotFoundError,
    StorageError,
    StoreInitializationError,
    StoreOperationError,
)
from src.services.storage.memory import InMemoryKeyValueBackend
from src.services.storage.audit_log import KeyValueAuditStorage
from src.services.storage.google_sheets import (
    GoogleSheetsClient,
    GoogleSheetsKeyValueBackend,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "KeyValueBackend",
    # Exceptions
    "BackendUnavailableError",
    "ConnectionError",
    "MalformedStoredValueError",
    "NotFoundError",
    "StorageError",
    "StoreInitializationError",
    "StoreOperationError",
    # Implementations
    "InMemoryKeyValueBackend",
    "KeyValueAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsKeyValueBackend",
]
