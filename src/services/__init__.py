"""Services package."""

from src.services.storage import (
    AuditStorageInterface,
    BackendUnavailableError,
    GoogleSheetsClient,
    GoogleSheetsKeyValueBackend,
    InMemoryKeyValueBackend,
    KeyValueAuditStorage,
    KeyValueBackend,
    StorageError,
)

__all__ = [
    "AuditStorageInterface",
    "BackendUnavailableError",
    "GoogleSheetsClient",
    "GoogleSheetsKeyValueBackend",
    "InMemoryKeyValueBackend",
    "KeyValueAuditStorage",
    "KeyValueBackend",
    "StorageError",
]
