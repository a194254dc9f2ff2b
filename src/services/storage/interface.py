"""
Abstract Storage Interface

DESIGN DECISION: The document store never talks to a concrete storage
technology. It depends on a tiny key-value contract:

    get(key) -> str | None
    set(key, value) -> None

Both calls are async and both may fail. This allows us to:
1. Run the whole store against an in-memory dict in tests
2. Keep Google Sheets (or anything else) as a swappable backend
3. Keep the read-modify-write protocol in one place

The interface is intentionally minimal - no queries, no partial updates.
A collection is always read and written as one serialized value.
"""

from abc import ABC, abstractmethod
from typing import Optional

from src.models.audit import AuditEvent


class KeyValueBackend(ABC):
    """
    Abstract asynchronous key-value backend.

    Implementations must treat values as opaque strings.
    """

    @abstractmethod
    async def get(self, key: str) -> Optional[str]:
        """
        Read the value stored under a key.

        Args:
            key: The storage key

        Returns:
            The stored string, or None if the key has never been set

        Raises:
            BackendUnavailableError: If the backend cannot be read
        """
        pass

    @abstractmethod
    async def set(self, key: str, value: str) -> None:
        """
        Store a value under a key, replacing any previous value.

        The write is a single value-set; there is no partial update.

        Raises:
            BackendUnavailableError: If the backend cannot be written
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        """
        Get all events for a specific record.

        Args:
            entity_type: Collection kind (e.g., 'loan')
            entity_id: The record's identifier

        Returns:
            List of events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events (newest first).
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class BackendUnavailableError(StorageError):
    """The underlying key-value read or write failed."""

    def __init__(self, operation: str, key: str, reason: str = ""):
        self.operation = operation
        self.key = key
        self.reason = reason
        message = f"Backend {operation} failed for key {key!r}"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(message)


class MalformedStoredValueError(StorageError):
    """Stored value does not parse as a JSON array of records."""

    def __init__(self, key: str, raw_value: str, reason: str):
        self.key = key
        self.raw_value = raw_value
        self.reason = reason
        super().__init__(f"Malformed value under {key!r}: {reason}")


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class StoreOperationError(StorageError):
    """
    Coarse-grained failure raised at a document store operation boundary.

    The message carries the caller's intent (e.g. "Failed to save loan");
    the backend failure is chained as __cause__.
    """

    def __init__(self, operation: str, message: str):
        self.operation = operation
        super().__init__(message)


class StoreInitializationError(StoreOperationError):
    """A collection key could not be initialized."""
    pass
