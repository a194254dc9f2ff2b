"""
Tests for the audit logger and the key-value audit trail.
"""

import json

import pytest
from unittest.mock import AsyncMock

from src.audit import AuditLogger, create_correlation_id
from src.models.audit import AuditEventBuilder, AuditEventType
from src.services.storage import (
    InMemoryKeyValueBackend,
    KeyValueAuditStorage,
    StorageError,
)
from src.store import DocumentStore


class TestAuditLogger:
    """Tests for AuditLogger."""

    @pytest.mark.asyncio
    async def test_local_only_logging_succeeds(self):
        """Test logging without storage."""
        logger = AuditLogger()
        assert await logger.log(AuditEventBuilder.record_created("loan", "ln_1")) is True

    @pytest.mark.asyncio
    async def test_persists_to_storage(self):
        """Test events are handed to the storage backend."""
        storage = AsyncMock()
        storage.append_event.return_value = True
        logger = AuditLogger(storage)

        event = AuditEventBuilder.record_deleted("loan", "ln_1")
        assert await logger.log(event) is True
        storage.append_event.assert_awaited_once_with(event)

    @pytest.mark.asyncio
    async def test_storage_failure_does_not_raise(self):
        """Test a failing audit store never breaks the caller."""
        storage = AsyncMock()
        storage.append_event.side_effect = StorageError("disk full")
        logger = AuditLogger(storage)

        assert await logger.log(AuditEventBuilder.record_created("loan", "ln_1")) is False

    def test_correlation_ids_are_unique(self):
        """Test correlation id generation."""
        assert create_correlation_id() != create_correlation_id()


class TestKeyValueAuditStorage:
    """Tests for the audit trail stored under one key."""

    @pytest.mark.asyncio
    async def test_append_and_query_by_entity(self):
        """Test events can be looked up by record."""
        storage = KeyValueAuditStorage(InMemoryKeyValueBackend())
        await storage.append_event(AuditEventBuilder.record_created("loan", "ln_1"))
        await storage.append_event(AuditEventBuilder.record_created("loan", "ln_2"))
        await storage.append_event(AuditEventBuilder.record_deleted("loan", "ln_1"))

        events = await storage.get_events_by_entity("loan", "ln_1")
        assert [e.event_type for e in events] == [
            AuditEventType.RECORD_CREATED,
            AuditEventType.RECORD_DELETED,
        ]

    @pytest.mark.asyncio
    async def test_oldest_events_trimmed(self):
        """Test the trail is capped."""
        backend = InMemoryKeyValueBackend()
        storage = KeyValueAuditStorage(backend, max_events=10)
        for i in range(15):
            await storage.append_event(AuditEventBuilder.record_created("loan", f"ln_{i}"))

        stored = json.loads((await backend.get("@audit_log")))
        assert len(stored) == 10
        assert stored[0]["entity_id"] == "ln_5"

    @pytest.mark.asyncio
    async def test_recent_events_newest_first(self):
        """Test get_recent_events ordering and limit."""
        storage = KeyValueAuditStorage(InMemoryKeyValueBackend())
        for i in range(5):
            await storage.append_event(AuditEventBuilder.record_created("loan", f"ln_{i}"))

        recent = await storage.get_recent_events(limit=2)
        assert len(recent) == 2
        assert recent[0].timestamp >= recent[1].timestamp

    @pytest.mark.asyncio
    async def test_unreadable_trail_is_ignored(self):
        """Test a corrupted trail reads as empty and is replaced on append."""
        backend = InMemoryKeyValueBackend({"@audit_log": "not json"})
        storage = KeyValueAuditStorage(backend)

        assert await storage.get_recent_events() == []
        await storage.append_event(AuditEventBuilder.record_created("loan", "ln_1"))
        assert len(json.loads(await backend.get("@audit_log"))) == 1

    @pytest.mark.asyncio
    async def test_backend_failure_wrapped(self):
        """Test unexpected backend errors surface as StorageError."""
        backend = AsyncMock()
        backend.get.side_effect = RuntimeError("boom")
        storage = KeyValueAuditStorage(backend)

        with pytest.raises(StorageError):
            await storage.append_event(AuditEventBuilder.record_created("loan", "ln_1"))


class TestStoreAuditTrail:
    """Store operations leave an audit trail."""

    @pytest.mark.asyncio
    async def test_mutations_are_recorded(self, loan_data):
        """Test create, append and not-found events."""
        backend = InMemoryKeyValueBackend()
        audit_storage = KeyValueAuditStorage(backend)
        store = DocumentStore(backend, audit_logger=AuditLogger(audit_storage))

        loan = await store.save_loan(loan_data)
        correlation_id = create_correlation_id()
        await store.append_sub("loan", loan.id, {"amount": 10}, correlation_id)
        await store.add_loan_payment("ln_missing", {"amount": 10})

        events = await audit_storage.get_events_by_entity("loan", loan.id)
        types = [e.event_type for e in events]
        assert AuditEventType.RECORD_CREATED in types
        assert AuditEventType.SUB_RECORD_APPENDED in types
        appended = [e for e in events if e.event_type == AuditEventType.SUB_RECORD_APPENDED]
        assert appended[0].correlation_id == correlation_id

        missing = await audit_storage.get_events_by_entity("loan", "ln_missing")
        assert missing[0].event_type == AuditEventType.TARGET_NOT_FOUND
