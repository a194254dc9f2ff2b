"""
Key-value audit storage.

The audit trail is one more JSON array in the same backend as the
collections, capped at a configurable number of events (oldest dropped).
"""

import json
from typing import Optional

from pydantic import ValidationError

from src.models.audit import AuditEvent
from src.services.storage.interface import (
    AuditStorageInterface,
    KeyValueBackend,
    StorageError,
)


class KeyValueAuditStorage(AuditStorageInterface):
    """Append-only audit log stored under a single key."""

    def __init__(
        self,
        backend: KeyValueBackend,
        key: str = "@audit_log",
        max_events: int = 1000,
    ):
        self._backend = backend
        self._key = key
        self._max_events = max_events

    async def _load(self) -> list[dict]:
        raw: Optional[str] = await self._backend.get(self._key)
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except ValueError:
            return []
        return [item for item in data if isinstance(item, dict)] if isinstance(data, list) else []

    def _parse(self, items: list[dict]) -> list[AuditEvent]:
        events = []
        for item in items:
            try:
                events.append(AuditEvent.model_validate(item))
            except ValidationError:
                continue  # Skip malformed entries
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event; the oldest entries are trimmed past the cap."""
        try:
            items = await self._load()
            items.append(event.model_dump(mode="json"))
            items = items[-self._max_events:]
            await self._backend.set(self._key, json.dumps(items, separators=(",", ":")))
            return True
        except StorageError:
            raise
        except Exception as e:
            raise StorageError(f"Failed to append audit event: {e}") from e

    async def get_events_by_entity(
        self,
        entity_type: str,
        entity_id: str,
    ) -> list[AuditEvent]:
        events = [
            e for e in self._parse(await self._load())
            if e.entity_type == entity_type and e.entity_id == entity_id
        ]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = self._parse(await self._load())
        events.sort(key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
