"""
Shared fixtures.

No real backends in tests: the store runs on the in-memory backend, and
failures are injected with small backend subclasses.
"""

import asyncio
from typing import Optional

import pytest

from src.audit import AuditLogger
from src.config import StoreSettings
from src.services.storage import InMemoryKeyValueBackend
from src.store import DocumentStore


class CountingBackend(InMemoryKeyValueBackend):
    """Records every set() so tests can assert how many writes happened."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        super().__init__(initial)
        self.writes: list[tuple[str, str]] = []

    async def set(self, key: str, value: str) -> None:
        self.writes.append((key, value))
        await super().set(key, value)


class YieldingBackend(InMemoryKeyValueBackend):
    """Suspends at every I/O call, like a real async backend."""

    async def get(self, key: str) -> Optional[str]:
        await asyncio.sleep(0)
        return await super().get(key)

    async def set(self, key: str, value: str) -> None:
        await asyncio.sleep(0)
        await super().set(key, value)


class FailingBackend(InMemoryKeyValueBackend):
    """Fails reads and/or writes with a plain exception."""

    def __init__(self, fail_get: bool = False, fail_set: bool = False):
        super().__init__()
        self.fail_get = fail_get
        self.fail_set = fail_set

    async def get(self, key: str) -> Optional[str]:
        if self.fail_get:
            raise RuntimeError("storage permission denied")
        return await super().get(key)

    async def set(self, key: str, value: str) -> None:
        if self.fail_set:
            raise RuntimeError("storage full")
        await super().set(key, value)


@pytest.fixture
def backend():
    return CountingBackend()


@pytest.fixture
def settings():
    return StoreSettings()


@pytest.fixture
def store(backend, settings):
    return DocumentStore(backend, settings=settings, audit_logger=AuditLogger())


@pytest.fixture
def make_store():
    """Build a store around any backend, with optional setting overrides."""
    def _make(backend, **overrides) -> DocumentStore:
        return DocumentStore(
            backend,
            settings=StoreSettings(**overrides),
            audit_logger=AuditLogger(),
        )
    return _make


@pytest.fixture
def wheat():
    return {
        "productName": "Wheat",
        "quantity": 10,
        "unitPrice": 50,
        "status": "buying",
        "date": "2024-03-01",
    }


@pytest.fixture
def loan_data():
    return {
        "type": "given",
        "partyName": "Ramesh",
        "amount": 500,
        "status": "active",
        "date": "2024-01-01",
    }


@pytest.fixture
def group_data():
    return {
        "groupName": "Sunday Savers",
        "weeklyAmount": 100,
        "type": "half",
        "status": "pending",
        "weekNumber": 4,
        "date": "2024-02-01",
    }


@pytest.fixture
def bank_data():
    return {
        "bankName": "State Bank",
        "accountType": "savings",
        "balance": 1000,
    }
