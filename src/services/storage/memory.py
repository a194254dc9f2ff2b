"""In-memory key-value backend, for tests and throwaway sessions."""

from typing import Optional

from src.services.storage.interface import KeyValueBackend


class InMemoryKeyValueBackend(KeyValueBackend):
    """Dict-backed backend. Values do not survive the process."""

    def __init__(self, initial: Optional[dict[str, str]] = None):
        self._values: dict[str, str] = dict(initial or {})

    async def get(self, key: str) -> Optional[str]:
        return self._values.get(key)

    async def set(self, key: str, value: str) -> None:
        self._values[key] = value

    def keys(self) -> list[str]:
        return list(self._values)

    def snapshot(self) -> dict[str, str]:
        """Copy of everything stored, for inspection."""
        return dict(self._values)
