"""KV abstraction for the persisted language collection."""

from __future__ import annotations

from abc import ABC, abstractmethod


class KVStore(ABC):
    """Durable string payloads by key.

    Implementations wrap driver failures in ``StorageError``.
    """

    @abstractmethod
    def get(self, key: str) -> str | None:
        pass

    @abstractmethod
    def set(self, key: str, payload: str) -> None:
        pass

    @abstractmethod
    def delete(self, key: str) -> None:
        pass


class MemoryKVStore(KVStore):
    """Process-local payloads; nothing survives a restart."""

    def __init__(self) -> None:
        self._entries: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._entries.get(key)

    def set(self, key: str, payload: str) -> None:
        self._entries[key] = payload

    def delete(self, key: str) -> None:
        self._entries.pop(key, None)
