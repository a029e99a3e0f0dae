"""JSON-file key/payload store, hand-editable like the other config files.

The file holds one object ``{"entries": {key: payload}}``; writes go through a
temp file and ``os.replace``.
"""

from __future__ import annotations

import json
import os
import threading
from pathlib import Path
from typing import Any

from cipherlang.core.errors import StorageError
from cipherlang.storage.kv import KVStore
from cipherlang.util.logger import logger

_ENTRIES_KEY = "entries"


class JsonFileKVStore(KVStore):
    def __init__(self, path: str = "data/languages.json") -> None:
        p = Path(path)
        self.path = p if p.is_absolute() else Path.cwd() / p
        self._lock = threading.Lock()

    def _read_entries(self) -> dict[str, str]:
        if not self.path.is_file():
            return {}
        try:
            data: Any = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise StorageError(f"json store unreadable path={self.path}: {exc}") from exc
        entries = data.get(_ENTRIES_KEY) if isinstance(data, dict) else None
        if not isinstance(entries, dict):
            logger.warning("json store has no entries object path=%s", self.path)
            return {}
        return {str(k): v for k, v in entries.items() if isinstance(v, str)}

    def _write_entries(self, entries: dict[str, str]) -> None:
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(json.dumps({_ENTRIES_KEY: entries}, ensure_ascii=False, indent=2), encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as exc:
            raise StorageError(f"json store write failed path={self.path}: {exc}") from exc
        logger.debug("json store saved path=%s keys=%d", self.path, len(entries))

    def get(self, key: str) -> str | None:
        with self._lock:
            return self._read_entries().get(key)

    def set(self, key: str, payload: str) -> None:
        with self._lock:
            entries = self._read_entries()
            entries[key] = payload
            self._write_entries(entries)

    def delete(self, key: str) -> None:
        with self._lock:
            entries = self._read_entries()
            if entries.pop(key, None) is not None:
                self._write_entries(entries)
