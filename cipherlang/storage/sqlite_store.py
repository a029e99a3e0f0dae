"""SQLite-backed key/payload store."""

from __future__ import annotations

import sqlite3
import threading
import time
from pathlib import Path
from typing import Callable, TypeVar

from cipherlang.core.errors import StorageError
from cipherlang.storage.kv import KVStore
from cipherlang.util.logger import logger


T = TypeVar("T")


class SqliteKVStore(KVStore):
    def __init__(self, db_path: str = "data/cipherlang.db") -> None:
        self.db_path = Path(db_path)
        self._lock = threading.Lock()
        try:
            self.db_path.parent.mkdir(parents=True, exist_ok=True)
            self._init_db()
        except (OSError, sqlite3.Error) as exc:
            raise StorageError(f"sqlite store unavailable path={self.db_path}: {exc}") from exc

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path, timeout=5.0)
        conn.execute("PRAGMA busy_timeout=5000")
        return conn

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("PRAGMA journal_mode=WAL")
            conn.execute("PRAGMA synchronous=NORMAL")
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS kv_store (
                  key TEXT PRIMARY KEY,
                  payload TEXT NOT NULL,
                  updated_at INTEGER NOT NULL
                )
                """
            )
            conn.commit()
        logger.info("sqlite store initialized path=%s", self.db_path)

    def _with_retry(self, fn: Callable[[], T], retries: int = 5) -> T:
        for attempt in range(retries):
            try:
                return fn()
            except sqlite3.OperationalError as exc:
                if "locked" not in str(exc).lower() or attempt == retries - 1:
                    raise StorageError(f"sqlite operation failed: {exc}") from exc
                time.sleep(0.01 * (attempt + 1))
            except sqlite3.Error as exc:
                raise StorageError(f"sqlite operation failed: {exc}") from exc
        raise RuntimeError("unreachable retry state")

    def get(self, key: str) -> str | None:
        def _read() -> tuple[str] | None:
            with self._connect() as conn:
                return conn.execute("SELECT payload FROM kv_store WHERE key = ?", (key,)).fetchone()

        row = self._with_retry(_read)
        return row[0] if row else None

    def set(self, key: str, payload: str) -> None:
        def _write() -> None:
            with self._lock, self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO kv_store (key, payload, updated_at)
                    VALUES (?, ?, ?)
                    ON CONFLICT(key)
                    DO UPDATE SET payload=excluded.payload, updated_at=excluded.updated_at
                    """,
                    (key, payload, int(time.time())),
                )
                conn.commit()

        self._with_retry(_write)

    def delete(self, key: str) -> None:
        def _delete() -> None:
            with self._lock, self._connect() as conn:
                conn.execute("DELETE FROM kv_store WHERE key = ?", (key,))
                conn.commit()

        self._with_retry(_delete)
