"""PostgreSQL-backed key/payload store."""

from __future__ import annotations

import re
import time

from cipherlang.core.errors import StorageError
from cipherlang.storage.kv import KVStore

try:
    import psycopg
except Exception:  # pragma: no cover - optional dependency
    psycopg = None

_PSYCOPG_ERRORS: tuple[type[Exception], ...] = (psycopg.Error,) if psycopg is not None else ()


class PostgresKVStore(KVStore):
    def __init__(self, *, dsn: str, schema: str = "public") -> None:
        if psycopg is None:  # pragma: no cover - optional dependency
            raise RuntimeError("psycopg package is not installed, cannot use PostgresKVStore")
        if not dsn.strip():
            raise RuntimeError("postgres dsn is empty")
        if not re.fullmatch(r"[A-Za-z_][A-Za-z0-9_]*", schema):
            raise RuntimeError("postgres schema contains invalid characters")

        self.dsn = dsn
        self.schema = schema
        self._table = f"{schema}.kv_store"
        self._init_db()

    def _connect(self):
        return psycopg.connect(self.dsn)

    def _init_db(self) -> None:
        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    cur.execute(f"CREATE SCHEMA IF NOT EXISTS {self.schema}")
                    cur.execute(
                        f"""
                        CREATE TABLE IF NOT EXISTS {self._table} (
                          key TEXT PRIMARY KEY,
                          payload TEXT NOT NULL,
                          updated_at BIGINT NOT NULL
                        )
                        """
                    )
                conn.commit()
        except _PSYCOPG_ERRORS as exc:
            raise StorageError(f"postgres store unavailable: {exc}") from exc

    def get(self, key: str) -> str | None:
        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    cur.execute(f"SELECT payload FROM {self._table} WHERE key = %s", (key,))
                    row = cur.fetchone()
        except _PSYCOPG_ERRORS as exc:
            raise StorageError(f"postgres read failed: {exc}") from exc
        return str(row[0]) if row else None

    def set(self, key: str, payload: str) -> None:
        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    cur.execute(
                        f"""
                        INSERT INTO {self._table} (key, payload, updated_at)
                        VALUES (%s, %s, %s)
                        ON CONFLICT (key)
                        DO UPDATE SET payload = EXCLUDED.payload, updated_at = EXCLUDED.updated_at
                        """,
                        (key, payload, int(time.time())),
                    )
                conn.commit()
        except _PSYCOPG_ERRORS as exc:
            raise StorageError(f"postgres write failed: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            with self._connect() as conn:
                with conn.cursor() as cur:
                    cur.execute(f"DELETE FROM {self._table} WHERE key = %s", (key,))
                conn.commit()
        except _PSYCOPG_ERRORS as exc:
            raise StorageError(f"postgres delete failed: {exc}") from exc
