"""Storage backend selection helpers."""

from __future__ import annotations

from cipherlang.config.settings import settings
from cipherlang.storage.json_store import JsonFileKVStore
from cipherlang.storage.kv import KVStore
from cipherlang.storage.postgres_store import PostgresKVStore
from cipherlang.storage.redis_store import RedisKVStore
from cipherlang.storage.sqlite_store import SqliteKVStore


def create_store() -> KVStore:
    backend = settings.storage_backend.strip().lower()
    if backend == "redis":
        return RedisKVStore(redis_url=settings.redis_url, key_prefix=settings.redis_key_prefix)
    if backend in {"postgres", "postgresql"}:
        return PostgresKVStore(
            dsn=settings.postgres_dsn,
            schema=settings.postgres_schema,
        )
    if backend == "json":
        return JsonFileKVStore(settings.json_store_path)
    return SqliteKVStore(db_path=settings.sqlite_db_path)
