"""Redis-backed key/payload store."""

from __future__ import annotations

from typing import Any

from cipherlang.core.errors import StorageError
from cipherlang.storage.kv import KVStore

try:
    import redis
except Exception:  # pragma: no cover - optional dependency
    redis = None

_REDIS_ERRORS: tuple[type[Exception], ...] = (redis.RedisError,) if redis is not None else ()


def _to_str(value: Any) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)


class RedisKVStore(KVStore):
    def __init__(self, *, redis_url: str, key_prefix: str = "cipherlang", client: Any = None) -> None:
        if client is None:
            if redis is None:  # pragma: no cover - depends on optional package
                raise RuntimeError("redis package is not installed, cannot use RedisKVStore")
            client = redis.Redis.from_url(redis_url, decode_responses=False)
        self.client = client
        self.key_prefix = key_prefix.strip() or "cipherlang"

    def _key(self, key: str) -> str:
        return f"{self.key_prefix}:kv:{key}"

    def _call(self, fn, *args):
        try:
            return fn(*args)
        except _REDIS_ERRORS as exc:
            raise StorageError(f"redis operation failed: {exc}") from exc

    def get(self, key: str) -> str | None:
        payload = self._call(self.client.get, self._key(key))
        if payload is None:
            return None
        return _to_str(payload)

    def set(self, key: str, payload: str) -> None:
        self._call(self.client.set, self._key(key), payload.encode("utf-8"))

    def delete(self, key: str) -> None:
        self._call(self.client.delete, self._key(key))
