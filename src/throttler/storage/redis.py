"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Redis-backed storage backend.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

from ..errors import StorageLockError
from .base import StorageBackend

logger = logging.getLogger("throttler.storage.redis")


class RedisStorage(StorageBackend):
    """
    Shared storage for engines running in several processes.

    Uses:
    - One Redis string per namespace (``{prefix}:bucket:{key}``)
    - One Redis lock per namespace (``{prefix}:lock:{key}``) so engines
      sharing this Redis serialize their read-modify-write cycles

    Requires ``redis`` (``pip install redis``).

    Args:
        redis: A synchronous ``redis.Redis`` client instance.
        prefix: Key prefix for namespacing.
        ttl_s: Optional expiry applied on every write.
        lock_timeout_s: Auto-release time of a namespace lock.
        blocking_timeout_s: Max seconds to wait for a namespace lock.
    """

    backend_id = "redis"

    def __init__(
        self,
        redis: Any,
        *,
        prefix: str = "throttler",
        ttl_s: float | None = None,
        lock_timeout_s: float = 5.0,
        blocking_timeout_s: float = 5.0,
    ) -> None:
        if ttl_s is not None and ttl_s <= 0:
            raise ValueError("ttl_s must be > 0")
        if lock_timeout_s <= 0:
            raise ValueError("lock_timeout_s must be > 0")
        if blocking_timeout_s < 0:
            raise ValueError("blocking_timeout_s must be >= 0")
        self._redis = redis
        self._prefix = prefix
        self._ttl_s = ttl_s
        self._lock_timeout_s = lock_timeout_s
        self._blocking_timeout_s = blocking_timeout_s

    def _bucket_key(self, key: str) -> str:
        """Redis string key storing one serialized bucket."""
        return f"{self._prefix}:bucket:{key}"

    def _lock_key(self, key: str) -> str:
        """Redis key used for namespace lock coordination."""
        return f"{self._prefix}:lock:{key}"

    def _expiry(self) -> int | None:
        if self._ttl_s is None:
            return None
        return max(1, math.ceil(self._ttl_s))

    def _write(self, key: str, value: bytes, *, nx: bool = False, xx: bool = False) -> bool:
        from redis.exceptions import RedisError

        try:
            result = self._redis.set(
                self._bucket_key(key),
                value,
                ex=self._expiry(),
                nx=nx,
                xx=xx,
            )
        except RedisError as exc:
            logger.warning("Redis write failed for %s: %s", self._bucket_key(key), exc)
            return False
        return bool(result)

    def has_item(self, key: str) -> bool:
        return int(self._redis.exists(self._bucket_key(key))) > 0

    def get_item(self, key: str) -> bytes:
        raw = self._redis.get(self._bucket_key(key))
        if raw is None:
            raise KeyError(key)
        if isinstance(raw, str):
            return raw.encode("utf-8")
        return raw

    def set_item(self, key: str, value: bytes) -> bool:
        """Create a record with ``SET NX``."""
        return self._write(key, value, nx=True)

    def replace_item(self, key: str, value: bytes) -> bool:
        """Overwrite a record with ``SET XX``."""
        return self._write(key, value, xx=True)

    @contextmanager
    def lock(self, key: str) -> Iterator[object]:
        """
        Hold the Redis lock for ``key`` for the duration of the block.

        Release is owner-checked by redis-py, so a lock that already expired
        and was taken by another process is left alone.
        """
        from redis.exceptions import LockError

        lock = self._redis.lock(
            self._lock_key(key),
            timeout=self._lock_timeout_s,
            blocking_timeout=self._blocking_timeout_s,
        )
        if not lock.acquire():
            raise StorageLockError(
                f"Timed out acquiring lock for namespace '{key}' "
                f"after {self._blocking_timeout_s}s"
            )
        try:
            yield lock
        finally:
            try:
                lock.release()
            except LockError:
                logger.warning(
                    "Lock for namespace '%s' expired before release", key
                )
