"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Factory helpers for building storage backends and limiters from settings.
"""

from __future__ import annotations

from typing import Any

from .clock import Clock
from .errors import ConfigurationError
from .leaky_bucket import LeakyBucket
from .metrics import ThrottlerMetrics
from .settings import ThrottlerSettings
from .storage.base import StorageBackend
from .storage.file import FileStorage
from .storage.memory import InMemoryStorage


def create_storage_from_env(
    *,
    redis_client: Any | None = None,
    settings: ThrottlerSettings | None = None,
) -> StorageBackend:
    """
    Create a storage backend from `THROTTLER_*` environment variables.

    Backends:
    - `inmemory` (default)
    - `file`
    - `redis`

    Redis resolution:
    - Uses the provided `redis_client` when supplied.
    - Otherwise builds a client from `THROTTLER_REDIS_URL`.
    - If no URL is set, falls back to host/port/db/password variables.
    """
    settings = settings or ThrottlerSettings.from_env()
    backend = settings.storage_backend.strip().lower()

    if backend in ("mem", "memory", "inmemory", "in_memory"):
        return InMemoryStorage(ttl_s=settings.storage_ttl_s)

    if backend in ("file", "fs", "filesystem"):
        return FileStorage(settings.file_dir, ttl_s=settings.storage_ttl_s)

    if backend in ("redis",):
        from .storage.redis import RedisStorage

        client = redis_client
        if client is None:
            try:
                import redis
            except ModuleNotFoundError as exc:  # pragma: no cover
                raise RuntimeError(
                    "Redis storage backend requires `redis` to be installed."
                ) from exc

            client = redis.Redis.from_url(settings.resolved_redis_url())

        return RedisStorage(
            client,
            prefix=settings.redis_prefix,
            ttl_s=settings.storage_ttl_s,
        )

    raise ConfigurationError(f"Unknown THROTTLER_STORAGE_BACKEND: {backend}")


def create_leaky_bucket_from_env(
    *,
    redis_client: Any | None = None,
    metrics: ThrottlerMetrics | None = None,
    clock: Clock | None = None,
) -> LeakyBucket:
    """Create a limiter and its storage backend from environment variables."""
    settings = ThrottlerSettings.from_env()
    storage = create_storage_from_env(redis_client=redis_client, settings=settings)
    return LeakyBucket(
        settings.capacity,
        settings.leak_rate,
        storage,
        clock=clock,
        metrics=metrics,
    )
