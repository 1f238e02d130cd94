"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Leaky bucket rate limiting over pluggable storage backends.

Provides a ``LeakyBucket`` engine that tracks per-namespace usage, leaks it
at a fixed rate, and rejects increments that would exceed capacity.

Quick start::

    from throttler import CapacityExceededError, InMemoryStorage, LeakyBucket

    limiter = LeakyBucket(capacity=10, leak_rate=1.0, storage=InMemoryStorage())
    try:
        limiter.increment_usage("client-42")
    except CapacityExceededError as exc:
        retry_after_ms = limiter.get_estimate("client-42")
"""

from .bucket import Bucket, decode_bucket, encode_bucket
from .clock import Clock, ManualClock, SystemClock
from .errors import (
    BucketDecodeError,
    BucketPersistenceError,
    CapacityExceededError,
    ConfigurationError,
    StorageLockError,
    StorageNotConfiguredError,
    ThrottlerError,
)
from .factory import create_leaky_bucket_from_env, create_storage_from_env
from .leaky_bucket import (
    RATIO_FACTOR_BY_HOUR,
    RATIO_FACTOR_BY_MINUTE,
    RATIO_FACTOR_BY_SECOND,
    LeakyBucket,
    RateLimitStatus,
)
from .metrics import NoOpThrottlerMetrics, PrometheusThrottlerMetrics, ThrottlerMetrics
from .settings import ThrottlerSettings
from .storage import (
    FileStorage,
    InMemoryStorage,
    NamespaceLockCapable,
    StorageBackend,
)

__all__ = [
    "LeakyBucket",
    "RateLimitStatus",
    "RATIO_FACTOR_BY_SECOND",
    "RATIO_FACTOR_BY_MINUTE",
    "RATIO_FACTOR_BY_HOUR",
    "Bucket",
    "encode_bucket",
    "decode_bucket",
    "Clock",
    "SystemClock",
    "ManualClock",
    "ThrottlerError",
    "ConfigurationError",
    "StorageNotConfiguredError",
    "CapacityExceededError",
    "BucketPersistenceError",
    "BucketDecodeError",
    "StorageLockError",
    "StorageBackend",
    "NamespaceLockCapable",
    "InMemoryStorage",
    "FileStorage",
    "ThrottlerSettings",
    "create_storage_from_env",
    "create_leaky_bucket_from_env",
    "ThrottlerMetrics",
    "NoOpThrottlerMetrics",
    "PrometheusThrottlerMetrics",
]


# Lazy import for Redis storage
def __getattr__(name: str):
    """Lazily expose optional storage backends that require extra dependencies."""
    if name == "RedisStorage":
        from .storage.redis import RedisStorage

        return RedisStorage
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
