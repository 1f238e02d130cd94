"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Leaky bucket engine: leak, fill and capacity enforcement over a storage port.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager
from dataclasses import dataclass, field
from threading import Lock

from .bucket import Bucket, decode_bucket, encode_bucket
from .clock import Clock, SystemClock
from .errors import (
    BucketPersistenceError,
    CapacityExceededError,
    ConfigurationError,
    StorageNotConfiguredError,
)
from .metrics import (
    ADMITTED_METRIC,
    PERSISTENCE_ERROR_METRIC,
    REJECTED_METRIC,
    NoOpThrottlerMetrics,
    ThrottlerMetrics,
)
from .storage.base import NamespaceLockCapable, StorageBackend

logger = logging.getLogger("throttler.engine")

DEFAULT_CAPACITY = 10
DEFAULT_LEAK_RATE = 1.0

RATIO_FACTOR_BY_SECOND = 1
RATIO_FACTOR_BY_MINUTE = 60
RATIO_FACTOR_BY_HOUR = 3600


@dataclass(frozen=True, slots=True)
class RateLimitStatus:
    """
    Snapshot of one namespace taken from a single bucket load.

    Attributes:
        limit: Bucket capacity.
        usage: Drops currently held.
        remaining: Drops that can still be added.
        reset_ms: Milliseconds until the bucket drains to empty.
        retry_after_ms: Milliseconds until at least one drop frees up,
            ``0`` when room remains.
    """

    limit: int
    usage: int
    remaining: int
    reset_ms: int
    retry_after_ms: int


@dataclass(slots=True)
class _LockEntry:
    lock: Lock = field(default_factory=Lock)
    refs: int = 0


class _NamespaceLocks:
    """Process-local lock table; entries are dropped once no caller holds them."""

    def __init__(self) -> None:
        self._guard = Lock()
        self._entries: dict[str, _LockEntry] = {}

    @contextmanager
    def hold(self, key: str) -> Iterator[None]:
        with self._guard:
            entry = self._entries.get(key)
            if entry is None:
                entry = _LockEntry()
                self._entries[key] = entry
            entry.refs += 1
        entry.lock.acquire()
        try:
            yield
        finally:
            entry.lock.release()
            with self._guard:
                entry.refs -= 1
                if entry.refs == 0:
                    self._entries.pop(key, None)

    def __len__(self) -> int:
        with self._guard:
            return len(self._entries)


def _round_half_up(value: float) -> int:
    """Round a non-negative value to the nearest integer, halves going up."""
    return int(math.floor(value + 0.5))


class LeakyBucket:
    """
    Leaky bucket rate limiter keyed by namespace.

    Each namespace owns one bucket persisted in ``storage``. Reads and writes
    first leak the bucket by the time elapsed since its last update, then
    apply the requested fill. Every operation runs under a lock for its
    namespace: the storage backend's lock when it is ``NamespaceLockCapable``,
    otherwise an in-process lock.

    Args:
        capacity: Maximum drops a bucket may hold.
        leak_rate: Drops leaked per second.
        storage: Storage backend; may be bound later via ``set_storage``.
        clock: Time source, defaults to wall-clock time.
        metrics: Counter sink for admissions, rejections and write failures.
    """

    DEFAULT_CAPACITY = DEFAULT_CAPACITY
    DEFAULT_LEAK_RATE = DEFAULT_LEAK_RATE
    RATIO_FACTOR_BY_SECOND = RATIO_FACTOR_BY_SECOND
    RATIO_FACTOR_BY_MINUTE = RATIO_FACTOR_BY_MINUTE
    RATIO_FACTOR_BY_HOUR = RATIO_FACTOR_BY_HOUR

    def __init__(
        self,
        capacity: int = DEFAULT_CAPACITY,
        leak_rate: float = DEFAULT_LEAK_RATE,
        storage: StorageBackend | None = None,
        *,
        clock: Clock | None = None,
        metrics: ThrottlerMetrics | None = None,
    ) -> None:
        if isinstance(capacity, bool) or not isinstance(capacity, int):
            raise ConfigurationError(f"The bucket capacity must be an integer, got {capacity!r}")
        if capacity <= 0:
            raise ConfigurationError("The bucket capacity should be greater than zero.")
        if isinstance(leak_rate, bool) or not isinstance(leak_rate, (int, float)):
            raise ConfigurationError(f"The bucket leak rate must be a number, got {leak_rate!r}")
        if not math.isfinite(leak_rate) or leak_rate <= 0:
            raise ConfigurationError("The bucket leak rate should be greater than zero.")

        self._capacity = capacity
        self._leak_rate = float(leak_rate)
        self._storage = storage
        self._clock = clock or SystemClock()
        self._metrics = metrics or NoOpThrottlerMetrics()
        self._locks = _NamespaceLocks()

    def __repr__(self) -> str:
        backend = self._storage.backend_id if self._storage is not None else None
        return (
            f"LeakyBucket(capacity={self._capacity}, leak_rate={self._leak_rate}, "
            f"storage={backend!r})"
        )

    @property
    def capacity(self) -> int:
        return self._capacity

    @property
    def leak_rate(self) -> float:
        return self._leak_rate

    @property
    def storage(self) -> StorageBackend:
        """Bound storage backend."""
        if self._storage is None:
            raise StorageNotConfiguredError("You must define a storage backend")
        return self._storage

    def set_storage(self, storage: StorageBackend) -> None:
        """Bind (or rebind) the storage backend."""
        self._storage = storage

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def increment_usage(self, namespace: str, count: int = 1) -> int:
        """
        Add ``count`` drops to the bucket of ``namespace``.

        Returns:
            Drops held after the fill.

        Raises:
            CapacityExceededError: If the fill would exceed the limit. The
                bucket keeps its leaked state and receives no drops.
            BucketPersistenceError: If storage rejects a write.
        """
        if isinstance(count, bool) or not isinstance(count, int):
            raise ValueError(f"count must be an integer, got {count!r}")
        if count < 1:
            raise ValueError("count must be >= 1")

        storage = self.storage
        with self._namespace_lock(storage, namespace):
            now = self._clock.now()
            bucket = self._load(storage, namespace, now)
            limit = self.get_limit(namespace)

            if bucket.drops + count > limit:
                overflow = bucket.drops + count - limit
                self._metrics.incr(REJECTED_METRIC, tags={"backend": storage.backend_id})
                logger.info(
                    "Rejected %d drop(s) for namespace %s: over capacity by %d",
                    count,
                    namespace,
                    overflow,
                )
                raise CapacityExceededError(namespace, count=count, overflow=overflow)

            filled = self._fill(bucket, count, now)
            self._save(storage, namespace, filled, stage="filled")
            self._metrics.incr(ADMITTED_METRIC, count, tags={"backend": storage.backend_id})
            return filled.drops

    def get_usage(self, namespace: str) -> int:
        """Return drops held after applying pending leakage."""
        return self._read(namespace).drops

    def get_limit(self, namespace: str) -> int:
        """Return the capacity applied to ``namespace``."""
        _ = namespace
        return self._capacity

    def has_limit(self, namespace: str) -> bool:
        """Whether at least one more drop fits in the bucket."""
        return self._remaining(namespace, self._read(namespace)) > 0

    def get_remaining(self, namespace: str) -> int:
        """Return drops that can still be added."""
        return self._remaining(namespace, self._read(namespace))

    def get_ratio(self, namespace: str, factor: int = RATIO_FACTOR_BY_SECOND) -> int:
        """Return the leak rate scaled to drops per ``factor`` seconds, rounded up."""
        _ = namespace
        ratio = self._leak_rate * factor
        if not math.isfinite(ratio):
            raise ValueError(f"Ratio for factor {factor!r} is not a finite number")
        return int(math.ceil(ratio))

    def get_estimate(self, namespace: str) -> int:
        """Return milliseconds until one drop frees up, or ``0`` when room remains."""
        return self._estimate_ms(namespace, self._read(namespace))

    def get_reset(self, namespace: str) -> int:
        """Return milliseconds until the bucket drains to empty."""
        return self._reset_ms(self._read(namespace))

    def get_status(self, namespace: str) -> RateLimitStatus:
        """Return limit, usage, remaining, reset and retry hint from one load."""
        bucket = self._read(namespace)
        return RateLimitStatus(
            limit=self.get_limit(namespace),
            usage=bucket.drops,
            remaining=self._remaining(namespace, bucket),
            reset_ms=self._reset_ms(bucket),
            retry_after_ms=self._estimate_ms(namespace, bucket),
        )

    # ------------------------------------------------------------------
    # Bucket algorithm
    # ------------------------------------------------------------------

    def _leak(self, bucket: Bucket, now: float) -> Bucket:
        """Remove the drops leaked since ``bucket.timestamp``."""
        elapsed = max(0.0, now - bucket.timestamp)
        leaked = elapsed * self._leak_rate
        drops = min(bucket.drops, self._capacity)
        # leaked may overflow to inf; only round it once it is below drops.
        drops = drops - _round_half_up(leaked) if leaked < drops else 0
        return bucket.with_state(drops=drops, timestamp=max(now, bucket.timestamp))

    def _fill(self, bucket: Bucket, drops: int, now: float) -> Bucket:
        """Add ``drops``, saturating at capacity."""
        if bucket.drops + drops >= self._capacity:
            total = self._capacity
        else:
            total = bucket.drops + drops
        return bucket.with_state(drops=total, timestamp=max(now, bucket.timestamp))

    def _remaining(self, namespace: str, bucket: Bucket) -> int:
        return self.get_limit(namespace) - bucket.drops

    def _estimate_ms(self, namespace: str, bucket: Bucket) -> int:
        if self._remaining(namespace, bucket) > 0:
            return 0
        return int(math.ceil(1000 / self._leak_rate))

    def _reset_ms(self, bucket: Bucket) -> int:
        if bucket.drops <= 0:
            return 0
        return int(math.ceil(bucket.drops / self._leak_rate)) * 1000

    # ------------------------------------------------------------------
    # Storage plumbing
    # ------------------------------------------------------------------

    def _namespace_lock(
        self, storage: StorageBackend, namespace: str
    ) -> AbstractContextManager[object]:
        if isinstance(storage, NamespaceLockCapable):
            return storage.lock(namespace)
        return self._locks.hold(namespace)

    def _read(self, namespace: str) -> Bucket:
        """Load (leak and persist) the bucket of ``namespace`` under its lock."""
        storage = self.storage
        with self._namespace_lock(storage, namespace):
            return self._load(storage, namespace, self._clock.now())

    def _load(self, storage: StorageBackend, namespace: str, now: float) -> Bucket:
        """
        Return the leaked bucket for ``namespace``.

        Namespaces without a record yield an empty bucket that is not written
        back. Existing records are leaked and persisted before returning.
        """
        if not storage.has_item(namespace):
            return Bucket.empty(now)
        try:
            raw = storage.get_item(namespace)
        except KeyError:
            # Expired between the existence check and the read.
            return Bucket.empty(now)

        bucket = decode_bucket(raw)
        leaked = self._leak(bucket, now)
        if leaked.drops != bucket.drops:
            logger.debug(
                "Leaked namespace %s from %d to %d drop(s)",
                namespace,
                bucket.drops,
                leaked.drops,
            )
        self._save(storage, namespace, leaked, stage="leaked")
        return leaked

    def _save(self, storage: StorageBackend, namespace: str, bucket: Bucket, *, stage: str) -> None:
        raw = encode_bucket(bucket)
        if storage.has_item(namespace):
            saved = storage.replace_item(namespace, raw)
        else:
            saved = storage.set_item(namespace, raw)

        if not saved:
            self._metrics.incr(
                PERSISTENCE_ERROR_METRIC, tags={"backend": storage.backend_id}
            )
            logger.warning(
                "Storage backend %s rejected the %s bucket for namespace %s",
                storage.backend_id,
                stage,
                namespace,
            )
            raise BucketPersistenceError(
                f"An error occurred while saving the {stage} bucket for namespace "
                f"'{namespace}'"
            )
