from __future__ import annotations

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import LockError

from throttler import (
    BucketPersistenceError,
    CapacityExceededError,
    LeakyBucket,
    ManualClock,
    NamespaceLockCapable,
    StorageLockError,
)
from throttler.storage.redis import RedisStorage


class _FakeLock:
    def __init__(self, owner: "_FakeRedis", name: str, *, timeout, blocking_timeout) -> None:
        self._owner = owner
        self.name = name
        self.timeout = timeout
        self.blocking_timeout = blocking_timeout

    def acquire(self) -> bool:
        if self.name in self._owner.held or self._owner.deny_locks:
            return False
        self._owner.held.add(self.name)
        self._owner.lock_log.append(("acquire", self.name))
        return True

    def release(self) -> None:
        self._owner.lock_log.append(("release", self.name))
        if self.name not in self._owner.held:
            raise LockError("Cannot release an unlocked lock")
        self._owner.held.discard(self.name)


class _FakeRedis:
    def __init__(self) -> None:
        self.data: dict[str, bytes] = {}
        self.expiries: dict[str, int | None] = {}
        self.held: set[str] = set()
        self.lock_log: list[tuple[str, str]] = []
        self.deny_locks = False
        self.fail_writes = False

    def exists(self, name: str) -> int:
        return 1 if name in self.data else 0

    def get(self, name: str):
        return self.data.get(name)

    def set(self, name, value, ex=None, nx=False, xx=False):
        if self.fail_writes:
            raise RedisConnectionError("connection reset")
        if nx and name in self.data:
            return None
        if xx and name not in self.data:
            return None
        self.data[name] = value
        self.expiries[name] = ex
        return True

    def lock(self, name, timeout=None, blocking_timeout=None):
        return _FakeLock(self, name, timeout=timeout, blocking_timeout=blocking_timeout)


def test_redis_storage_set_and_replace_use_prefixed_keys():
    fake = _FakeRedis()
    storage = RedisStorage(fake, prefix="tests")

    assert storage.has_item("ns") is False
    assert storage.replace_item("ns", b"x") is False
    assert storage.set_item("ns", b"one") is True
    assert storage.set_item("ns", b"two") is False
    assert storage.replace_item("ns", b"three") is True

    assert fake.data == {"tests:bucket:ns": b"three"}
    assert storage.get_item("ns") == b"three"


def test_redis_storage_missing_key_raises_key_error():
    with pytest.raises(KeyError):
        RedisStorage(_FakeRedis()).get_item("missing")


def test_redis_storage_decodes_text_values():
    fake = _FakeRedis()
    fake.data["throttler:bucket:ns"] = '{"drops": 1, "timestamp": 2.0}'
    assert RedisStorage(fake).get_item("ns") == b'{"drops": 1, "timestamp": 2.0}'


def test_redis_storage_applies_ttl_rounded_up():
    fake = _FakeRedis()
    RedisStorage(fake, ttl_s=0.25).set_item("ns", b"v")
    assert fake.expiries["throttler:bucket:ns"] == 1


def test_redis_storage_write_error_surfaces_as_persistence_error():
    fake = _FakeRedis()
    fake.fail_writes = True
    clock = ManualClock(0.0)
    limiter = LeakyBucket(3, 1.0, RedisStorage(fake), clock=clock)
    with pytest.raises(BucketPersistenceError):
        limiter.increment_usage("ns")


def test_redis_storage_is_lock_capable_and_engine_uses_it():
    fake = _FakeRedis()
    storage = RedisStorage(fake, prefix="p", lock_timeout_s=2.0, blocking_timeout_s=0.5)
    assert isinstance(storage, NamespaceLockCapable)

    clock = ManualClock(0.0)
    limiter = LeakyBucket(3, 1.0, storage, clock=clock)
    assert limiter.increment_usage("ns", 2) == 2
    assert limiter.get_remaining("ns") == 1

    assert fake.lock_log == [
        ("acquire", "p:lock:ns"),
        ("release", "p:lock:ns"),
        ("acquire", "p:lock:ns"),
        ("release", "p:lock:ns"),
    ]
    assert fake.held == set()


def test_redis_lock_released_when_operation_fails():
    fake = _FakeRedis()
    clock = ManualClock(0.0)
    limiter = LeakyBucket(1, 1.0, RedisStorage(fake), clock=clock)
    limiter.increment_usage("ns")
    with pytest.raises(CapacityExceededError):
        limiter.increment_usage("ns")
    assert fake.held == set()


def test_redis_lock_timeout_raises_storage_lock_error():
    fake = _FakeRedis()
    fake.deny_locks = True
    limiter = LeakyBucket(1, 1.0, RedisStorage(fake), clock=ManualClock(0.0))
    with pytest.raises(StorageLockError, match="ns"):
        limiter.get_usage("ns")


def test_redis_lock_expired_before_release_is_tolerated():
    fake = _FakeRedis()
    storage = RedisStorage(fake)
    with storage.lock("ns"):
        fake.held.clear()


def test_redis_storage_validates_arguments():
    with pytest.raises(ValueError, match="ttl_s"):
        RedisStorage(_FakeRedis(), ttl_s=0)
    with pytest.raises(ValueError, match="lock_timeout_s"):
        RedisStorage(_FakeRedis(), lock_timeout_s=0)
    with pytest.raises(ValueError, match="blocking_timeout_s"):
        RedisStorage(_FakeRedis(), blocking_timeout_s=-1)
