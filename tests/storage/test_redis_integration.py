from __future__ import annotations

import os
import uuid
from concurrent.futures import ThreadPoolExecutor

import pytest

from throttler import CapacityExceededError, LeakyBucket, ManualClock
from throttler.storage.redis import RedisStorage


def _redis_url() -> str | None:
    return os.getenv("THROTTLER_TEST_REDIS_URL")


@pytest.mark.skipif(_redis_url() is None, reason="THROTTLER_TEST_REDIS_URL is not set")
def test_two_engines_share_one_redis_bucket():
    redis = pytest.importorskip("redis")
    client = redis.Redis.from_url(_redis_url())
    prefix = f"itest:throttler:{uuid.uuid4().hex}"
    clock = ManualClock(1000.0)

    first = LeakyBucket(5, 1.0, RedisStorage(client, prefix=prefix, ttl_s=60), clock=clock)
    second = LeakyBucket(5, 1.0, RedisStorage(client, prefix=prefix, ttl_s=60), clock=clock)

    assert first.increment_usage("ns", 3) == 3
    assert second.increment_usage("ns", 2) == 5
    with pytest.raises(CapacityExceededError):
        first.increment_usage("ns")

    clock.advance(2)
    assert second.get_usage("ns") == 3
    client.close()


@pytest.mark.skipif(_redis_url() is None, reason="THROTTLER_TEST_REDIS_URL is not set")
def test_concurrent_engines_never_exceed_capacity_with_real_redis():
    redis = pytest.importorskip("redis")
    client = redis.Redis.from_url(_redis_url())
    prefix = f"itest:throttler:{uuid.uuid4().hex}"
    clock = ManualClock(1000.0)
    engines = [
        LeakyBucket(10, 1.0, RedisStorage(client, prefix=prefix, ttl_s=60), clock=clock)
        for _ in range(4)
    ]

    def attempt(index: int) -> bool:
        try:
            engines[index % len(engines)].increment_usage("shared")
        except CapacityExceededError:
            return False
        return True

    with ThreadPoolExecutor(max_workers=8) as pool:
        results = list(pool.map(attempt, range(30)))

    assert sum(results) == 10
    client.close()
