#!/usr/bin/env python3
"""
Limiter benchmark utility for throughput/latency characterization.

Usage examples:
  PYTHONPATH=src python scripts/limiter_benchmark.py --backend inmemory
  PYTHONPATH=src python scripts/limiter_benchmark.py --backend file --file-dir /tmp/buckets
  PYTHONPATH=src python scripts/limiter_benchmark.py --backend redis --redis-url redis://localhost:6379/0
"""

from __future__ import annotations

import argparse
import statistics
import tempfile
import time
import uuid
from concurrent.futures import ThreadPoolExecutor

from throttler import (
    CapacityExceededError,
    FileStorage,
    InMemoryStorage,
    LeakyBucket,
    StorageBackend,
)


def build_storage(*, backend: str, redis_url: str | None, file_dir: str | None) -> StorageBackend:
    if backend == "inmemory":
        return InMemoryStorage()
    if backend == "file":
        return FileStorage(file_dir or tempfile.mkdtemp(prefix="throttler-bench-"))
    if backend == "redis":
        if not redis_url:
            raise ValueError("--redis-url is required for redis backend")
        import redis

        from throttler.storage.redis import RedisStorage

        client = redis.Redis.from_url(redis_url)
        return RedisStorage(client, prefix=f"bench:{uuid.uuid4().hex}", ttl_s=300)
    raise ValueError(f"Unsupported backend: {backend}")


def run_benchmark(
    *,
    backend: str,
    num_requests: int,
    concurrency: int,
    namespaces: int,
    capacity: int,
    leak_rate: float,
    redis_url: str | None,
    file_dir: str | None,
) -> None:
    storage = build_storage(backend=backend, redis_url=redis_url, file_dir=file_dir)
    limiter = LeakyBucket(capacity, leak_rate, storage)
    latencies: list[float] = []

    def attempt(index: int) -> bool:
        namespace = f"client-{index % namespaces}"
        started = time.perf_counter()
        try:
            limiter.increment_usage(namespace)
            return True
        except CapacityExceededError:
            return False
        finally:
            latencies.append(time.perf_counter() - started)

    started = time.time()
    with ThreadPoolExecutor(max_workers=concurrency) as pool:
        outcomes = list(pool.map(attempt, range(num_requests)))
    elapsed = time.time() - started

    admitted = sum(outcomes)
    throughput = num_requests / elapsed if elapsed > 0 else 0.0
    p50 = statistics.median(latencies) if latencies else 0.0
    p95 = sorted(latencies)[int(0.95 * (len(latencies) - 1))] if latencies else 0.0

    print(f"backend={backend}")
    print(f"requests={num_requests}")
    print(f"concurrency={concurrency}")
    print(f"namespaces={namespaces}")
    print(f"admitted={admitted}")
    print(f"rejected={num_requests - admitted}")
    print(f"elapsed_s={elapsed:.3f}")
    print(f"throughput_rps={throughput:.2f}")
    print(f"call_latency_p50_ms={p50 * 1000:.3f}")
    print(f"call_latency_p95_ms={p95 * 1000:.3f}")


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Limiter benchmark utility")
    parser.add_argument("--backend", choices=("inmemory", "file", "redis"), default="inmemory")
    parser.add_argument("--num-requests", type=int, default=2000)
    parser.add_argument("--concurrency", type=int, default=16)
    parser.add_argument("--namespaces", type=int, default=8)
    parser.add_argument("--capacity", type=int, default=50)
    parser.add_argument("--leak-rate", type=float, default=10.0)
    parser.add_argument("--redis-url", type=str, default=None)
    parser.add_argument("--file-dir", type=str, default=None)
    return parser.parse_args()


def main() -> None:
    args = parse_args()
    run_benchmark(
        backend=args.backend,
        num_requests=args.num_requests,
        concurrency=args.concurrency,
        namespaces=args.namespaces,
        capacity=args.capacity,
        leak_rate=args.leak_rate,
        redis_url=args.redis_url,
        file_dir=args.file_dir,
    )


if __name__ == "__main__":
    main()
