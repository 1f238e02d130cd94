from __future__ import annotations

import pytest

from throttler import (
    BucketPersistenceError,
    CapacityExceededError,
    InMemoryStorage,
    LeakyBucket,
    ManualClock,
    PrometheusThrottlerMetrics,
)


class _RecordingMetrics:
    def __init__(self) -> None:
        self.calls: list[tuple[str, int, dict[str, str]]] = []

    def incr(self, name, value=1, *, tags=None):
        self.calls.append((name, value, dict(tags or {})))


class _FailingStorage(InMemoryStorage):
    def set_item(self, key: str, value: bytes) -> bool:
        _ = key
        _ = value
        return False


def test_engine_reports_admissions_and_rejections():
    metrics = _RecordingMetrics()
    clock = ManualClock(0.0)
    limiter = LeakyBucket(3, 1.0, InMemoryStorage(clock=clock), clock=clock, metrics=metrics)

    limiter.increment_usage("ns", 2)
    with pytest.raises(CapacityExceededError):
        limiter.increment_usage("ns", 2)

    assert metrics.calls == [
        ("throttler_admitted_total", 2, {"backend": "inmemory"}),
        ("throttler_rejected_total", 1, {"backend": "inmemory"}),
    ]


def test_engine_reports_persistence_errors():
    metrics = _RecordingMetrics()
    clock = ManualClock(0.0)
    limiter = LeakyBucket(3, 1.0, _FailingStorage(clock=clock), clock=clock, metrics=metrics)

    with pytest.raises(BucketPersistenceError):
        limiter.increment_usage("ns")

    assert metrics.calls == [
        ("throttler_persistence_errors_total", 1, {"backend": "inmemory"}),
    ]


def test_prometheus_metrics_count_into_isolated_registry():
    prometheus_client = pytest.importorskip("prometheus_client")
    registry = prometheus_client.CollectorRegistry()
    metrics = PrometheusThrottlerMetrics(registry=registry)
    clock = ManualClock(0.0)
    limiter = LeakyBucket(2, 1.0, InMemoryStorage(clock=clock), clock=clock, metrics=metrics)

    limiter.increment_usage("a")
    limiter.increment_usage("b", 2)
    with pytest.raises(CapacityExceededError):
        limiter.increment_usage("a", 2)

    admitted = registry.get_sample_value(
        "throttler_admitted_total", {"backend": "inmemory"}
    )
    rejected = registry.get_sample_value(
        "throttler_rejected_total", {"backend": "inmemory"}
    )
    assert admitted == 3.0
    assert rejected == 1.0


def test_prometheus_metrics_without_labels():
    prometheus_client = pytest.importorskip("prometheus_client")
    registry = prometheus_client.CollectorRegistry()
    metrics = PrometheusThrottlerMetrics(namespace="edge", registry=registry)

    metrics.incr("requests_total", 4)
    metrics.incr("requests_total")

    assert registry.get_sample_value("edge_requests_total") == 5.0
