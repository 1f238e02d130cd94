"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Metrics adapters for limiter observability.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any, Protocol

ADMITTED_METRIC = "throttler_admitted_total"
REJECTED_METRIC = "throttler_rejected_total"
PERSISTENCE_ERROR_METRIC = "throttler_persistence_errors_total"


class ThrottlerMetrics(Protocol):
    """Minimal metrics interface for engine instrumentation."""

    def incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None:
        """Increment a counter metric."""


class NoOpThrottlerMetrics:
    """Default metrics sink when no metrics backend is provided."""

    def incr(
        self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None
    ) -> None:
        _ = name
        _ = value
        _ = tags


class PrometheusThrottlerMetrics:
    """
    Prometheus-backed metrics adapter.

    Requires `prometheus_client` package. Counter names ending in `_total`
    are registered without the suffix since the client appends it.
    """

    def __init__(self, *, namespace: str = "", registry: Any | None = None) -> None:
        try:
            from prometheus_client import REGISTRY, Counter
        except ModuleNotFoundError as exc:  # pragma: no cover
            raise RuntimeError(
                "PrometheusThrottlerMetrics requires `prometheus_client` to be installed."
            ) from exc

        self._Counter = Counter
        self._namespace = namespace
        self._registry = registry if registry is not None else REGISTRY
        self._counters: dict[str, Any] = {}

    def incr(self, name: str, value: int = 1, *, tags: Mapping[str, str] | None = None) -> None:
        label_names = tuple(sorted((tags or {}).keys()))
        key = f"{name}|{','.join(label_names)}"
        counter = self._counters.get(key)
        if counter is None:
            base_name = name[: -len("_total")] if name.endswith("_total") else name
            counter = self._Counter(
                name=base_name,
                documentation=f"Throttler metric {base_name}",
                namespace=self._namespace,
                labelnames=label_names,
                registry=self._registry,
            )
            self._counters[key] = counter

        if label_names:
            label_values = [str((tags or {})[label]) for label in label_names]
            counter.labels(*label_values).inc(value)
        else:
            counter.inc(value)
