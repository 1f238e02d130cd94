"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

In-memory storage backend.
"""

from __future__ import annotations

from dataclasses import dataclass
from threading import Lock

from ..clock import Clock, SystemClock
from .base import StorageBackend


@dataclass(frozen=True, slots=True)
class _Row:
    """One stored record with optional expiry."""

    value: bytes
    expires_at_s: float | None


class InMemoryStorage(StorageBackend):
    """
    Process-local storage backed by a dict.

    Suitable for single-process services and tests. Records are lost on
    process restart.

    Args:
        ttl_s: Optional lifetime of a record after its last write.
        clock: Time source used for expiry checks.
    """

    backend_id = "inmemory"

    def __init__(self, *, ttl_s: float | None = None, clock: Clock | None = None) -> None:
        if ttl_s is not None and ttl_s <= 0:
            raise ValueError("ttl_s must be > 0")
        self._ttl_s = ttl_s
        self._clock = clock or SystemClock()
        self._rows: dict[str, _Row] = {}
        self._lock = Lock()

    def _expires_at(self) -> float | None:
        if self._ttl_s is None:
            return None
        return self._clock.now() + self._ttl_s

    def _live_row(self, key: str) -> _Row | None:
        """Return the row for ``key``, evicting it if expired. Caller holds the lock."""
        row = self._rows.get(key)
        if row is None:
            return None
        if row.expires_at_s is not None and row.expires_at_s <= self._clock.now():
            self._rows.pop(key, None)
            return None
        return row

    def has_item(self, key: str) -> bool:
        with self._lock:
            return self._live_row(key) is not None

    def get_item(self, key: str) -> bytes:
        with self._lock:
            row = self._live_row(key)
        if row is None:
            raise KeyError(key)
        return row.value

    def set_item(self, key: str, value: bytes) -> bool:
        """Create a record; fails when one already exists."""
        with self._lock:
            if self._live_row(key) is not None:
                return False
            self._rows[key] = _Row(value=bytes(value), expires_at_s=self._expires_at())
            return True

    def replace_item(self, key: str, value: bytes) -> bool:
        """Overwrite a record; fails when none exists."""
        with self._lock:
            if self._live_row(key) is None:
                return False
            self._rows[key] = _Row(value=bytes(value), expires_at_s=self._expires_at())
            return True

    @property
    def total_count(self) -> int:
        """Number of rows currently held, including expired ones not yet evicted."""
        return len(self._rows)
