"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Time sources used by the engine to measure leakage.
"""

from __future__ import annotations

import time
from typing import Protocol


class Clock(Protocol):
    """Returns the current point in time as float seconds."""

    def now(self) -> float: ...


class SystemClock:
    """Wall-clock time via ``time.time``."""

    def now(self) -> float:
        return time.time()


class ManualClock:
    """
    Clock that only moves when told to.

    Used by tests and simulations to step through leakage deterministically.
    """

    def __init__(self, start: float = 0.0) -> None:
        self._now = float(start)

    def now(self) -> float:
        return self._now

    def advance(self, seconds: float) -> float:
        """Move the clock forward and return the new time."""
        if seconds < 0:
            raise ValueError("seconds must be >= 0")
        self._now += seconds
        return self._now

    def set(self, value: float) -> None:
        """Jump to an absolute time (may move backwards)."""
        self._now = float(value)
