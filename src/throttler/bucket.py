"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Bucket value type and its storage codec.
"""

from __future__ import annotations

import json
import math
from dataclasses import dataclass, replace

from .errors import BucketDecodeError


@dataclass(frozen=True, slots=True)
class Bucket:
    """
    Persisted state of one namespace.

    Attributes:
        drops: Accumulated usage, never negative.
        timestamp: Seconds of the last leak or fill.
    """

    drops: int
    timestamp: float

    def __post_init__(self) -> None:
        if isinstance(self.drops, bool) or not isinstance(self.drops, int):
            raise BucketDecodeError(f"Bucket drops must be an integer, got {self.drops!r}")
        if self.drops < 0:
            raise BucketDecodeError(f"Bucket drops must be >= 0, got {self.drops}")
        if isinstance(self.timestamp, bool) or not isinstance(self.timestamp, (int, float)):
            raise BucketDecodeError(
                f"Bucket timestamp must be a number, got {self.timestamp!r}"
            )
        if not math.isfinite(self.timestamp):
            raise BucketDecodeError(
                f"Bucket timestamp must be finite, got {self.timestamp!r}"
            )
        object.__setattr__(self, "timestamp", float(self.timestamp))

    @classmethod
    def empty(cls, now: float) -> Bucket:
        """Fresh bucket used for namespaces without a stored record."""
        return cls(drops=0, timestamp=now)

    def with_state(self, *, drops: int, timestamp: float) -> Bucket:
        """Return a copy carrying new drops and timestamp."""
        return replace(self, drops=drops, timestamp=timestamp)


def encode_bucket(bucket: Bucket) -> bytes:
    """Serialize a bucket to its JSON storage record."""
    payload = {"drops": bucket.drops, "timestamp": bucket.timestamp}
    return json.dumps(payload, ensure_ascii=True).encode("utf-8")


def decode_bucket(raw: bytes | str) -> Bucket:
    """
    Parse a stored record back into a validated ``Bucket``.

    Raises:
        BucketDecodeError: If the record is not valid JSON, misses fields,
            or carries values that break bucket invariants.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise BucketDecodeError("Bucket record is not valid UTF-8") from exc
    try:
        row = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise BucketDecodeError("Bucket record is not valid JSON") from exc

    if not isinstance(row, dict):
        raise BucketDecodeError("Bucket record must be a JSON object")
    if "drops" not in row or "timestamp" not in row:
        raise BucketDecodeError("Bucket record must contain 'drops' and 'timestamp'")
    return Bucket(drops=row["drops"], timestamp=row["timestamp"])
