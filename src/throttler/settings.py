"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Limiter settings and explicit environment loading.
"""

from __future__ import annotations

import math
import os
from dataclasses import dataclass

from .errors import ConfigurationError
from .leaky_bucket import DEFAULT_CAPACITY, DEFAULT_LEAK_RATE


def _env_first(*names: str, default: str | None = None) -> str | None:
    """
    Return the first non-empty environment variable in `names`.

    Args:
        *names: Environment variable names to check in order.
        default: Value returned if no non-empty variable is found.
    """
    for name in names:
        raw = os.getenv(name)
        if raw is None:
            continue
        value = raw.strip()
        if value:
            return value
    return default


def _parse_int(name: str, raw: str) -> int:
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


def _parse_float(name: str, raw: str) -> float:
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def _parse_ttl(name: str, raw: str | None) -> float | None:
    if not raw:
        return None
    value = _parse_float(name, raw)
    if not math.isfinite(value) or value <= 0:
        raise ConfigurationError(f"{name} must be a positive number of seconds, got {raw!r}")
    return value


@dataclass(frozen=True, slots=True)
class ThrottlerSettings:
    """Explicit settings used to build a limiter and its storage backend."""

    capacity: int = DEFAULT_CAPACITY
    leak_rate: float = DEFAULT_LEAK_RATE

    storage_backend: str = "inmemory"
    storage_ttl_s: float | None = None
    file_dir: str = ".throttler"

    redis_url: str | None = None
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_db: int = 0
    redis_password: str | None = None
    redis_prefix: str = "throttler"

    @staticmethod
    def from_env() -> "ThrottlerSettings":
        """Load settings from `THROTTLER_*` environment variables."""
        ttl_raw = _env_first("THROTTLER_STORAGE_TTL_S")
        return ThrottlerSettings(
            capacity=_parse_int(
                "THROTTLER_CAPACITY",
                _env_first("THROTTLER_CAPACITY", default=str(DEFAULT_CAPACITY)) or "",
            ),
            leak_rate=_parse_float(
                "THROTTLER_LEAK_RATE",
                _env_first("THROTTLER_LEAK_RATE", default=str(DEFAULT_LEAK_RATE)) or "",
            ),
            storage_backend=(
                _env_first("THROTTLER_STORAGE_BACKEND", default="inmemory") or "inmemory"
            ).lower(),
            storage_ttl_s=_parse_ttl("THROTTLER_STORAGE_TTL_S", ttl_raw),
            file_dir=_env_first("THROTTLER_FILE_DIR", default=".throttler") or ".throttler",
            redis_url=_env_first("THROTTLER_REDIS_URL"),
            redis_host=_env_first("THROTTLER_REDIS_HOST", default="localhost") or "localhost",
            redis_port=_parse_int(
                "THROTTLER_REDIS_PORT", _env_first("THROTTLER_REDIS_PORT", default="6379") or ""
            ),
            redis_db=_parse_int(
                "THROTTLER_REDIS_DB", _env_first("THROTTLER_REDIS_DB", default="0") or ""
            ),
            redis_password=_env_first("THROTTLER_REDIS_PASSWORD"),
            redis_prefix=_env_first("THROTTLER_REDIS_PREFIX", default="throttler") or "throttler",
        )

    def resolved_redis_url(self) -> str:
        """Return `redis_url`, or one built from host/port/db/password."""
        if self.redis_url:
            return self.redis_url
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"
