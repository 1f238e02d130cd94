"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Storage backends holding serialized bucket records.
"""

from .base import NamespaceLockCapable, StorageBackend
from .file import FileStorage
from .memory import InMemoryStorage

__all__ = [
    "StorageBackend",
    "NamespaceLockCapable",
    "InMemoryStorage",
    "FileStorage",
]


# Lazy import for Redis storage
def __getattr__(name: str):
    """Lazily expose optional storage backends that require extra dependencies."""
    if name == "RedisStorage":
        from .redis import RedisStorage

        return RedisStorage
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
