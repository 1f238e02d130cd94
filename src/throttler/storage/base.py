"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Storage contract consumed by the leaky bucket engine.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from contextlib import AbstractContextManager
from typing import Protocol, runtime_checkable


class StorageBackend(ABC):
    """
    Key/value store holding one serialized bucket record per namespace.

    Implementations provide the persistence layer (in-memory, file, Redis).
    """

    backend_id: str = "base"

    @abstractmethod
    def has_item(self, key: str) -> bool:
        """Return whether a record exists for ``key``."""
        ...

    @abstractmethod
    def get_item(self, key: str) -> bytes:
        """
        Return the stored record for ``key``.

        Raises:
            KeyError: If no record exists.
        """
        ...

    @abstractmethod
    def set_item(self, key: str, value: bytes) -> bool:
        """
        Create a record.

        Returns:
            ``True`` on success, ``False`` if the write was not applied.
        """
        ...

    @abstractmethod
    def replace_item(self, key: str, value: bytes) -> bool:
        """
        Overwrite an existing record.

        Returns:
            ``True`` on success, ``False`` if the write was not applied.
        """
        ...


@runtime_checkable
class NamespaceLockCapable(Protocol):
    """
    Optional storage capability for serializing access to one namespace.

    Backends shared across processes implement this so every engine
    pointed at them excludes the others during read-modify-write.
    """

    def lock(self, key: str) -> AbstractContextManager[object]:
        """Return a context manager holding an exclusive lock on ``key``."""
