"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Exception hierarchy raised by the throttler engine and storage backends.
"""

from __future__ import annotations


class ThrottlerError(RuntimeError):
    """Base class for every error raised by this package."""


class ConfigurationError(ThrottlerError, ValueError):
    """Raised when limiter capacity, leak rate or settings are invalid."""


class StorageNotConfiguredError(ThrottlerError):
    """Raised when an operation runs before a storage backend is bound."""


class CapacityExceededError(ThrottlerError):
    """
    Raised when an increment would push a bucket past its capacity.

    Attributes:
        namespace: Bucket namespace that rejected the increment.
        count: Drops the caller tried to add.
        overflow: How many drops the increment exceeded capacity by.
    """

    def __init__(self, namespace: str, *, count: int, overflow: int) -> None:
        super().__init__(
            f"Cannot increment bucket '{namespace}' by {count} drops, "
            f"exceeded bucket capacity by {overflow}"
        )
        self.namespace = namespace
        self.count = count
        self.overflow = overflow


class BucketPersistenceError(ThrottlerError):
    """Raised when the storage backend fails to persist a bucket."""


class BucketDecodeError(ThrottlerError):
    """Raised when a stored bucket record is malformed or out of range."""


class StorageLockError(ThrottlerError):
    """Raised when a backend namespace lock cannot be acquired."""
