"""
MIT License
Copyright (c) 2026 arpan404
See LICENSE file for full license text.

Filesystem storage backend.
"""

from __future__ import annotations

import hashlib
import logging
import os
import tempfile
import time
from pathlib import Path

from .base import StorageBackend

logger = logging.getLogger("throttler.storage.file")

_SUFFIX = ".bucket"


class FileStorage(StorageBackend):
    """
    Stores one record per namespace as a file under ``directory``.

    File names are the SHA-256 of the key so any namespace string maps to a
    safe path. Records are written to a temp file and moved
    into place with ``os.replace`` so readers never see a partial record.
    Expiry is judged from file mtime.

    Args:
        directory: Root directory, created on first use.
        ttl_s: Optional lifetime of a record after its last write.
    """

    backend_id = "file"

    def __init__(self, directory: str | Path, *, ttl_s: float | None = None) -> None:
        if ttl_s is not None and ttl_s <= 0:
            raise ValueError("ttl_s must be > 0")
        self._directory = Path(directory)
        self._ttl_s = ttl_s

    @property
    def directory(self) -> Path:
        return self._directory

    def _path(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode("utf-8")).hexdigest()
        return self._directory / f"{digest}{_SUFFIX}"

    def _is_live(self, path: Path) -> bool:
        try:
            mtime = path.stat().st_mtime
        except (FileNotFoundError, NotADirectoryError):
            return False
        if self._ttl_s is not None and mtime + self._ttl_s <= time.time():
            return False
        return True

    def _write(self, path: Path, value: bytes) -> bool:
        tmp_name: str | None = None
        try:
            self._directory.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self._directory, suffix=".tmp")
            with os.fdopen(fd, "wb") as fh:
                fh.write(value)
            os.replace(tmp_name, path)
            tmp_name = None
        except OSError as exc:
            logger.warning("Failed to write bucket file %s: %s", path.name, exc)
            return False
        finally:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
        return True

    def has_item(self, key: str) -> bool:
        return self._is_live(self._path(key))

    def get_item(self, key: str) -> bytes:
        path = self._path(key)
        if not self._is_live(path):
            raise KeyError(key)
        try:
            return path.read_bytes()
        except FileNotFoundError as exc:
            raise KeyError(key) from exc

    def set_item(self, key: str, value: bytes) -> bool:
        """Create a record; fails when a live one already exists."""
        path = self._path(key)
        if self._is_live(path):
            return False
        return self._write(path, value)

    def replace_item(self, key: str, value: bytes) -> bool:
        """Overwrite a record; fails when no live one exists."""
        path = self._path(key)
        if not self._is_live(path):
            return False
        return self._write(path, value)
