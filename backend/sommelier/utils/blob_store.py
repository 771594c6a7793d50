"""Key-value blob storage port for persisted client state.

Cart entries, suggestion history and cached recommendation responses are
stored as serialized JSON blobs under fixed keys. Stores take a BlobStore
so tests can inject the in-memory implementation.

FileBlobStore writes one file per key (hashed filename) under a root
directory. Writes are last-write-wins with no locking.
"""

from __future__ import annotations

import hashlib
from pathlib import Path
from typing import Protocol

import structlog

logger = structlog.get_logger()


class BlobStore(Protocol):
    def get(self, key: str) -> str | None: ...

    def put(self, key: str, value: str) -> None: ...

    def delete(self, key: str) -> None: ...


class InMemoryBlobStore:
    """Dict-backed store, used by default and in tests."""

    def __init__(self) -> None:
        self._blobs: dict[str, str] = {}

    def get(self, key: str) -> str | None:
        return self._blobs.get(key)

    def put(self, key: str, value: str) -> None:
        self._blobs[key] = value

    def delete(self, key: str) -> None:
        self._blobs.pop(key, None)

    def keys(self) -> list[str]:
        return list(self._blobs)


class FileBlobStore:
    """Disk-backed store. I/O failures degrade to cache-miss / no-op."""

    def __init__(self, root: str | Path, namespace: str = "blobs") -> None:
        self._dir = Path(root) / namespace
        self._dir.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        digest = hashlib.sha256(key.encode()).hexdigest()[:20]
        return self._dir / f"{digest}.json"

    def get(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return path.read_text(encoding="utf-8")
        except OSError as exc:
            logger.warning("blob_read_failed", key=key, error=str(exc))
            return None

    def put(self, key: str, value: str) -> None:
        try:
            self._path(key).write_text(value, encoding="utf-8")
        except OSError as exc:
            logger.warning("blob_write_failed", key=key, error=str(exc))

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("blob_delete_failed", key=key, error=str(exc))


def make_blob_store(storage_dir: str, namespace: str = "blobs") -> BlobStore:
    """Return a FileBlobStore when storage_dir is set, else an in-memory store."""
    if storage_dir:
        return FileBlobStore(storage_dir, namespace)
    return InMemoryBlobStore()
