"""Filesystem-backed byte storage for uploaded files."""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from cloudsim.core.errors import NotFound, StorageFailure, ValidationError
from cloudsim.core.settings import settings

logger = logging.getLogger(__name__)


class BlobStore:
    """Store blobs under ``root`` keyed by relative storage paths."""

    def __init__(self, root: str | Path | None = None) -> None:
        self.root = Path(root if root is not None else settings.blob_root).resolve()

    def _path(self, storage_path: str) -> Path:
        path = (self.root / storage_path).resolve()
        if not path.is_relative_to(self.root) or path == self.root:
            raise ValidationError("Invalid storage path")
        return path

    def put(self, storage_path: str, data: bytes) -> None:
        path = self._path(storage_path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_bytes(data)
        except OSError as exc:
            logger.exception("Failed to write blob %s", storage_path)
            raise StorageFailure("Failed to store file") from exc

    def get(self, storage_path: str) -> bytes:
        path = self._path(storage_path)
        try:
            return path.read_bytes()
        except FileNotFoundError as exc:
            raise NotFound("File content not found") from exc
        except OSError as exc:
            logger.exception("Failed to read blob %s", storage_path)
            raise StorageFailure("Failed to read file") from exc

    def delete(self, storage_path: str) -> bool:
        """Remove a blob, returning False if it was already gone."""
        path = self._path(storage_path)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            logger.exception("Failed to delete blob %s", storage_path)
            raise StorageFailure("Failed to delete file") from exc
        return True

    def exists(self, storage_path: str) -> bool:
        return self._path(storage_path).is_file()


@lru_cache
def get_blob_store() -> BlobStore:
    return BlobStore()
