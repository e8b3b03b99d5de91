"""Blob storage for uploaded photos and donation proofs."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Protocol

from errors import UpstreamFailure

logger = logging.getLogger(__name__)

ALLOWED_IMAGE_EXTENSIONS = {'jpg', 'jpeg', 'png', 'gif', 'webp'}


class BlobStore(Protocol):
    def put(self, path: str, data: bytes, content_type: str | None = None) -> str: ...

    def get_public_url(self, path: str) -> str: ...

    def delete(self, path: str) -> None: ...


class LocalBlobStore:
    """Stores blobs on the local filesystem and serves them under ``/uploads``."""

    def __init__(self, root: str | Path, base_url: str = ''):
        self.root = Path(root)
        self.base_url = base_url.rstrip('/')

    def _resolve(self, path: str) -> Path:
        root = self.root.resolve()
        target = (self.root / path).resolve()
        if root not in target.parents:
            raise UpstreamFailure(f"Invalid storage path: {path}")
        return target

    def put(self, path: str, data: bytes, content_type: str | None = None) -> str:
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with open(target, 'wb') as f:
                f.write(data)
        except OSError as e:
            logger.error(f"Failed to save blob {path}: {e}")
            raise UpstreamFailure("Failed to store file") from e
        return self.get_public_url(path)

    def get_public_url(self, path: str) -> str:
        return f"{self.base_url}/uploads/{Path(path).as_posix()}"

    def delete(self, path: str) -> None:
        target = self._resolve(path)
        try:
            target.unlink()
        except FileNotFoundError:
            # Already gone counts as deleted
            logger.info(f"Blob {path} was already removed")
        except OSError as e:
            logger.error(f"Failed to delete blob {path}: {e}")
            raise UpstreamFailure("Failed to delete file") from e
        self._cleanup_empty_dirs(target.parent)

    def _cleanup_empty_dirs(self, path: Path) -> None:
        """Remove empty directories up to the storage root."""
        root = self.root.resolve()
        current = path.resolve()
        while current != root and root in current.parents:
            try:
                current.rmdir()
            except OSError:
                break
            current = current.parent


def file_extension(filename: str) -> str:
    return filename.rsplit('.', 1)[1].lower() if '.' in filename else ''


__all__ = ['BlobStore', 'LocalBlobStore', 'ALLOWED_IMAGE_EXTENSIONS', 'file_extension']
