"""
Local filesystem blob store, served by the API under /media.
"""
import logging
from pathlib import Path
from typing import Optional

from .base import BaseBlobStore, StoredObject

logger = logging.getLogger(__name__)


class LocalBlobStore(BaseBlobStore):
    """Writes audio blobs below a root directory."""

    def __init__(self, root: Optional[Path] = None, base_url: str = "/media"):
        if root is None:
            from storycast.config import config
            root = config.paths.audio_dir
        self.root = Path(root).resolve()
        self.root.mkdir(parents=True, exist_ok=True)
        self.base_url = base_url.rstrip("/")

    @property
    def name(self) -> str:
        return "local"

    def _resolve(self, path: str) -> Path:
        target = (self.root / path).resolve()
        if self.root not in target.parents:
            raise ValueError(f"Path escapes blob root: {path}")
        return target

    async def upload(self, path: str, data: bytes, content_type: str) -> StoredObject:
        target = self._resolve(path)
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
        logger.debug(f"[BLOB] Stored {len(data)} bytes at {path}")
        return StoredObject(
            path=path,
            url=self.public_url(path),
            size=len(data),
            content_type=content_type,
        )

    async def delete(self, path: str) -> bool:
        target = self._resolve(path)
        if not target.exists():
            return False
        target.unlink()
        return True

    def public_url(self, path: str) -> str:
        return f"{self.base_url}/{path}"


_store: Optional[BaseBlobStore] = None


def get_blob_store() -> BaseBlobStore:
    """Get the shared blob store."""
    global _store
    if _store is None:
        _store = LocalBlobStore()
    return _store


def reset_blob_store() -> None:
    global _store
    _store = None
