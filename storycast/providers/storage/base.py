"""
Base class for blob stores holding generated audio.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass
class StoredObject:
    """Result of a blob upload."""
    path: str
    url: str
    size: int
    content_type: str


class BaseBlobStore(ABC):
    """Abstract base class for audio blob storage."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Store name."""
        pass

    @abstractmethod
    async def upload(self, path: str, data: bytes, content_type: str) -> StoredObject:
        """
        Store ``data`` at ``path``, overwriting any existing object.

        Returns:
            StoredObject with the public URL
        """
        pass

    @abstractmethod
    async def delete(self, path: str) -> bool:
        """Delete an object. Returns False when it did not exist."""
        pass

    @abstractmethod
    def public_url(self, path: str) -> str:
        """Public URL for a stored path."""
        pass
