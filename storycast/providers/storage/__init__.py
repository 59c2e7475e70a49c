"""
Blob storage for generated audio.
"""
from .base import BaseBlobStore, StoredObject
from .local import LocalBlobStore, get_blob_store, reset_blob_store

__all__ = [
    "BaseBlobStore",
    "StoredObject",
    "LocalBlobStore",
    "get_blob_store",
    "reset_blob_store",
]
