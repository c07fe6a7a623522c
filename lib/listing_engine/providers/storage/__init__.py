"""
Storage Providers
=================
Image storage boundary: read(ref) -> bytes, write(bytes) -> ref.

Supported:
    - Dropbox (team accounts, chunked uploads, temporary links)
    - In-memory (tests and local runs)
"""

from .base import BaseStorageProvider
from .factory import StorageFactory
from .dropbox_provider import DropboxProvider
from .memory_provider import MemoryStorageProvider

__all__ = [
    "BaseStorageProvider",
    "StorageFactory",
    "DropboxProvider",
    "MemoryStorageProvider",
]
