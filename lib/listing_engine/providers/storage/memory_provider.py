"""
Memory Storage Provider
=======================
Dict-backed storage for tests and local runs. Refs look like
memory://<key>.
"""

import logging
import threading
from typing import Any, Dict, Optional

from .base import BaseStorageProvider
from ...config.constants import STORAGE_PROVIDER_MEMORY
from ...utils.file_utils import is_url

logger = logging.getLogger(__name__)

MEMORY_SCHEME = "memory://"


class MemoryStorageProvider(BaseStorageProvider):
    """
    In-process storage.

    Usage:
        storage = MemoryStorageProvider()
        ref = storage.write(b'...', key='listings/l1/p1/original.jpg')
        storage.read(ref)
    """

    def __init__(self, initial: Optional[Dict[str, bytes]] = None):
        self._lock = threading.Lock()
        self._objects: Dict[str, bytes] = {}
        for key, data in (initial or {}).items():
            self._objects[self._key(key)] = data

    def connect(self, credentials: Dict[str, Any]) -> bool:
        return True

    def read(self, ref: str) -> bytes:
        if is_url(ref):
            return self.fetch_url(ref)

        key = self._key(ref)
        with self._lock:
            if key not in self._objects:
                raise FileNotFoundError(f"File not found: {ref}")
            return self._objects[key]

    def write(
        self,
        data: bytes,
        key: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> str:
        if not isinstance(data, (bytes, bytearray)):
            raise IOError("Memory storage only accepts bytes")

        key = self._key(key or self.new_key())
        with self._lock:
            self._objects[key] = bytes(data)
        logger.debug("Stored %d bytes at %s%s", len(data), MEMORY_SCHEME, key)
        return f"{MEMORY_SCHEME}{key}"

    def exists(self, ref: str) -> bool:
        if is_url(ref):
            return super().exists(ref)
        with self._lock:
            return self._key(ref) in self._objects

    def keys(self):
        with self._lock:
            return sorted(self._objects)

    def get_provider_type(self) -> str:
        return STORAGE_PROVIDER_MEMORY

    def get_provider_name(self) -> str:
        return "In-Memory"

    def is_connected(self) -> bool:
        return True

    @staticmethod
    def _key(ref: str) -> str:
        if ref.startswith(MEMORY_SCHEME):
            ref = ref[len(MEMORY_SCHEME):]
        return ref.lstrip('/')
