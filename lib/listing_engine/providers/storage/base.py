"""
Base Storage Provider
=====================
Abstract base class for the image storage boundary.

The engine treats refs as opaque strings: read(ref) -> bytes and
write(bytes) -> ref. Each provider decides what its refs look like
(Dropbox paths, memory:// keys); http(s) refs are fetched directly.

Serverless considerations:
- Each function invocation may need fresh authentication
- No persistent connections between invocations
"""

import logging
import uuid
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import requests

from ...config.constants import IMAGE_TRANSFER_TIMEOUT
from ...utils.file_utils import is_url

logger = logging.getLogger(__name__)


class BaseStorageProvider(ABC):
    """
    Abstract base class for image storage.

    All storage providers (Dropbox, in-memory) must implement this
    interface to be usable with the StorageFactory.
    """

    @abstractmethod
    def connect(self, credentials: Dict[str, Any]) -> bool:
        """
        Establish connection with the storage provider.

        May be called multiple times (idempotent).

        Args:
            credentials: Provider-specific credentials dictionary
                For Dropbox: {
                    'refresh_token': str,
                    'app_key': str,
                    'app_secret': str,
                    'member_id': str (optional, for team accounts)
                }

        Returns:
            True if connection successful

        Raises:
            ConnectionError: If authentication fails
        """
        pass

    @abstractmethod
    def read(self, ref: str) -> bytes:
        """
        Read image bytes.

        Args:
            ref: Ref returned by write() or an http(s) URL

        Returns:
            File content as bytes

        Raises:
            FileNotFoundError: If nothing exists at ref
            IOError: If the read fails
        """
        pass

    @abstractmethod
    def write(
        self,
        data: bytes,
        key: Optional[str] = None,
        content_type: Optional[str] = None,
    ) -> str:
        """
        Store image bytes.

        Args:
            data: Content to store
            key: Destination key (generated when None)
            content_type: Optional MIME type

        Returns:
            Ref of the stored content

        Raises:
            IOError: If the write fails
        """
        pass

    @abstractmethod
    def get_provider_type(self) -> str:
        """
        Get provider type identifier.

        Returns:
            Provider type string (e.g., 'dropbox', 'memory')
        """
        pass

    @abstractmethod
    def get_provider_name(self) -> str:
        pass

    def is_connected(self) -> bool:
        """
        Check if provider is currently connected.

        Default implementation returns False.
        Subclasses should override to track connection state.
        """
        return False

    def exists(self, ref: str) -> bool:
        """
        Check if a ref can be read.

        Default implementation reads the content; subclasses should
        override with a cheaper check.
        """
        try:
            self.read(ref)
            return True
        except FileNotFoundError:
            return False

    def get_public_url(self, ref: str) -> Optional[str]:
        """
        URL a remote backend can fetch the ref from.

        Returns:
            The ref itself for http(s) refs, None when the provider cannot
            expose the content publicly (callers then inline the bytes).
        """
        return ref if is_url(ref) else None

    def new_key(self, extension: str = '.jpg') -> str:
        return f"engine/{uuid.uuid4().hex}{extension}"

    def fetch_url(self, url: str) -> bytes:
        """
        Download content behind an http(s) ref.

        Raises:
            FileNotFoundError: On HTTP 404
            IOError: On any other failure
        """
        try:
            response = requests.get(url, timeout=IMAGE_TRANSFER_TIMEOUT)
        except requests.exceptions.RequestException as e:
            raise IOError(f"Download failed for {url}: {e}")

        if response.status_code == 404:
            raise FileNotFoundError(f"File not found: {url}")
        if response.status_code >= 400:
            raise IOError(f"Download failed for {url}: HTTP {response.status_code}")
        return response.content
