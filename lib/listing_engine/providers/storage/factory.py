"""
Storage Factory
===============
Picks the listing's storage backend from decrypted job credentials.

Dropbox is used when the job carries Dropbox credentials, in either of the
shapes decrypt_credentials() produces; otherwise outputs stay in memory.
"""

import logging
from typing import Any, Dict

from .base import BaseStorageProvider
from .dropbox_provider import DropboxProvider
from .memory_provider import MemoryStorageProvider

from ...config.constants import (
    STORAGE_PROVIDER_DROPBOX,
    STORAGE_PROVIDER_MEMORY,
)

logger = logging.getLogger(__name__)

# Flat credential field -> DropboxProvider.connect() key
DROPBOX_FLAT_FIELDS = {
    'dropbox_refresh_token': 'refresh_token',
    'dropbox_app_key': 'app_key',
    'dropbox_app_secret': 'app_secret',
    'dropbox_member_id': 'member_id',
}


class StorageFactory:
    """
    Factory for creating storage provider instances.

    Usage:
        storage = StorageFactory.create_from_credentials(decrypted_data)
    """

    _providers = {
        STORAGE_PROVIDER_DROPBOX: DropboxProvider,
        STORAGE_PROVIDER_MEMORY: MemoryStorageProvider,
    }

    @classmethod
    def create(
        cls,
        provider_type: str,
        credentials: Dict[str, Any],
        auto_connect: bool = True,
    ) -> BaseStorageProvider:
        """
        Create a storage provider instance.

        Raises:
            ValueError: If provider type unknown
            ConnectionError: If auto_connect fails
        """
        provider_type = provider_type.lower().strip()
        if provider_type not in cls._providers:
            raise ValueError(
                f"Unknown storage provider: '{provider_type}'. "
                f"Supported: {', '.join(cls.get_supported_providers())}"
            )

        provider = cls._providers[provider_type]()
        if auto_connect:
            provider.connect(credentials)
        return provider

    @classmethod
    def create_from_credentials(
        cls,
        decrypted_data: Dict[str, Any],
        auto_connect: bool = True,
    ) -> BaseStorageProvider:
        """
        Create storage provider from decrypted credential data.

        Args:
            decrypted_data: Output of decrypt_credentials(), nested
                ('storage_provider' + 'storage_credentials') or flat
                ('dropbox_*' fields)
            auto_connect: Whether to connect after creation

        Returns:
            The named or detected provider; in-memory when nothing is configured
        """
        if 'storage_provider' in decrypted_data:
            provider_type = decrypted_data['storage_provider']
            credentials = decrypted_data.get('storage_credentials') or {}
        elif 'dropbox_refresh_token' in decrypted_data:
            provider_type = STORAGE_PROVIDER_DROPBOX
            credentials = {
                key: decrypted_data[field]
                for field, key in DROPBOX_FLAT_FIELDS.items()
                if decrypted_data.get(field)
            }
        else:
            provider_type = STORAGE_PROVIDER_MEMORY
            credentials = {}

        logger.debug("Storage provider: %s", provider_type)
        return cls.create(provider_type, credentials, auto_connect)

    @classmethod
    def get_supported_providers(cls) -> list:
        """Get list of supported provider types."""
        return list(cls._providers.keys())
