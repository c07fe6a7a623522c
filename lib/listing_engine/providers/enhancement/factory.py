"""
Enhancement Factory
===================
Factory for creating enhancement provider instances dynamically.

Supports both the flat credential format and the nested
enhancement_credentials format, and builds the {ProviderId: provider}
registry the batch executor dispatches through.
"""

import logging
from typing import Any, Dict, Optional

from .base import BaseEnhancementProvider
from .autoenhance_provider import AutoEnhanceProvider
from .local_provider import LocalProvider
from .replicate_provider import ReplicateProvider

from ...config.constants import (
    ENHANCEMENT_BACKEND_AUTOENHANCE,
    ENHANCEMENT_BACKEND_LOCAL,
    ENHANCEMENT_BACKEND_REPLICATE,
)
from ...models.enums import ProviderId

logger = logging.getLogger(__name__)

# Routed provider ids served by the Replicate backend
REPLICATE_PROVIDER_IDS = (ProviderId.FLUX_KONTEXT, ProviderId.FLUX_MULTIPASS, ProviderId.SAM_FLUX)


class EnhancementFactory:
    """
    Factory for creating enhancement provider instances.

    The factory handles:
    1. Backend type detection (explicit or from credentials)
    2. API key extraction (flat or nested format)
    3. Backend instantiation with backend-specific requirements

    Usage:
        # Explicit backend type
        provider = EnhancementFactory.create("replicate", api_token)

        # AutoEnhance and local need a storage provider
        provider = EnhancementFactory.create("autoenhance", api_key, storage=storage)

        # Everything the credentials allow, keyed by routed provider id
        registry = EnhancementFactory.build_registry(decrypted_data, storage)
    """

    # Registered provider classes
    _providers = {
        ENHANCEMENT_BACKEND_REPLICATE: ReplicateProvider,
        ENHANCEMENT_BACKEND_AUTOENHANCE: AutoEnhanceProvider,
        ENHANCEMENT_BACKEND_LOCAL: LocalProvider,
    }

    @classmethod
    def create(
        cls,
        provider_type: str,
        api_key: Optional[str] = None,
        storage=None,
        **kwargs
    ) -> BaseEnhancementProvider:
        """
        Create an enhancement provider instance.

        Args:
            provider_type: Backend type ('replicate', 'autoenhance', 'local')
            api_key: API key or token for the backend (unused by 'local')
            storage: Storage provider (required for 'autoenhance' and 'local')
            **kwargs: Additional backend-specific arguments

        Returns:
            Configured enhancement provider instance

        Raises:
            ValueError: If backend type unknown or required args missing
        """
        provider_type = provider_type.lower().strip()

        if provider_type not in cls._providers:
            supported = ", ".join(cls._providers.keys())
            raise ValueError(
                f"Unknown enhancement provider: '{provider_type}'. "
                f"Supported: {supported}"
            )

        provider_class = cls._providers[provider_type]

        if provider_type == ENHANCEMENT_BACKEND_LOCAL:
            return provider_class(storage, **kwargs)

        if not api_key:
            raise ValueError(f"API key required for {provider_type} provider")

        if provider_type == ENHANCEMENT_BACKEND_AUTOENHANCE:
            return provider_class(api_key, storage, **kwargs)
        if provider_type == ENHANCEMENT_BACKEND_REPLICATE:
            return provider_class(api_key, storage=storage, **kwargs)
        # Registered third-party backends take (api_key, **kwargs)
        return provider_class(api_key, **kwargs)

    @classmethod
    def create_from_credentials(
        cls,
        decrypted_data: Dict[str, Any],
        provider_type: Optional[str] = None,
        storage=None,
        **kwargs
    ) -> BaseEnhancementProvider:
        """
        Create one enhancement provider from decrypted credential data.

        Flat format:
            {
                'replicate_api_token': '...',
                'autoenhance_api_key': '...',
            }

        Nested format:
            {
                'enhancement_provider': 'replicate',
                'enhancement_credentials': {
                    'replicate_api_token': '...',
                    'autoenhance_api_key': '...',
                }
            }

        Args:
            decrypted_data: Decrypted credential dictionary
            provider_type: Override backend type (auto-detected if None)
            storage: Storage provider passed to the backend

        Returns:
            Configured enhancement provider instance
        """
        if provider_type:
            detected_type = provider_type
        elif 'enhancement_provider' in decrypted_data:
            detected_type = decrypted_data['enhancement_provider']
        elif cls._extract_api_key(decrypted_data, ENHANCEMENT_BACKEND_REPLICATE):
            detected_type = ENHANCEMENT_BACKEND_REPLICATE
        elif cls._extract_api_key(decrypted_data, ENHANCEMENT_BACKEND_AUTOENHANCE):
            detected_type = ENHANCEMENT_BACKEND_AUTOENHANCE
        else:
            detected_type = ENHANCEMENT_BACKEND_LOCAL

        api_key = cls._extract_api_key(decrypted_data, detected_type)
        return cls.create(detected_type, api_key, storage=storage, **kwargs)

    @classmethod
    def build_registry(
        cls,
        decrypted_data: Dict[str, Any],
        storage,
        **replicate_kwargs
    ) -> Dict[ProviderId, BaseEnhancementProvider]:
        """
        Build every provider the credentials allow, keyed by routed id.

        The local provider is always present. Replicate serves the three
        FLUX provider ids with one instance each; AutoEnhance is added only
        when its key is configured.

        Args:
            decrypted_data: Decrypted credential dictionary
            storage: Storage provider shared by all backends
            **replicate_kwargs: Extra arguments for ReplicateProvider

        Returns:
            Mapping of ProviderId to provider
        """
        registry: Dict[ProviderId, BaseEnhancementProvider] = {
            ProviderId.LOCAL: LocalProvider(storage),
        }

        replicate_token = cls._extract_api_key(decrypted_data, ENHANCEMENT_BACKEND_REPLICATE)
        if replicate_token:
            for provider_id in REPLICATE_PROVIDER_IDS:
                registry[provider_id] = ReplicateProvider(
                    replicate_token, provider_id=provider_id, storage=storage, **replicate_kwargs
                )

        autoenhance_key = cls._extract_api_key(decrypted_data, ENHANCEMENT_BACKEND_AUTOENHANCE)
        if autoenhance_key:
            registry[ProviderId.AUTOENHANCE] = AutoEnhanceProvider(autoenhance_key, storage)

        logger.info("Enhancement providers: %s", ", ".join(p.value for p in registry))
        return registry

    @classmethod
    def _extract_api_key(
        cls,
        decrypted_data: Dict[str, Any],
        provider_type: str,
    ) -> Optional[str]:
        """
        Extract the API key for a backend, nested format first.

        Args:
            decrypted_data: Full decrypted data dictionary
            provider_type: Target backend type

        Returns:
            API key string, or None when not configured
        """
        field = {
            ENHANCEMENT_BACKEND_REPLICATE: 'replicate_api_token',
            ENHANCEMENT_BACKEND_AUTOENHANCE: 'autoenhance_api_key',
        }.get(provider_type)
        if field is None:
            return None

        # Check for nested format first
        creds = decrypted_data.get('enhancement_credentials') or {}
        if creds.get(field):
            return creds[field]
        if creds.get('api_key') and decrypted_data.get('enhancement_provider') == provider_type:
            return creds['api_key']

        return decrypted_data.get(field) or None

    @classmethod
    def get_supported_providers(cls) -> list:
        """Get list of supported backend types."""
        return list(cls._providers.keys())

    @classmethod
    def is_provider_supported(cls, provider_type: str) -> bool:
        """Check if a backend type is supported."""
        return provider_type.lower().strip() in cls._providers

    @classmethod
    def register_provider(cls, provider_type: str, provider_class: type) -> None:
        """
        Register a new provider class.

        Args:
            provider_type: Backend type identifier
            provider_class: Class that implements BaseEnhancementProvider
        """
        if not issubclass(provider_class, BaseEnhancementProvider):
            raise TypeError("Provider class must inherit from BaseEnhancementProvider")
        cls._providers[provider_type.lower().strip()] = provider_class
