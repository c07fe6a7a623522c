"""
Configuration module - Credentials, constants and engine settings.
"""

from .credentials import (
    get_client_encryption_key,
    decrypt_credential,
    decrypt_credentials,
    mask_credentials,
    generate_fernet_key,
)

from .constants import (
    ENGINE_VERSION,
    SUPPORTED_EXTENSIONS,
    # Provider identifiers
    STORAGE_PROVIDER_DROPBOX,
    STORAGE_PROVIDER_MEMORY,
    ENHANCEMENT_BACKEND_REPLICATE,
    ENHANCEMENT_BACKEND_AUTOENHANCE,
    ENHANCEMENT_BACKEND_LOCAL,
    VISION_BACKEND_OPENAI,
)

from .settings import (
    EngineConfig,
    StrategyThresholds,
    SafetyOverrides,
    PresetThresholds,
    ExecutionSettings,
    ValidationSettings,
    ConsistencySettings,
)

__all__ = [
    # Credentials
    "get_client_encryption_key",
    "decrypt_credential",
    "decrypt_credentials",
    "mask_credentials",
    "generate_fernet_key",
    # Constants
    "ENGINE_VERSION",
    "SUPPORTED_EXTENSIONS",
    "STORAGE_PROVIDER_DROPBOX",
    "STORAGE_PROVIDER_MEMORY",
    "ENHANCEMENT_BACKEND_REPLICATE",
    "ENHANCEMENT_BACKEND_AUTOENHANCE",
    "ENHANCEMENT_BACKEND_LOCAL",
    "VISION_BACKEND_OPENAI",
    # Settings
    "EngineConfig",
    "StrategyThresholds",
    "SafetyOverrides",
    "PresetThresholds",
    "ExecutionSettings",
    "ValidationSettings",
    "ConsistencySettings",
]
