"""
Credentials Management
======================
Handles client-specific encryption keys and provider credential decryption.

All tenants use Fernet symmetric encryption. Encrypted payloads come in
two shapes:

1. Flat format:
    {
        "replicate_api_token_encrypted": "...",
        "autoenhance_api_key_encrypted": "...",
        "openai_api_key_encrypted": "...",
        "dropbox_refresh_token_encrypted": "...",
        ...
    }

2. Nested format:
    {
        "storage_provider": "dropbox",
        "storage_credentials": {"refresh_token_encrypted": "...", ...},
        "enhancement_credentials": {"replicate_api_token_encrypted": "...", ...}
    }

To generate a new client key use generate_fernet_key().
"""

import os
from typing import Any, Dict

from cryptography.fernet import Fernet, InvalidToken

# Encrypted field -> decrypted field, flat format
ENCRYPTED_FIELDS: Dict[str, str] = {
    # Enhancement and vision backends
    'replicate_api_token_encrypted': 'replicate_api_token',
    'autoenhance_api_key_encrypted': 'autoenhance_api_key',
    'openai_api_key_encrypted': 'openai_api_key',
    # Storage
    'dropbox_app_key_encrypted': 'dropbox_app_key',
    'dropbox_app_secret_encrypted': 'dropbox_app_secret',
    'dropbox_refresh_token_encrypted': 'dropbox_refresh_token',
}

NESTED_SECTIONS = ('storage_credentials', 'enhancement_credentials')

SENSITIVE_FIELDS = (
    'replicate_api_token', 'autoenhance_api_key', 'openai_api_key',
    'dropbox_app_key', 'dropbox_app_secret', 'dropbox_refresh_token',
    'api_key', 'api_token', 'access_token', 'refresh_token', 'app_secret',
)


def generate_fernet_key() -> str:
    """
    Generate a new Fernet encryption key.

    Store it for a client as:
        CLIENT_XXX_ENCRYPTION_KEY="generated-key-here"

    Returns:
        Base64-encoded Fernet key string
    """
    return Fernet.generate_key().decode()


def get_client_encryption_key(client_id: str) -> str:
    """
    Get encryption key for a client from environment variables.

    Args:
        client_id: Client identifier (e.g., "001", "acme")

    Returns:
        Encryption key string

    Raises:
        ValueError: If client_id is missing or no key found
    """
    if not client_id:
        raise ValueError("client_id is required to decrypt credentials")

    key_env_var = f"CLIENT_{client_id.upper()}_ENCRYPTION_KEY"
    encryption_key = os.getenv(key_env_var)

    if not encryption_key:
        available = sorted(
            name[len('CLIENT_'):-len('_ENCRYPTION_KEY')]
            for name in os.environ
            if name.startswith('CLIENT_') and name.endswith('_ENCRYPTION_KEY')
        )
        raise ValueError(
            f"No encryption key found for client '{client_id}'. "
            f"Available clients: {available}"
        )

    return encryption_key


def decrypt_credential(encrypted_value: str, encryption_key: str) -> str:
    """
    Decrypt a single encrypted credential value.

    Raises:
        ValueError: If the key is malformed or the token does not verify
    """
    try:
        fernet = Fernet(encryption_key.encode())
        return fernet.decrypt(encrypted_value.encode()).decode()
    except (InvalidToken, ValueError, TypeError) as e:
        raise ValueError(f"Failed to decrypt credential: {e or 'invalid token'}")


def decrypt_credentials(data: Dict[str, Any], client_id: str) -> Dict[str, Any]:
    """
    Decrypt every encrypted credential in an event payload.

    Args:
        data: Dictionary containing encrypted fields
        client_id: Client identifier for key lookup

    Returns:
        Copy of data with *_encrypted fields replaced by decrypted values

    Raises:
        ValueError: If the key is invalid or any field fails to decrypt
    """
    encryption_key = get_client_encryption_key(client_id)

    try:
        fernet = Fernet(encryption_key.encode())
    except (ValueError, TypeError) as e:
        raise ValueError(f"Invalid encryption key format for client {client_id}: {e}")

    if any(section in data for section in NESTED_SECTIONS):
        return _decrypt_nested_format(data, fernet, client_id)
    return _decrypt_flat_format(data, fernet, client_id)


def _decrypt_flat_format(data: Dict[str, Any], fernet: Fernet, client_id: str) -> Dict[str, Any]:
    decrypted_data = data.copy()

    for encrypted_field, decrypted_field in ENCRYPTED_FIELDS.items():
        if not data.get(encrypted_field):
            continue
        try:
            decrypted_data[decrypted_field] = fernet.decrypt(
                data[encrypted_field].encode()
            ).decode()
        except InvalidToken:
            raise ValueError(f"Failed to decrypt {encrypted_field} for client {client_id}")
        del decrypted_data[encrypted_field]

    return decrypted_data


def _decrypt_nested_format(data: Dict[str, Any], fernet: Fernet, client_id: str) -> Dict[str, Any]:
    """Decrypt each *_encrypted key inside the nested credential sections."""
    decrypted_data = data.copy()

    for section in NESTED_SECTIONS:
        if not data.get(section):
            continue

        decrypted_section = {}
        for key, value in data[section].items():
            if key.endswith('_encrypted') and value:
                try:
                    decrypted_section[key[:-len('_encrypted')]] = fernet.decrypt(
                        value.encode()
                    ).decode()
                except InvalidToken:
                    raise ValueError(
                        f"Failed to decrypt {section}.{key} for client {client_id}"
                    )
            else:
                decrypted_section[key] = value

        decrypted_data[section] = decrypted_section

    return decrypted_data


def mask_credentials(data: Dict[str, Any]) -> Dict[str, Any]:
    """
    Create a masked copy of data for safe logging.

    Args:
        data: Dictionary potentially containing sensitive values

    Returns:
        Dictionary with sensitive values masked
    """
    if not isinstance(data, dict):
        return data

    masked = data.copy()

    for field in SENSITIVE_FIELDS:
        value = masked.get(field)
        if not value:
            continue
        if isinstance(value, str) and len(value) > 8:
            masked[field] = f"{value[:4]}...{value[-4:]}"
        else:
            masked[field] = "***"

    for section in NESTED_SECTIONS:
        if isinstance(masked.get(section), dict):
            masked[section] = mask_credentials(masked[section])

    return masked
