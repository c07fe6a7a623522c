"""
File Utilities
==============
Image reference helpers: extension and content-type detection, output key
construction and data URL encoding.

Refs are opaque strings to the engine (URLs, storage keys, memory:// refs);
these helpers only look at their path component.
"""

import base64
import os
import re
from typing import Optional
from urllib.parse import urlparse

from ..config.constants import CONTENT_TYPE_MAPPING, SUPPORTED_EXTENSIONS


def is_url(ref: str) -> bool:
    """True for http(s) refs that a remote backend can fetch directly."""
    if not ref or not isinstance(ref, str):
        return False
    return urlparse(ref).scheme in ('http', 'https')


def get_file_extension(ref: str) -> str:
    """
    Get lowercase file extension from a filename, path or URL.

    Query strings and fragments are ignored.

    Args:
        ref: Filename, path or URL

    Returns:
        Lowercase extension including dot (e.g., '.jpg'), '' if none
    """
    if not ref:
        return ''

    path = urlparse(ref).path if '://' in ref else ref
    _, ext = os.path.splitext(path)
    return ext.lower()


def get_content_type_for_file(ref: str) -> str:
    """
    Get MIME type based on extension.

    Returns:
        MIME type string, 'application/octet-stream' when unknown
    """
    ext_key = get_file_extension(ref).lstrip('.')
    return CONTENT_TYPE_MAPPING.get(ext_key, 'application/octet-stream')


def normalize_storage_path(path: str) -> str:
    """
    Normalize a storage key to Dropbox path_lower form.

    Backslashes become slashes, a leading slash is ensured, duplicate and
    trailing slashes are dropped and the result is lowercased.
    """
    if not path:
        return path

    normalized = "/" + path.replace("\\", "/").lstrip("/")
    normalized = re.sub(r"/{2,}", "/", normalized)
    if len(normalized) > 1:
        normalized = normalized.rstrip("/")
    return normalized.lower()


def validate_storage_path(path: str) -> bool:
    if not path or not isinstance(path, str):
        return False
    return path.startswith("/") and "\\" not in path and path == path.lower()


def is_supported_image(ref: str) -> bool:
    return get_file_extension(ref) in SUPPORTED_EXTENSIONS


def sanitize_filename_prefix(prefix: str) -> str:
    """
    Sanitize an identifier for use inside a storage key.

    - Removes/replaces unsafe characters
    - Collapses multiple spaces/underscores
    - Limits length to 50 characters

    Args:
        prefix: Raw identifier

    Returns:
        Sanitized string (empty if invalid)
    """
    if not prefix or not isinstance(prefix, str):
        return ""

    sanitized = re.sub(r'[^\w\-\s]', '_', prefix)
    sanitized = re.sub(r'[\s_]+', '_', sanitized)
    sanitized = sanitized.strip('_')

    return sanitized[:50]


def build_output_key(
    listing_id: str,
    photo_id: str,
    label: str,
    extension: str = '.jpg',
) -> str:
    """
    Storage key for an engine output.

    Example:
        build_output_key("L 12", "p1", "hdr") -> "listings/L_12/p1/hdr.jpg"
    """
    if not extension.startswith('.'):
        extension = f".{extension}"
    return "/".join([
        "listings",
        sanitize_filename_prefix(listing_id) or "unknown",
        sanitize_filename_prefix(photo_id) or "photo",
        f"{sanitize_filename_prefix(label) or 'output'}{extension}",
    ])


def to_data_url(data: bytes, content_type: Optional[str] = None) -> str:
    """Encode image bytes as a data: URL for backends that accept inline images."""
    encoded = base64.b64encode(data).decode('ascii')
    return f"data:{content_type or 'image/jpeg'};base64,{encoded}"
