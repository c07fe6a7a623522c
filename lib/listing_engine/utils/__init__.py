"""
Utilities module - Ref handling and enum table helpers.
"""

from .file_utils import (
    is_url,
    get_file_extension,
    get_content_type_for_file,
    is_supported_image,
    normalize_storage_path,
    validate_storage_path,
    sanitize_filename_prefix,
    build_output_key,
    to_data_url,
)

from .enum_utils import (
    require_exhaustive,
    assert_never,
)

__all__ = [
    # File utilities
    "is_url",
    "get_file_extension",
    "get_content_type_for_file",
    "is_supported_image",
    "normalize_storage_path",
    "validate_storage_path",
    "sanitize_filename_prefix",
    "build_output_key",
    "to_data_url",
    # Enum utilities
    "require_exhaustive",
    "assert_never",
]
