"""
SnapR Listing Engine - Provider Abstractions
============================================
Storage, enhancement and vision backends with unified interfaces.

Supported Storage Providers:
    - Dropbox (team accounts, chunked uploads)
    - In-memory (tests and local runs)

Supported Enhancement Providers:
    - Replicate (FLUX Kontext, multi-pass twilight, SAM-2 + FLUX masking)
    - AutoEnhance.ai (presigned S3 upload, polled processing)
    - Local (Pillow)

Supported Vision Backends:
    - OpenAI (GPT-4o chat completions)
"""

from .storage import BaseStorageProvider, StorageFactory, DropboxProvider, MemoryStorageProvider
from .enhancement import (
    BaseEnhancementProvider,
    EnhancementFactory,
    ReplicateProvider,
    AutoEnhanceProvider,
    LocalProvider,
)
from .vision import BaseVisionBackend, OpenAIVisionBackend

__all__ = [
    # Storage
    "BaseStorageProvider",
    "StorageFactory",
    "DropboxProvider",
    "MemoryStorageProvider",
    # Enhancement
    "BaseEnhancementProvider",
    "EnhancementFactory",
    "ReplicateProvider",
    "AutoEnhanceProvider",
    "LocalProvider",
    # Vision
    "BaseVisionBackend",
    "OpenAIVisionBackend",
]
