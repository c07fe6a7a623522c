"""
Enhancement Providers
=====================
Backends that apply one tool to one image: invoke(tool, ref, params) -> ref.

Supported:
    - Replicate (FLUX Kontext, multi-pass twilight, SAM-2 window masking)
    - AutoEnhance.ai (HDR, perspective, flash, color correction)
    - Local (Pillow tonal presets)
"""

from .base import BaseEnhancementProvider, EnhancementStatus
from .factory import EnhancementFactory
from .replicate_provider import ReplicateProvider
from .autoenhance_provider import AutoEnhanceProvider
from .local_provider import LocalProvider

__all__ = [
    "BaseEnhancementProvider",
    "EnhancementStatus",
    "EnhancementFactory",
    "ReplicateProvider",
    "AutoEnhanceProvider",
    "LocalProvider",
]
