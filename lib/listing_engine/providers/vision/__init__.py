"""
Vision Backends
===============
Vision models that describe a listing photo as structured JSON.
"""

from .base import BaseVisionBackend
from .openai_provider import OpenAIVisionBackend, parse_json_reply

__all__ = [
    "BaseVisionBackend",
    "OpenAIVisionBackend",
    "parse_json_reply",
]
