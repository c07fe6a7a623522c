"""
Base Vision Backend
===================
Abstract base class for the vision model that describes a listing photo.

The backend only returns the model's raw structured reply; turning it into
a PhotoAnalysis (clamping, enum mapping) is the analyzer's job.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict


class BaseVisionBackend(ABC):
    """
    Abstract base class for vision backends.

    Usage:
        backend = OpenAIVisionBackend(api_key)
        raw = backend.describe("https://.../photo.jpg")
    """

    @abstractmethod
    def describe(self, image_ref: str) -> Dict[str, Any]:
        """
        Describe one photo.

        Args:
            image_ref: Ref of the photo to analyze

        Returns:
            Parsed JSON reply of the model

        Raises:
            ProviderError: Backend could not be reached or refused the call
            ValueError: Reply was not a JSON object
        """
        pass

    def inspect(self, image_ref: str) -> Dict[str, Any]:
        """
        Quality-check an enhanced photo.

        Backends without a QC prompt cannot be used as validator inspectors.

        Returns:
            Parsed reply with overallQuality, issues and recommendation
        """
        raise NotImplementedError(f"{self.get_provider_name()} does not support inspection")

    @abstractmethod
    def get_provider_type(self) -> str:
        """Provider type identifier (e.g., 'openai')."""
        pass

    @abstractmethod
    def get_provider_name(self) -> str:
        """Human-readable provider name."""
        pass
