"""
Engine Errors
=============
Exception taxonomy for the listing engine.

Photo-level errors (AnalysisError, ProviderError subtypes) are isolated to
the photo that raised them. Only EmptyListingError and an executor crash
end a listing run as failed.
"""

from typing import Optional


class ListingEngineError(Exception):
    """Base class for all engine errors."""


class AnalysisError(ListingEngineError):
    """A photo could not be classified (corrupt, unsupported, backend down)."""

    def __init__(self, photo_id: str, message: str):
        super().__init__(f"Analysis failed for {photo_id}: {message}")
        self.photo_id = photo_id


class EmptyListingError(ListingEngineError):
    """A listing was submitted with no photos to plan."""

    def __init__(self, listing_id: Optional[str] = None):
        target = f"listing {listing_id}" if listing_id else "listing"
        super().__init__(f"No photos to plan for {target}")
        self.listing_id = listing_id


class ProviderError(ListingEngineError):
    """
    Failure reported by an enhancement backend.

    The engine only ever looks at the subtype, never at the provider's
    payload.
    """

    def __init__(self, message: str, provider: Optional[str] = None):
        super().__init__(message)
        self.provider = provider


class RateLimited(ProviderError):
    """Backend refused the call for rate reasons; retry after backoff."""

    def __init__(
        self,
        message: str,
        provider: Optional[str] = None,
        retry_after: Optional[float] = None,
    ):
        super().__init__(message, provider)
        self.retry_after = retry_after


class ProviderUnavailable(ProviderError):
    """Backend could not serve the call; fail the tool or use a fallback."""


class ProviderTimeout(ProviderUnavailable):
    """A provider call exceeded its wall-clock limit."""


class InvalidInput(ProviderError):
    """Backend rejected the image or parameters; retrying will not help."""


class ValidationFailure(ListingEngineError):
    """A finished photo failed a quality check. Lowers confidence only."""

    def __init__(self, photo_id: str, message: str):
        super().__init__(f"Validation failed for {photo_id}: {message}")
        self.photo_id = photo_id


class RunCancelled(ListingEngineError):
    """The run was aborted by its caller."""
