"""
SnapR Listing Engine
====================
Decision and execution engine that prepares a real-estate listing's photos:
analyze every photo, lock listing-wide presets, plan enhancements under
listing caps, run them against the enhancement backends, then check
consistency and quality to produce a confidence score.

Usage:
    from listing_engine import ListingPipeline, PhotoAnalyzer, BatchExecutor

    pipeline = ListingPipeline(PhotoAnalyzer(vision), BatchExecutor(registry))
    result = pipeline.prepare_listing("listing-42", photos)
"""

from .config.constants import ENGINE_VERSION
from .config.settings import EngineConfig
from .engine import (
    BatchExecutor,
    ListingPipeline,
    PhotoAnalyzer,
    ProviderRouter,
    QualityValidator,
    RateLimiter,
    prepare_listing,
)
from .errors import (
    ListingEngineError,
    AnalysisError,
    EmptyListingError,
    ProviderError,
    RateLimited,
    ProviderUnavailable,
    ProviderTimeout,
    InvalidInput,
    ValidationFailure,
    RunCancelled,
)
from .models import ListingResult, ListingStatus, ListingStrategy, ProgressEvent
from .notifications import ProgressTracker

__version__ = ENGINE_VERSION

__all__ = [
    "ENGINE_VERSION",
    "EngineConfig",
    # Pipeline
    "BatchExecutor",
    "ListingPipeline",
    "PhotoAnalyzer",
    "ProviderRouter",
    "QualityValidator",
    "RateLimiter",
    "prepare_listing",
    "ProgressTracker",
    # Results
    "ListingResult",
    "ListingStatus",
    "ListingStrategy",
    "ProgressEvent",
    # Errors
    "ListingEngineError",
    "AnalysisError",
    "EmptyListingError",
    "ProviderError",
    "RateLimited",
    "ProviderUnavailable",
    "ProviderTimeout",
    "InvalidInput",
    "ValidationFailure",
    "RunCancelled",
]
