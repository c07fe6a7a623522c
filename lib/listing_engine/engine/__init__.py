"""
Engine module - Analysis, planning, execution and verification stages.
"""

from .analyzer import PhotoAnalyzer, normalize_analysis
from .batch_executor import BatchExecutor
from .provider_router import ProviderRouter, Route
from .quality_validator import QualityValidator, decide_status
from .rate_limiter import RateLimiter
from .orchestrator import ListingPipeline, prepare_listing

__all__ = [
    "PhotoAnalyzer",
    "normalize_analysis",
    "BatchExecutor",
    "ProviderRouter",
    "Route",
    "QualityValidator",
    "decide_status",
    "RateLimiter",
    "ListingPipeline",
    "prepare_listing",
]
