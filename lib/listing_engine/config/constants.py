"""
SnapR Listing Engine - Constants and Configuration
==================================================
Default thresholds, caps, timings and provider identifiers for the
listing photo decision and execution engine.

Everything here is a default: EngineConfig (settings.py) carries the
values actually used by a run and may override any of them.
"""

from typing import Dict, Tuple

# Version identifier for the listing engine
ENGINE_VERSION = "3.0.0"
PACKAGE_NAME = "snapr-listing-engine"

# =============================================================================
# ROLE ASSIGNMENT
# =============================================================================

# Share of the listing (by hero score) that becomes hero photos
DEFAULT_HERO_PERCENTAGE: float = 0.15

# Share of the listing (lowest hero scores) that becomes utility photos
DEFAULT_UTILITY_PERCENTAGE: float = 0.20

# =============================================================================
# PRIORITY THRESHOLDS
# =============================================================================

# Severity cut points (0-100) for critical / high / medium / low
DEFAULT_CRITICAL_THRESHOLD: int = 80
DEFAULT_HIGH_THRESHOLD: int = 60
DEFAULT_MEDIUM_THRESHOLD: int = 40
DEFAULT_LOW_THRESHOLD: int = 20

# Below this analysis confidence (0-1) severities are discounted
DEFAULT_MIN_ANALYSIS_CONFIDENCE: float = 0.6
LOW_CONFIDENCE_SEVERITY_PENALTY: int = 20

# Minimum reported coverage (percent of frame) before a fix is worth it
MIN_SKY_COVERAGE: int = 20
MIN_LAWN_COVERAGE: int = 15

# =============================================================================
# LISTING CAPS
# =============================================================================

SKY_REPLACEMENT_CAP_MAX: int = 3
SKY_REPLACEMENT_CAP_RATIO: float = 0.15
LAWN_REPAIR_CAP_MAX: int = 4
LAWN_REPAIR_CAP_RATIO: float = 0.20
DECLUTTER_CAP_RATIO: float = 0.30
VIRTUAL_STAGING_CAP: int = 2
TWILIGHT_CAP: int = 1
FIRE_FIREPLACE_CAP: int = 1
POOL_ENHANCE_CAP_MAX: int = 2

# =============================================================================
# CONFIDENCE SCORING
# =============================================================================

# Listing status gate (0-100)
CONFIDENCE_PREPARED: int = 85
CONFIDENCE_PREPARED_MINOR: int = 70

# Hero photos with nothing to do never score above this
HERO_NO_DECISION_CONFIDENCE_CAP: int = 85

# Deducted per high-risk tool on a photo
HIGH_RISK_TOOL_PENALTY: int = 5

# Deducted from the listing score when the hero loses every candidate fix
HERO_SHORTFALL_PENALTY: int = 15

# Photos at or above both scores need no work
ALREADY_GOOD_SCORE: int = 80

# Weight of the planning confidence in the final listing confidence
STRATEGY_CONFIDENCE_WEIGHT: float = 0.5

# =============================================================================
# PRESET LOCKING
# =============================================================================

# Sky severity below which an exterior's sky counts as acceptable
ACCEPTABLE_SKY_SEVERITY: int = 40

# Twilight suitability needed for the dramatic sky (ties go dramatic)
DRAMATIC_SKY_SUITABILITY: int = 85

# Bonus added to a hero score when the exterior shows windows and sky
TWILIGHT_WINDOW_BONUS: int = 5

# Mean listing hero score above which twilight goes golden-hour
GOLDEN_HOUR_HERO_SCORE: int = 75

# Mean lawn severity at which the vibrant lawn preset is used
VIBRANT_LAWN_SEVERITY: int = 60

# Mean lighting score bands for HDR strength
HDR_LIGHT_LIGHTING_SCORE: int = 75
HDR_DRAMATIC_LIGHTING_SCORE: int = 45

# Staging goes luxury above this share of well-composed interiors
LUXURY_STAGING_RATIO: float = 0.70
GOOD_COMPOSITION_SCORE: int = 70

# Color temperature goes warm above this share of dark interiors
WARM_DARK_ROOM_RATIO: float = 0.30
DARK_ROOM_LIGHTING_SCORE: int = 50

# Declutter goes moderate above this share of cluttered interiors
MODERATE_DECLUTTER_RATIO: float = 0.50
CLUTTERED_ROOM_SEVERITY: int = 50

# =============================================================================
# EXECUTION CONFIGURATION
# =============================================================================

# Photos processed concurrently
DEFAULT_CONCURRENCY: int = 2

# Photos analyzed concurrently
DEFAULT_ANALYSIS_CONCURRENCY: int = 5

# Maximum retry attempts for rate limited provider calls
MAX_RETRIES: int = 2

# Base delay between retries (seconds)
RETRY_DELAY_SECONDS: float = 2.0

# Wall-clock limit for a single provider call (seconds)
TOOL_TIMEOUT_SECONDS: float = 120.0

# Minimum spacing between calls to the shared remote backend (milliseconds)
DEFAULT_MIN_INTERVAL_MS: int = 10000

# Interval between prediction status polls (seconds)
POLL_INTERVAL_SECONDS: float = 2.0

# =============================================================================
# VALIDATION CONFIGURATION
# =============================================================================

# Photo quality score below which a photo needs review
MIN_QUALITY_SCORE: int = 70

# Photos slower than this (seconds) get flagged
SLOW_PHOTO_SECONDS: float = 180.0

# Strategy confidence below which a photo gets flagged
LOW_CONFIDENCE_SCORE: int = 50

# Allowed relative aspect ratio drift between input and output
ASPECT_RATIO_TOLERANCE: float = 0.02

# A medium issue on a photo scoring below this sends it to review
MEDIUM_ISSUE_REVIEW_SCORE: int = 80

# Photos at or above this confidence skip vision inspection
SKIP_INSPECTION_SCORE: int = 90

ISSUE_DEDUCTIONS: Dict[str, int] = {
    'high': 30,
    'medium': 15,
    'low': 5,
}

# =============================================================================
# CONSISTENCY CONFIGURATION
# =============================================================================

CONSISTENCY_THRESHOLDS: Dict[str, float] = {
    'brightness': 15,
    'contrast': 10,
    'warmth': 10,
    'saturation': 10,
}

CONSISTENCY_MAX_ADJUSTMENT: Dict[str, float] = {
    'brightness': 20,
    'contrast': 15,
    'warmth': 15,
    'saturation': 15,
}

# Listing consistency score counted as consistent
CONSISTENT_SCORE: int = 85

# Twilight photos: allowed brightness/warmth drift from the locked twilight look
TWILIGHT_DRIFT_THRESHOLD: float = 8

# =============================================================================
# PROVIDER IDENTIFIERS
# =============================================================================

# Storage provider types
STORAGE_PROVIDER_DROPBOX: str = "dropbox"
STORAGE_PROVIDER_MEMORY: str = "memory"

# Enhancement backend types
ENHANCEMENT_BACKEND_REPLICATE: str = "replicate"
ENHANCEMENT_BACKEND_AUTOENHANCE: str = "autoenhance"
ENHANCEMENT_BACKEND_LOCAL: str = "local"

# Vision backend types
VISION_BACKEND_OPENAI: str = "openai"

# =============================================================================
# API ENDPOINTS
# =============================================================================

# Replicate prediction API
REPLICATE_BASE_URL: str = "https://api.replicate.com/v1"
REPLICATE_PREDICTIONS_ENDPOINT: str = f"{REPLICATE_BASE_URL}/predictions"

# Replicate model per routed provider
REPLICATE_MODELS: Dict[str, str] = {
    'flux-kontext': "black-forest-labs/flux-kontext-dev",
    'flux-multipass': "black-forest-labs/flux-kontext-dev",
    'sam-flux': "black-forest-labs/flux-kontext-dev",
}

# Window segmentation run before sam-flux edits (versioned model)
REPLICATE_SEGMENTATION_VERSION: str = "fe97b453f8b14f0d074f46baef4a24ed548b6e0ca0c696ac81cc1215124f1fab"

# Guidance scale and inference steps of a full-strength FLUX pass
DEFAULT_FLUX_GUIDANCE: float = 3.0
DEFAULT_FLUX_STEPS: int = 28
MIN_FLUX_STEPS: int = 20

# AutoEnhance API
AUTOENHANCE_BASE_URL: str = "https://api.autoenhance.ai/v3"
AUTOENHANCE_IMAGES_ENDPOINT: str = f"{AUTOENHANCE_BASE_URL}/images/"

# Timeout for direct image downloads and uploads (seconds)
IMAGE_TRANSFER_TIMEOUT: int = 300

# Timeout for API control calls (seconds)
API_REQUEST_TIMEOUT: int = 30

# OpenAI vision API
OPENAI_CHAT_ENDPOINT: str = "https://api.openai.com/v1/chat/completions"
DEFAULT_VISION_MODEL: str = "gpt-4o"

# Dropbox API endpoints
DROPBOX_TOKEN_URL: str = "https://api.dropboxapi.com/oauth2/token"

# Uploads above this size use a Dropbox upload session
UPLOAD_CHUNK_SIZE: int = 8 * 1024 * 1024  # 8MB

# Root folder for engine outputs in the client's storage
DEFAULT_OUTPUT_ROOT: str = "/snapr"

# =============================================================================
# CONTENT TYPE MAPPING
# =============================================================================

CONTENT_TYPE_MAPPING: Dict[str, str] = {
    'jpg': 'image/jpeg',
    'jpeg': 'image/jpeg',
    'png': 'image/png',
    'webp': 'image/webp',
    'tif': 'image/tiff',
    'tiff': 'image/tiff',
    'heic': 'image/heic',
}

# Extensions accepted as listing photos
SUPPORTED_EXTENSIONS: Tuple[str, ...] = (
    '.jpg', '.jpeg', '.png', '.webp', '.tif', '.tiff', '.heic',
)
