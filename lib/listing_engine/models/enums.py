"""
Engine Enumerations
===================
Closed vocabularies shared by the planner, the executor and the providers.

All enums derive from str so they serialize to their wire values.
"""

from enum import Enum


class ToolId(str, Enum):
    """Enhancement operations the engine can apply to a photo."""
    SKY_REPLACEMENT = "sky-replacement"
    VIRTUAL_TWILIGHT = "virtual-twilight"
    LAWN_REPAIR = "lawn-repair"
    POOL_ENHANCE = "pool-enhance"
    DECLUTTER = "declutter"
    VIRTUAL_STAGING = "virtual-staging"
    FIRE_FIREPLACE = "fire-fireplace"
    TV_SCREEN = "tv-screen"
    LIGHTS_ON = "lights-on"
    HDR = "hdr"
    AUTO_ENHANCE = "auto-enhance"
    PERSPECTIVE_CORRECTION = "perspective-correction"
    WINDOW_MASKING = "window-masking"
    FLASH_FIX = "flash-fix"


class PhotoType(str, Enum):
    EXTERIOR = "exterior"
    INTERIOR = "interior"
    DRONE = "drone"
    DETAIL = "detail"


class PhotoSubType(str, Enum):
    FRONT = "front"
    BACK = "back"
    SIDE = "side"
    AERIAL = "aerial"
    KITCHEN = "kitchen"
    LIVING = "living"
    DINING = "dining"
    BEDROOM = "bedroom"
    BATHROOM = "bathroom"
    OFFICE = "office"
    GARAGE = "garage"
    LAUNDRY = "laundry"
    STORAGE = "storage"
    BASEMENT = "basement"
    ATTIC = "attic"
    POOL = "pool"
    PATIO = "patio"
    BALCONY = "balcony"
    GARDEN = "garden"
    OTHER = "other"


class PhotoRole(str, Enum):
    HERO = "hero"
    SUPPORTING = "supporting"
    UTILITY = "utility"


class DeficiencyKind(str, Enum):
    """Defect families reported by the analyzer."""
    SKY = "sky"
    LAWN = "lawn"
    LIGHTING = "lighting"
    CLUTTER = "clutter"
    PERSPECTIVE = "perspective"
    COLOR = "color"
    POOL = "pool"


class Priority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def weight(self) -> int:
        return _PRIORITY_WEIGHTS[self]


_PRIORITY_WEIGHTS = {
    Priority.CRITICAL: 4,
    Priority.HIGH: 3,
    Priority.MEDIUM: 2,
    Priority.LOW: 1,
}


class ExecutionGroup(str, Enum):
    """Tool families in the order they must run on a photo."""
    STRUCTURAL = "structural"
    CONTENT = "content"
    POLISH = "polish"

    @property
    def rank(self) -> int:
        return _GROUP_RANKS[self]


_GROUP_RANKS = {
    ExecutionGroup.STRUCTURAL: 0,
    ExecutionGroup.CONTENT: 1,
    ExecutionGroup.POLISH: 2,
}


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class CapKey(str, Enum):
    """Listing-wide budget buckets for expensive or risky tools."""
    SKY_REPLACEMENT = "skyReplacement"
    LAWN_REPAIR = "lawnRepair"
    DECLUTTER = "declutter"
    VIRTUAL_STAGING = "virtualStaging"
    TWILIGHT = "twilight"
    FIRE_FIREPLACE = "fireFireplace"
    POOL_ENHANCE = "poolEnhance"


# =============================================================================
# PRESET FAMILIES
# =============================================================================

class SkyPreset(str, Enum):
    SOFT_BLUE = "soft-blue"
    DRAMATIC_CLOUDS = "dramatic-clouds"
    SUNSET = "sunset"
    CLEAR = "clear"


class TwilightPreset(str, Enum):
    BLUE_HOUR = "blue-hour"
    GOLDEN_HOUR = "golden-hour"
    DUSK = "dusk"


class LawnPreset(str, Enum):
    NATURAL = "natural"
    VIBRANT = "vibrant"
    GOLF_COURSE = "golf-course"


class HdrStrength(str, Enum):
    LIGHT = "light"
    BALANCED = "balanced"
    DRAMATIC = "dramatic"


class StagingStyle(str, Enum):
    MODERN = "modern"
    TRADITIONAL = "traditional"
    MINIMALIST = "minimalist"
    CONTEMPORARY = "contemporary"
    LUXURY = "luxury"


class ColorTemperature(str, Enum):
    WARM = "warm"
    NEUTRAL = "neutral"
    COOL = "cool"


class DeclutterLevel(str, Enum):
    LIGHT = "light"
    MODERATE = "moderate"


# =============================================================================
# EXECUTION / OUTCOME
# =============================================================================

class ProviderId(str, Enum):
    """Routable execution backends."""
    AUTOENHANCE = "autoenhance"
    FLUX_KONTEXT = "flux-kontext"
    FLUX_MULTIPASS = "flux-multipass"
    SAM_FLUX = "sam-flux"
    LOCAL = "local"


class ListingStatus(str, Enum):
    PREPARED = "prepared"
    NEEDS_REVIEW = "needs_review"
    FAILED = "failed"


class Phase(str, Enum):
    """Pipeline stages as reported to progress consumers."""
    ANALYZING = "analyzing"
    STRATEGIZING = "strategizing"
    PROCESSING = "processing"
    VERIFYING = "verifying"
    COMPLETED = "completed"
    NEEDS_REVIEW = "needs_review"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (Phase.COMPLETED, Phase.NEEDS_REVIEW, Phase.FAILED)


class IssueType(str, Enum):
    ARTIFACT = "artifact"
    DISTORTION = "distortion"
    COLOR_SHIFT = "color_shift"
    BLUR = "blur"
    INCONSISTENCY = "inconsistency"
    OTHER = "other"


class IssueSeverity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
