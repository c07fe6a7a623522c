"""
Strategy Models
===============
Planning output: locked presets, caps, per-photo decisions and the
listing-wide strategy consumed read-only by the executor.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from .enums import (
    CapKey,
    ColorTemperature,
    DeclutterLevel,
    HdrStrength,
    LawnPreset,
    PhotoRole,
    Priority,
    SkyPreset,
    StagingStyle,
    ToolId,
    TwilightPreset,
)
from ..utils.enum_utils import require_exhaustive


# Preset family (LockedPresets attribute) consulted by each tool
PRESET_FAMILY: Dict[ToolId, Optional[str]] = require_exhaustive({
    ToolId.SKY_REPLACEMENT: 'sky',
    ToolId.VIRTUAL_TWILIGHT: 'twilight',
    ToolId.LAWN_REPAIR: 'lawn',
    ToolId.POOL_ENHANCE: None,
    ToolId.DECLUTTER: 'declutter',
    ToolId.VIRTUAL_STAGING: 'staging',
    ToolId.FIRE_FIREPLACE: None,
    ToolId.TV_SCREEN: None,
    ToolId.LIGHTS_ON: None,
    ToolId.HDR: 'hdr',
    ToolId.AUTO_ENHANCE: 'color_temperature',
    ToolId.PERSPECTIVE_CORRECTION: None,
    ToolId.WINDOW_MASKING: None,
    ToolId.FLASH_FIX: None,
}, ToolId, "PRESET_FAMILY")


class LockedPresets(BaseModel):
    """One visual variant per enhancement family, shared by the whole listing."""
    model_config = ConfigDict(frozen=True)

    sky: SkyPreset = SkyPreset.SOFT_BLUE
    twilight: TwilightPreset = TwilightPreset.BLUE_HOUR
    lawn: LawnPreset = LawnPreset.NATURAL
    hdr: HdrStrength = HdrStrength.BALANCED
    staging: StagingStyle = StagingStyle.MODERN
    color_temperature: ColorTemperature = ColorTemperature.NEUTRAL
    declutter: DeclutterLevel = DeclutterLevel.LIGHT

    def preset_for(self, tool: ToolId) -> Optional[str]:
        """
        Locked variant for a tool's family.

        Args:
            tool: Tool about to be planned or run

        Returns:
            Preset value, or None when the tool has no preset family
        """
        family = PRESET_FAMILY[tool]
        if family is None:
            return None
        return getattr(self, family).value


class EnhancementDecision(BaseModel):
    """One tool on one photo."""
    model_config = ConfigDict(frozen=True)

    tool: ToolId
    priority: Priority
    reason: str
    preset: Optional[str] = None


class CapExceededSkip(BaseModel):
    """
    A candidate decision deliberately dropped during cap allocation.

    Not an error: the reason records which budget ran out.
    """
    model_config = ConfigDict(frozen=True)

    photo_id: str
    tool: ToolId
    priority: Priority
    reason: str


class PhotoStrategy(BaseModel):
    model_config = ConfigDict(frozen=True)

    photo_id: str
    photo_ref: str
    role: PhotoRole
    hero_score: float = 0
    decisions: List[EnhancementDecision] = Field(default_factory=list)
    skipped: List[CapExceededSkip] = Field(default_factory=list)
    confidence: float = 0
    skip_reason: Optional[str] = None

    @property
    def tool_order(self) -> List[ToolId]:
        """Tools in execution order."""
        return [decision.tool for decision in self.decisions]

    def decision_for(self, tool: ToolId) -> Optional[EnhancementDecision]:
        for decision in self.decisions:
            if decision.tool == tool:
                return decision
        return None


class ListingCaps(BaseModel):
    """Upper bound of photos per capped tool family."""
    model_config = ConfigDict(frozen=True)

    limits: Dict[CapKey, int] = Field(default_factory=dict)

    def limit(self, key: CapKey) -> int:
        return self.limits.get(key, 0)


class CapsUsage(BaseModel):
    """Per-run counter of photos assigned to each capped tool family."""

    counts: Dict[CapKey, int] = Field(default_factory=dict)

    def used(self, key: CapKey) -> int:
        return self.counts.get(key, 0)

    def increment(self, key: CapKey) -> int:
        self.counts[key] = self.used(key) + 1
        return self.counts[key]


class ListingStrategy(BaseModel):
    """The complete plan for one listing. Never mutated during execution."""
    model_config = ConfigDict(frozen=True)

    listing_id: Optional[str] = None
    photos: List[PhotoStrategy]
    locked_presets: LockedPresets
    caps: ListingCaps
    caps_usage: CapsUsage
    hero_photo_id: str
    twilight_photo_id: Optional[str] = None
    confidence_score: float = 0
    estimated_cost: float = 0
    estimated_time_seconds: float = 0

    def photo(self, photo_id: str) -> Optional[PhotoStrategy]:
        for strategy in self.photos:
            if strategy.photo_id == photo_id:
                return strategy
        return None

    def photos_with_tool(self, tool: ToolId) -> List[str]:
        """Ids of photos whose plan includes a tool."""
        return [p.photo_id for p in self.photos if tool in p.tool_order]

    @property
    def total_decisions(self) -> int:
        return sum(len(p.decisions) for p in self.photos)
