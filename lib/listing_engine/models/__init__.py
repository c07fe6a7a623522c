"""
Models module - Enums and pydantic data models for the listing engine.
"""

from .enums import (
    ToolId,
    PhotoType,
    PhotoSubType,
    PhotoRole,
    DeficiencyKind,
    Priority,
    ExecutionGroup,
    RiskLevel,
    CapKey,
    SkyPreset,
    TwilightPreset,
    LawnPreset,
    HdrStrength,
    StagingStyle,
    ColorTemperature,
    DeclutterLevel,
    ProviderId,
    ListingStatus,
    Phase,
    IssueType,
    IssueSeverity,
)
from .analysis import PhotoScores, Deficiency, PhotoAnalysis
from .strategy import (
    PRESET_FAMILY,
    LockedPresets,
    EnhancementDecision,
    CapExceededSkip,
    PhotoStrategy,
    ListingCaps,
    CapsUsage,
    ListingStrategy,
)
from .results import (
    ToolResult,
    PhotoProcessingResult,
    ConsistencyAdjustment,
    QualityIssue,
    PhotoValidation,
    ValidationReport,
    PhotoProgress,
    ProgressEvent,
    ListingResult,
)

__all__ = [
    # Enums
    "ToolId",
    "PhotoType",
    "PhotoSubType",
    "PhotoRole",
    "DeficiencyKind",
    "Priority",
    "ExecutionGroup",
    "RiskLevel",
    "CapKey",
    "SkyPreset",
    "TwilightPreset",
    "LawnPreset",
    "HdrStrength",
    "StagingStyle",
    "ColorTemperature",
    "DeclutterLevel",
    "ProviderId",
    "ListingStatus",
    "Phase",
    "IssueType",
    "IssueSeverity",
    # Analysis
    "PhotoScores",
    "Deficiency",
    "PhotoAnalysis",
    # Strategy
    "PRESET_FAMILY",
    "LockedPresets",
    "EnhancementDecision",
    "CapExceededSkip",
    "PhotoStrategy",
    "ListingCaps",
    "CapsUsage",
    "ListingStrategy",
    # Results
    "ToolResult",
    "PhotoProcessingResult",
    "ConsistencyAdjustment",
    "QualityIssue",
    "PhotoValidation",
    "ValidationReport",
    "PhotoProgress",
    "ProgressEvent",
    "ListingResult",
]
