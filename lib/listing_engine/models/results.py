"""
Result Models
=============
Execution, consistency, validation and progress records, plus the
ListingResult handed back to the caller.
"""

from typing import List, Optional

from pydantic import BaseModel, Field

from .enums import (
    IssueSeverity,
    IssueType,
    ListingStatus,
    Phase,
    PhotoRole,
    ProviderId,
    ToolId,
)
from .strategy import ListingStrategy


class ToolResult(BaseModel):
    """Outcome of one tool (all of its pipeline steps) on one photo."""

    tool: ToolId
    success: bool = False
    provider: Optional[ProviderId] = None
    preset: Optional[str] = None
    input_ref: Optional[str] = None
    output_ref: Optional[str] = None
    steps_completed: List[str] = Field(default_factory=list)
    fallback_used: bool = False
    attempts: int = 0
    cost: float = 0
    time_ms: int = 0
    error: Optional[str] = None


class PhotoProcessingResult(BaseModel):
    """
    Execution record for one photo.

    Created when the executor starts the photo, finalized once every
    decision ran or one failed.
    """

    photo_id: str
    original_ref: str
    success: bool = False
    final_ref: Optional[str] = None
    role: Optional[PhotoRole] = None
    confidence: float = 0
    tool_results: List[ToolResult] = Field(default_factory=list)
    total_time_ms: int = 0
    total_cost: float = 0
    error: Optional[str] = None
    cancelled: bool = False

    @property
    def tools_applied(self) -> List[ToolId]:
        return [r.tool for r in self.tool_results if r.success]


class ConsistencyAdjustment(BaseModel):
    """Corrective look offsets and flags for a photo that drifts from its siblings."""

    photo_id: str
    brightness: float = 0
    contrast: float = 0
    warmth: float = 0
    saturation: float = 0
    preset_mismatch: List[str] = Field(default_factory=list)
    reasons: List[str] = Field(default_factory=list)

    @property
    def magnitude(self) -> float:
        """Mean absolute adjustment across the four look metrics."""
        values = (self.brightness, self.contrast, self.warmth, self.saturation)
        return sum(abs(v) for v in values) / len(values)


class QualityIssue(BaseModel):
    photo_id: str
    type: IssueType
    severity: IssueSeverity
    description: str


class PhotoValidation(BaseModel):
    photo_id: str
    score: float
    issues: List[QualityIssue] = Field(default_factory=list)
    needs_review: bool = False


class ValidationReport(BaseModel):
    photos: List[PhotoValidation] = Field(default_factory=list)
    issues: List[QualityIssue] = Field(default_factory=list)
    overall_score: float = 0

    @property
    def needs_review_photo_ids(self) -> List[str]:
        return [p.photo_id for p in self.photos if p.needs_review]


class PhotoProgress(BaseModel):
    current: int
    total: int


class ProgressEvent(BaseModel):
    """One progress notification. Progress never decreases within a run."""

    phase: Phase
    progress: int = Field(ge=0, le=100)
    message: str = ""
    photo_progress: Optional[PhotoProgress] = None
    current_tool: Optional[ToolId] = None
    current_photo_id: Optional[str] = None


class ListingResult(BaseModel):
    """Final outcome of a prepare_listing run."""

    listing_id: str
    status: ListingStatus
    hero_photo_id: Optional[str] = None
    twilight_photo_id: Optional[str] = None
    per_photo: List[PhotoProcessingResult] = Field(default_factory=list)
    confidence_score: float = 0
    minor: bool = False
    total_cost: float = 0
    errors: List[str] = Field(default_factory=list)
    flagged_photo_ids: List[str] = Field(default_factory=list)
    issues: List[QualityIssue] = Field(default_factory=list)
    adjustments: List[ConsistencyAdjustment] = Field(default_factory=list)
    strategy: Optional[ListingStrategy] = None

    @property
    def succeeded(self) -> List[PhotoProcessingResult]:
        return [r for r in self.per_photo if r.success]
