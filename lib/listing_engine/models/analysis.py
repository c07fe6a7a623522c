"""
Photo Analysis Models
=====================
Structured description of one raw listing photo as produced by the
analyzer. Immutable once built; the preset locker and strategy builder
only read it.
"""

from typing import Dict, Optional

from pydantic import BaseModel, ConfigDict, Field

from .enums import DeficiencyKind, PhotoSubType, PhotoType


class PhotoScores(BaseModel):
    """Quality scores, each 0-100."""
    model_config = ConfigDict(frozen=True)

    composition: float = Field(default=0, ge=0, le=100)
    lighting: float = Field(default=0, ge=0, le=100)
    sharpness: float = Field(default=0, ge=0, le=100)


class Deficiency(BaseModel):
    """
    One detected defect.

    Attributes:
        severity: How bad the defect is (0-100)
        coverage: Share of the frame affected, in percent, when reported
    """
    model_config = ConfigDict(frozen=True)

    severity: float = Field(ge=0, le=100)
    coverage: Optional[float] = Field(default=None, ge=0, le=100)


class PhotoAnalysis(BaseModel):
    """Analyzer output for a single photo."""
    model_config = ConfigDict(frozen=True)

    photo_id: str
    photo_ref: str
    photo_type: PhotoType = PhotoType.DETAIL
    sub_type: PhotoSubType = PhotoSubType.OTHER
    scores: PhotoScores = Field(default_factory=PhotoScores)
    deficiencies: Dict[DeficiencyKind, Deficiency] = Field(default_factory=dict)
    hero_score: float = Field(default=0, ge=0, le=100)
    hero_reason: str = ""
    has_sky: bool = False
    has_lawn: bool = False
    has_pool: bool = False
    has_fireplace: bool = False
    has_windows: bool = False
    is_empty: bool = False
    analysis_confidence: float = Field(default=0, ge=0, le=1)
    analysis_error: Optional[str] = None

    @classmethod
    def unanalyzed(
        cls,
        photo_id: str,
        photo_ref: str,
        error: Optional[str] = None,
    ) -> "PhotoAnalysis":
        """
        Placeholder for a photo the analyzer could not classify.

        Carries zero confidence and no deficiencies so the planner gives it
        no work and marks it low-confidence instead of aborting the listing.
        """
        return cls(
            photo_id=photo_id,
            photo_ref=photo_ref,
            analysis_confidence=0,
            analysis_error=error or "analysis unavailable",
        )

    @property
    def is_analyzed(self) -> bool:
        return self.analysis_error is None and self.analysis_confidence > 0

    @property
    def is_exterior(self) -> bool:
        """Exterior ground shots and drone shots both show sky and grounds."""
        return self.photo_type in (PhotoType.EXTERIOR, PhotoType.DRONE)

    @property
    def is_interior(self) -> bool:
        return self.photo_type == PhotoType.INTERIOR

    def deficiency(self, kind: DeficiencyKind) -> Optional[Deficiency]:
        return self.deficiencies.get(kind)

    def severity(self, kind: DeficiencyKind) -> float:
        """Severity of a defect, 0 when it was not reported."""
        found = self.deficiencies.get(kind)
        return found.severity if found else 0
