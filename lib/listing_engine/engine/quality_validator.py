"""
Quality Validator
=================
Checks every finished photo and decides the listing's terminal status.

Per photo:
- structural integrity: the output decodes and keeps the input's aspect
  ratio (needs a storage provider to read both images)
- enhancement quality: refinement fallbacks, high-risk tools, slow runs
  and low planning confidence are flagged
- optional vision inspection of the output

A check that cannot run (ValidationFailure) lowers the photo's score; it
never aborts the listing.
"""

import io
import logging
from typing import Any, List, Optional, Tuple

from PIL import Image, UnidentifiedImageError

from .tools import TOOL_METADATA
from ..config.settings import ValidationSettings
from ..errors import ProviderError, ValidationFailure
from ..models.enums import IssueSeverity, IssueType, ListingStatus, RiskLevel
from ..models.results import PhotoProcessingResult, PhotoValidation, QualityIssue, ValidationReport

logger = logging.getLogger(__name__)


class QualityValidator:
    """
    Post-execution quality checks.

    Usage:
        validator = QualityValidator(storage=storage)
        report = validator.validate(results)
        status, minor = decide_status(confidence)
    """

    def __init__(self, storage=None, inspector=None, settings: Optional[ValidationSettings] = None):
        """
        Args:
            storage: Storage provider used to read inputs and outputs; the
                structural check is skipped without one
            inspector: Vision backend whose inspect() reviews outputs
            settings: Scoring policy
        """
        self.storage = storage
        self.inspector = inspector
        self.settings = settings or ValidationSettings()

    def validate(self, results: List[PhotoProcessingResult]) -> ValidationReport:
        """
        Validate every photo of a run.

        Args:
            results: Executor output

        Returns:
            ValidationReport with per-photo scores and all issues
        """
        photos = [self.validate_photo(result) for result in results]
        issues = [issue for photo in photos for issue in photo.issues]
        overall = round(sum(p.score for p in photos) / len(photos), 1) if photos else 0.0

        flagged = sum(1 for p in photos if p.needs_review)
        logger.info(
            "Validation: overall %.1f, %d issues, %d/%d photos need review",
            overall, len(issues), flagged, len(photos),
        )
        return ValidationReport(photos=photos, issues=issues, overall_score=overall)

    def validate_photo(self, result: PhotoProcessingResult) -> PhotoValidation:
        if not result.success:
            issue = self._issue(
                result, IssueType.OTHER, IssueSeverity.HIGH,
                f"Enhancement failed: {result.error or 'unknown error'}",
            )
            return PhotoValidation(photo_id=result.photo_id, score=0, issues=[issue], needs_review=True)

        issues: List[QualityIssue] = []
        force_review = False

        if self.storage is not None and result.final_ref and result.final_ref != result.original_ref:
            try:
                issues.extend(self._structural_issues(result))
            except ValidationFailure as e:
                logger.warning("%s", e)
                issues.append(self._issue(result, IssueType.OTHER, IssueSeverity.MEDIUM, str(e)))

        issues.extend(self._enhancement_issues(result))

        if self.inspector is not None and result.final_ref and result.confidence < self.settings.skip_inspection_score:
            inspected, force_review = self._inspection(result)
            issues.extend(inspected)

        score = max(0.0, result.confidence - sum(
            self.settings.deductions.get(issue.severity.value, 0) for issue in issues
        ))
        needs_review = force_review or score < self.settings.min_quality_score
        for issue in issues:
            if issue.severity == IssueSeverity.HIGH:
                needs_review = True
            elif issue.severity == IssueSeverity.MEDIUM and score < self.settings.medium_issue_review_score:
                needs_review = True

        return PhotoValidation(
            photo_id=result.photo_id,
            score=round(score, 1),
            issues=issues,
            needs_review=needs_review,
        )

    def _structural_issues(self, result: PhotoProcessingResult) -> List[QualityIssue]:
        original = self._read_size(result, result.original_ref)
        if original is None:
            raise ValidationFailure(result.photo_id, "original image cannot be decoded")

        enhanced = self._read_size(result, result.final_ref)
        if enhanced is None:
            return [self._issue(
                result, IssueType.ARTIFACT, IssueSeverity.HIGH, "Enhanced image cannot be decoded",
            )]

        original_ratio = original[0] / original[1]
        enhanced_ratio = enhanced[0] / enhanced[1]
        drift = abs(enhanced_ratio - original_ratio) / original_ratio
        if drift > self.settings.aspect_ratio_tolerance:
            return [self._issue(
                result, IssueType.DISTORTION, IssueSeverity.HIGH,
                f"Aspect ratio changed from {original_ratio:.3f} to {enhanced_ratio:.3f}",
            )]
        return []

    def _read_size(self, result: PhotoProcessingResult, ref: str) -> Optional[Tuple[int, int]]:
        try:
            data = self.storage.read(ref)
        except (FileNotFoundError, IOError) as e:
            raise ValidationFailure(result.photo_id, f"cannot read {ref}: {e}") from e

        try:
            with Image.open(io.BytesIO(data)) as img:
                img.verify()
                width, height = img.size
        except (UnidentifiedImageError, OSError, SyntaxError):
            return None
        if not width or not height:
            return None
        return width, height

    def _enhancement_issues(self, result: PhotoProcessingResult) -> List[QualityIssue]:
        issues: List[QualityIssue] = []

        for tool_result in result.tool_results:
            if not tool_result.success:
                continue
            if tool_result.fallback_used:
                issues.append(self._issue(
                    result, IssueType.INCONSISTENCY, IssueSeverity.MEDIUM,
                    f"{tool_result.tool.value} refinement pass failed; first pass kept",
                ))
            if TOOL_METADATA[tool_result.tool].risk_level == RiskLevel.HIGH:
                issues.append(self._issue(
                    result, IssueType.DISTORTION, IssueSeverity.LOW,
                    f"{tool_result.tool.value} is high risk; spot-check geometry",
                ))

        if result.total_time_ms > self.settings.slow_photo_seconds * 1000:
            issues.append(self._issue(
                result, IssueType.OTHER, IssueSeverity.MEDIUM,
                f"Processing took {result.total_time_ms / 1000:.0f}s",
            ))

        if result.confidence < self.settings.low_confidence_score:
            issues.append(self._issue(
                result, IssueType.OTHER, IssueSeverity.MEDIUM,
                f"Low planning confidence ({result.confidence:.0f})",
            ))
        return issues

    def _inspection(self, result: PhotoProcessingResult) -> Tuple[List[QualityIssue], bool]:
        try:
            raw = self.inspector.inspect(result.final_ref)
        except (ProviderError, ValueError) as e:
            logger.warning("Inspection unavailable for %s: %s", result.photo_id, e)
            return [], False

        issues = [
            self._issue(result, _issue_type(item.get('type')), _severity(item.get('severity')),
                        str(item.get('description') or 'Unspecified issue'))
            for item in raw.get('issues') or []
            if isinstance(item, dict)
        ]
        return issues, raw.get('recommendation') in ('review', 'reject')

    @staticmethod
    def _issue(
        result: PhotoProcessingResult,
        issue_type: IssueType,
        severity: IssueSeverity,
        description: str,
    ) -> QualityIssue:
        return QualityIssue(
            photo_id=result.photo_id,
            type=issue_type,
            severity=severity,
            description=description,
        )


def decide_status(
    confidence: float,
    executor_failed: bool = False,
    settings: Optional[ValidationSettings] = None,
) -> Tuple[ListingStatus, bool]:
    """
    Terminal listing status for a run.

    Args:
        confidence: Final confidence score (0-100)
        executor_failed: An unrecoverable executor-level error occurred
        settings: Status thresholds

    Returns:
        (status, minor) where minor marks a lower-trust 'prepared'
    """
    settings = settings or ValidationSettings()
    if executor_failed:
        return ListingStatus.FAILED, False
    if confidence >= settings.prepared_threshold:
        return ListingStatus.PREPARED, False
    if confidence >= settings.prepared_minor_threshold:
        return ListingStatus.PREPARED, True
    return ListingStatus.NEEDS_REVIEW, False


def _issue_type(value: Any) -> IssueType:
    try:
        return IssueType(value)
    except ValueError:
        return IssueType.OTHER


def _severity(value: Any) -> IssueSeverity:
    try:
        return IssueSeverity(value)
    except ValueError:
        return IssueSeverity.LOW
