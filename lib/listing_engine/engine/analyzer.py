"""
Photo Analyzer
==============
Turns raw listing photos into PhotoAnalysis records using a vision backend.

A photo that cannot be classified never aborts the listing: analyze()
raises AnalysisError and analyze_listing() substitutes an unanalyzed
placeholder (confidence 0, no deficiencies) so the planner gives it no
work.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from pydantic import ValidationError

from ..config.constants import DEFAULT_ANALYSIS_CONCURRENCY
from ..errors import AnalysisError, ProviderError
from ..models.analysis import Deficiency, PhotoAnalysis, PhotoScores
from ..models.enums import DeficiencyKind, PhotoSubType, PhotoType
from ..providers.vision.base import BaseVisionBackend

logger = logging.getLogger(__name__)

# Values assumed when the model leaves a field out
DEFAULT_SCORE = 50.0
DEFAULT_HERO_SCORE = 50.0
DEFAULT_CONFIDENCE = 0.7

_FLAG_KEYS = {
    'has_sky': ('hasSky', 'has_sky'),
    'has_lawn': ('hasLawn', 'has_lawn'),
    'has_pool': ('hasPool', 'has_pool'),
    'has_fireplace': ('hasFireplace', 'has_fireplace'),
    'has_windows': ('hasWindows', 'has_windows', 'hasVisibleWindows'),
    'is_empty': ('isEmpty', 'is_empty', 'roomEmpty'),
}


def photo_fields(photo: Any) -> Tuple[str, str]:
    """
    Read (id, ref) from an input photo.

    Accepts a mapping with 'id' and 'ref' (or 'url'), or any object with
    id and ref attributes.

    Raises:
        ValueError: If the photo has no id or no ref
    """
    if isinstance(photo, Mapping):
        photo_id = photo.get('id')
        photo_ref = photo.get('ref') or photo.get('url')
    else:
        photo_id = getattr(photo, 'id', None)
        photo_ref = getattr(photo, 'ref', None)

    if not photo_id or not photo_ref:
        raise ValueError(f"Photo needs both an id and a ref: {photo!r}")
    return str(photo_id), str(photo_ref)


class PhotoAnalyzer:
    """
    Vision-backed photo analyzer.

    Usage:
        analyzer = PhotoAnalyzer(OpenAIVisionBackend(api_key))
        analyses = analyzer.analyze_listing([{'id': 'p1', 'ref': url}, ...])
    """

    def __init__(
        self,
        backend: BaseVisionBackend,
        concurrency: int = DEFAULT_ANALYSIS_CONCURRENCY,
    ):
        self.backend = backend
        self.concurrency = max(1, concurrency)

    def analyze(self, photo_id: str, photo_ref: str) -> PhotoAnalysis:
        """
        Analyze one photo.

        Args:
            photo_id: Id of the photo within the listing
            photo_ref: Ref the vision backend can read

        Returns:
            PhotoAnalysis for the photo

        Raises:
            AnalysisError: Backend unavailable, reply unparseable or the
                classification unusable
        """
        try:
            raw = self.backend.describe(photo_ref)
        except ProviderError as e:
            raise AnalysisError(photo_id, f"vision backend unavailable: {e}") from e
        except ValueError as e:
            raise AnalysisError(photo_id, str(e)) from e

        return normalize_analysis(photo_id, photo_ref, raw)

    def analyze_listing(
        self,
        photos: List[Any],
        on_analyzed: Optional[Callable[[int, int, str], None]] = None,
    ) -> List[PhotoAnalysis]:
        """
        Analyze every photo of a listing with bounded concurrency.

        Args:
            photos: Input photos ({'id', 'ref'} mappings)
            on_analyzed: Called with (done, total, photo_id) as photos finish

        Returns:
            One analysis per photo, in input order
        """
        fields = [photo_fields(photo) for photo in photos]
        total = len(fields)
        results: List[Optional[PhotoAnalysis]] = [None] * total
        done = 0

        logger.info("Analyzing %d photos (concurrency: %d)", total, self.concurrency)

        with ThreadPoolExecutor(max_workers=self.concurrency) as executor:
            future_to_index = {
                executor.submit(self._analyze_or_placeholder, photo_id, photo_ref): index
                for index, (photo_id, photo_ref) in enumerate(fields)
            }

            for future in as_completed(future_to_index):
                index = future_to_index[future]
                results[index] = future.result()
                done += 1
                if on_analyzed:
                    on_analyzed(done, total, fields[index][0])

        unanalyzed = sum(1 for r in results if not r.is_analyzed)
        if unanalyzed:
            logger.warning("%d of %d photos could not be analyzed", unanalyzed, total)
        return results

    def _analyze_or_placeholder(self, photo_id: str, photo_ref: str) -> PhotoAnalysis:
        try:
            return self.analyze(photo_id, photo_ref)
        except AnalysisError as e:
            logger.warning("%s", e)
            return PhotoAnalysis.unanalyzed(photo_id, photo_ref, error=str(e))


def normalize_analysis(photo_id: str, photo_ref: str, raw: Dict[str, Any]) -> PhotoAnalysis:
    """
    Build a PhotoAnalysis from a vision reply.

    Scores are clamped to 0-100, unknown sub types map to 'other', unknown
    deficiency kinds are dropped. Confidence may be given as 0-1 or 0-100.

    Raises:
        AnalysisError: If the photo type is missing or unknown
    """
    photo_type, sub_type = _classify(
        raw.get('photoType') or raw.get('photo_type'),
        raw.get('subType') or raw.get('sub_type'),
    )
    if photo_type is None:
        raise AnalysisError(photo_id, f"unusable classification {raw.get('photoType')!r}")

    scores = raw.get('scores') or {}
    flags = {
        field: bool(next((raw[k] for k in keys if k in raw), False))
        for field, keys in _FLAG_KEYS.items()
    }

    try:
        return PhotoAnalysis(
            photo_id=photo_id,
            photo_ref=photo_ref,
            photo_type=photo_type,
            sub_type=sub_type,
            scores=PhotoScores(
                composition=_score(scores.get('composition'), DEFAULT_SCORE),
                lighting=_score(scores.get('lighting'), DEFAULT_SCORE),
                sharpness=_score(scores.get('sharpness'), DEFAULT_SCORE),
            ),
            deficiencies=_deficiencies(raw.get('deficiencies')),
            hero_score=_score(raw.get('heroScore', raw.get('hero_score')), DEFAULT_HERO_SCORE),
            hero_reason=str(raw.get('heroReason') or raw.get('hero_reason') or ''),
            analysis_confidence=_confidence(raw.get('confidence')),
            **flags,
        )
    except ValidationError as e:
        raise AnalysisError(photo_id, f"malformed analysis: {e.error_count()} invalid fields") from e


def _classify(raw_type: Any, raw_sub_type: Any) -> Tuple[Optional[PhotoType], PhotoSubType]:
    # Also accepts combined values such as "exterior_front" or "interior_kitchen"
    type_text = str(raw_type or '').strip().lower()
    head, _, tail = type_text.partition('_')

    try:
        photo_type = PhotoType(head)
    except ValueError:
        return None, PhotoSubType.OTHER

    sub_text = str(raw_sub_type or tail or '').strip().lower()
    try:
        sub_type = PhotoSubType(sub_text)
    except ValueError:
        sub_type = PhotoSubType.OTHER
    if photo_type == PhotoType.DRONE and sub_type == PhotoSubType.OTHER:
        sub_type = PhotoSubType.AERIAL
    return photo_type, sub_type


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _score(value: Any, default: float) -> float:
    number = _number(value)
    if number is None:
        return default
    return max(0.0, min(100.0, number))


def _confidence(value: Any) -> float:
    number = _number(value)
    if number is None:
        return DEFAULT_CONFIDENCE
    if number > 1:
        number = number / 100
    return max(0.0, min(1.0, number))


def _deficiencies(raw: Any) -> Dict[DeficiencyKind, Deficiency]:
    if not isinstance(raw, Mapping):
        return {}

    found: Dict[DeficiencyKind, Deficiency] = {}
    for key, value in raw.items():
        try:
            kind = DeficiencyKind(str(key).lower())
        except ValueError:
            logger.debug("Ignoring unknown deficiency %r", key)
            continue

        if isinstance(value, Mapping):
            severity = _score(value.get('severity'), 0)
            coverage = _number(value.get('coverage'))
        else:
            severity = _score(value, 0)
            coverage = None

        if severity <= 0:
            continue
        found[kind] = Deficiency(
            severity=severity,
            coverage=None if coverage is None else max(0.0, min(100.0, coverage)),
        )
    return found
