"""
Preset Locker
=============
Chooses one visual variant per enhancement family for a whole listing so
that every exterior gets the same sky, every staged room the same style,
and so on.

lock() is a pure function of the listing's analyses: no provider calls,
no randomness. It must run before any photo strategy is built.
"""

import logging
from typing import List, Optional

from ..config.settings import PresetThresholds
from ..models.analysis import PhotoAnalysis
from ..models.enums import (
    ColorTemperature,
    DeclutterLevel,
    DeficiencyKind,
    HdrStrength,
    LawnPreset,
    SkyPreset,
    StagingStyle,
    TwilightPreset,
)
from ..models.strategy import LockedPresets

logger = logging.getLogger(__name__)


def lock(
    analyses: List[PhotoAnalysis],
    thresholds: Optional[PresetThresholds] = None,
) -> LockedPresets:
    """
    Lock the listing's presets.

    Args:
        analyses: Every photo analysis of the listing
        thresholds: Preset policy (defaults when None)

    Returns:
        LockedPresets shared by every photo of the listing
    """
    t = thresholds or PresetThresholds()
    analyzed = [a for a in analyses if a.is_analyzed]
    exteriors = [a for a in analyzed if a.is_exterior]
    interiors = [a for a in analyzed if a.is_interior]

    presets = LockedPresets(
        sky=choose_sky_preset(exteriors, t),
        twilight=choose_twilight_preset(analyzed, t),
        lawn=choose_lawn_preset(analyzed, t),
        hdr=choose_hdr_strength(analyzed, t),
        staging=choose_staging_style(interiors, t),
        color_temperature=choose_color_temperature(interiors, t),
        declutter=choose_declutter_level(interiors, t),
    )

    logger.info(
        "Locked presets for %d photos: %s",
        len(analyses),
        presets.model_dump(mode='json'),
    )
    return presets


def twilight_suitability(analysis: PhotoAnalysis, thresholds: PresetThresholds) -> float:
    """Hero score plus a bonus for exteriors showing both windows and sky."""
    bonus = thresholds.twilight_window_bonus if (analysis.has_windows and analysis.has_sky) else 0
    return analysis.hero_score + bonus


def choose_sky_preset(exteriors: List[PhotoAnalysis], t: PresetThresholds) -> SkyPreset:
    if not exteriors:
        return SkyPreset.SOFT_BLUE

    acceptable = sum(
        1 for a in exteriors
        if a.severity(DeficiencyKind.SKY) < t.acceptable_sky_severity
    )
    # A dramatic sky would clash with the skies left untouched
    if acceptable / len(exteriors) > 0.5:
        return SkyPreset.SOFT_BLUE

    best = max(exteriors, key=lambda a: a.hero_score)
    if twilight_suitability(best, t) >= t.dramatic_sky_suitability:
        return SkyPreset.DRAMATIC_CLOUDS
    return SkyPreset.SOFT_BLUE


def choose_twilight_preset(analyzed: List[PhotoAnalysis], t: PresetThresholds) -> TwilightPreset:
    if not analyzed:
        return TwilightPreset.BLUE_HOUR

    mean_hero = sum(a.hero_score for a in analyzed) / len(analyzed)
    if mean_hero > t.golden_hour_hero_score:
        return TwilightPreset.GOLDEN_HOUR
    return TwilightPreset.BLUE_HOUR


def choose_lawn_preset(analyzed: List[PhotoAnalysis], t: PresetThresholds) -> LawnPreset:
    lawns = [a.severity(DeficiencyKind.LAWN) for a in analyzed if a.has_lawn]
    if lawns and sum(lawns) / len(lawns) >= t.vibrant_lawn_severity:
        return LawnPreset.VIBRANT
    return LawnPreset.NATURAL


def choose_hdr_strength(analyzed: List[PhotoAnalysis], t: PresetThresholds) -> HdrStrength:
    if not analyzed:
        return HdrStrength.BALANCED

    mean_lighting = sum(a.scores.lighting for a in analyzed) / len(analyzed)
    if mean_lighting >= t.hdr_light_lighting_score:
        return HdrStrength.LIGHT
    if mean_lighting < t.hdr_dramatic_lighting_score:
        return HdrStrength.DRAMATIC
    return HdrStrength.BALANCED


def choose_staging_style(interiors: List[PhotoAnalysis], t: PresetThresholds) -> StagingStyle:
    if not interiors:
        return StagingStyle.MODERN

    well_composed = sum(1 for a in interiors if a.scores.composition >= t.good_composition_score)
    if well_composed / len(interiors) > t.luxury_staging_ratio:
        return StagingStyle.LUXURY
    return StagingStyle.MODERN


def choose_color_temperature(interiors: List[PhotoAnalysis], t: PresetThresholds) -> ColorTemperature:
    if not interiors:
        return ColorTemperature.NEUTRAL

    dark = sum(1 for a in interiors if a.scores.lighting < t.dark_room_lighting_score)
    if dark / len(interiors) > t.warm_dark_room_ratio:
        return ColorTemperature.WARM
    return ColorTemperature.NEUTRAL


def choose_declutter_level(interiors: List[PhotoAnalysis], t: PresetThresholds) -> DeclutterLevel:
    if not interiors:
        return DeclutterLevel.LIGHT

    cluttered = sum(
        1 for a in interiors
        if a.severity(DeficiencyKind.CLUTTER) >= t.cluttered_room_severity
    )
    if cluttered / len(interiors) > t.moderate_declutter_ratio:
        return DeclutterLevel.MODERATE
    return DeclutterLevel.LIGHT
