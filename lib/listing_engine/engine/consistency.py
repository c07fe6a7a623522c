"""
Consistency Pass
================
Compares finished photos with each other and with the listing's locked
presets, and emits ConsistencyAdjustment records.

Look metrics (brightness, contrast, warmth, saturation on a 0-100 scale,
50 = untouched) are estimated from the tools that were applied rather
than measured from pixels. Flags never re-run a tool; they feed the
validator and the final status.
"""

import logging
from typing import Dict, List, Optional

from ..config.settings import ConsistencySettings
from ..models.enums import ColorTemperature, ToolId, TwilightPreset
from ..models.results import ConsistencyAdjustment, PhotoProcessingResult
from ..models.strategy import PRESET_FAMILY, LockedPresets
from ..utils.enum_utils import require_exhaustive

logger = logging.getLogger(__name__)

METRICS = ('brightness', 'contrast', 'warmth', 'saturation')
NEUTRAL_LEVEL = 50.0

# Estimated look shift of each tool: (brightness, contrast, warmth, saturation)
TOOL_LOOK_DELTAS: Dict[ToolId, tuple] = require_exhaustive({
    ToolId.SKY_REPLACEMENT: (5, 0, 0, 5),
    ToolId.VIRTUAL_TWILIGHT: (-15, 0, 10, 5),
    ToolId.LAWN_REPAIR: (0, 0, 0, 5),
    ToolId.POOL_ENHANCE: (0, 0, 0, 5),
    ToolId.DECLUTTER: (0, 0, 0, 0),
    ToolId.VIRTUAL_STAGING: (0, 0, 0, 0),
    ToolId.FIRE_FIREPLACE: (0, 0, 5, 0),
    ToolId.TV_SCREEN: (0, 0, 0, 0),
    ToolId.LIGHTS_ON: (10, 0, 10, 0),
    ToolId.HDR: (5, 10, 0, 5),
    ToolId.AUTO_ENHANCE: (5, 10, 0, 5),
    ToolId.PERSPECTIVE_CORRECTION: (0, 0, 0, 0),
    ToolId.WINDOW_MASKING: (0, 0, 0, 0),
    ToolId.FLASH_FIX: (-5, 5, 0, 0),
}, ToolId, "TOOL_LOOK_DELTAS")

COLOR_TEMPERATURE_WARMTH: Dict[ColorTemperature, float] = require_exhaustive({
    ColorTemperature.WARM: 5,
    ColorTemperature.NEUTRAL: 0,
    ColorTemperature.COOL: -5,
}, ColorTemperature, "COLOR_TEMPERATURE_WARMTH")

_WARMTH_BY_PRESET = {temperature.value: shift for temperature, shift in COLOR_TEMPERATURE_WARMTH.items()}

# Expected twilight look per preset, same order as TOOL_LOOK_DELTAS
TWILIGHT_LOOK_DELTAS: Dict[TwilightPreset, tuple] = require_exhaustive({
    TwilightPreset.BLUE_HOUR: (-15, 0, 10, 5),
    TwilightPreset.GOLDEN_HOUR: (-10, 0, 20, 5),
    TwilightPreset.DUSK: (-20, 0, 5, 0),
}, TwilightPreset, "TWILIGHT_LOOK_DELTAS")

_TWILIGHT_BY_PRESET = {preset.value: deltas for preset, deltas in TWILIGHT_LOOK_DELTAS.items()}

# Metrics a twilight photo is held to against its locked preset
TWILIGHT_DRIFT_METRICS = ('brightness', 'warmth')


def check(
    results: List[PhotoProcessingResult],
    locked_presets: LockedPresets,
    settings: Optional[ConsistencySettings] = None,
) -> List[ConsistencyAdjustment]:
    """
    Find photos that drift from their siblings or from the locked presets.

    Daylight photos are compared with the daylight mean and twilight photos
    with the twilight mean; a group needs two photos to have a mean. Each
    twilight photo is also held to the expected look of the locked twilight
    preset, so a lone twilight shot is still checked.

    Args:
        results: Executor output for the listing
        locked_presets: Presets every photo was planned with
        settings: Thresholds and adjustment ceilings

    Returns:
        One adjustment per flagged photo, in result order
    """
    settings = settings or ConsistencySettings()
    successes = [r for r in results if r.success]

    mismatches = {r.photo_id: preset_mismatches(r, locked_presets) for r in successes}
    looks = {r.photo_id: estimate_look(r) for r in successes}

    twilight_ids = {r.photo_id for r in successes if ToolId.VIRTUAL_TWILIGHT in r.tools_applied}
    groups = {
        'listing': [pid for pid in looks if pid not in twilight_ids],
        'twilight siblings': [pid for pid in looks if pid in twilight_ids],
    }
    targets = {}
    for label, members in groups.items():
        if len(members) < 2:
            continue
        mean = _mean_look([looks[pid] for pid in members])
        targets.update({pid: (label, mean) for pid in members})

    twilight_preset = locked_presets.twilight.value
    twilight_target = twilight_look(locked_presets.twilight)

    adjustments: List[ConsistencyAdjustment] = []
    for result in successes:
        look = looks[result.photo_id]
        offsets = {metric: 0.0 for metric in METRICS}
        reasons: List[str] = []

        if result.photo_id in targets:
            label, target = targets[result.photo_id]
            for metric in METRICS:
                offset = _single_adjustment(
                    look[metric],
                    target[metric],
                    settings.thresholds[metric],
                    settings.max_adjustment[metric],
                )
                if offset:
                    offsets[metric] = offset
                    reasons.append(f"{metric} {look[metric]:.0f} vs {label} {target[metric]:.0f}")

        if result.photo_id in twilight_ids:
            for metric in TWILIGHT_DRIFT_METRICS:
                offset = _single_adjustment(
                    look[metric],
                    twilight_target[metric],
                    settings.twilight_threshold,
                    settings.max_adjustment[metric],
                )
                if offset:
                    reasons.append(
                        f"twilight {metric} {look[metric]:.0f} vs {twilight_preset} {twilight_target[metric]:.0f}"
                    )
                    if abs(offset) > abs(offsets[metric]):
                        offsets[metric] = offset

        mismatch = mismatches[result.photo_id]
        reasons.extend(f"{tool} used a preset other than the locked one" for tool in mismatch)

        if reasons:
            adjustments.append(ConsistencyAdjustment(
                photo_id=result.photo_id,
                preset_mismatch=mismatch,
                reasons=reasons,
                **offsets,
            ))

    if adjustments:
        logger.info(
            "Consistency: %d of %d photos flagged (score %.0f)",
            len(adjustments), len(successes), consistency_score(adjustments),
        )
    return adjustments


def preset_mismatches(result: PhotoProcessingResult, locked_presets: LockedPresets) -> List[str]:
    """Tools whose applied preset differs from the locked preset of their family."""
    mismatched = []
    for tool_result in result.tool_results:
        if not tool_result.success or PRESET_FAMILY[tool_result.tool] is None:
            continue
        if tool_result.preset != locked_presets.preset_for(tool_result.tool):
            mismatched.append(tool_result.tool.value)
    return mismatched


def estimate_look(result: PhotoProcessingResult) -> Dict[str, float]:
    """Estimated look metrics of a finished photo."""
    look = {metric: NEUTRAL_LEVEL for metric in METRICS}
    for tool_result in result.tool_results:
        if not tool_result.success:
            continue
        deltas = TOOL_LOOK_DELTAS[tool_result.tool]
        if tool_result.tool == ToolId.VIRTUAL_TWILIGHT:
            deltas = _TWILIGHT_BY_PRESET.get(tool_result.preset, deltas)
        for metric, delta in zip(METRICS, deltas):
            look[metric] += delta
        if tool_result.tool == ToolId.AUTO_ENHANCE:
            look['warmth'] += _WARMTH_BY_PRESET.get(tool_result.preset, 0)
    return {metric: max(0.0, min(100.0, value)) for metric, value in look.items()}


def twilight_look(preset: TwilightPreset) -> Dict[str, float]:
    """Look a plain photo should have after twilight with the given preset."""
    return {
        metric: NEUTRAL_LEVEL + delta
        for metric, delta in zip(METRICS, TWILIGHT_LOOK_DELTAS[preset])
    }


def consistency_score(adjustments: List[ConsistencyAdjustment]) -> float:
    """
    100 minus five points per unit of mean adjustment magnitude.

    Returns:
        Score 0-100; 100 when nothing needs adjusting
    """
    if not adjustments:
        return 100.0
    mean_magnitude = sum(a.magnitude for a in adjustments) / len(adjustments)
    return float(round(max(0.0, 100 - mean_magnitude * 5)))


def is_consistent(adjustments: List[ConsistencyAdjustment], settings: Optional[ConsistencySettings] = None) -> bool:
    settings = settings or ConsistencySettings()
    has_mismatch = any(a.preset_mismatch for a in adjustments)
    return not has_mismatch and consistency_score(adjustments) >= settings.consistent_score


def _mean_look(looks: List[Dict[str, float]]) -> Dict[str, float]:
    return {
        metric: round(sum(look[metric] for look in looks) / len(looks))
        for metric in METRICS
    }


def _single_adjustment(current: float, target: float, threshold: float, ceiling: float) -> float:
    diff = target - current
    if abs(diff) < threshold:
        return 0.0
    magnitude = min(abs(diff), ceiling)
    return float(round(magnitude if diff > 0 else -magnitude))
