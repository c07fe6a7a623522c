"""
Locked Prompts
==============
Instruction text per tool and preset. Every photo that receives a tool in a
listing is sent the same text for the listing's locked preset, which is
what keeps the edited set visually coherent.
"""

from typing import Dict, Optional

from ..models.enums import (
    ColorTemperature,
    DeclutterLevel,
    HdrStrength,
    LawnPreset,
    SkyPreset,
    StagingStyle,
    ToolId,
    TwilightPreset,
)
from ..utils.enum_utils import require_exhaustive

_KEEP_STRUCTURE = (
    "Keep the house, roofline, windows, landscaping and every other element "
    "exactly as they are."
)

SKY_PROMPTS: Dict[SkyPreset, str] = require_exhaustive({
    SkyPreset.SOFT_BLUE: "Replace only the sky with a soft blue sky and a few light white clouds.",
    SkyPreset.DRAMATIC_CLOUDS: "Replace only the sky with large white and grey clouds against a deep blue daytime sky.",
    SkyPreset.SUNSET: "Replace only the sky with a bright sunset, warm orange and pink near the horizon fading to light blue.",
    SkyPreset.CLEAR: "Replace only the sky with a clean, cloudless blue sky.",
}, SkyPreset, "SKY_PROMPTS")

TWILIGHT_PROMPTS: Dict[TwilightPreset, str] = require_exhaustive({
    TwilightPreset.BLUE_HOUR: "Turn this daytime exterior into blue-hour twilight: deep blue sky, soft ambient light, no orange tones.",
    TwilightPreset.GOLDEN_HOUR: "Turn this daytime exterior into golden-hour twilight: warm orange and pink sky with golden light on the facade.",
    TwilightPreset.DUSK: "Turn this daytime exterior into dusk: purple to navy sky gradient with dim ambient light.",
}, TwilightPreset, "TWILIGHT_PROMPTS")

WINDOW_GLOW_PROMPTS: Dict[str, str] = {
    'subtle': "Add a faint warm glow behind the windows. Change nothing else.",
    'medium': "Make every window glow with warm yellow interior light. Change nothing else.",
    'bright': "Make every window glow brightly with warm interior light spilling outward. Change nothing else.",
}

LAWN_PROMPTS: Dict[LawnPreset, str] = require_exhaustive({
    LawnPreset.NATURAL: "Make the lawn healthy and evenly green with a natural tone. Fix brown and patchy areas only.",
    LawnPreset.VIBRANT: "Make the lawn lush and vibrant green. Fix brown and patchy areas.",
    LawnPreset.GOLF_COURSE: "Make the lawn a dense, uniform, manicured green.",
}, LawnPreset, "LAWN_PROMPTS")

STAGING_PROMPTS: Dict[StagingStyle, str] = require_exhaustive({
    StagingStyle.MODERN: "Furnish this empty room with modern furniture: clean lines, neutral palette.",
    StagingStyle.TRADITIONAL: "Furnish this empty room with traditional furniture: warm woods, classic shapes.",
    StagingStyle.MINIMALIST: "Furnish this empty room with a few minimalist pieces and open space.",
    StagingStyle.CONTEMPORARY: "Furnish this empty room with contemporary furniture and tasteful accents.",
    StagingStyle.LUXURY: "Furnish this empty room with high-end designer furniture and refined decor.",
}, StagingStyle, "STAGING_PROMPTS")

DECLUTTER_PROMPTS: Dict[DeclutterLevel, str] = require_exhaustive({
    DeclutterLevel.LIGHT: "Remove small loose items from counters and surfaces. Keep furniture and fixtures.",
    DeclutterLevel.MODERATE: "Remove personal items, loose objects and visual clutter. Keep main furniture and fixtures.",
}, DeclutterLevel, "DECLUTTER_PROMPTS")

HDR_PROMPTS: Dict[HdrStrength, str] = require_exhaustive({
    HdrStrength.LIGHT: "Gently balance the exposure, lifting shadows slightly.",
    HdrStrength.BALANCED: "Balance the exposure: recover highlights, lift shadows, keep colors natural.",
    HdrStrength.DRAMATIC: "Strongly balance the exposure with bright interiors and detailed windows.",
}, HdrStrength, "HDR_PROMPTS")

COLOR_PROMPTS: Dict[ColorTemperature, str] = require_exhaustive({
    ColorTemperature.WARM: "Correct the colors with a slightly warm white balance.",
    ColorTemperature.NEUTRAL: "Correct the colors with a neutral white balance.",
    ColorTemperature.COOL: "Correct the colors with a slightly cool white balance.",
}, ColorTemperature, "COLOR_PROMPTS")

_PRESET_PROMPT_TOOLS = (
    ToolId.SKY_REPLACEMENT,
    ToolId.VIRTUAL_TWILIGHT,
    ToolId.LAWN_REPAIR,
    ToolId.VIRTUAL_STAGING,
    ToolId.DECLUTTER,
    ToolId.HDR,
    ToolId.AUTO_ENHANCE,
)

# Tools with no preset family
FIXED_PROMPTS: Dict[ToolId, str] = require_exhaustive({
    ToolId.POOL_ENHANCE: "Make the pool water clear and inviting blue.",
    ToolId.FIRE_FIREPLACE: "Add a realistic warm fire inside the fireplace. Change nothing else in the room.",
    ToolId.TV_SCREEN: "Show a calm landscape image on the television screen. Change nothing else.",
    ToolId.LIGHTS_ON: "Turn on the room's light fixtures with a warm glow.",
    ToolId.PERSPECTIVE_CORRECTION: "Straighten converging vertical lines so walls and door frames are vertical.",
    ToolId.WINDOW_MASKING: "Show a clear, properly exposed view through the windows.",
    ToolId.FLASH_FIX: "Remove harsh flash hotspots and shadows for even lighting.",
}, ToolId, "FIXED_PROMPTS", exclude=_PRESET_PROMPT_TOOLS)


def get_locked_prompt(
    tool: ToolId,
    preset: Optional[str] = None,
    step: Optional[str] = None,
    glow: str = 'medium',
) -> str:
    """
    Instruction text for a tool under the listing's locked preset.

    Args:
        tool: Tool to run
        preset: Locked preset value for the tool's family
        step: Pipeline step name (e.g. 'window-glow' for twilight refinement)
        glow: Window glow intensity for the refinement pass

    Returns:
        Prompt string
    """
    if tool == ToolId.SKY_REPLACEMENT:
        text = SKY_PROMPTS[SkyPreset(preset or SkyPreset.SOFT_BLUE.value)]
        return f"{text} {_KEEP_STRUCTURE}"
    if tool == ToolId.VIRTUAL_TWILIGHT:
        if step == 'window-glow':
            return WINDOW_GLOW_PROMPTS.get(glow, WINDOW_GLOW_PROMPTS['medium'])
        text = TWILIGHT_PROMPTS[TwilightPreset(preset or TwilightPreset.BLUE_HOUR.value)]
        return f"{text} {_KEEP_STRUCTURE}"
    if tool == ToolId.LAWN_REPAIR:
        return LAWN_PROMPTS[LawnPreset(preset or LawnPreset.NATURAL.value)]
    if tool == ToolId.VIRTUAL_STAGING:
        text = STAGING_PROMPTS[StagingStyle(preset or StagingStyle.MODERN.value)]
        return f"{text} Keep walls, floors, windows and lighting unchanged."
    if tool == ToolId.DECLUTTER:
        return DECLUTTER_PROMPTS[DeclutterLevel(preset or DeclutterLevel.LIGHT.value)]
    if tool == ToolId.HDR:
        return HDR_PROMPTS[HdrStrength(preset or HdrStrength.BALANCED.value)]
    if tool == ToolId.AUTO_ENHANCE:
        return COLOR_PROMPTS[ColorTemperature(preset or ColorTemperature.NEUTRAL.value)]
    return FIXED_PROMPTS[tool]
