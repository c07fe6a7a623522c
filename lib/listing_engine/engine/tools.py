"""
Tool Catalogue
==============
Static metadata for every enhancement tool: cost and time estimates,
required scene features, cap bucket, execution group and risk, plus the
step pipeline the executor runs for each tool and the listing cap formula.
"""

import math
from typing import Any, Dict, Iterable, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

from ..config import constants as c
from ..models.analysis import PhotoAnalysis
from ..models.enums import CapKey, ExecutionGroup, RiskLevel, ToolId
from ..models.strategy import ListingCaps
from ..utils.enum_utils import require_exhaustive


class ToolSpec(BaseModel):
    model_config = ConfigDict(frozen=True)

    estimated_time: float
    estimated_cost: float
    execution_group: ExecutionGroup
    risk_level: RiskLevel
    requires_feature: Optional[str] = None
    cap_key: Optional[CapKey] = None
    auto_eligible: bool = True


class Step(BaseModel):
    """
    One provider call inside a tool pipeline.

    Attributes:
        name: Step label, also passed to the provider as params['pass']
        params: Provider-agnostic knobs merged into the call params
        fallback_to_previous: On failure keep the previous step's output
            instead of failing the tool (refinement passes)
    """
    model_config = ConfigDict(frozen=True)

    name: str
    params: Dict[str, Any] = Field(default_factory=dict)
    fallback_to_previous: bool = False


ToolPipeline = Tuple[Step, ...]


TOOL_METADATA: Dict[ToolId, ToolSpec] = require_exhaustive({
    ToolId.SKY_REPLACEMENT: ToolSpec(
        estimated_time=8, estimated_cost=0.05, requires_feature='has_sky',
        cap_key=CapKey.SKY_REPLACEMENT,
        execution_group=ExecutionGroup.STRUCTURAL, risk_level=RiskLevel.MEDIUM,
    ),
    ToolId.VIRTUAL_TWILIGHT: ToolSpec(
        estimated_time=12, estimated_cost=0.08, cap_key=CapKey.TWILIGHT,
        execution_group=ExecutionGroup.STRUCTURAL, risk_level=RiskLevel.HIGH,
    ),
    ToolId.LAWN_REPAIR: ToolSpec(
        estimated_time=6, estimated_cost=0.05, requires_feature='has_lawn',
        cap_key=CapKey.LAWN_REPAIR,
        execution_group=ExecutionGroup.CONTENT, risk_level=RiskLevel.LOW,
    ),
    ToolId.POOL_ENHANCE: ToolSpec(
        estimated_time=6, estimated_cost=0.05, requires_feature='has_pool',
        cap_key=CapKey.POOL_ENHANCE,
        execution_group=ExecutionGroup.CONTENT, risk_level=RiskLevel.LOW,
    ),
    ToolId.DECLUTTER: ToolSpec(
        estimated_time=8, estimated_cost=0.06, cap_key=CapKey.DECLUTTER,
        execution_group=ExecutionGroup.CONTENT, risk_level=RiskLevel.MEDIUM,
    ),
    ToolId.VIRTUAL_STAGING: ToolSpec(
        estimated_time=15, estimated_cost=0.10, requires_feature='is_empty',
        cap_key=CapKey.VIRTUAL_STAGING,
        execution_group=ExecutionGroup.STRUCTURAL, risk_level=RiskLevel.HIGH,
    ),
    ToolId.FIRE_FIREPLACE: ToolSpec(
        estimated_time=5, estimated_cost=0.04, requires_feature='has_fireplace',
        cap_key=CapKey.FIRE_FIREPLACE,
        execution_group=ExecutionGroup.CONTENT, risk_level=RiskLevel.LOW,
    ),
    ToolId.TV_SCREEN: ToolSpec(
        estimated_time=5, estimated_cost=0.04, auto_eligible=False,
        execution_group=ExecutionGroup.CONTENT, risk_level=RiskLevel.HIGH,
    ),
    ToolId.LIGHTS_ON: ToolSpec(
        estimated_time=5, estimated_cost=0.04, auto_eligible=False,
        execution_group=ExecutionGroup.CONTENT, risk_level=RiskLevel.MEDIUM,
    ),
    ToolId.HDR: ToolSpec(
        estimated_time=4, estimated_cost=0.03,
        execution_group=ExecutionGroup.POLISH, risk_level=RiskLevel.LOW,
    ),
    ToolId.AUTO_ENHANCE: ToolSpec(
        estimated_time=4, estimated_cost=0.10, auto_eligible=False,
        execution_group=ExecutionGroup.POLISH, risk_level=RiskLevel.LOW,
    ),
    ToolId.PERSPECTIVE_CORRECTION: ToolSpec(
        estimated_time=5, estimated_cost=0.04,
        execution_group=ExecutionGroup.POLISH, risk_level=RiskLevel.MEDIUM,
    ),
    ToolId.WINDOW_MASKING: ToolSpec(
        estimated_time=10, estimated_cost=0.06, requires_feature='has_windows',
        auto_eligible=False,
        execution_group=ExecutionGroup.CONTENT, risk_level=RiskLevel.MEDIUM,
    ),
    ToolId.FLASH_FIX: ToolSpec(
        estimated_time=4, estimated_cost=0.03, auto_eligible=False,
        execution_group=ExecutionGroup.POLISH, risk_level=RiskLevel.LOW,
    ),
}, ToolId, "TOOL_METADATA")

# Canonical order inside an execution group
TOOL_ORDER: List[ToolId] = [
    ToolId.PERSPECTIVE_CORRECTION,
    ToolId.VIRTUAL_TWILIGHT,
    ToolId.SKY_REPLACEMENT,
    ToolId.VIRTUAL_STAGING,
    ToolId.DECLUTTER,
    ToolId.LAWN_REPAIR,
    ToolId.POOL_ENHANCE,
    ToolId.FIRE_FIREPLACE,
    ToolId.HDR,
    ToolId.AUTO_ENHANCE,
    ToolId.WINDOW_MASKING,
    ToolId.FLASH_FIX,
    ToolId.LIGHTS_ON,
    ToolId.TV_SCREEN,
]
require_exhaustive({tool: None for tool in TOOL_ORDER}, ToolId, "TOOL_ORDER")

_SINGLE_PASS: ToolPipeline = (Step(name='main', params={'strength': 1.0}),)

# Multi-pass tools; everything else runs _SINGLE_PASS
_MULTI_PASS: Dict[ToolId, ToolPipeline] = {
    ToolId.VIRTUAL_TWILIGHT: (
        Step(name='base', params={'strength': 1.0}),
        Step(
            name='window-glow',
            params={'strength': 0.57, 'focus': 'windows', 'glow': 'medium'},
            fallback_to_previous=True,
        ),
    ),
}


def tool_sort_key(tool: ToolId) -> Tuple[int, int]:
    """Execution group first, canonical order second."""
    return TOOL_METADATA[tool].execution_group.rank, TOOL_ORDER.index(tool)


def order_tools(tools: Iterable[ToolId]) -> List[ToolId]:
    return sorted(tools, key=tool_sort_key)


def get_pipeline(tool: ToolId) -> ToolPipeline:
    """Steps the executor runs for a tool, in order."""
    return _MULTI_PASS.get(tool, _SINGLE_PASS)


def has_required_feature(tool: ToolId, analysis: PhotoAnalysis) -> bool:
    feature = TOOL_METADATA[tool].requires_feature
    if feature is None:
        return True
    return bool(getattr(analysis, feature))


def calculate_caps(total_photos: int, interior_photos: int, pool_photos: int) -> ListingCaps:
    """
    Listing caps as a pure function of listing size and composition.

    Args:
        total_photos: Photos in the listing
        interior_photos: Photos classified as interior
        pool_photos: Photos showing a pool

    Returns:
        ListingCaps with one limit per cap bucket
    """
    limits = require_exhaustive({
        CapKey.SKY_REPLACEMENT: min(
            c.SKY_REPLACEMENT_CAP_MAX, math.ceil(total_photos * c.SKY_REPLACEMENT_CAP_RATIO)
        ),
        CapKey.LAWN_REPAIR: min(
            c.LAWN_REPAIR_CAP_MAX, math.ceil(total_photos * c.LAWN_REPAIR_CAP_RATIO)
        ),
        CapKey.DECLUTTER: math.ceil(interior_photos * c.DECLUTTER_CAP_RATIO),
        CapKey.VIRTUAL_STAGING: c.VIRTUAL_STAGING_CAP,
        CapKey.TWILIGHT: c.TWILIGHT_CAP,
        CapKey.FIRE_FIREPLACE: c.FIRE_FIREPLACE_CAP,
        CapKey.POOL_ENHANCE: min(c.POOL_ENHANCE_CAP_MAX, pool_photos),
    }, CapKey, "listing caps")
    return ListingCaps(limits=limits)


def caps_for_listing(analyses: List[PhotoAnalysis]) -> ListingCaps:
    interior = sum(1 for a in analyses if a.is_interior)
    pool = sum(1 for a in analyses if a.has_pool)
    return calculate_caps(len(analyses), interior, pool)
