"""
Provider Router
===============
Maps each tool to the execution backend best suited to it, with cost and
time estimates used by the planner and the provider/fallback pair used by
the executor.

Pure lookup: no network calls.
"""

from typing import Dict, Iterable, Optional

from pydantic import BaseModel, ConfigDict

from ..models.enums import ProviderId, ToolId
from ..utils.enum_utils import require_exhaustive
from .tools import TOOL_METADATA


class Route(BaseModel):
    model_config = ConfigDict(frozen=True)

    tool: ToolId
    provider: ProviderId
    estimated_cost: float
    estimated_time: float
    reliability: float
    fallback_provider: Optional[ProviderId] = None


def _route(tool, provider, cost, seconds, reliability, fallback=None) -> Route:
    return Route(
        tool=tool,
        provider=provider,
        estimated_cost=cost,
        estimated_time=seconds,
        reliability=reliability,
        fallback_provider=fallback,
    )


ROUTES: Dict[ToolId, Route] = require_exhaustive({
    # Exposure and geometry: AutoEnhance, FLUX as fallback
    ToolId.HDR: _route(ToolId.HDR, ProviderId.AUTOENHANCE, 0.10, 8, 98, ProviderId.FLUX_KONTEXT),
    ToolId.AUTO_ENHANCE: _route(ToolId.AUTO_ENHANCE, ProviderId.AUTOENHANCE, 0.10, 8, 98, ProviderId.FLUX_KONTEXT),
    ToolId.PERSPECTIVE_CORRECTION: _route(
        ToolId.PERSPECTIVE_CORRECTION, ProviderId.AUTOENHANCE, 0.10, 10, 95, ProviderId.FLUX_KONTEXT,
    ),
    ToolId.FLASH_FIX: _route(ToolId.FLASH_FIX, ProviderId.AUTOENHANCE, 0.10, 8, 95, ProviderId.FLUX_KONTEXT),
    # Generative edits
    ToolId.SKY_REPLACEMENT: _route(ToolId.SKY_REPLACEMENT, ProviderId.FLUX_KONTEXT, 0.05, 20, 92),
    ToolId.VIRTUAL_TWILIGHT: _route(
        ToolId.VIRTUAL_TWILIGHT, ProviderId.FLUX_MULTIPASS, 0.10, 45, 88, ProviderId.FLUX_KONTEXT,
    ),
    ToolId.LAWN_REPAIR: _route(ToolId.LAWN_REPAIR, ProviderId.FLUX_KONTEXT, 0.05, 20, 90),
    ToolId.POOL_ENHANCE: _route(ToolId.POOL_ENHANCE, ProviderId.FLUX_KONTEXT, 0.05, 18, 92),
    ToolId.DECLUTTER: _route(ToolId.DECLUTTER, ProviderId.FLUX_KONTEXT, 0.05, 25, 85),
    ToolId.VIRTUAL_STAGING: _route(ToolId.VIRTUAL_STAGING, ProviderId.FLUX_KONTEXT, 0.05, 30, 82),
    ToolId.FIRE_FIREPLACE: _route(ToolId.FIRE_FIREPLACE, ProviderId.FLUX_KONTEXT, 0.05, 18, 88),
    ToolId.TV_SCREEN: _route(ToolId.TV_SCREEN, ProviderId.FLUX_KONTEXT, 0.05, 18, 85),
    ToolId.LIGHTS_ON: _route(ToolId.LIGHTS_ON, ProviderId.FLUX_KONTEXT, 0.05, 18, 88),
    # Segmentation-guided inpainting
    ToolId.WINDOW_MASKING: _route(
        ToolId.WINDOW_MASKING, ProviderId.SAM_FLUX, 0.08, 30, 80, ProviderId.FLUX_KONTEXT,
    ),
}, ToolId, "ROUTES")

# Without AutoEnhance: pixel-level polish runs locally, geometry goes to FLUX
_LOCAL_CAPABLE = frozenset([ToolId.HDR, ToolId.AUTO_ENHANCE, ToolId.FLASH_FIX])


class ProviderRouter:
    """
    Tool to backend resolution.

    Usage:
        router = ProviderRouter(autoenhance_configured=bool(api_key))
        route = router.resolve(ToolId.HDR)
        route.provider, route.estimated_cost, route.fallback_provider
    """

    def __init__(self, autoenhance_configured: bool = True):
        self.autoenhance_configured = autoenhance_configured

    def resolve(self, tool: ToolId) -> Route:
        """
        Resolve the route for a tool, applying capability overrides.

        Args:
            tool: Tool to route

        Returns:
            Route with provider, estimates and optional fallback
        """
        route = ROUTES[tool]

        if route.provider == ProviderId.AUTOENHANCE and not self.autoenhance_configured:
            if tool in _LOCAL_CAPABLE:
                return _route(
                    tool, ProviderId.LOCAL, 0.0, TOOL_METADATA[tool].estimated_time, 90,
                    ProviderId.FLUX_KONTEXT,
                )
            return _route(tool, ProviderId.FLUX_KONTEXT, 0.05, 20, 88)

        return route

    def estimate_cost(self, tools: Iterable[ToolId]) -> float:
        return round(sum(self.resolve(tool).estimated_cost for tool in tools), 4)

    def estimate_time(self, tools: Iterable[ToolId]) -> float:
        """Sequential time estimate in seconds."""
        return sum(self.resolve(tool).estimated_time for tool in tools)
