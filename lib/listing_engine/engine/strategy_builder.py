"""
Strategy Builder
================
Turns a listing's photo analyses and locked presets into a ListingStrategy:
photo roles, per-photo enhancement decisions allocated against the
listing caps, execution order and confidence.

build() is deterministic: the same analyses and configuration always give
an identical strategy. Nothing here reads the clock or calls a provider.
"""

import logging
import math
from typing import Dict, List, Optional, Tuple

from ..config.settings import EngineConfig, StrategyThresholds
from ..errors import EmptyListingError
from ..models.analysis import PhotoAnalysis
from ..models.enums import (
    DeficiencyKind,
    PhotoRole,
    PhotoSubType,
    Priority,
    RiskLevel,
    ToolId,
)
from ..models.strategy import (
    CapExceededSkip,
    CapsUsage,
    EnhancementDecision,
    ListingCaps,
    ListingStrategy,
    LockedPresets,
    PhotoStrategy,
)
from ..utils.enum_utils import require_exhaustive
from .provider_router import ProviderRouter
from .tools import TOOL_METADATA, caps_for_listing, has_required_feature, order_tools

logger = logging.getLogger(__name__)


# Tool that fixes each reported defect
DEFICIENCY_TOOLS: Dict[DeficiencyKind, ToolId] = require_exhaustive({
    DeficiencyKind.SKY: ToolId.SKY_REPLACEMENT,
    DeficiencyKind.LAWN: ToolId.LAWN_REPAIR,
    DeficiencyKind.LIGHTING: ToolId.HDR,
    DeficiencyKind.CLUTTER: ToolId.DECLUTTER,
    DeficiencyKind.PERSPECTIVE: ToolId.PERSPECTIVE_CORRECTION,
    DeficiencyKind.COLOR: ToolId.HDR,
    DeficiencyKind.POOL: ToolId.POOL_ENHANCE,
}, DeficiencyKind, "DEFICIENCY_TOOLS")

# Listing-wide looks that are never spent on utility shots
_NOT_ON_UTILITY = frozenset([ToolId.SKY_REPLACEMENT, ToolId.LAWN_REPAIR, ToolId.DECLUTTER])


def build(
    analyses: List[PhotoAnalysis],
    locked_presets: LockedPresets,
    config: Optional[EngineConfig] = None,
    router: Optional[ProviderRouter] = None,
    listing_id: Optional[str] = None,
) -> ListingStrategy:
    """
    Build the enhancement strategy for a listing.

    Args:
        analyses: One analysis per photo, in listing order
        locked_presets: Presets locked for this listing
        config: Engine configuration (defaults when None)
        router: Provider router used for cost and time estimates
        listing_id: Listing identifier, for logs and errors

    Returns:
        ListingStrategy with photos ordered hero first

    Raises:
        EmptyListingError: If analyses is empty
    """
    if not analyses:
        raise EmptyListingError(listing_id)

    config = config or EngineConfig()
    router = router or ProviderRouter()
    t = config.strategy

    ranked = rank_photos(analyses)
    roles = assign_roles(ranked, t)
    hero_photo_id = ranked[0].photo_id
    caps = caps_for_listing(analyses)

    twilight_target = None
    if _twilight_allowed(config) and caps.limit(TOOL_METADATA[ToolId.VIRTUAL_TWILIGHT].cap_key) > 0:
        twilight_target = select_twilight_target(ranked, roles)

    candidates: Dict[str, List[EnhancementDecision]] = {}
    for analysis in ranked:
        candidates[analysis.photo_id] = candidate_decisions(
            analysis,
            roles[analysis.photo_id],
            locked_presets,
            t,
            is_twilight_target=analysis.photo_id == twilight_target,
        )

    accepted, skipped, usage = allocate(ranked, candidates, caps, config, router)

    photos: List[PhotoStrategy] = []
    for analysis in ranked:
        pid = analysis.photo_id
        decisions = _in_execution_order(accepted[pid])
        photos.append(PhotoStrategy(
            photo_id=pid,
            photo_ref=analysis.photo_ref,
            role=roles[pid],
            hero_score=analysis.hero_score,
            decisions=decisions,
            skipped=skipped[pid],
            confidence=photo_confidence(analysis, roles[pid], candidates[pid], decisions, t),
            skip_reason=_skip_reason(analysis, candidates[pid], decisions, t),
        ))

    hero_ratio = _serviced_ratio(candidates[hero_photo_id], accepted[hero_photo_id])
    listing_confidence = _clamp(
        sum(p.confidence for p in photos) / len(photos)
        - t.hero_shortfall_penalty * (1 - hero_ratio)
    )

    all_tools = [d.tool for p in photos for d in p.decisions]
    twilight_photo_id = None
    if twilight_target and any(d.tool == ToolId.VIRTUAL_TWILIGHT for d in accepted[twilight_target]):
        twilight_photo_id = twilight_target

    strategy = ListingStrategy(
        listing_id=listing_id,
        photos=photos,
        locked_presets=locked_presets,
        caps=caps,
        caps_usage=usage,
        hero_photo_id=hero_photo_id,
        twilight_photo_id=twilight_photo_id,
        confidence_score=round(listing_confidence, 1),
        estimated_cost=router.estimate_cost(all_tools),
        estimated_time_seconds=router.estimate_time(all_tools),
    )

    logger.info(
        "Strategy for %s: %d photos, %d decisions, %d skipped, hero=%s, twilight=%s, confidence=%.1f",
        listing_id or "listing",
        len(photos),
        strategy.total_decisions,
        sum(len(p.skipped) for p in photos),
        hero_photo_id,
        twilight_photo_id,
        strategy.confidence_score,
    )
    return strategy


# =============================================================================
# ROLES
# =============================================================================

def rank_photos(analyses: List[PhotoAnalysis]) -> List[PhotoAnalysis]:
    """Hero score descending; input order breaks ties."""
    return sorted(analyses, key=lambda a: -a.hero_score)


def assign_roles(ranked: List[PhotoAnalysis], t: StrategyThresholds) -> Dict[str, PhotoRole]:
    """
    Split a ranked listing into hero, supporting and utility photos.

    The top share becomes hero (always at least one photo), the bottom
    share utility. The two never overlap.
    """
    n = len(ranked)
    hero_count = min(n, max(1, math.ceil(n * t.hero_percentage)))
    utility_count = min(n - hero_count, math.ceil(n * t.utility_percentage))

    roles: Dict[str, PhotoRole] = {}
    for index, analysis in enumerate(ranked):
        if index < hero_count:
            roles[analysis.photo_id] = PhotoRole.HERO
        elif index >= n - utility_count:
            roles[analysis.photo_id] = PhotoRole.UTILITY
        else:
            roles[analysis.photo_id] = PhotoRole.SUPPORTING
    return roles


def select_twilight_target(
    ranked: List[PhotoAnalysis],
    roles: Dict[str, PhotoRole],
) -> Optional[str]:
    """Best-scoring analyzed exterior with visible windows, if any."""
    for analysis in ranked:
        if (
            analysis.is_analyzed
            and analysis.is_exterior
            and analysis.has_windows
            and roles[analysis.photo_id] != PhotoRole.UTILITY
        ):
            return analysis.photo_id
    return None


def _twilight_allowed(config: EngineConfig) -> bool:
    if not config.strategy.enable_twilight:
        return False
    if ToolId.VIRTUAL_TWILIGHT in config.safety.disabled_tools:
        return False
    if config.safety.conservative_mode and TOOL_METADATA[ToolId.VIRTUAL_TWILIGHT].risk_level == RiskLevel.HIGH:
        return False
    return True


# =============================================================================
# CANDIDATES
# =============================================================================

def priority_for(severity: float, t: StrategyThresholds) -> Optional[Priority]:
    """Priority band for a severity, None below the low cut point."""
    if severity >= t.critical:
        return Priority.CRITICAL
    if severity >= t.high:
        return Priority.HIGH
    if severity >= t.medium:
        return Priority.MEDIUM
    if severity >= t.low:
        return Priority.LOW
    return None


def is_eligible(
    tool: ToolId,
    analysis: PhotoAnalysis,
    role: PhotoRole,
    t: StrategyThresholds,
) -> bool:
    """Scene and role gates a tool must pass before it can be planned."""
    if not TOOL_METADATA[tool].auto_eligible:
        return False
    if not has_required_feature(tool, analysis):
        return False
    if tool in _NOT_ON_UTILITY and role == PhotoRole.UTILITY:
        return False
    if tool == ToolId.DECLUTTER:
        return analysis.is_interior and analysis.sub_type != PhotoSubType.BATHROOM
    if tool == ToolId.SKY_REPLACEMENT:
        return _covers(analysis, DeficiencyKind.SKY, t.min_sky_coverage)
    if tool == ToolId.LAWN_REPAIR:
        return _covers(analysis, DeficiencyKind.LAWN, t.min_lawn_coverage)
    return True


def _covers(analysis: PhotoAnalysis, kind: DeficiencyKind, minimum: float) -> bool:
    found = analysis.deficiency(kind)
    if found is None or found.coverage is None:
        return True
    return found.coverage >= minimum


def candidate_decisions(
    analysis: PhotoAnalysis,
    role: PhotoRole,
    presets: LockedPresets,
    t: StrategyThresholds,
    is_twilight_target: bool = False,
) -> List[EnhancementDecision]:
    """
    Every decision a photo would get with unlimited caps.

    Args:
        analysis: The photo's analysis
        role: Role assigned to the photo
        presets: Locked presets; each decision carries its family's value
        t: Planner thresholds
        is_twilight_target: Photo selected for the listing's twilight shot

    Returns:
        Decisions in deficiency order, at most one per tool
    """
    if not analysis.is_analyzed:
        return []

    chosen: Dict[ToolId, Tuple[Priority, str]] = {}

    def offer(tool: ToolId, priority: Priority, reason: str) -> None:
        current = chosen.get(tool)
        if current is None or priority.weight > current[0].weight:
            chosen[tool] = (priority, reason)

    if is_twilight_target:
        offer(
            ToolId.VIRTUAL_TWILIGHT,
            Priority.CRITICAL,
            f"best twilight exterior (hero score {analysis.hero_score:.0f})",
        )

    low_confidence = analysis.analysis_confidence < t.min_confidence
    for kind in DeficiencyKind:
        found = analysis.deficiency(kind)
        if found is None:
            continue
        tool = DEFICIENCY_TOOLS[kind]
        # Twilight replaces the sky
        if is_twilight_target and tool == ToolId.SKY_REPLACEMENT:
            continue
        if not is_eligible(tool, analysis, role, t):
            continue

        severity = found.severity
        if low_confidence:
            severity = max(0, severity - t.low_confidence_penalty)
        priority = priority_for(severity, t)
        if priority is None:
            continue

        reason = f"{kind.value} severity {severity:.0f}"
        if low_confidence:
            reason += " (low analysis confidence)"
        offer(tool, priority, reason)

    if role == PhotoRole.HERO and analysis.is_interior and is_eligible(ToolId.VIRTUAL_STAGING, analysis, role, t):
        offer(ToolId.VIRTUAL_STAGING, Priority.CRITICAL, "empty hero room")
    if role != PhotoRole.UTILITY and is_eligible(ToolId.FIRE_FIREPLACE, analysis, role, t):
        offer(ToolId.FIRE_FIREPLACE, Priority.LOW, "fireplace can be lit")

    return [
        EnhancementDecision(
            tool=tool,
            priority=priority,
            reason=reason,
            preset=presets.preset_for(tool),
        )
        for tool, (priority, reason) in chosen.items()
    ]


# =============================================================================
# ALLOCATION
# =============================================================================

def allocate(
    ranked: List[PhotoAnalysis],
    candidates: Dict[str, List[EnhancementDecision]],
    caps: ListingCaps,
    config: EngineConfig,
    router: ProviderRouter,
) -> Tuple[Dict[str, List[EnhancementDecision]], Dict[str, List[CapExceededSkip]], CapsUsage]:
    """
    Greedy priority-ordered allocation of candidates against listing limits.

    Candidates are flattened in role order (heroes first) and stable-sorted
    by priority weight, so a higher priority decision is always considered
    before a lower one and ties go to the better photo. Rejected decisions
    are dropped, not deferred.

    Returns:
        (accepted decisions per photo, skips per photo, cap usage)
    """
    safety = config.safety
    usage = CapsUsage()
    accepted: Dict[str, List[EnhancementDecision]] = {a.photo_id: [] for a in ranked}
    skipped: Dict[str, List[CapExceededSkip]] = {a.photo_id: [] for a in ranked}

    flat = [(a.photo_id, d) for a in ranked for d in candidates[a.photo_id]]
    flat.sort(key=lambda item: -item[1].priority.weight)

    total_accepted = 0
    spent = 0.0
    for photo_id, decision in flat:
        spec = TOOL_METADATA[decision.tool]
        cost = router.resolve(decision.tool).estimated_cost
        reason = None

        if decision.tool in safety.disabled_tools:
            reason = f"{decision.tool.value} disabled for this run"
        elif safety.conservative_mode and spec.risk_level == RiskLevel.HIGH:
            reason = f"conservative mode excludes high-risk {decision.tool.value}"
        elif spec.cap_key is not None and usage.used(spec.cap_key) >= caps.limit(spec.cap_key):
            reason = (
                f"cap reached for {spec.cap_key.value} "
                f"({usage.used(spec.cap_key)}/{caps.limit(spec.cap_key)})"
            )
        elif (
            safety.max_enhancements_per_listing is not None
            and total_accepted >= safety.max_enhancements_per_listing
        ):
            reason = (
                f"listing enhancement limit reached "
                f"({total_accepted}/{safety.max_enhancements_per_listing})"
            )
        elif safety.cost_cap is not None and spent + cost > safety.cost_cap + 1e-9:
            reason = f"cost cap reached (${spent:.2f} of ${safety.cost_cap:.2f})"

        if reason is not None:
            skipped[photo_id].append(CapExceededSkip(
                photo_id=photo_id,
                tool=decision.tool,
                priority=decision.priority,
                reason=reason,
            ))
            logger.debug("Skipped %s on %s: %s", decision.tool.value, photo_id, reason)
            continue

        if spec.cap_key is not None:
            usage.increment(spec.cap_key)
        accepted[photo_id].append(decision)
        total_accepted += 1
        spent += cost

    return accepted, skipped, usage


def _in_execution_order(decisions: List[EnhancementDecision]) -> List[EnhancementDecision]:
    by_tool = {d.tool: d for d in decisions}
    return [by_tool[tool] for tool in order_tools(by_tool)]


# =============================================================================
# CONFIDENCE
# =============================================================================

def _serviced_ratio(candidates: List[EnhancementDecision], accepted: List[EnhancementDecision]) -> float:
    if not candidates:
        return 1.0
    return len(accepted) / len(candidates)


def _clamp(value: float) -> float:
    return max(0.0, min(100.0, value))


def photo_confidence(
    analysis: PhotoAnalysis,
    role: PhotoRole,
    candidates: List[EnhancementDecision],
    accepted: List[EnhancementDecision],
    t: StrategyThresholds,
) -> float:
    """
    Planning confidence for one photo (0-100).

    Analysis confidence scaled by the share of candidate fixes that made it
    through the caps, capped for heroes left untouched and reduced per
    high-risk tool.
    """
    if not analysis.is_analyzed:
        return 0.0

    score = analysis.analysis_confidence * 100 * (0.7 + 0.3 * _serviced_ratio(candidates, accepted))
    if role == PhotoRole.HERO and not accepted:
        score = min(score, t.hero_no_decision_cap)
    high_risk = sum(1 for d in accepted if TOOL_METADATA[d.tool].risk_level == RiskLevel.HIGH)
    score -= t.high_risk_penalty * high_risk
    return round(_clamp(score), 1)


def _skip_reason(
    analysis: PhotoAnalysis,
    candidates: List[EnhancementDecision],
    accepted: List[EnhancementDecision],
    t: StrategyThresholds,
) -> Optional[str]:
    if not analysis.is_analyzed:
        return f"not analyzed: {analysis.analysis_error}"
    if accepted:
        return None
    if candidates:
        return "every candidate enhancement was skipped"
    if analysis.scores.composition >= t.already_good_score and analysis.scores.lighting >= t.already_good_score:
        return "already high quality"
    return "no applicable enhancements"


# =============================================================================
# SUMMARY
# =============================================================================

def get_strategy_summary(strategy: ListingStrategy) -> str:
    """Plain text summary of a strategy for logs and notifications."""
    lines = [
        "Listing Strategy Summary",
        f"Total Photos: {len(strategy.photos)}",
        f"Photos Requiring Work: {sum(1 for p in strategy.photos if p.decisions)}",
        f"Hero Photo: {strategy.hero_photo_id}",
        f"Twilight Photo: {strategy.twilight_photo_id or 'None selected'}",
        f"Estimated Cost: ${strategy.estimated_cost:.2f}",
        f"Estimated Time: {math.ceil(strategy.estimated_time_seconds / 60)} minutes",
        f"Confidence: {strategy.confidence_score:.0f}%",
    ]

    counts: Dict[ToolId, int] = {}
    for photo in strategy.photos:
        for tool in photo.tool_order:
            counts[tool] = counts.get(tool, 0) + 1
    if counts:
        lines.append("Tools to Apply:")
        for tool, count in sorted(counts.items(), key=lambda item: (-item[1], item[0].value)):
            lines.append(f"  {tool.value}: {count} photos")

    skips = [s for p in strategy.photos for s in p.skipped]
    if skips:
        lines.append(f"Skipped: {len(skips)}")
    return "\n".join(lines)
