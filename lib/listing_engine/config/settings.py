"""
Engine Settings
===============
Run configuration for the listing engine.

Defaults come from constants.py. EngineConfig.from_env() lets a deployment
override the commonly tuned values through environment variables:

    SNAPR_HERO_PERCENTAGE          float, share of hero photos
    SNAPR_UTILITY_PERCENTAGE       float, share of utility photos
    SNAPR_MIN_CONFIDENCE           float, analysis confidence floor (0-1)
    SNAPR_CONCURRENCY              int, photos executed concurrently
    SNAPR_MAX_RETRIES              int, retries for rate limited calls
    SNAPR_TOOL_TIMEOUT_SECONDS     float, wall-clock limit per call
    REPLICATE_MIN_INTERVAL_MS      int, spacing between remote calls
    SNAPR_CONSERVATIVE_MODE        bool, drop high-risk tools
    SNAPR_DISABLED_TOOLS           comma separated tool ids
    SNAPR_COST_CAP                 float, USD ceiling per listing
    SNAPR_MAX_ENHANCEMENTS         int, decisions ceiling per listing
    SNAPR_CONSISTENCY_FORCES_REVIEW bool, flagged photos block "prepared"
"""

import logging
import os
from typing import Any, Callable, Dict, List, Optional

from pydantic import BaseModel, Field, model_validator

from . import constants as c
from ..models.enums import ToolId

logger = logging.getLogger(__name__)


class StrategyThresholds(BaseModel):
    """Planner policy. Every value is a tunable default."""

    hero_percentage: float = Field(default=c.DEFAULT_HERO_PERCENTAGE, ge=0, le=1)
    utility_percentage: float = Field(default=c.DEFAULT_UTILITY_PERCENTAGE, ge=0, le=1)
    critical: float = c.DEFAULT_CRITICAL_THRESHOLD
    high: float = c.DEFAULT_HIGH_THRESHOLD
    medium: float = c.DEFAULT_MEDIUM_THRESHOLD
    low: float = c.DEFAULT_LOW_THRESHOLD
    min_confidence: float = Field(default=c.DEFAULT_MIN_ANALYSIS_CONFIDENCE, ge=0, le=1)
    low_confidence_penalty: float = c.LOW_CONFIDENCE_SEVERITY_PENALTY
    min_sky_coverage: float = c.MIN_SKY_COVERAGE
    min_lawn_coverage: float = c.MIN_LAWN_COVERAGE
    enable_twilight: bool = True
    hero_no_decision_cap: float = c.HERO_NO_DECISION_CONFIDENCE_CAP
    high_risk_penalty: float = c.HIGH_RISK_TOOL_PENALTY
    hero_shortfall_penalty: float = c.HERO_SHORTFALL_PENALTY
    already_good_score: float = c.ALREADY_GOOD_SCORE

    @model_validator(mode='after')
    def _check_cut_points(self) -> "StrategyThresholds":
        if not (self.critical >= self.high >= self.medium >= self.low >= 0):
            raise ValueError(
                "Priority thresholds must be ordered critical >= high >= medium >= low >= 0"
            )
        return self


class SafetyOverrides(BaseModel):
    """Listing-wide limits applied on top of the per-tool caps."""

    max_enhancements_per_listing: Optional[int] = Field(default=None, ge=0)
    conservative_mode: bool = False
    disabled_tools: List[ToolId] = Field(default_factory=list)
    cost_cap: Optional[float] = Field(default=None, ge=0)


class PresetThresholds(BaseModel):
    acceptable_sky_severity: float = c.ACCEPTABLE_SKY_SEVERITY
    dramatic_sky_suitability: float = c.DRAMATIC_SKY_SUITABILITY
    twilight_window_bonus: float = c.TWILIGHT_WINDOW_BONUS
    golden_hour_hero_score: float = c.GOLDEN_HOUR_HERO_SCORE
    vibrant_lawn_severity: float = c.VIBRANT_LAWN_SEVERITY
    hdr_light_lighting_score: float = c.HDR_LIGHT_LIGHTING_SCORE
    hdr_dramatic_lighting_score: float = c.HDR_DRAMATIC_LIGHTING_SCORE
    luxury_staging_ratio: float = c.LUXURY_STAGING_RATIO
    good_composition_score: float = c.GOOD_COMPOSITION_SCORE
    warm_dark_room_ratio: float = c.WARM_DARK_ROOM_RATIO
    dark_room_lighting_score: float = c.DARK_ROOM_LIGHTING_SCORE
    moderate_declutter_ratio: float = c.MODERATE_DECLUTTER_RATIO
    cluttered_room_severity: float = c.CLUTTERED_ROOM_SEVERITY


class ExecutionSettings(BaseModel):
    concurrency: int = Field(default=c.DEFAULT_CONCURRENCY, ge=1)
    analysis_concurrency: int = Field(default=c.DEFAULT_ANALYSIS_CONCURRENCY, ge=1)
    max_retries: int = Field(default=c.MAX_RETRIES, ge=0)
    retry_delay_seconds: float = Field(default=c.RETRY_DELAY_SECONDS, ge=0)
    tool_timeout_seconds: float = Field(default=c.TOOL_TIMEOUT_SECONDS, gt=0)
    min_interval_ms: int = Field(default=c.DEFAULT_MIN_INTERVAL_MS, ge=0)
    poll_interval_seconds: float = Field(default=c.POLL_INTERVAL_SECONDS, gt=0)


class ValidationSettings(BaseModel):
    min_quality_score: float = c.MIN_QUALITY_SCORE
    slow_photo_seconds: float = c.SLOW_PHOTO_SECONDS
    low_confidence_score: float = c.LOW_CONFIDENCE_SCORE
    aspect_ratio_tolerance: float = c.ASPECT_RATIO_TOLERANCE
    medium_issue_review_score: float = c.MEDIUM_ISSUE_REVIEW_SCORE
    skip_inspection_score: float = c.SKIP_INSPECTION_SCORE
    deductions: Dict[str, float] = Field(default_factory=lambda: dict(c.ISSUE_DEDUCTIONS))
    prepared_threshold: float = c.CONFIDENCE_PREPARED
    prepared_minor_threshold: float = c.CONFIDENCE_PREPARED_MINOR
    strategy_weight: float = Field(default=c.STRATEGY_CONFIDENCE_WEIGHT, ge=0, le=1)


class ConsistencySettings(BaseModel):
    thresholds: Dict[str, float] = Field(default_factory=lambda: dict(c.CONSISTENCY_THRESHOLDS))
    max_adjustment: Dict[str, float] = Field(default_factory=lambda: dict(c.CONSISTENCY_MAX_ADJUSTMENT))
    consistent_score: float = c.CONSISTENT_SCORE
    twilight_threshold: float = c.TWILIGHT_DRIFT_THRESHOLD
    forces_review: bool = False


class EngineConfig(BaseModel):
    """
    Complete engine configuration.

    Usage:
        config = EngineConfig()                      # defaults
        config = EngineConfig.from_env()             # env overrides
        config = EngineConfig(safety={'conservative_mode': True})
    """

    strategy: StrategyThresholds = Field(default_factory=StrategyThresholds)
    safety: SafetyOverrides = Field(default_factory=SafetyOverrides)
    presets: PresetThresholds = Field(default_factory=PresetThresholds)
    execution: ExecutionSettings = Field(default_factory=ExecutionSettings)
    validation: ValidationSettings = Field(default_factory=ValidationSettings)
    consistency: ConsistencySettings = Field(default_factory=ConsistencySettings)

    @classmethod
    def from_env(cls, environ: Optional[Dict[str, str]] = None) -> "EngineConfig":
        """
        Build a configuration from environment variables.

        Invalid values are logged and ignored so a bad deployment setting
        falls back to the default instead of failing every run.

        Args:
            environ: Mapping to read from (defaults to os.environ)

        Returns:
            EngineConfig with overrides applied
        """
        env = os.environ if environ is None else environ
        data: Dict[str, Dict[str, Any]] = {
            'strategy': {},
            'safety': {},
            'execution': {},
            'consistency': {},
        }

        _read(env, 'SNAPR_HERO_PERCENTAGE', float, data['strategy'], 'hero_percentage')
        _read(env, 'SNAPR_UTILITY_PERCENTAGE', float, data['strategy'], 'utility_percentage')
        _read(env, 'SNAPR_MIN_CONFIDENCE', float, data['strategy'], 'min_confidence')
        _read(env, 'SNAPR_CONCURRENCY', int, data['execution'], 'concurrency')
        _read(env, 'SNAPR_MAX_RETRIES', int, data['execution'], 'max_retries')
        _read(env, 'SNAPR_TOOL_TIMEOUT_SECONDS', float, data['execution'], 'tool_timeout_seconds')
        _read(env, 'REPLICATE_MIN_INTERVAL_MS', int, data['execution'], 'min_interval_ms')
        _read(env, 'SNAPR_CONSERVATIVE_MODE', _parse_bool, data['safety'], 'conservative_mode')
        _read(env, 'SNAPR_DISABLED_TOOLS', _parse_tools, data['safety'], 'disabled_tools')
        _read(env, 'SNAPR_COST_CAP', float, data['safety'], 'cost_cap')
        _read(env, 'SNAPR_MAX_ENHANCEMENTS', int, data['safety'], 'max_enhancements_per_listing')
        _read(env, 'SNAPR_CONSISTENCY_FORCES_REVIEW', _parse_bool, data['consistency'], 'forces_review')

        return cls(**{section: values for section, values in data.items() if values})


def _read(
    env: Dict[str, str],
    name: str,
    parse: Callable[[str], Any],
    target: Dict[str, Any],
    field: str,
) -> None:
    raw = env.get(name)
    if raw is None or raw == "":
        return
    try:
        target[field] = parse(raw)
    except ValueError:
        logger.warning("Invalid %s=%r, using default", name, raw)


def _parse_bool(raw: str) -> bool:
    value = raw.strip().lower()
    if value in ('1', 'true', 'yes', 'on'):
        return True
    if value in ('0', 'false', 'no', 'off'):
        return False
    raise ValueError(f"Not a boolean: {raw}")


def _parse_tools(raw: str) -> List[ToolId]:
    return [ToolId(item.strip()) for item in raw.split(',') if item.strip()]
