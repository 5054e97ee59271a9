"""
Versioned configuration for trend detection and ranking.

Every threshold the scoring functions use lives on TrendConfig. Scoring
functions take the config as an explicit argument; nothing reads thresholds
from module globals at call time.

Resolution order (last wins):
1. Dataclass defaults (CONFIG_VERSION)
2. Environment variables (TRENDS_<FIELD_NAME>, numeric fields only)
3. Per-tenant overrides from settings.TRENDS_TENANT_OVERRIDES[tenant]

Environment lookups are cached; call clear_config_cache() if env changes
during runtime (tests).
"""

from __future__ import annotations

import dataclasses
import logging
import os
from dataclasses import dataclass
from functools import lru_cache

from django.conf import settings

logger = logging.getLogger(__name__)

CONFIG_VERSION = "2026.10.1"


# Generic, always-on topics whose high volume is expected rather than notable
DEFAULT_EVERGREEN_TOPICS = frozenset({
    # Recurring issues
    "immigration", "border", "economy", "inflation", "healthcare", "climate",
    "taxes", "election", "elections", "campaign", "poll", "polls", "voter",
    "voting", "tariffs", "trade", "democracy", "freedom", "abortion", "guns",
    "weather", "crime", "education", "jobs",
    # Government bodies
    "white house", "pentagon", "congress", "senate", "house", "supreme court",
    "state department", "justice department",
    # Perennial geopolitics
    "gaza", "israel", "ukraine", "russia", "china", "taiwan", "iran", "nato",
    "middle east",
})

# Penalty schedule for evergreen topics: (z-score strictly above, multiplier)
DEFAULT_EVERGREEN_SCHEDULE = (
    (8.0, 0.80),
    (6.0, 0.55),
    (5.0, 0.35),
    (4.0, 0.20),
)

# Same, keyed on percent velocity (at or above, multiplier). A bursty
# baseline keeps z low even for an extreme spike.
DEFAULT_EVERGREEN_VELOCITY_SCHEDULE = (
    (500.0, 0.80),
    (300.0, 0.55),
    (200.0, 0.35),
    (100.0, 0.20),
)


@dataclass(frozen=True)
class TrendConfig:
    """Tunable thresholds for one scoring pass."""

    version: str = CONFIG_VERSION

    # Baselines
    baseline_short_days: int = 7
    baseline_long_days: int = 30
    min_history_days: int = 3
    min_baseline_mentions: int = 2
    baseline_max_age_hours: float = 26.0
    stable_rsd_threshold: float = 0.4
    stable_min_hourly: float = 0.5

    # Velocity / anomaly
    velocity_ceiling: float = 500.0
    z_score_min: float = -2.0
    z_score_max: float = 10.0

    # Confidence sub-score caps and multipliers
    deviation_cap: float = 30.0
    deviation_multiplier: float = 5.0
    corroboration_cap: float = 30.0
    corroboration_per_source: float = 8.0
    corroboration_per_news_source: float = 5.0
    volume_cap: float = 20.0
    volume_per_evidence: float = 2.0
    velocity_cap: float = 20.0
    velocity_divisor: float = 10.0
    no_baseline_quality: float = 0.6

    # Corroboration score (0-100), credibility weighted
    corroboration_weight_per_source: float = 20.0
    corroboration_mix_bonus: float = 15.0
    social_type_weight: float = 0.5
    high_tiers: tuple[str, ...] = ("tier1", "tier2")

    # Trending / verification gates
    trending_min_confidence: float = 35.0
    gate_min_1h: int = 2
    gate_min_24h: int = 5
    gate_min_sources: int = 2

    # Lifecycle
    surge_velocity: float = 100.0
    emerging_velocity: float = 25.0
    emerging_max_age_hours: float = 3.0
    peaking_deceleration: float = -20.0
    declining_deceleration: float = -30.0

    # Breaking
    breaking_velocity_high: float = 150.0
    breaking_velocity_extreme: float = 300.0
    breaking_baseline_ratio: float = 5.0
    breaking_min_sources: int = 2
    breaking_min_news_sources: int = 1
    breaking_max_age_hours: float = 6.0
    breaking_ratio_max_age_hours: float = 12.0

    # Rank
    burst_cap: float = 60.0
    burst_per_z: float = 6.0
    rank_corroboration_cap: float = 25.0
    activity_cap: float = 15.0
    recency_half_life_hours: float = 6.0
    recency_grace_hours: float = 1.0
    recency_floor: float = 0.05
    evergreen_topics: frozenset[str] = DEFAULT_EVERGREEN_TOPICS
    evergreen_schedule: tuple[tuple[float, float], ...] = DEFAULT_EVERGREEN_SCHEDULE
    evergreen_velocity_schedule: tuple[tuple[float, float], ...] = DEFAULT_EVERGREEN_VELOCITY_SCHEDULE
    evergreen_floor: float = 0.10
    evergreen_min_long_baseline: float = 2.0
    evergreen_min_short_baseline: float = 1.5
    evergreen_stability_ratio: float = 0.3

    # Outcome feedback
    min_outcome_samples: int = 5
    max_feedback_adjustment: float = 15.0
    act_now_threshold: float = 65.0
    consider_threshold: float = 40.0
    watch_threshold: float = 20.0

    # Cohort significance
    significance_level: float = 0.05
    min_cohort_size: int = 3

    # Read views
    active_window_hours: float = 48.0

    def is_high_tier(self, tier: str) -> bool:
        return tier in self.high_tiers


# =============================================================================
# JOB SLAS
# =============================================================================

# job_type -> (expected_interval_minutes, max_duration_minutes)
JOB_SLAS = {
    "ingest": (15, 10),
    "baseline": (60 * 24, 30),
    "detect": (30, 15),
    "feedback": (60, 15),
}


# =============================================================================
# RESOLUTION
# =============================================================================


def _parse_env_value(raw: str, current):
    """Coerce an environment string to the type of the default value."""
    if isinstance(current, bool):
        return raw.lower() in ("true", "1", "yes")
    if isinstance(current, int):
        return int(raw)
    if isinstance(current, float):
        return float(raw)
    return raw


@lru_cache(maxsize=1)
def _env_overrides() -> dict:
    """
    Collect TRENDS_<FIELD> environment overrides for scalar fields.

    Invalid values are ignored with a warning.
    """
    overrides = {}
    defaults = TrendConfig()
    for f in dataclasses.fields(TrendConfig):
        current = getattr(defaults, f.name)
        if not isinstance(current, (int, float, str)) or f.name == "version":
            continue
        raw = os.environ.get(f"TRENDS_{f.name.upper()}")
        if raw is None:
            continue
        try:
            overrides[f.name] = _parse_env_value(raw, current)
        except ValueError:
            logger.warning(
                "Ignoring invalid config override",
                extra={"field": f.name, "value": raw},
            )
    return overrides


def clear_config_cache() -> None:
    _env_overrides.cache_clear()


def build_config(overrides: dict | None = None) -> TrendConfig:
    """
    Build a TrendConfig from defaults plus explicit overrides.

    Unknown keys raise TypeError so typos in tenant overrides surface early.
    """
    config = TrendConfig()
    if not overrides:
        return config
    values = dict(overrides)
    if "evergreen_topics" in values:
        values["evergreen_topics"] = frozenset(t.lower() for t in values["evergreen_topics"])
    if "high_tiers" in values:
        values["high_tiers"] = tuple(values["high_tiers"])
    return dataclasses.replace(config, **values)


def get_config(tenant: str | None = None) -> TrendConfig:
    """
    Resolve the effective config for a tenant (or the global default).

    Args:
        tenant: Optional tenant slug looked up in TRENDS_TENANT_OVERRIDES

    Returns:
        Frozen TrendConfig
    """
    overrides = dict(_env_overrides())
    if tenant:
        tenant_overrides = getattr(settings, "TRENDS_TENANT_OVERRIDES", {}).get(tenant)
        if tenant_overrides:
            overrides.update(tenant_overrides)
    return build_config(overrides)
