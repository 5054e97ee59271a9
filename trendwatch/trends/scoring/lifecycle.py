"""
Lifecycle classification.

Stage is recomputed from current signals on every run (never stored as
an FSM transition), so classification is idempotent and a stable trend can
return to surging when volume re-accelerates.

Stage rules (percent velocity, acceleration = velocity_1h - velocity_6h,
age = hours since first_seen_at):
- surging: velocity >= surge threshold, still accelerating; or an older key
  that is still rising past the emerging threshold
- peaking: velocity >= surge threshold, decelerating past the peak threshold
- emerging: a young key rising past the emerging threshold
- declining: negative velocity or sharp deceleration
- stable: everything else
"""

from __future__ import annotations

from dataclasses import dataclass

from trendwatch.core.enums import TrendStage
from trendwatch.trends.config import TrendConfig


@dataclass(frozen=True)
class BreakingSignals:
    velocity: float
    source_count: int
    news_source_count: int
    high_tier_source_count: int
    age_hours: float
    baseline_ratio: float | None


def classify_stage(velocity: float, acceleration: float, age_hours: float, config: TrendConfig) -> str:
    if velocity >= config.surge_velocity:
        if acceleration < config.peaking_deceleration:
            return TrendStage.PEAKING
        return TrendStage.SURGING
    if velocity >= config.emerging_velocity and acceleration > 0:
        if age_hours < config.emerging_max_age_hours:
            return TrendStage.EMERGING
        return TrendStage.SURGING
    if velocity < 0 or acceleration < config.declining_deceleration:
        return TrendStage.DECLINING
    return TrendStage.STABLE


def breaking_reason(signals: BreakingSignals, config: TrendConfig) -> str | None:
    """
    Return which breaking path a trend qualifies under, or None.

    - corroborated: fast, multi-source with news coverage, and young
    - authoritative: extreme velocity with at least one high-tier source
    - ratio: far above baseline, multi-source, and reasonably young
    """
    if (
        signals.velocity > config.breaking_velocity_high
        and signals.source_count >= config.breaking_min_sources
        and signals.news_source_count >= config.breaking_min_news_sources
        and signals.age_hours < config.breaking_max_age_hours
    ):
        return "corroborated"
    if (
        signals.velocity > config.breaking_velocity_extreme
        and signals.high_tier_source_count >= 1
    ):
        return "authoritative"
    if (
        signals.baseline_ratio is not None
        and signals.baseline_ratio > config.breaking_baseline_ratio
        and signals.source_count >= config.breaking_min_sources
        and signals.age_hours < config.breaking_ratio_max_age_hours
    ):
        return "ratio"
    return None


def is_breaking(signals: BreakingSignals, config: TrendConfig) -> bool:
    return breaking_reason(signals, config) is not None


def passes_volume_gate(current_1h: int, current_24h: int, source_count: int, config: TrendConfig) -> bool:
    """Minimum activity before a key can be called trending at all."""
    return (
        current_1h >= config.gate_min_1h
        or current_24h >= config.gate_min_24h
        or source_count >= config.gate_min_sources
    )


def is_trending(
    current_1h: int,
    current_24h: int,
    source_count: int,
    velocity: float,
    confidence: float,
    config: TrendConfig,
) -> bool:
    return (
        passes_volume_gate(current_1h, current_24h, source_count, config)
        and velocity > 0
        and confidence >= config.trending_min_confidence
    )


def is_verified(high_tier_source_count: int, source_count: int, config: TrendConfig) -> bool:
    return high_tier_source_count >= 1 and source_count >= config.gate_min_sources
