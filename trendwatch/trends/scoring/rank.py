"""
Rank scoring.

rank_score = (burst + corroboration + activity) * recency_decay * evergreen_penalty

- burst (dominant, cap 60): z-score above baseline, scaled down when the
  key has no historical baseline yet
- corroboration (cap 25): corroboration_score rescaled
- activity (cap 15): log-scaled 1h and 24h counts

Evergreen topics are penalized, never excluded: the penalty relaxes as the
z-score or the percent velocity rises (whichever is milder) and has a
positive floor.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from trendwatch.trends.config import TrendConfig


@dataclass(frozen=True)
class RankResult:
    rank_score: float
    burst: float
    corroboration: float
    activity: float
    recency_decay: float
    evergreen_penalty: float


def is_evergreen_topic(
    event_key: str,
    baseline_7d: float,
    baseline_30d: float,
    config: TrendConfig,
    baseline_is_stable: bool = False,
) -> bool:
    """
    Whether a key is an always-on topic.

    True for listed topics, for keys with a steady high-volume baseline, and
    for keys whose latest baseline snapshot was flagged stable.
    """
    if event_key.lower().strip() in config.evergreen_topics:
        return True
    if baseline_30d >= config.evergreen_min_long_baseline and baseline_7d >= config.evergreen_min_short_baseline:
        stability = abs(baseline_7d - baseline_30d) / max(baseline_30d, 0.1)
        if stability < config.evergreen_stability_ratio:
            return True
    return baseline_is_stable


def evergreen_penalty(is_evergreen: bool, z: float, config: TrendConfig, velocity: float = 0.0) -> float:
    if not is_evergreen:
        return 1.0
    by_z = next((m for threshold, m in config.evergreen_schedule if z > threshold), config.evergreen_floor)
    by_velocity = next(
        (m for threshold, m in config.evergreen_velocity_schedule if velocity >= threshold),
        config.evergreen_floor,
    )
    return max(by_z, by_velocity)


def recency_decay(hours_since_last_seen: float, config: TrendConfig) -> float:
    """Half-life decay after a grace period, floored."""
    if hours_since_last_seen <= config.recency_grace_hours:
        return 1.0
    elapsed = hours_since_last_seen - config.recency_grace_hours
    return max(config.recency_floor, 0.5 ** (elapsed / config.recency_half_life_hours))


def burst_component(z: float, has_historical_baseline: bool, config: TrendConfig) -> float:
    quality = 1.0 if has_historical_baseline else config.no_baseline_quality
    return min(config.burst_cap, max(0.0, z) * config.burst_per_z) * quality


def activity_component(current_1h: int, current_24h: int, config: TrendConfig) -> float:
    return min(
        config.activity_cap,
        math.log2(current_1h + 1) * 3 + math.log2(current_24h + 1) * 1.5,
    )


def rank_score(
    z: float,
    corroboration: float,
    current_1h: int,
    current_24h: int,
    hours_since_last_seen: float,
    is_evergreen: bool,
    has_historical_baseline: bool,
    config: TrendConfig,
    velocity: float = 0.0,
) -> RankResult:
    burst = burst_component(z, has_historical_baseline, config)
    corroboration_part = min(config.rank_corroboration_cap, corroboration / 100 * config.rank_corroboration_cap)
    activity = activity_component(current_1h, current_24h, config)
    decay = recency_decay(hours_since_last_seen, config)
    penalty = evergreen_penalty(is_evergreen, z, config, velocity)

    score = (burst + corroboration_part + activity) * decay * penalty
    return RankResult(
        rank_score=round(score, 2),
        burst=round(burst, 2),
        corroboration=round(corroboration_part, 2),
        activity=round(activity, 2),
        recency_decay=round(decay, 4),
        evergreen_penalty=penalty,
    )


def sort_key(event) -> tuple:
    """
    Ordering for trend lists (use with sorted(..., key=sort_key)).

    Breaking first, then rank_score, z_score_velocity, velocity, all descending.
    """
    return (
        not event.is_breaking,
        -event.rank_score,
        -event.z_score_velocity,
        -event.velocity,
    )
