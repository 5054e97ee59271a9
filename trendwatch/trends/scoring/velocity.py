"""
Velocity and anomaly scoring.

Percentage velocity compares a window's hourly rate against the 7-day
hourly baseline. The z-score variant divides the same deviation by the
baseline's hourly standard deviation and is the signal used for ranking.

All functions are pure; thresholds come from the TrendConfig argument.
"""

from __future__ import annotations

import math
from dataclasses import dataclass

from trendwatch.trends.config import TrendConfig


@dataclass(frozen=True)
class VelocityResult:
    velocity: float
    velocity_1h: float
    velocity_6h: float
    acceleration: float
    z_score: float
    baseline_ratio: float | None


def percent_velocity(current_hourly: float, baseline: float, config: TrendConfig) -> float:
    """
    Percent deviation of an hourly rate from the baseline rate.

    A zero baseline has no defined ratio: any activity maps to the
    configured ceiling, no activity maps to 0.
    """
    if baseline > 0:
        return (current_hourly - baseline) / baseline * 100
    if current_hourly > 0:
        return config.velocity_ceiling
    return 0.0


def z_score(current_hourly: float, baseline: float, std_dev: float, config: TrendConfig) -> float:
    """
    Standard score of the current hourly rate against the baseline.

    Zero variance falls back to a Poisson estimate (sqrt of the mean, at
    least 1). The result is clamped to the configured range.
    """
    if std_dev <= 0:
        std_dev = math.sqrt(max(1.0, baseline))
    value = (current_hourly - baseline) / std_dev
    return max(config.z_score_min, min(config.z_score_max, value))


def baseline_ratio(current_hourly: float, baseline: float) -> float | None:
    if baseline <= 0:
        return None
    return current_hourly / baseline


def compute_velocity(
    current_1h: int,
    current_6h: int,
    baseline_7d: float,
    baseline_std: float,
    config: TrendConfig,
) -> VelocityResult:
    """
    Compute every velocity signal for one key.

    Args:
        current_1h: Mentions in the last hour
        current_6h: Mentions in the last six hours
        baseline_7d: Mean hourly rate over the trailing 7 days
        baseline_std: Hourly standard deviation over the same window
        config: Active TrendConfig

    Returns:
        VelocityResult; velocity is the 1h figure
    """
    rate_6h = current_6h / 6
    velocity_1h = percent_velocity(current_1h, baseline_7d, config)
    velocity_6h = percent_velocity(rate_6h, baseline_7d, config)

    return VelocityResult(
        velocity=velocity_1h,
        velocity_1h=velocity_1h,
        velocity_6h=velocity_6h,
        acceleration=velocity_1h - velocity_6h,
        z_score=z_score(current_1h, baseline_7d, baseline_std, config),
        baseline_ratio=baseline_ratio(current_1h, baseline_7d),
    )
