"""
Cohort significance testing.

Compares groups of observations (e.g. outcome values grouped by entity
type) against the pooled global mean:

1. Per cohort: mean, sample std-dev, 95% confidence interval
2. z-score of the cohort mean against the global mean
3. Two-tailed p-value from a closed-form normal CDF approximation
4. Benjamini-Hochberg FDR adjustment across all eligible cohorts
5. Cohen's d and an approximate power, both advisory

Cohorts below config.min_cohort_size are marked insufficient_data and
never reported significant.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Mapping, Sequence

import numpy as np

from trendwatch.trends.config import TrendConfig

Z_95 = 1.96
P_VALUE_FLOOR = 0.0001
P_VALUE_CEILING = 0.9999


@dataclass
class CohortResult:
    cohort: str
    n: int
    mean: float
    std_dev: float
    ci_lower: float
    ci_upper: float
    z_score: float | None = None
    p_value: float | None = None
    adjusted_p_value: float | None = None
    effect_size: float | None = None
    power: float | None = None
    is_significant: bool = False
    insufficient_data: bool = False


def normal_cdf(z: float) -> float:
    """Closed-form approximation of the standard normal CDF."""
    sign = 1.0 if z >= 0 else -1.0
    return 0.5 * (1.0 + sign * math.sqrt(1.0 - math.exp(-2.0 * z * z / math.pi)))


def two_tailed_p_value(z: float) -> float:
    tail = 1.0 - normal_cdf(abs(z))
    tail = min(P_VALUE_CEILING, max(P_VALUE_FLOOR, tail))
    return min(1.0, 2.0 * tail)


def benjamini_hochberg(p_values: Sequence[float]) -> list[float]:
    """
    FDR-adjusted p-values, returned in input order.

    Sorted ascending, adjusted_i = p_i * n / rank_i, then a running minimum
    from the largest rank down keeps the adjusted values monotone.
    """
    n = len(p_values)
    if n == 0:
        return []
    raw = np.asarray(p_values, dtype=float)
    order = np.argsort(raw, kind="stable")
    ranks = np.arange(1, n + 1)
    scaled = raw[order] * n / ranks
    monotone = np.minimum.accumulate(scaled[::-1])[::-1]
    adjusted_sorted = np.minimum(1.0, np.maximum(monotone, raw[order]))

    adjusted = np.empty(n)
    adjusted[order] = adjusted_sorted
    return [float(p) for p in adjusted]


def cohens_d(mean: float, reference_mean: float, reference_std: float) -> float:
    if reference_std <= 0:
        return 0.0
    return (mean - reference_mean) / reference_std


def approximate_power(n: int, effect_size: float) -> float:
    """Tiered power estimate by sample size and |d|."""
    d = abs(effect_size)
    if n >= 30 and d >= 0.8:
        return 0.90
    if n >= 30 and d >= 0.5:
        return 0.80
    if n >= 20 and d >= 0.5:
        return 0.65
    if n >= 10 and d >= 0.5:
        return 0.50
    if n >= 5:
        return 0.35
    return 0.20


def describe(values: Sequence[float]) -> tuple[float, float, float, float]:
    """Mean, sample std-dev and 95% CI; zero variance collapses the CI to the mean."""
    arr = np.asarray(values, dtype=float)
    mean = float(arr.mean()) if arr.size else 0.0
    std = float(arr.std(ddof=1)) if arr.size > 1 else 0.0
    if std > 0:
        margin = Z_95 * std / math.sqrt(arr.size)
    else:
        margin = 0.0
    return mean, std, mean - margin, mean + margin


def cohort_significance(
    groups: Mapping[str, Sequence[float]],
    config: TrendConfig,
) -> list[CohortResult]:
    """
    Test every cohort against the pooled global mean.

    Args:
        groups: cohort name -> observed values
        config: Active TrendConfig (significance_level, min_cohort_size)

    Returns:
        CohortResult per cohort, sorted by raw p-value (ineligible last)
    """
    pooled = [v for values in groups.values() for v in values]
    if not pooled:
        return []
    global_mean, global_std, _, _ = describe(pooled)

    results: list[CohortResult] = []
    for name, values in groups.items():
        mean, std, ci_lower, ci_upper = describe(values)
        result = CohortResult(
            cohort=name,
            n=len(values),
            mean=round(mean, 4),
            std_dev=round(std, 4),
            ci_lower=round(ci_lower, 4),
            ci_upper=round(ci_upper, 4),
        )
        if len(values) < config.min_cohort_size:
            result.insufficient_data = True
            results.append(result)
            continue

        if global_std > 0:
            z = (mean - global_mean) / (global_std / math.sqrt(len(values)))
        else:
            z = 0.0
        result.z_score = round(z, 4)
        result.p_value = two_tailed_p_value(z)
        result.effect_size = round(cohens_d(mean, global_mean, global_std), 4)
        result.power = approximate_power(len(values), result.effect_size)
        results.append(result)

    eligible = [r for r in results if not r.insufficient_data]
    adjusted = benjamini_hochberg([r.p_value for r in eligible])
    for result, adjusted_p in zip(eligible, adjusted):
        result.adjusted_p_value = adjusted_p
        result.is_significant = adjusted_p < config.significance_level

    return sorted(
        results,
        key=lambda r: (r.insufficient_data, r.p_value if r.p_value is not None else 1.0, r.cohort),
    )
