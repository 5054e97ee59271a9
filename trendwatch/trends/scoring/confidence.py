"""
Confidence and corroboration scoring.

confidence_score is the sum of four capped sub-scores (deviation,
corroboration, volume, velocity), bounded to [0, 100]. The breakdown is
kept in confidence_factors so operators can see why a trend scored.

corroboration_score is a separate 0-100 credibility measure: distinct
sources weighted by authority and source type, plus a bonus when both news
and social coverage exist.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from trendwatch.core.enums import NEWS_SOURCE_TYPES, SourceType
from trendwatch.trends.config import TrendConfig


@dataclass(frozen=True)
class EvidenceSource:
    """The slice of a TrendEvidence row that corroboration needs."""

    source_type: str
    source_domain: str
    source_id: str
    source_tier: str
    contribution_score: float = 1.0

    @property
    def identity(self) -> str:
        # Domain-less mentions count as their own source
        return self.source_domain or f"{self.source_type}:{self.source_id}"


@dataclass
class SourceBreakdown:
    source_count: int = 0
    news_source_count: int = 0
    social_source_count: int = 0
    high_tier_source_count: int = 0
    evidence_count: int = 0
    # identity -> best contribution weight seen for that source
    weights: dict[str, float] = field(default_factory=dict)
    has_news: bool = False
    has_social: bool = False


@dataclass(frozen=True)
class ConfidenceResult:
    score: float
    factors: dict


def summarize_sources(rows: Iterable[EvidenceSource], config: TrendConfig) -> SourceBreakdown:
    """Count distinct sources by kind and tier."""
    breakdown = SourceBreakdown()
    news: set[str] = set()
    social: set[str] = set()
    high_tier: set[str] = set()

    for row in rows:
        breakdown.evidence_count += 1
        identity = row.identity
        weight = row.contribution_score
        if row.source_type == SourceType.SOCIAL:
            social.add(identity)
            weight *= config.social_type_weight
        elif row.source_type in NEWS_SOURCE_TYPES:
            news.add(identity)
        if config.is_high_tier(row.source_tier):
            high_tier.add(identity)
        breakdown.weights[identity] = max(weight, breakdown.weights.get(identity, 0.0))

    breakdown.source_count = len(breakdown.weights)
    breakdown.news_source_count = len(news)
    breakdown.social_source_count = len(social)
    breakdown.high_tier_source_count = len(high_tier)
    breakdown.has_news = bool(news)
    breakdown.has_social = bool(social)
    return breakdown


def corroboration_score(breakdown: SourceBreakdown, config: TrendConfig) -> float:
    """Credibility-weighted corroboration, 0-100."""
    score = sum(breakdown.weights.values()) * config.corroboration_weight_per_source
    if breakdown.has_news and breakdown.has_social:
        score += config.corroboration_mix_bonus
    return round(min(100.0, score), 2)


def confidence_score(
    current_hourly: float,
    baseline: float,
    velocity: float,
    breakdown: SourceBreakdown,
    config: TrendConfig,
) -> ConfidenceResult:
    """
    Composite confidence in [0, 100].

    Args:
        current_hourly: Mentions in the last hour
        baseline: 7-day hourly baseline
        velocity: Percent velocity (1h)
        breakdown: Distinct-source counts for the scoring window
        config: Active TrendConfig

    Returns:
        ConfidenceResult with the total and each sub-score
    """
    if baseline > 0:
        deviation_ratio = (current_hourly - baseline) / baseline
    elif current_hourly > 0:
        deviation_ratio = config.velocity_ceiling / 100
    else:
        deviation_ratio = 0.0

    deviation = min(config.deviation_cap, max(0.0, deviation_ratio * config.deviation_multiplier))
    corroboration = min(
        config.corroboration_cap,
        config.corroboration_per_source * breakdown.source_count
        + config.corroboration_per_news_source * breakdown.news_source_count,
    )
    volume = min(config.volume_cap, config.volume_per_evidence * breakdown.evidence_count)
    velocity_part = min(config.velocity_cap, max(0.0, velocity / config.velocity_divisor))

    total = max(0.0, min(100.0, deviation + corroboration + volume + velocity_part))
    factors = {
        "baseline_deviation": round(deviation, 2),
        "cross_source": round(corroboration, 2),
        "volume": round(volume, 2),
        "velocity": round(velocity_part, 2),
        "source_count": breakdown.source_count,
        "news_source_count": breakdown.news_source_count,
        "social_source_count": breakdown.social_source_count,
        "evidence_count": breakdown.evidence_count,
    }
    return ConfidenceResult(score=round(total, 2), factors=factors)
