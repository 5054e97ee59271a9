"""
Read views over trend state.

- get_active_trends(): trending or recently seen keys, in rank order
- get_trend_detail(): one trend with its evidence

Active means is_trending, or last_seen_at within config.active_window_hours.
Trends age out of this view by time; nothing is deleted.
"""

from __future__ import annotations

from datetime import datetime, timedelta

from django.db.models import Q
from django.utils import timezone

from trendwatch.core.enums import Freshness
from trendwatch.trends.config import TrendConfig
from trendwatch.trends.dto import ActiveTrendDTO, ActiveTrendsDTO, EvidenceDTO, TrendDetailDTO
from trendwatch.trends.models import TrendEvent
from trendwatch.trends.scoring.rank import sort_key
from trendwatch.trends.services.outcomes import ObjectNotFoundError

EVIDENCE_DETAIL_LIMIT = 100


def freshness(last_seen_at: datetime, now: datetime) -> str:
    age = now - last_seen_at
    if age < timedelta(hours=1):
        return Freshness.FRESH
    if age < timedelta(hours=6):
        return Freshness.RECENT
    if age < timedelta(hours=24):
        return Freshness.AGING
    return Freshness.STALE


def baseline_delta_pct(current_24h: int, baseline_7d: float) -> float | None:
    """Percent difference of the 24h hourly rate from the 7-day baseline."""
    if baseline_7d <= 0:
        return None
    return round((current_24h / 24 - baseline_7d) / baseline_7d * 100, 1)


def to_active_dto(event: TrendEvent, now: datetime) -> ActiveTrendDTO:
    return ActiveTrendDTO(
        id=event.id,
        event_key=event.event_key,
        title=event.title or event.event_key,
        entity_type=event.entity_type,
        trend_stage=event.trend_stage,
        is_trending=event.is_trending,
        is_breaking=event.is_breaking,
        is_verified=event.is_verified,
        is_evergreen=event.is_evergreen,
        first_seen_at=event.first_seen_at,
        last_seen_at=event.last_seen_at,
        peak_at=event.peak_at,
        current_1h=event.current_1h,
        current_6h=event.current_6h,
        current_24h=event.current_24h,
        baseline_7d=event.baseline_7d,
        baseline_30d=event.baseline_30d,
        velocity=event.velocity,
        acceleration=event.acceleration,
        z_score_velocity=event.z_score_velocity,
        confidence_score=event.confidence_score,
        corroboration_score=event.corroboration_score,
        source_count=event.source_count,
        news_source_count=event.news_source_count,
        social_source_count=event.social_source_count,
        rank_score=event.rank_score,
        evergreen_penalty=event.evergreen_penalty,
        recency_decay=event.recency_decay,
        decision_score=event.decision_score,
        opportunity_tier=event.opportunity_tier or None,
        freshness=freshness(event.last_seen_at, now),
        baseline_delta_pct=baseline_delta_pct(event.current_24h, event.baseline_7d),
    )


def get_active_trends(
    config: TrendConfig,
    *,
    limit: int = 50,
    breaking_only: bool = False,
    now: datetime | None = None,
) -> ActiveTrendsDTO:
    """
    Active trends ordered breaking-first, then rank, z-score and velocity.
    """
    now = now or timezone.now()
    since = now - timedelta(hours=config.active_window_hours)
    qs = TrendEvent.objects.filter(Q(is_trending=True) | Q(last_seen_at__gte=since))
    if breaking_only:
        qs = qs.filter(is_breaking=True)

    events = sorted(qs, key=sort_key)[:limit]
    return ActiveTrendsDTO(
        trends=[to_active_dto(e, now) for e in events],
        generated_at=now,
        config_version=config.version,
    )


def get_trend_detail(event_key: str, now: datetime | None = None) -> TrendDetailDTO:
    """
    One trend with its most recent evidence.

    Raises:
        ObjectNotFoundError: if no trend has this key
    """
    now = now or timezone.now()
    key = " ".join(event_key.strip().lower().split())
    try:
        event = TrendEvent.objects.get(event_key=key)
    except TrendEvent.DoesNotExist:
        raise ObjectNotFoundError("TrendEvent", key)

    evidence = event.evidence.order_by("-published_at")[:EVIDENCE_DETAIL_LIMIT]
    return TrendDetailDTO(
        trend=to_active_dto(event, now),
        confidence_factors=event.confidence_factors or {},
        evidence=[
            EvidenceDTO(
                id=e.id,
                source_type=e.source_type,
                source_id=e.source_id,
                source_domain=e.source_domain,
                source_tier=e.source_tier,
                published_at=e.published_at,
                contribution_score=e.contribution_score,
                is_primary=e.is_primary,
                canonical_url=e.canonical_url,
                sentiment_score=e.sentiment_score,
                sentiment_label=e.sentiment_label,
            )
            for e in evidence
        ],
    )
