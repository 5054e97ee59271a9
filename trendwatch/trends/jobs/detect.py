"""
Trend detection job.

Scores every candidate key (recently seen or currently trending):
1. Precondition: a baseline computed within config.baseline_max_age_hours;
   keys without one are skipped with a logged reason, never scored
   against a fabricated zero
2. Window counts (1h/6h/24h) over evidence ingested by the snapshot time
3. Velocity, z-score and acceleration against the 7-day baseline
4. Confidence, corroboration, lifecycle stage and breaking flag
5. Rank score with recency decay and evergreen penalty

All computed fields are overwritten, so re-running over the same evidence
and snapshot time produces identical rows.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from django.db.models import Q
from django.utils import timezone

from trendwatch.core.enums import JobType
from trendwatch.trends.config import TrendConfig, get_config
from trendwatch.trends.jobs.ledger import last_successful_run, record_key_failure, resolve_key_failure
from trendwatch.trends.models import PipelineRun, TrendBaseline, TrendEvent, TrendEvidence
from trendwatch.trends.scoring import lifecycle, rank
from trendwatch.trends.scoring.confidence import (
    EvidenceSource,
    confidence_score,
    corroboration_score,
    summarize_sources,
)
from trendwatch.trends.scoring.velocity import compute_velocity

logger = logging.getLogger(__name__)

SCORED_FIELDS = [
    "current_1h", "current_6h", "current_24h",
    "velocity", "velocity_1h", "velocity_6h", "acceleration", "z_score_velocity", "baseline_ratio",
    "confidence_score", "confidence_factors", "corroboration_score",
    "source_count", "news_source_count", "social_source_count", "high_tier_source_count",
    "is_trending", "is_breaking", "is_verified", "is_evergreen", "trend_stage",
    "rank_score", "evergreen_penalty", "recency_decay",
    "peak_1h", "peak_at", "scored_at", "config_version", "updated_at",
]


def baseline_skip_reason(event: TrendEvent, now: datetime, config: TrendConfig) -> str | None:
    """Why a key cannot be scored yet, or None when its baseline is usable."""
    if event.baseline_updated_at is None:
        return "baseline_missing"
    if now - event.baseline_updated_at > timedelta(hours=config.baseline_max_age_hours):
        return "baseline_stale"
    return None


def score_event(event: TrendEvent, now: datetime, config: TrendConfig) -> TrendEvent:
    """
    Recompute every detection field on one event and save it.

    Args:
        event: TrendEvent with a fresh baseline
        now: Snapshot time
        config: Active TrendConfig

    Returns:
        The updated event
    """
    window_start = now - timedelta(hours=24)
    rows = list(
        TrendEvidence.objects.filter(
            event=event,
            published_at__gt=window_start,
            published_at__lte=now,
            ingested_at__lte=now,
        ).values_list(
            "source_type", "source_domain", "source_id", "source_tier", "contribution_score", "published_at"
        )
    )

    one_hour_ago = now - timedelta(hours=1)
    six_hours_ago = now - timedelta(hours=6)
    current_1h = sum(1 for r in rows if r[5] > one_hour_ago)
    current_6h = sum(1 for r in rows if r[5] > six_hours_ago)
    current_24h = len(rows)

    breakdown = summarize_sources((EvidenceSource(*r[:5]) for r in rows), config)
    velocity = compute_velocity(current_1h, current_6h, event.baseline_7d, event.baseline_std_7d, config)
    confidence = confidence_score(current_1h, event.baseline_7d, velocity.velocity, breakdown, config)
    corroboration = corroboration_score(breakdown, config)

    age_hours = max(0.0, (now - event.first_seen_at).total_seconds() / 3600)
    signals = lifecycle.BreakingSignals(
        velocity=velocity.velocity,
        source_count=breakdown.source_count,
        news_source_count=breakdown.news_source_count,
        high_tier_source_count=breakdown.high_tier_source_count,
        age_hours=age_hours,
        baseline_ratio=velocity.baseline_ratio,
    )
    breaking = lifecycle.breaking_reason(signals, config)

    latest_baseline = (
        TrendBaseline.objects.filter(event_key=event.event_key, baseline_date__lte=now.date())
        .order_by("-baseline_date")
        .first()
    )
    evergreen = rank.is_evergreen_topic(
        event.event_key,
        event.baseline_7d,
        event.baseline_30d,
        config,
        baseline_is_stable=bool(latest_baseline and latest_baseline.is_stable),
    )
    hours_since_seen = max(0.0, (now - event.last_seen_at).total_seconds() / 3600)
    ranked = rank.rank_score(
        z=velocity.z_score,
        corroboration=corroboration,
        current_1h=current_1h,
        current_24h=current_24h,
        hours_since_last_seen=hours_since_seen,
        is_evergreen=evergreen,
        has_historical_baseline=event.has_historical_baseline,
        config=config,
        velocity=velocity.velocity,
    )

    event.current_1h = current_1h
    event.current_6h = current_6h
    event.current_24h = current_24h
    event.velocity = round(velocity.velocity, 2)
    event.velocity_1h = round(velocity.velocity_1h, 2)
    event.velocity_6h = round(velocity.velocity_6h, 2)
    event.acceleration = round(velocity.acceleration, 2)
    event.z_score_velocity = round(velocity.z_score, 3)
    event.baseline_ratio = round(velocity.baseline_ratio, 3) if velocity.baseline_ratio is not None else None
    event.confidence_score = confidence.score
    event.confidence_factors = {
        **confidence.factors,
        "breaking_reason": breaking,
        "rank_burst": ranked.burst,
        "rank_corroboration": ranked.corroboration,
        "rank_activity": ranked.activity,
    }
    event.corroboration_score = corroboration
    event.source_count = breakdown.source_count
    event.news_source_count = breakdown.news_source_count
    event.social_source_count = breakdown.social_source_count
    event.high_tier_source_count = breakdown.high_tier_source_count
    event.is_breaking = breaking is not None
    event.is_trending = lifecycle.is_trending(
        current_1h, current_24h, breakdown.source_count, velocity.velocity, confidence.score, config
    )
    event.is_verified = lifecycle.is_verified(breakdown.high_tier_source_count, breakdown.source_count, config)
    event.is_evergreen = evergreen
    event.trend_stage = lifecycle.classify_stage(
        velocity.velocity, velocity.acceleration, age_hours, config
    )
    event.rank_score = ranked.rank_score
    event.evergreen_penalty = ranked.evergreen_penalty
    event.recency_decay = ranked.recency_decay
    if current_1h > event.peak_1h:
        event.peak_1h = current_1h
        event.peak_at = now
    event.scored_at = now
    event.config_version = config.version
    event.save(update_fields=SCORED_FIELDS)
    return event


def run_detect(
    run: PipelineRun | None = None,
    now: datetime | None = None,
    config: TrendConfig | None = None,
) -> dict:
    """
    Run trend detection.

    Args:
        run: PipelineRun tracking this execution (for the failure ledger)
        now: Snapshot time (default timezone.now())
        config: Active TrendConfig

    Returns:
        Dict with counts: processed, scored, skipped, failed, trending, breaking
    """
    now = now or timezone.now()
    config = config or get_config()

    if last_successful_run(JobType.BASELINE) is None:
        logger.warning(
            "No successful baseline run recorded; keys without a baseline will be skipped",
            extra={"snapshot": now.isoformat()},
        )

    active_since = now - timedelta(hours=config.active_window_hours)
    candidates = TrendEvent.objects.filter(Q(last_seen_at__gte=active_since) | Q(is_trending=True))

    processed = 0
    scored = 0
    skipped = 0
    failed = 0
    trending = 0
    breaking = 0
    skip_reasons: dict[str, int] = {}

    for event in candidates.iterator():
        processed += 1
        reason = baseline_skip_reason(event, now, config)
        if reason:
            skipped += 1
            skip_reasons[reason] = skip_reasons.get(reason, 0) + 1
            logger.info(
                "Skipping key without usable baseline",
                extra={"event_key": event.event_key, "reason": reason},
            )
            continue

        try:
            event = score_event(event, now, config)
        except Exception as e:
            failed += 1
            record_key_failure(JobType.DETECT, event.event_key, e, run=run)
            continue

        resolve_key_failure(JobType.DETECT, event.event_key)
        scored += 1
        trending += int(event.is_trending)
        breaking += int(event.is_breaking)

    logger.info(
        "Detection job completed",
        extra={
            "keys_processed": processed,
            "keys_scored": scored,
            "keys_skipped": skipped,
            "keys_failed": failed,
            "trending_count": trending,
            "breaking_count": breaking,
        },
    )

    return {
        "processed": processed,
        "created": scored,
        "scored": scored,
        "skipped": skipped,
        "failed": failed,
        "trending": trending,
        "breaking": breaking,
        "skip_reasons": skip_reasons,
    }
