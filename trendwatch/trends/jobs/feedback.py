"""
Outcome feedback job.

Derives decision_score and opportunity_tier for active trends:

    base = 0.6 * min(100, rank_score) + 0.4 * confidence_score

When the trend's (entity_type, stage) cohort has at least
config.min_outcome_samples recorded actions, its conversion rate shifts
the score by up to +/- config.max_feedback_adjustment. With no outcome
history the adjustment is skipped and the base score stands; detection
never depends on this job.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from django.db.models import Q
from django.utils import timezone

from trendwatch.core.enums import JobType, OpportunityTier
from trendwatch.trends.config import TrendConfig, get_config
from trendwatch.trends.jobs.ledger import record_key_failure, resolve_key_failure
from trendwatch.trends.models import PipelineRun, TrendEvent
from trendwatch.trends.services.outcomes import conversion_rates

logger = logging.getLogger(__name__)


def base_decision_score(rank_score: float, confidence: float) -> float:
    return 0.6 * min(100.0, max(0.0, rank_score)) + 0.4 * max(0.0, confidence)


def feedback_adjustment(rate: float | None, samples: int, config: TrendConfig) -> float:
    """Shift in [-max, +max]; 0 when the cohort has too few samples."""
    if rate is None or samples < config.min_outcome_samples:
        return 0.0
    return (rate - 0.5) * 2 * config.max_feedback_adjustment


def opportunity_tier(score: float, config: TrendConfig) -> str:
    if score >= config.act_now_threshold:
        return OpportunityTier.ACT_NOW
    if score >= config.consider_threshold:
        return OpportunityTier.CONSIDER
    if score >= config.watch_threshold:
        return OpportunityTier.WATCH
    return OpportunityTier.IGNORE


def decide(
    event: TrendEvent,
    rates: dict[tuple[str, str], tuple[float, int]],
    config: TrendConfig,
) -> tuple[float, str, float]:
    """Returns (decision_score, opportunity_tier, adjustment)."""
    base = base_decision_score(event.rank_score, event.confidence_score)
    rate, samples = rates.get((event.entity_type, event.trend_stage), (None, 0))
    adjustment = feedback_adjustment(rate, samples, config)
    score = round(max(0.0, min(100.0, base + adjustment)), 2)
    return score, opportunity_tier(score, config), adjustment


def run_feedback(
    run: PipelineRun | None = None,
    now: datetime | None = None,
    config: TrendConfig | None = None,
) -> dict:
    """
    Run the outcome feedback job.

    Returns:
        Dict with counts: processed, created, adjusted, failed, and per-tier counts
    """
    now = now or timezone.now()
    config = config or get_config()
    rates = conversion_rates()
    if not rates:
        logger.info("No outcome history; decision scores use rank and confidence only")

    active_since = now - timedelta(hours=config.active_window_hours)
    events = TrendEvent.objects.filter(
        Q(last_seen_at__gte=active_since) | Q(is_trending=True),
        scored_at__isnull=False,
    )

    processed = 0
    updated = 0
    adjusted = 0
    failed = 0
    tiers: dict[str, int] = {tier: 0 for tier in OpportunityTier.values}

    for event in events.iterator():
        processed += 1
        try:
            score, tier, adjustment = decide(event, rates, config)
            TrendEvent.objects.filter(id=event.id).update(
                decision_score=score,
                opportunity_tier=tier,
            )
        except Exception as e:
            failed += 1
            record_key_failure(JobType.FEEDBACK, event.event_key, e, run=run)
            continue

        resolve_key_failure(JobType.FEEDBACK, event.event_key)
        updated += 1
        tiers[tier] += 1
        if adjustment:
            adjusted += 1

    logger.info(
        "Feedback job completed",
        extra={
            "keys_processed": processed,
            "keys_updated": updated,
            "keys_adjusted": adjusted,
            "keys_failed": failed,
        },
    )

    return {
        "processed": processed,
        "created": updated,
        "adjusted": adjusted,
        "failed": failed,
        "tiers": tiers,
    }
