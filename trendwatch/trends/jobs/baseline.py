"""
Baseline calculator job.

Must complete before the detection job: detection skips any key whose
baseline is missing or older than config.baseline_max_age_hours.

For every key with activity in the trailing long window:
1. Bucket evidence timestamps into zero-filled hourly readings
2. baseline_7d / baseline_30d = mentions / (days * 24)
3. Hourly std-dev over the 7-day readings (sparse fallback below 3 active hours)
4. Upsert one TrendBaseline row per (key, day) when the key has enough mentions
5. Copy the baseline onto the TrendEvent for detection

Keys with less than config.min_history_days of history get a zero baseline;
detection then reports their activity at the velocity ceiling.

Only evidence ingested at or before the job's start time is counted.

The full pass runs once per day. Between full passes, the pipeline runs a
pending pass (pending_only=True) over keys whose baseline is missing or
stale, so a key first seen after the daily run is scored in the same cycle.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

import numpy as np
from django.db import transaction
from django.db.models import Min, Q
from django.utils import timezone

from trendwatch.core.enums import JobType, SourceType
from trendwatch.trends.config import TrendConfig, get_config
from trendwatch.trends.jobs.ledger import record_key_failure, resolve_key_failure
from trendwatch.trends.models import PipelineRun, TrendBaseline, TrendEvent, TrendEvidence

logger = logging.getLogger(__name__)

SPARSE_ACTIVE_HOURS = 3


def hourly_readings(timestamps, now: datetime, hours: int) -> np.ndarray:
    """
    Zero-filled mention counts per hour, index 0 = the hour ending at now.

    Timestamps outside (now - hours, now] are ignored.
    """
    if not timestamps:
        return np.zeros(hours, dtype=int)
    ages = np.array([(now - ts).total_seconds() for ts in timestamps], dtype=float)
    ages = ages[(ages >= 0) & (ages < hours * 3600)]
    buckets = (ages // 3600).astype(int)
    return np.bincount(buckets, minlength=hours)[:hours]


def hourly_std_dev(readings: np.ndarray, mean: float) -> float:
    """
    Population std-dev of hourly readings.

    With fewer than three active hours the sample says little about spread,
    so fall back to max(mean / 2, (peak - mean) / 2).
    """
    if readings.size == 0 or mean <= 0:
        return 0.0
    if np.count_nonzero(readings) >= SPARSE_ACTIVE_HOURS:
        return float(np.std(readings))
    return max(mean * 0.5, (float(readings.max()) - mean) / 2)


def compute_baseline(event: TrendEvent, now: datetime, config: TrendConfig) -> dict:
    """
    Compute baseline statistics for one key.

    Returns:
        Dict of baseline values (see TrendBaseline / TrendEvent fields)
    """
    long_hours = config.baseline_long_days * 24
    short_hours = config.baseline_short_days * 24
    long_start = now - timedelta(hours=long_hours)
    short_start = now - timedelta(hours=short_hours)

    snapshot = TrendEvidence.objects.filter(event=event, ingested_at__lte=now, published_at__lte=now)
    rows = list(
        snapshot.filter(published_at__gt=long_start).values_list(
            "published_at", "source_type", "sentiment_score"
        )
    )
    earliest = snapshot.aggregate(first=Min("published_at"))["first"]
    history_days = (now - earliest).total_seconds() / 86400 if earliest else 0.0

    short_rows = [r for r in rows if r[0] > short_start]
    readings = hourly_readings([r[0] for r in short_rows], now, short_hours)

    count_7d = len(short_rows)
    count_30d = len(rows)
    mean_7d = count_7d / short_hours
    mean_30d = count_30d / long_hours
    std_7d = hourly_std_dev(readings, mean_7d)
    relative_std = std_7d / mean_7d if mean_7d > 0 else 0.0

    has_history = history_days >= config.min_history_days
    sentiments = [r[2] for r in short_rows if r[2] is not None]

    return {
        "count_7d": count_7d,
        "count_30d": count_30d,
        "baseline_7d": round(mean_7d, 4) if has_history else 0.0,
        "baseline_30d": round(mean_30d, 4) if has_history else 0.0,
        "std_7d": round(std_7d, 4) if has_history else 0.0,
        "relative_std_dev": round(relative_std, 4),
        "min_hourly": int(readings.min()) if readings.size else 0,
        "max_hourly": int(readings.max()) if readings.size else 0,
        "is_stable": relative_std < config.stable_rsd_threshold and mean_7d > config.stable_min_hourly,
        "history_days": round(history_days, 2),
        "has_history": has_history,
        "news_mentions": sum(1 for r in short_rows if r[1] != SourceType.SOCIAL),
        "social_mentions": sum(1 for r in short_rows if r[1] == SourceType.SOCIAL),
        "avg_sentiment": round(float(np.mean(sentiments)), 4) if sentiments else None,
    }


@transaction.atomic
def _apply_baseline(event: TrendEvent, stats: dict, now: datetime, config: TrendConfig) -> bool | None:
    """
    Persist baseline values. Returns True/False for row created/updated, None if no row written.
    """
    row_created = None
    if stats["count_7d"] >= config.min_baseline_mentions:
        _, row_created = TrendBaseline.objects.update_or_create(
            event_key=event.event_key,
            baseline_date=now.date(),
            defaults={
                "mentions_count": stats["count_7d"],
                "hourly_average": stats["baseline_7d"],
                "baseline_30d": stats["baseline_30d"],
                "news_mentions": stats["news_mentions"],
                "social_mentions": stats["social_mentions"],
                "avg_sentiment": stats["avg_sentiment"],
                "hourly_std_dev": stats["std_7d"],
                "relative_std_dev": stats["relative_std_dev"],
                "min_hourly": stats["min_hourly"],
                "max_hourly": stats["max_hourly"],
                "is_stable": stats["is_stable"] and stats["has_history"],
                "history_days": stats["history_days"],
            },
        )

    TrendEvent.objects.filter(id=event.id).update(
        baseline_7d=stats["baseline_7d"],
        baseline_30d=stats["baseline_30d"],
        baseline_std_7d=stats["std_7d"],
        has_historical_baseline=stats["has_history"],
        baseline_updated_at=now,
    )
    return row_created


def pending_baseline_events(now: datetime, config: TrendConfig):
    """Keys with recent evidence whose baseline is missing or stale."""
    stale_before = now - timedelta(hours=config.baseline_max_age_hours)
    return (
        TrendEvent.objects.filter(
            evidence__published_at__gt=now - timedelta(days=config.baseline_long_days),
            evidence__ingested_at__lte=now,
        )
        .filter(Q(baseline_updated_at__isnull=True) | Q(baseline_updated_at__lt=stale_before))
        .distinct()
    )


def run_baseline(
    run: PipelineRun | None = None,
    now: datetime | None = None,
    config: TrendConfig | None = None,
    pending_only: bool = False,
) -> dict:
    """
    Run the baseline calculator.

    Args:
        run: PipelineRun tracking this execution (for the failure ledger)
        now: Snapshot time (default timezone.now())
        config: Active TrendConfig
        pending_only: Only keys whose baseline is missing or stale

    Returns:
        Dict with counts: processed, created, updated, skipped, failed
    """
    now = now or timezone.now()
    config = config or get_config()
    long_start = now - timedelta(days=config.baseline_long_days)

    events = TrendEvent.objects.filter(
        evidence__published_at__gt=long_start,
        evidence__ingested_at__lte=now,
    ).distinct()
    if pending_only:
        events = pending_baseline_events(now, config)

    processed = 0
    created = 0
    updated = 0
    skipped = 0
    failed = 0

    for event in events.iterator():
        processed += 1
        try:
            stats = compute_baseline(event, now, config)
            row_created = _apply_baseline(event, stats, now, config)
        except Exception as e:
            failed += 1
            record_key_failure(JobType.BASELINE, event.event_key, e, run=run)
            continue

        resolve_key_failure(JobType.BASELINE, event.event_key)
        if row_created is None:
            skipped += 1
        elif row_created:
            created += 1
        else:
            updated += 1

    logger.info(
        "Baseline job completed",
        extra={
            "keys_processed": processed,
            "baselines_created": created,
            "baselines_updated": updated,
            "keys_below_minimum": skipped,
            "keys_failed": failed,
        },
    )

    return {
        "processed": processed,
        "created": created,
        "updated": updated,
        "skipped": skipped,
        "failed": failed,
    }
