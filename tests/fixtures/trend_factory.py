"""
Test factory for trend events and evidence.

USAGE:
    from tests.fixtures.trend_factory import (
        NOW,
        make_event,
        add_evidence,
        add_hourly_evidence,
        make_mention,
        make_action,
    )

Evidence rows are created directly (bypassing ingestion) with
ingested_at = published_at unless given, so jobs run with a fixed
snapshot time see exactly the rows a test created.
"""

from datetime import datetime, timedelta, timezone
from itertools import count

from trendwatch.core.enums import EntityType, SourceTierLevel, SourceType
from trendwatch.trends.models import ActionOutcome, TrendEvent, TrendEvidence

# January 6th, 18:00 UTC: the reference snapshot used across the suite
NOW = datetime(2026, 1, 6, 18, 0, tzinfo=timezone.utc)

_ids = count(1)


def make_event(event_key: str = "test topic", **overrides) -> TrendEvent:
    """TrendEvent first seen a day before NOW, with a fresh empty baseline."""
    now = overrides.pop("now", NOW)
    defaults = {
        "title": event_key.title(),
        "entity_type": EntityType.TOPIC,
        "first_seen_at": now - timedelta(days=1),
        "last_seen_at": now - timedelta(minutes=10),
        "baseline_updated_at": now - timedelta(hours=1),
        "has_historical_baseline": True,
    }
    defaults.update(overrides)
    return TrendEvent.objects.create(event_key=event_key, **defaults)


def add_evidence(
    event: TrendEvent,
    published_at: datetime,
    *,
    source_type: str = SourceType.NATIONAL,
    domain: str = "example.com",
    source_id: str | None = None,
    tier: str = SourceTierLevel.UNCLASSIFIED,
    weight: float = 1.0,
    ingested_at: datetime | None = None,
    **fields,
) -> TrendEvidence:
    return TrendEvidence.objects.create(
        event=event,
        source_type=source_type,
        source_id=source_id or f"src-{next(_ids)}",
        source_domain=domain,
        source_tier=tier,
        contribution_score=weight,
        published_at=published_at,
        ingested_at=ingested_at or published_at,
        **fields,
    )


def add_hourly_evidence(
    event: TrendEvent,
    *,
    hours: int,
    per_hour: int = 1,
    now: datetime = NOW,
    source_type: str = SourceType.NATIONAL,
    domain: str = "example.com",
) -> list[TrendEvidence]:
    """
    per_hour mentions in each of the `hours` hours ending at now.

    Mentions sit mid-hour, so hour k (0 = most recent) holds exactly
    per_hour rows for any window boundary on the hour.
    """
    rows = []
    for hour in range(hours):
        for i in range(per_hour):
            published = now - timedelta(hours=hour, minutes=30, seconds=i)
            rows.append(
                TrendEvidence(
                    event=event,
                    source_type=source_type,
                    source_id=f"bulk-{next(_ids)}",
                    source_domain=domain,
                    source_tier=SourceTierLevel.UNCLASSIFIED,
                    contribution_score=1.0,
                    published_at=published,
                    ingested_at=published,
                )
            )
    return TrendEvidence.objects.bulk_create(rows)


def make_mention(**overrides) -> dict:
    """Raw mention payload in the ingestion contract."""
    mention = {
        "event_key": "Test Topic",
        "source_type": SourceType.WIRE.value,
        "source_id": f"mention-{next(_ids)}",
        "source_domain": "reuters.com",
        "published_at": (NOW - timedelta(minutes=15)).isoformat(),
        "canonical_url": None,
        "title": "Test Topic",
    }
    mention.update(overrides)
    return mention


def make_action(
    event: TrendEvent,
    *,
    action_type: str = "alert",
    outcome_value: float | None = None,
    entity_type: str | None = None,
    trend_stage: str | None = None,
) -> ActionOutcome:
    """ActionOutcome snapshotting the event's labels; outcome_value set means recorded."""
    return ActionOutcome.objects.create(
        event=event,
        action_type=action_type,
        entity_type=entity_type or event.entity_type,
        trend_stage=trend_stage or event.trend_stage,
        outcome_type="engagement" if outcome_value is not None else "",
        outcome_value=outcome_value,
        outcome_recorded_at=NOW if outcome_value is not None else None,
    )
