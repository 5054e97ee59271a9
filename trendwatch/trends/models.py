"""
Trend Detection Models.

Models:
- SourceTier: Credibility registry (domain -> tier, authority weight)
- TrendEvent: One tracked topic, keyed by normalized event_key
- TrendEvidence: One distinct contributing mention (append-only)
- TrendBaseline: Daily baseline snapshot per event_key
- ActionOutcome: Action taken on a trend and its measured outcome
- PipelineRun: One batch job execution
- JobFailure: Per-key retry ledger for batch jobs
"""

from __future__ import annotations

import uuid

from django.db import models
from django.utils import timezone

from trendwatch.core.enums import (
    ActionType,
    EntityType,
    JobType,
    OpportunityTier,
    RunStatus,
    SentimentLabel,
    SourceTierLevel,
    SourceType,
    TrendStage,
)


class SourceTier(models.Model):
    """
    Credibility registry entry for a source domain.

    Curated administratively; ingestion only reads it.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    domain = models.CharField(max_length=255, unique=True)  # normalized, no www.
    name = models.CharField(max_length=255, blank=True)
    tier = models.CharField(max_length=20, choices=SourceTierLevel.choices)
    authority_weight = models.FloatField(default=1.0)
    category = models.CharField(max_length=50, blank=True)  # wire, national, politics, social
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "trends_source_tier"
        ordering = ["tier", "domain"]

    def __str__(self) -> str:
        return f"{self.domain} ({self.tier}, {self.authority_weight})"


class TrendEvent(models.Model):
    """
    A tracked topic.

    Created on first evidence, mutated by the batch jobs afterwards, never
    deleted. Drops out of the active view by age, not by deletion.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    event_key = models.CharField(max_length=255, unique=True)
    title = models.CharField(max_length=500, blank=True)
    entity_type = models.CharField(
        max_length=20, choices=EntityType.choices, default=EntityType.TOPIC
    )

    # Timing
    first_seen_at = models.DateTimeField(default=timezone.now)
    last_seen_at = models.DateTimeField(default=timezone.now)
    peak_at = models.DateTimeField(null=True, blank=True)
    peak_1h = models.PositiveIntegerField(default=0)

    # Baselines (mean hourly mention rate)
    baseline_7d = models.FloatField(default=0)
    baseline_30d = models.FloatField(default=0)
    baseline_std_7d = models.FloatField(default=0)
    has_historical_baseline = models.BooleanField(default=False)
    baseline_updated_at = models.DateTimeField(null=True, blank=True)

    # Current windows (raw counts)
    current_1h = models.PositiveIntegerField(default=0)
    current_6h = models.PositiveIntegerField(default=0)
    current_24h = models.PositiveIntegerField(default=0)

    # Velocity / anomaly
    velocity = models.FloatField(default=0)
    velocity_1h = models.FloatField(default=0)
    velocity_6h = models.FloatField(default=0)
    acceleration = models.FloatField(default=0)
    z_score_velocity = models.FloatField(default=0)
    baseline_ratio = models.FloatField(null=True, blank=True)

    # Confidence / corroboration
    confidence_score = models.FloatField(default=0)  # 0-100
    confidence_factors = models.JSONField(default=dict, blank=True)
    corroboration_score = models.FloatField(default=0)  # 0-100
    source_count = models.PositiveIntegerField(default=0)
    news_source_count = models.PositiveIntegerField(default=0)
    social_source_count = models.PositiveIntegerField(default=0)
    high_tier_source_count = models.PositiveIntegerField(default=0)
    evidence_count = models.PositiveIntegerField(default=0)

    # Classification
    is_trending = models.BooleanField(default=False)
    is_breaking = models.BooleanField(default=False)
    is_verified = models.BooleanField(default=False)
    is_evergreen = models.BooleanField(default=False)
    trend_stage = models.CharField(
        max_length=20, choices=TrendStage.choices, default=TrendStage.EMERGING
    )

    # Ranking
    rank_score = models.FloatField(default=0)
    evergreen_penalty = models.FloatField(default=1.0)
    recency_decay = models.FloatField(default=1.0)

    # Outcome feedback
    decision_score = models.FloatField(null=True, blank=True)
    opportunity_tier = models.CharField(
        max_length=20, choices=OpportunityTier.choices, blank=True
    )

    scored_at = models.DateTimeField(null=True, blank=True)
    config_version = models.CharField(max_length=50, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "trends_event"
        indexes = [
            models.Index(fields=["is_trending", "rank_score"]),
            models.Index(fields=["last_seen_at"]),
            models.Index(fields=["entity_type", "trend_stage"]),
        ]

    def __str__(self) -> str:
        return f"{self.event_key} ({self.trend_stage})"


class TrendEvidence(models.Model):
    """
    One distinct mention contributing to a TrendEvent. Immutable after
    creation except for is_primary, which moves to earlier evidence.

    Unique constraint on (event, source_type, source_id) ensures a given
    external mention contributes at most once; a non-empty content_hash is
    unique per event.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    event = models.ForeignKey(TrendEvent, on_delete=models.CASCADE, related_name="evidence")
    source_type = models.CharField(max_length=20, choices=SourceType.choices)
    source_id = models.CharField(max_length=255)  # pointer into the external content store
    source_domain = models.CharField(max_length=255, blank=True)
    source_tier = models.CharField(
        max_length=20, choices=SourceTierLevel.choices, default=SourceTierLevel.UNCLASSIFIED
    )
    published_at = models.DateTimeField()
    contribution_score = models.FloatField(default=1.0)
    is_primary = models.BooleanField(default=False)
    canonical_url = models.URLField(max_length=2000, blank=True)
    content_hash = models.CharField(max_length=64, blank=True)
    sentiment_score = models.FloatField(null=True, blank=True)  # -1..1
    sentiment_label = models.CharField(max_length=20, choices=SentimentLabel.choices, blank=True)

    # Jobs only count rows ingested at or before their snapshot time
    ingested_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = "trends_evidence"
        constraints = [
            models.UniqueConstraint(
                fields=["event", "source_type", "source_id"],
                name="uniq_evidence_source",
            ),
            models.UniqueConstraint(
                fields=["event", "content_hash"],
                condition=~models.Q(content_hash=""),
                name="uniq_evidence_content_hash",
            ),
        ]
        indexes = [
            models.Index(fields=["event", "published_at"]),
        ]

    def __str__(self) -> str:
        return f"{self.source_type}:{self.source_id} -> {self.event_id}"


class TrendBaseline(models.Model):
    """
    Daily baseline snapshot for an event_key.

    One row per (event_key, baseline_date); recomputed in place if the
    baseline job runs more than once on the same day.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    event_key = models.CharField(max_length=255)
    baseline_date = models.DateField()

    mentions_count = models.PositiveIntegerField(default=0)  # trailing 7d
    hourly_average = models.FloatField(default=0)
    baseline_30d = models.FloatField(default=0)
    news_mentions = models.PositiveIntegerField(default=0)
    social_mentions = models.PositiveIntegerField(default=0)
    avg_sentiment = models.FloatField(null=True, blank=True)

    # Variability over the hourly readings
    hourly_std_dev = models.FloatField(default=0)
    relative_std_dev = models.FloatField(default=0)
    min_hourly = models.PositiveIntegerField(default=0)
    max_hourly = models.PositiveIntegerField(default=0)
    is_stable = models.BooleanField(default=False)
    history_days = models.FloatField(default=0)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "trends_baseline"
        constraints = [
            models.UniqueConstraint(
                fields=["event_key", "baseline_date"],
                name="uniq_baseline_key_date",
            )
        ]
        indexes = [
            models.Index(fields=["event_key", "baseline_date"]),
        ]

    def __str__(self) -> str:
        return f"{self.event_key} @ {self.baseline_date.isoformat()}"


class ActionOutcome(models.Model):
    """
    An action taken on a trend, plus its later-measured outcome.

    entity_type and trend_stage are snapshotted at action time so conversion
    rates group by what the operator saw.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    event = models.ForeignKey(TrendEvent, on_delete=models.CASCADE, related_name="actions")
    action_type = models.CharField(max_length=20, choices=ActionType.choices)
    actor = models.CharField(max_length=255, blank=True)
    entity_type = models.CharField(max_length=20, choices=EntityType.choices, blank=True)
    trend_stage = models.CharField(max_length=20, choices=TrendStage.choices, blank=True)
    acted_at = models.DateTimeField(default=timezone.now)

    outcome_type = models.CharField(max_length=100, blank=True)  # e.g. clicks, donations, replies
    outcome_value = models.FloatField(null=True, blank=True)
    outcome_recorded_at = models.DateTimeField(null=True, blank=True)
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "trends_action_outcome"
        indexes = [
            models.Index(fields=["entity_type", "trend_stage"]),
            models.Index(fields=["event", "acted_at"]),
        ]

    def __str__(self) -> str:
        return f"{self.action_type} on {self.event_id}"

    @property
    def has_outcome(self) -> bool:
        return self.outcome_recorded_at is not None

    @property
    def converted(self) -> bool:
        """An outcome counts as a conversion when it carries a positive value."""
        return self.has_outcome and (self.outcome_value or 0) > 0


class PipelineRun(models.Model):
    """
    One batch job execution.

    idempotency_key is unique when set, so a logical run has at most one row.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    job_type = models.CharField(max_length=20, choices=JobType.choices)
    status = models.CharField(max_length=20, choices=RunStatus.choices, default=RunStatus.RUNNING)
    started_at = models.DateTimeField(default=timezone.now)
    completed_at = models.DateTimeField(null=True, blank=True)
    duration_ms = models.PositiveIntegerField(null=True, blank=True)

    records_processed = models.PositiveIntegerField(default=0)
    records_created = models.PositiveIntegerField(default=0)
    records_failed = models.PositiveIntegerField(default=0)
    records_skipped = models.PositiveIntegerField(default=0)

    error_summary = models.TextField(blank=True)
    error_details = models.JSONField(default=dict, blank=True)
    idempotency_key = models.CharField(max_length=255, null=True, blank=True)
    attempts = models.PositiveIntegerField(default=1)
    triggered_by = models.CharField(max_length=50, default="schedule")  # schedule, manual, api
    metadata = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "trends_pipeline_run"
        constraints = [
            models.UniqueConstraint(
                fields=["idempotency_key"],
                condition=models.Q(idempotency_key__isnull=False),
                name="uniq_pipeline_run_idempotency_key",
            )
        ]
        indexes = [
            models.Index(fields=["job_type", "started_at"]),
            models.Index(fields=["status", "started_at"]),
        ]

    def __str__(self) -> str:
        return f"{self.job_type} @ {self.started_at.isoformat()} ({self.status})"


class JobFailure(models.Model):
    """
    Retry ledger for a key that failed inside a batch job.

    At most one unresolved row per (job_type, event_key).
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    job_type = models.CharField(max_length=20, choices=JobType.choices)
    event_key = models.CharField(max_length=255)
    error_message = models.TextField(blank=True)
    retry_count = models.PositiveIntegerField(default=0)
    max_retries = models.PositiveIntegerField(default=3)
    needs_attention = models.BooleanField(default=False)
    last_run = models.ForeignKey(
        PipelineRun, on_delete=models.SET_NULL, null=True, blank=True, related_name="failures"
    )
    first_failed_at = models.DateTimeField(default=timezone.now)
    last_failed_at = models.DateTimeField(default=timezone.now)
    resolved_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "trends_job_failure"
        constraints = [
            models.UniqueConstraint(
                fields=["job_type", "event_key"],
                condition=models.Q(resolved_at__isnull=True),
                name="uniq_open_job_failure",
            )
        ]
        indexes = [
            models.Index(fields=["needs_attention", "last_failed_at"]),
        ]

    def __str__(self) -> str:
        return f"{self.job_type}:{self.event_key} ({self.retry_count}/{self.max_retries})"

    @property
    def is_exhausted(self) -> bool:
        return self.retry_count >= self.max_retries
