"""Django admin configuration for trend models."""

from django.contrib import admin

from .models import (
    ActionOutcome,
    JobFailure,
    PipelineRun,
    SourceTier,
    TrendBaseline,
    TrendEvent,
    TrendEvidence,
)


@admin.register(SourceTier)
class SourceTierAdmin(admin.ModelAdmin):
    """Admin for SourceTier model."""

    list_display = ["domain", "name", "tier", "authority_weight", "category"]
    list_filter = ["tier", "category"]
    search_fields = ["domain", "name"]


@admin.register(TrendEvent)
class TrendEventAdmin(admin.ModelAdmin):
    """Admin for TrendEvent model."""

    list_display = [
        "event_key", "trend_stage", "is_trending", "is_breaking",
        "rank_score", "velocity", "z_score_velocity", "confidence_score", "last_seen_at",
    ]
    list_filter = ["trend_stage", "is_trending", "is_breaking", "is_evergreen", "entity_type"]
    search_fields = ["event_key", "title"]
    ordering = ["-rank_score"]


@admin.register(TrendEvidence)
class TrendEvidenceAdmin(admin.ModelAdmin):
    """Admin for TrendEvidence model."""

    list_display = ["__str__", "source_type", "source_domain", "source_tier", "published_at", "is_primary"]
    list_filter = ["source_type", "source_tier"]
    search_fields = ["source_id", "source_domain", "event__event_key"]
    ordering = ["-published_at"]


@admin.register(TrendBaseline)
class TrendBaselineAdmin(admin.ModelAdmin):
    list_display = ["event_key", "baseline_date", "mentions_count", "hourly_average", "baseline_30d", "is_stable"]
    list_filter = ["is_stable", "baseline_date"]
    search_fields = ["event_key"]
    ordering = ["-baseline_date"]


@admin.register(ActionOutcome)
class ActionOutcomeAdmin(admin.ModelAdmin):
    list_display = ["event", "action_type", "entity_type", "trend_stage", "outcome_type", "outcome_value", "acted_at"]
    list_filter = ["action_type", "entity_type", "trend_stage"]
    ordering = ["-acted_at"]


@admin.register(PipelineRun)
class PipelineRunAdmin(admin.ModelAdmin):
    """Admin for PipelineRun model."""

    list_display = ["id", "job_type", "status", "records_processed", "records_failed", "started_at", "duration_ms"]
    list_filter = ["job_type", "status", "triggered_by"]
    search_fields = ["idempotency_key"]
    ordering = ["-started_at"]


@admin.register(JobFailure)
class JobFailureAdmin(admin.ModelAdmin):
    list_display = ["job_type", "event_key", "retry_count", "max_retries", "needs_attention", "last_failed_at", "resolved_at"]
    list_filter = ["job_type", "needs_attention"]
    search_fields = ["event_key"]
