"""
Trend API DTOs.

Pydantic v2 models for every record that crosses the engine boundary:
inbound mentions and outcome requests, outbound active-trend rows, trend
detail, run health and cohort reports.

Enums come straight from trendwatch/core/enums.py (TextChoices are str
Enums, so Pydantic validates them natively). Unknown source_type or
action_type values are rejected here, before anything touches the DB.
"""

from datetime import datetime, timezone
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, Field, field_validator, model_validator

from trendwatch.core.enums import (
    ActionType,
    EntityType,
    Freshness,
    JobType,
    OpportunityTier,
    RunStatus,
    SentimentLabel,
    SourceType,
    TrendStage,
)


# =============================================================================
# INBOUND
# =============================================================================


class MentionDTO(BaseModel):
    """One normalized mention from the extraction collaborator."""

    event_key: str = Field(min_length=1, max_length=255)
    source_type: SourceType
    source_id: str = Field(min_length=1, max_length=255)
    source_domain: str = ""
    published_at: datetime
    sentiment_score: float | None = Field(default=None, ge=-1.0, le=1.0)
    sentiment_label: SentimentLabel | None = None
    canonical_url: str | None = None
    title: str | None = None
    entity_type: EntityType | None = None

    @field_validator("event_key")
    @classmethod
    def normalize_event_key(cls, value: str) -> str:
        key = " ".join(value.strip().lower().split())
        if not key:
            raise ValueError("event_key must not be blank")
        return key

    @field_validator("published_at")
    @classmethod
    def ensure_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class OutcomeRequestDTO(BaseModel):
    """
    Outcome-recording request.

    Either records a new action on a trend (event_id + action_type), or
    attaches a measured outcome to an existing action (action_id).
    """

    event_id: UUID | None = None
    action_id: UUID | None = None
    action_type: ActionType | None = None
    outcome_type: str | None = Field(default=None, max_length=100)
    outcome_value: float | None = None
    actor: str = ""

    @model_validator(mode="after")
    def check_target(self) -> "OutcomeRequestDTO":
        if self.action_id is None:
            if self.event_id is None or self.action_type is None:
                raise ValueError("event_id and action_type are required when action_id is not given")
        elif self.outcome_type is None and self.outcome_value is None:
            raise ValueError("outcome_type or outcome_value is required when action_id is given")
        return self


# =============================================================================
# OUTBOUND
# =============================================================================


class IngestResultDTO(BaseModel):
    """Per-record ingestion result."""

    status: Literal["created", "duplicate", "invalid"]
    event_key: str | None = None
    event_id: UUID | None = None
    evidence_id: UUID | None = None
    event_created: bool = False
    reason: str | None = None


class IngestBatchResultDTO(BaseModel):
    created: int = 0
    duplicate: int = 0
    invalid: int = 0
    results: list[IngestResultDTO] = Field(default_factory=list)


class ActiveTrendDTO(BaseModel):
    """One row of the active-trends read view."""

    id: UUID
    event_key: str
    title: str
    entity_type: EntityType
    trend_stage: TrendStage
    is_trending: bool
    is_breaking: bool
    is_verified: bool
    is_evergreen: bool
    first_seen_at: datetime
    last_seen_at: datetime
    peak_at: datetime | None = None
    current_1h: int
    current_6h: int
    current_24h: int
    baseline_7d: float
    baseline_30d: float
    velocity: float
    acceleration: float
    z_score_velocity: float
    confidence_score: float
    corroboration_score: float
    source_count: int
    news_source_count: int
    social_source_count: int
    rank_score: float
    evergreen_penalty: float
    recency_decay: float
    decision_score: float | None = None
    opportunity_tier: OpportunityTier | None = None
    freshness: Freshness
    baseline_delta_pct: float | None = None


class ActiveTrendsDTO(BaseModel):
    trends: list[ActiveTrendDTO] = Field(default_factory=list)
    generated_at: datetime
    config_version: str


class EvidenceDTO(BaseModel):
    id: UUID
    source_type: SourceType
    source_id: str
    source_domain: str
    source_tier: str
    published_at: datetime
    contribution_score: float
    is_primary: bool
    canonical_url: str = ""
    sentiment_score: float | None = None
    sentiment_label: str = ""


class TrendDetailDTO(BaseModel):
    trend: ActiveTrendDTO
    confidence_factors: dict[str, Any] = Field(default_factory=dict)
    evidence: list[EvidenceDTO] = Field(default_factory=list)


class RunHealthDTO(BaseModel):
    """Health of one job type for operator dashboards."""

    job_type: JobType
    last_status: RunStatus | None = None
    last_run_at: datetime | None = None
    last_completed_at: datetime | None = None
    last_error: str | None = None
    success_count_24h: int = 0
    failure_count_24h: int = 0
    stale_count_24h: int = 0
    avg_duration_ms: float | None = None
    minutes_since_last_run: float | None = None
    expected_interval_minutes: int | None = None
    freshness_status: Literal["ok", "warning", "stale", "error", "never_run"]
    open_failures: int = 0


class RunHealthListDTO(BaseModel):
    jobs: list[RunHealthDTO] = Field(default_factory=list)
    generated_at: datetime


class ActionOutcomeDTO(BaseModel):
    id: UUID
    event_id: UUID
    action_type: ActionType
    actor: str = ""
    entity_type: str = ""
    trend_stage: str = ""
    acted_at: datetime
    outcome_type: str = ""
    outcome_value: float | None = None
    outcome_recorded_at: datetime | None = None


class CohortResultDTO(BaseModel):
    """Significance result for one cohort."""

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


class CohortReportDTO(BaseModel):
    group_by: str
    global_mean: float
    total_samples: int
    significance_level: float
    cohorts: list[CohortResultDTO] = Field(default_factory=list)
