"""
Outcome recording and conversion statistics.

Actions taken on a trend (alert sent, dismissed, ...) are recorded as
ActionOutcome rows; a measured outcome can be attached later. The
resulting conversion rates feed the decision score, and the cohort report
runs the significance path over recorded outcome values.
"""

from __future__ import annotations

import logging
from collections import defaultdict
from uuid import UUID

from django.db.models import Q
from django.utils import timezone

from trendwatch.trends.config import TrendConfig
from trendwatch.trends.dto import (
    ActionOutcomeDTO,
    CohortReportDTO,
    CohortResultDTO,
    OutcomeRequestDTO,
)
from trendwatch.trends.models import ActionOutcome, TrendEvent
from trendwatch.trends.scoring.significance import cohort_significance

logger = logging.getLogger(__name__)

COHORT_GROUPINGS = ("entity_type", "trend_stage", "action_type")


class ObjectNotFoundError(Exception):
    """Raised when a referenced trend or action does not exist."""

    def __init__(self, object_type: str, object_id):
        self.object_type = object_type
        self.object_id = object_id
        super().__init__(f"{object_type} {object_id} not found")


def _to_dto(action: ActionOutcome) -> ActionOutcomeDTO:
    return ActionOutcomeDTO(
        id=action.id,
        event_id=action.event_id,
        action_type=action.action_type,
        actor=action.actor,
        entity_type=action.entity_type,
        trend_stage=action.trend_stage,
        acted_at=action.acted_at,
        outcome_type=action.outcome_type,
        outcome_value=action.outcome_value,
        outcome_recorded_at=action.outcome_recorded_at,
    )


def record_action(
    event_id: UUID,
    action_type: str,
    *,
    actor: str = "",
    outcome_type: str | None = None,
    outcome_value: float | None = None,
) -> ActionOutcomeDTO:
    """
    Record an action on a trend, optionally with an immediate outcome.

    The trend's entity_type and stage are snapshotted on the action row.

    Raises:
        ObjectNotFoundError: if the trend does not exist
    """
    try:
        event = TrendEvent.objects.get(id=event_id)
    except TrendEvent.DoesNotExist:
        raise ObjectNotFoundError("TrendEvent", event_id)

    has_outcome = outcome_type is not None or outcome_value is not None
    action = ActionOutcome.objects.create(
        event=event,
        action_type=action_type,
        actor=actor,
        entity_type=event.entity_type,
        trend_stage=event.trend_stage,
        outcome_type=outcome_type or "",
        outcome_value=outcome_value,
        outcome_recorded_at=timezone.now() if has_outcome else None,
    )
    logger.info(
        "Action recorded",
        extra={"event_key": event.event_key, "action_type": action_type, "action_id": str(action.id)},
    )
    return _to_dto(action)


def record_outcome(
    action_id: UUID,
    *,
    outcome_type: str | None = None,
    outcome_value: float | None = None,
) -> ActionOutcomeDTO:
    """
    Attach a measured outcome to an existing action (last write wins).

    Raises:
        ObjectNotFoundError: if the action does not exist
    """
    try:
        action = ActionOutcome.objects.get(id=action_id)
    except ActionOutcome.DoesNotExist:
        raise ObjectNotFoundError("ActionOutcome", action_id)

    if outcome_type is not None:
        action.outcome_type = outcome_type
    if outcome_value is not None:
        action.outcome_value = outcome_value
    action.outcome_recorded_at = timezone.now()
    action.save(update_fields=["outcome_type", "outcome_value", "outcome_recorded_at"])
    return _to_dto(action)


def handle_outcome_request(request: OutcomeRequestDTO) -> tuple[ActionOutcomeDTO, bool]:
    """
    Dispatch an outcome request.

    Returns:
        (action dto, created) - created is False when an outcome was
        attached to an existing action
    """
    if request.action_id is not None:
        dto = record_outcome(
            request.action_id,
            outcome_type=request.outcome_type,
            outcome_value=request.outcome_value,
        )
        return dto, False
    dto = record_action(
        request.event_id,
        request.action_type,
        actor=request.actor,
        outcome_type=request.outcome_type,
        outcome_value=request.outcome_value,
    )
    return dto, True


def conversion_rates() -> dict[tuple[str, str], tuple[float, int]]:
    """
    Action-to-outcome conversion rate per (entity_type, trend_stage).

    Every action is a sample; an action converts when it has a recorded
    outcome with a positive value. Dismissals therefore count against.

    Returns:
        {(entity_type, trend_stage): (rate, samples)}
    """
    totals: dict[tuple[str, str], list[int]] = defaultdict(lambda: [0, 0])
    rows = ActionOutcome.objects.values_list(
        "entity_type", "trend_stage", "outcome_value", "outcome_recorded_at"
    )
    for entity_type, stage, value, recorded_at in rows:
        bucket = totals[(entity_type, stage)]
        bucket[1] += 1
        if recorded_at is not None and (value or 0) > 0:
            bucket[0] += 1
    return {key: (converted / samples, samples) for key, (converted, samples) in totals.items()}


def cohort_report(config: TrendConfig, group_by: str = "entity_type") -> CohortReportDTO:
    """
    Significance of outcome values per cohort.

    Args:
        config: Active TrendConfig (significance level, min cohort size)
        group_by: entity_type, trend_stage or action_type

    Raises:
        ValueError: for an unsupported grouping
    """
    if group_by not in COHORT_GROUPINGS:
        raise ValueError(f"Unsupported cohort grouping: {group_by}")

    groups: dict[str, list[float]] = defaultdict(list)
    rows = ActionOutcome.objects.filter(
        Q(outcome_recorded_at__isnull=False) & Q(outcome_value__isnull=False)
    ).values_list(group_by, "outcome_value")
    for cohort, value in rows:
        groups[cohort or "unknown"].append(float(value))

    results = cohort_significance(groups, config)
    pooled = [v for values in groups.values() for v in values]
    global_mean = sum(pooled) / len(pooled) if pooled else 0.0

    return CohortReportDTO(
        group_by=group_by,
        global_mean=round(global_mean, 4),
        total_samples=len(pooled),
        significance_level=config.significance_level,
        cohorts=[CohortResultDTO(**vars(r)) for r in results],
    )
