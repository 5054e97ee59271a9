"""
Observability utilities for trend batch jobs.

Every tracked job run logs one "start" event and one terminal event
("success", "failure", "skipped" or "stale") with the run id, job type,
trigger source and status. Extra fields (counts, error summary) ride along
in the record's extra payload.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Literal, Mapping

if TYPE_CHECKING:
    from .models import PipelineRun

logger = logging.getLogger("trendwatch.jobs")

Status = Literal["start", "success", "failure", "skipped", "stale"]


def log_job_event(
    run: "PipelineRun",
    status: Status,
    extra: Mapping[str, Any] | None = None,
    error_summary: str | None = None,
) -> None:
    """
    Log a structured job event.

    Args:
        run: PipelineRun row for this execution
        status: Event status
        extra: Optional additional fields (counts, reasons)
        error_summary: Short error description for failure events
    """
    payload: dict[str, Any] = {
        "run_id": str(run.id),
        "job_type": run.job_type,
        "trigger_source": run.triggered_by,
        "attempt": run.attempts,
        "status": status,
    }

    if run.idempotency_key:
        payload["idempotency_key"] = run.idempotency_key

    if error_summary:
        payload["error_summary"] = error_summary

    if extra:
        payload.update(extra)

    if status in ("failure", "stale"):
        logger.error("job_event", extra=payload)
    else:
        logger.info("job_event", extra=payload)
