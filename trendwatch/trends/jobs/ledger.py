"""
Pipeline Run Ledger.

This module provides:
- execute_tracked(): Run a batch job under a PipelineRun row
- record_key_failure(): Count a per-key failure against its retry budget
- resolve_key_failure(): Close a key's open failure after a success
- mark_stale_runs(): SLA monitor; flags runs that overran their duration
- last_successful_run(): Most recent successful run for a job type
- window_idempotency_key(): Default key for a job's current schedule slot

Idempotency:
- A run carrying an idempotency_key executes at most once successfully
- Re-triggering a key whose run succeeded (or is still running) is skipped
- Re-triggering a key whose run failed or went stale retries in place
  (same row, attempts + 1)

Failure policy:
- Batch exceptions mark the run failed and re-raise; writes already
  committed for earlier keys stay (jobs recompute and overwrite on retry)
- Per-key failures go to JobFailure; exhausting max_retries flags the key
  for operator attention without stopping the batch
"""

from __future__ import annotations

import logging
import time
import traceback
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable

from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils import timezone

from trendwatch.core.enums import RunStatus
from trendwatch.trends.config import JOB_SLAS
from trendwatch.trends.models import JobFailure, PipelineRun
from trendwatch.trends.observability import log_job_event

logger = logging.getLogger(__name__)

DEFAULT_MAX_RETRIES = 3

# Count-dict keys a job may return -> PipelineRun fields
COUNT_FIELDS = {
    "processed": "records_processed",
    "created": "records_created",
    "failed": "records_failed",
    "skipped": "records_skipped",
}


# =============================================================================
# RESULT TYPES
# =============================================================================


@dataclass
class TrackedRunResult:
    """Result of a tracked job execution."""
    run: PipelineRun
    executed: bool
    result: dict | None = None
    reason: str = ""


# =============================================================================
# RUN LIFECYCLE
# =============================================================================


def _claim_run(
    job_type: str,
    idempotency_key: str | None,
    triggered_by: str,
) -> tuple[PipelineRun | None, PipelineRun | None, str]:
    """
    Create or reclaim the run row.

    Returns:
        (run_to_execute, existing_run, skip_reason)
    """
    now = timezone.now()

    if idempotency_key is None:
        run = PipelineRun.objects.create(
            job_type=job_type,
            status=RunStatus.RUNNING,
            started_at=now,
            triggered_by=triggered_by,
        )
        return run, None, ""

    with transaction.atomic():
        existing = (
            PipelineRun.objects.select_for_update()
            .filter(idempotency_key=idempotency_key)
            .first()
        )
        if existing is None:
            try:
                with transaction.atomic():
                    run = PipelineRun.objects.create(
                        job_type=job_type,
                        status=RunStatus.RUNNING,
                        started_at=now,
                        idempotency_key=idempotency_key,
                        triggered_by=triggered_by,
                    )
                return run, None, ""
            except IntegrityError:
                existing = PipelineRun.objects.get(idempotency_key=idempotency_key)

        if existing.status == RunStatus.SUCCESS:
            return None, existing, "already_succeeded"
        if existing.status == RunStatus.RUNNING:
            return None, existing, "already_running"

        # Failed, stale or skipped: retry in place
        PipelineRun.objects.filter(id=existing.id).update(
            status=RunStatus.RUNNING,
            started_at=now,
            completed_at=None,
            duration_ms=None,
            error_summary="",
            error_details={},
            triggered_by=triggered_by,
            attempts=F("attempts") + 1,
        )
        existing.refresh_from_db()
        return existing, None, ""


def _complete_run(run: PipelineRun, result: dict, started: float) -> None:
    run.status = RunStatus.SUCCESS
    run.completed_at = timezone.now()
    run.duration_ms = int((time.monotonic() - started) * 1000)
    for key, field_name in COUNT_FIELDS.items():
        setattr(run, field_name, int(result.get(key, 0) or 0))
    run.metadata = {**(run.metadata or {}), "result": result}
    run.save()


def _fail_run(run: PipelineRun, exc: Exception, started: float) -> str:
    summary = f"{type(exc).__name__}: {exc}"[:500]
    run.status = RunStatus.FAILED
    run.completed_at = timezone.now()
    run.duration_ms = int((time.monotonic() - started) * 1000)
    run.error_summary = summary
    run.error_details = {
        "exception": type(exc).__name__,
        "message": str(exc)[:2000],
        "traceback": traceback.format_exc()[-4000:],
    }
    run.save()
    return summary


def execute_tracked(
    job_type: str,
    func: Callable[[PipelineRun], dict],
    *,
    idempotency_key: str | None = None,
    triggered_by: str = "schedule",
) -> TrackedRunResult:
    """
    Execute a batch job under a PipelineRun row.

    Args:
        job_type: JobType value
        func: Job body; receives the run, returns a count dict
        idempotency_key: Optional key enforcing at-most-one logical effect
        triggered_by: schedule, manual or api

    Returns:
        TrackedRunResult. executed=False when the key was already handled.

    Raises:
        Whatever func raises, after the run is recorded as failed.
    """
    run, existing, reason = _claim_run(job_type, idempotency_key, triggered_by)
    if run is None:
        log_job_event(existing, "skipped", extra={"reason": reason})
        return TrackedRunResult(run=existing, executed=False, reason=reason)

    log_job_event(run, "start")
    started = time.monotonic()
    try:
        result = func(run) or {}
    except Exception as exc:
        summary = _fail_run(run, exc, started)
        log_job_event(run, "failure", error_summary=summary, extra={"duration_ms": run.duration_ms})
        raise

    _complete_run(run, result, started)
    log_job_event(run, "success", extra={"counts": dict(result), "duration_ms": run.duration_ms})
    return TrackedRunResult(run=run, executed=True, result=result)


def last_successful_run(job_type: str) -> PipelineRun | None:
    return (
        PipelineRun.objects.filter(job_type=job_type, status=RunStatus.SUCCESS)
        .order_by("-completed_at")
        .first()
    )


def mark_stale_runs(now: datetime | None = None) -> int:
    """
    Flag running jobs that exceeded their SLA duration as stale.

    Stale runs are not killed; they are surfaced for operator attention.

    Returns:
        Number of runs marked stale.
    """
    now = now or timezone.now()
    marked = 0

    for job_type, (_, max_duration_minutes) in JOB_SLAS.items():
        threshold = now - timedelta(minutes=max_duration_minutes)
        overdue = PipelineRun.objects.filter(
            job_type=job_type,
            status=RunStatus.RUNNING,
            started_at__lt=threshold,
        )
        for run in overdue:
            rows = PipelineRun.objects.filter(id=run.id, status=RunStatus.RUNNING).update(
                status=RunStatus.STALE,
                error_summary=f"Exceeded {max_duration_minutes} minute SLA",
            )
            if rows:
                run.refresh_from_db()
                log_job_event(
                    run,
                    "stale",
                    extra={"max_duration_minutes": max_duration_minutes},
                    error_summary=run.error_summary,
                )
                marked += 1

    return marked


# =============================================================================
# PER-KEY FAILURE LEDGER
# =============================================================================


def record_key_failure(
    job_type: str,
    event_key: str,
    error: Exception | str,
    run: PipelineRun | None = None,
    max_retries: int = DEFAULT_MAX_RETRIES,
) -> JobFailure:
    """
    Record one failure for a key, incrementing its retry count.

    Reaching max_retries sets needs_attention and logs at ERROR; the caller
    keeps processing other keys either way.
    """
    now = timezone.now()
    message = str(error)[:2000]

    with transaction.atomic():
        failure = (
            JobFailure.objects.select_for_update()
            .filter(job_type=job_type, event_key=event_key, resolved_at__isnull=True)
            .first()
        )
        if failure is None:
            failure = JobFailure(
                job_type=job_type,
                event_key=event_key,
                max_retries=max_retries,
                first_failed_at=now,
            )
        failure.retry_count += 1
        failure.error_message = message
        failure.last_failed_at = now
        failure.last_run = run
        failure.needs_attention = failure.is_exhausted
        failure.save()

    if failure.needs_attention:
        logger.error(
            "Retry budget exhausted for key",
            extra={
                "job_type": job_type,
                "event_key": event_key,
                "retry_count": failure.retry_count,
                "error": message[:200],
            },
        )
    else:
        logger.warning(
            "Key failed; will retry next run",
            extra={
                "job_type": job_type,
                "event_key": event_key,
                "retry_count": failure.retry_count,
                "error": message[:200],
            },
        )
    return failure


def resolve_key_failure(job_type: str, event_key: str) -> int:
    """Close any open failure for a key. Returns rows resolved."""
    return JobFailure.objects.filter(
        job_type=job_type, event_key=event_key, resolved_at__isnull=True
    ).update(resolved_at=timezone.now(), needs_attention=False)


def window_idempotency_key(job_type: str, now: datetime | None = None) -> str:
    """
    Key for the job's current schedule slot (slot length = SLA interval).

    Two triggers within one slot share a key, so a double-fired cron
    produces one run.
    """
    now = now or timezone.now()
    interval = JOB_SLAS.get(job_type, (60, 0))[0]
    epoch_minutes = int(now.timestamp() // 60)
    slot_start = datetime.fromtimestamp((epoch_minutes - epoch_minutes % interval) * 60, tz=now.tzinfo)
    return f"{job_type}:{slot_start:%Y%m%dT%H%M}"
