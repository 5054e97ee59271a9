"""
Run health for operator dashboards.

Per job type: last finished status and error, rolling 24h success/failure counts,
average duration, minutes since the last run and a freshness_status:

- error: the most recent run failed
- stale: the most recent run overran its SLA, or no run within 2x the
  expected interval
- warning: no run within 1.5x the expected interval
- ok: otherwise
- never_run: no run recorded
"""

from __future__ import annotations

from datetime import datetime, timedelta

from django.db.models import Avg, Count, Q
from django.utils import timezone

from trendwatch.core.enums import JobType, RunStatus
from trendwatch.trends.config import JOB_SLAS
from trendwatch.trends.dto import RunHealthDTO, RunHealthListDTO
from trendwatch.trends.models import JobFailure, PipelineRun


def _freshness_status(last: PipelineRun, minutes_since: float, expected_interval: int | None) -> str:
    if last.status == RunStatus.FAILED:
        return "error"
    if last.status == RunStatus.STALE:
        return "stale"
    if expected_interval:
        if minutes_since > expected_interval * 2:
            return "stale"
        if minutes_since > expected_interval * 1.5:
            return "warning"
    return "ok"


def job_health(job_type: str, now: datetime | None = None) -> RunHealthDTO:
    now = now or timezone.now()
    expected_interval = JOB_SLAS.get(job_type, (None, None))[0]
    runs = PipelineRun.objects.filter(job_type=job_type)
    open_failures = JobFailure.objects.filter(job_type=job_type, resolved_at__isnull=True).count()

    last = (
        runs.exclude(status__in=[RunStatus.SKIPPED, RunStatus.RUNNING])
        .order_by("-started_at")
        .first()
    )
    if last is None:
        return RunHealthDTO(
            job_type=job_type,
            expected_interval_minutes=expected_interval,
            freshness_status="never_run",
            open_failures=open_failures,
        )

    window = runs.filter(started_at__gte=now - timedelta(hours=24)).aggregate(
        success=Count("id", filter=Q(status=RunStatus.SUCCESS)),
        failure=Count("id", filter=Q(status=RunStatus.FAILED)),
        stale=Count("id", filter=Q(status=RunStatus.STALE)),
        avg_duration=Avg("duration_ms", filter=Q(status=RunStatus.SUCCESS)),
    )
    last_error = (
        runs.filter(status__in=[RunStatus.FAILED, RunStatus.STALE])
        .exclude(error_summary="")
        .order_by("-started_at")
        .values_list("error_summary", flat=True)
        .first()
    )
    minutes_since = (now - last.started_at).total_seconds() / 60

    return RunHealthDTO(
        job_type=job_type,
        last_status=last.status,
        last_run_at=last.started_at,
        last_completed_at=last.completed_at,
        last_error=last_error,
        success_count_24h=window["success"],
        failure_count_24h=window["failure"],
        stale_count_24h=window["stale"],
        avg_duration_ms=round(window["avg_duration"], 1) if window["avg_duration"] is not None else None,
        minutes_since_last_run=round(minutes_since, 1),
        expected_interval_minutes=expected_interval,
        freshness_status=_freshness_status(last, minutes_since, expected_interval),
        open_failures=open_failures,
    )


def get_run_health(now: datetime | None = None) -> RunHealthListDTO:
    now = now or timezone.now()
    return RunHealthListDTO(
        jobs=[job_health(job_type, now) for job_type in JobType.values],
        generated_at=now,
    )
