"""
Tests for run health reporting.
"""

from datetime import timedelta

import pytest
from django.utils import timezone

from trendwatch.core.enums import JobType, RunStatus
from trendwatch.trends.jobs.ledger import record_key_failure
from trendwatch.trends.models import PipelineRun
from trendwatch.trends.services.health import get_run_health, job_health


def _run(job_type, status, minutes_ago, now, **fields):
    started = now - timedelta(minutes=minutes_ago)
    return PipelineRun.objects.create(
        job_type=job_type,
        status=status,
        started_at=started,
        completed_at=started + timedelta(seconds=5) if status != RunStatus.RUNNING else None,
        duration_ms=5000 if status == RunStatus.SUCCESS else None,
        **fields,
    )


@pytest.mark.django_db
class TestJobHealth:
    def test_never_run(self):
        health = job_health(JobType.DETECT)
        assert health.freshness_status == "never_run"
        assert health.last_status is None
        assert health.expected_interval_minutes == 30

    def test_recent_success_is_ok(self):
        now = timezone.now()
        _run(JobType.DETECT, RunStatus.SUCCESS, 10, now)

        health = job_health(JobType.DETECT, now)

        assert health.freshness_status == "ok"
        assert health.success_count_24h == 1
        assert health.avg_duration_ms == 5000.0
        assert health.minutes_since_last_run == pytest.approx(10.0)

    def test_last_failure_is_error(self):
        now = timezone.now()
        _run(JobType.DETECT, RunStatus.SUCCESS, 40, now)
        _run(JobType.DETECT, RunStatus.FAILED, 10, now, error_summary="ValueError: boom")

        health = job_health(JobType.DETECT, now)

        assert health.freshness_status == "error"
        assert health.last_error == "ValueError: boom"
        assert health.failure_count_24h == 1

    def test_recovered_after_failure_is_ok(self):
        now = timezone.now()
        _run(JobType.DETECT, RunStatus.FAILED, 40, now, error_summary="ValueError: boom")
        _run(JobType.DETECT, RunStatus.SUCCESS, 10, now)

        health = job_health(JobType.DETECT, now)

        assert health.freshness_status == "ok"
        assert health.last_error == "ValueError: boom"

    def test_overdue_is_warning_then_stale(self):
        now = timezone.now()
        _run(JobType.DETECT, RunStatus.SUCCESS, 50, now)
        assert job_health(JobType.DETECT, now).freshness_status == "warning"

        assert job_health(JobType.DETECT, now + timedelta(minutes=20)).freshness_status == "stale"

    def test_stale_run_reported(self):
        now = timezone.now()
        _run(JobType.BASELINE, RunStatus.STALE, 60, now, error_summary="Exceeded 30 minute SLA")

        health = job_health(JobType.BASELINE, now)

        assert health.freshness_status == "stale"
        assert health.stale_count_24h == 1

    def test_skipped_and_running_do_not_count_as_last(self):
        now = timezone.now()
        _run(JobType.DETECT, RunStatus.SUCCESS, 10, now)
        _run(JobType.DETECT, RunStatus.SKIPPED, 5, now)
        _run(JobType.DETECT, RunStatus.RUNNING, 1, now)

        health = job_health(JobType.DETECT, now)

        assert health.last_status == RunStatus.SUCCESS

    def test_open_failures_counted(self):
        record_key_failure(JobType.DETECT, "bad key", "boom")
        assert job_health(JobType.DETECT).open_failures == 1


@pytest.mark.django_db
class TestRunHealth:
    def test_reports_every_job_type(self):
        report = get_run_health()
        assert [job.job_type for job in report.jobs] == list(JobType.values)
