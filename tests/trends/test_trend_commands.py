"""
Tests for the trend management commands.
"""

import json
from datetime import timedelta
from io import StringIO

import pytest
from django.core.management import call_command
from django.core.management.base import CommandError
from django.utils import timezone

from tests.fixtures import add_hourly_evidence, make_event, make_mention
from trendwatch.core.enums import JobType, RunStatus
from trendwatch.trends.models import PipelineRun, SourceTier, TrendEvent, TrendEvidence
from trendwatch.trends.ingestion import ingest_batch
from trendwatch.trends.jobs.runner import run_job, run_pending_baselines
from trendwatch.trends.sources import DEFAULT_SOURCE_TIERS, seed_source_tiers


def _call(*args, **options):
    out = StringIO()
    call_command(*args, stdout=out, **options)
    return out.getvalue()


@pytest.mark.django_db
class TestSeedSourcesCommand:
    def test_seeds_registry(self):
        output = _call("trends_seed_sources")

        assert SourceTier.objects.count() == len(DEFAULT_SOURCE_TIERS)
        assert "created" in output

    def test_rerun_leaves_rows(self):
        _call("trends_seed_sources")
        _call("trends_seed_sources")
        assert SourceTier.objects.count() == len(DEFAULT_SOURCE_TIERS)


@pytest.mark.django_db
class TestIngestCommand:
    def test_ingests_jsonl(self, tmp_path):
        published = (timezone.now() - timedelta(minutes=10)).isoformat()
        lines = [
            json.dumps({"event_key": "Winter Storm", "source_type": "wire", "source_id": "a",
                        "source_domain": "reuters.com", "published_at": published}),
            json.dumps({"event_key": "Winter Storm", "source_type": "wire", "source_id": "a",
                        "source_domain": "reuters.com", "published_at": published}),
            "{not json",
            "",
            json.dumps({"event_key": "Winter Storm", "source_type": "social", "source_id": "b",
                        "source_domain": "bsky.app", "published_at": published}),
        ]
        path = tmp_path / "mentions.jsonl"
        path.write_text("\n".join(lines), encoding="utf-8")

        output = _call("trends_ingest", str(path))

        assert "Ingested 2 mentions (1 duplicate, 1 invalid)" in output
        assert TrendEvidence.objects.count() == 2
        run = PipelineRun.objects.get(job_type=JobType.INGEST)
        assert run.status == RunStatus.SUCCESS
        assert (run.records_created, run.records_skipped, run.records_failed) == (2, 1, 1)

    def test_idempotency_key_skips_second_run(self, tmp_path):
        path = tmp_path / "empty.jsonl"
        path.write_text("", encoding="utf-8")

        _call("trends_ingest", str(path), idempotency_key="backfill-1")
        output = _call("trends_ingest", str(path), idempotency_key="backfill-1")

        assert "Skipped (already_succeeded)" in output

    def test_missing_file(self, tmp_path):
        with pytest.raises(CommandError):
            call_command("trends_ingest", str(tmp_path / "nope.jsonl"))


@pytest.mark.django_db
class TestJobCommands:
    def test_baseline_command_forced(self):
        event = make_event("steady topic", now=timezone.now(), baseline_updated_at=None)
        add_hourly_evidence(event, hours=5 * 24, now=timezone.now())

        output = _call("trends_baseline", force=True)

        assert "baseline run" in output
        event.refresh_from_db()
        assert event.baseline_updated_at is not None

    def test_explicit_key_runs_once(self):
        _call("trends_detect", idempotency_key="detect:manual-1")
        output = _call("trends_detect", idempotency_key="detect:manual-1")

        assert "already_succeeded" in output
        assert PipelineRun.objects.filter(job_type=JobType.DETECT).count() == 1

    def test_feedback_command(self):
        output = _call("trends_feedback", force=True, triggered_by="manual")

        run = PipelineRun.objects.get(job_type=JobType.FEEDBACK)
        assert run.triggered_by == "manual"
        assert "processed" in output


@pytest.mark.django_db
class TestPipelineCommand:
    def test_full_cycle(self):
        now = timezone.now()
        event = make_event("steady topic", now=now, baseline_updated_at=None)
        add_hourly_evidence(event, hours=5 * 24, now=now)

        output = _call("trends_pipeline")

        assert "Pipeline complete!" in output
        statuses = dict(PipelineRun.objects.values_list("job_type", "status"))
        assert statuses == {
            JobType.BASELINE: RunStatus.SUCCESS,
            JobType.DETECT: RunStatus.SUCCESS,
            JobType.FEEDBACK: RunStatus.SUCCESS,
        }
        event = TrendEvent.objects.get(event_key="steady topic")
        assert event.scored_at is not None
        assert event.decision_score is not None

    def test_baseline_runs_once_per_day(self):
        _call("trends_pipeline", skip_feedback=True)
        _call("trends_pipeline", skip_feedback=True)

        assert PipelineRun.objects.filter(job_type=JobType.BASELINE).count() == 1
        assert not PipelineRun.objects.filter(job_type=JobType.FEEDBACK).exists()

    def test_key_first_seen_after_daily_baseline_is_scored(self):
        """A key that appears after the day's baseline run is still scored in the next cycle."""
        seed_source_tiers()
        assert run_job(JobType.BASELINE).executed

        published = (timezone.now() - timedelta(minutes=10)).isoformat()
        ingest_batch([
            make_mention(event_key="January-6th", source_domain=domain, published_at=published)
            for domain in ("reuters.com", "apnews.com", "nytimes.com")
        ])

        output = _call("trends_pipeline", skip_feedback=True)

        assert "Pending keys:" in output
        event = TrendEvent.objects.get(event_key="january-6th")
        assert event.baseline_updated_at is not None
        assert not event.has_historical_baseline
        assert event.scored_at is not None
        assert event.velocity == 500.0
        assert event.is_breaking
        assert PipelineRun.objects.filter(job_type=JobType.BASELINE, status=RunStatus.SUCCESS).count() == 2

    def test_no_pending_keys_no_extra_run(self):
        event = make_event("steady topic", now=timezone.now())
        add_hourly_evidence(event, hours=24, now=timezone.now())

        assert run_pending_baselines() is None
        assert not PipelineRun.objects.exists()


@pytest.mark.django_db
class TestMonitorCommand:
    def test_marks_stale_and_reports(self):
        PipelineRun.objects.create(
            job_type=JobType.DETECT,
            status=RunStatus.RUNNING,
            started_at=timezone.now() - timedelta(hours=2),
        )

        output = _call("trends_monitor")

        assert "Marked 1 run(s) stale" in output
        assert "detect" in output
        assert PipelineRun.objects.get().status == RunStatus.STALE
