"""
Tests for the baseline calculator job.
"""

from datetime import timedelta

import numpy as np
import pytest

from tests.fixtures import NOW, add_evidence, add_hourly_evidence, make_event
from trendwatch.trends.config import TrendConfig
from trendwatch.trends.jobs.baseline import hourly_readings, hourly_std_dev, run_baseline
from trendwatch.trends.models import JobFailure, TrendBaseline, TrendEvent


class TestHourlyReadings:
    def test_buckets_by_hour_before_now(self):
        timestamps = [NOW - timedelta(minutes=10), NOW - timedelta(minutes=50), NOW - timedelta(hours=2, minutes=1)]
        readings = hourly_readings(timestamps, NOW, 4)
        assert readings.tolist() == [2, 0, 1, 0]

    def test_ignores_out_of_window(self):
        timestamps = [NOW + timedelta(minutes=5), NOW - timedelta(hours=5)]
        assert hourly_readings(timestamps, NOW, 4).tolist() == [0, 0, 0, 0]

    def test_empty(self):
        assert hourly_readings([], NOW, 3).tolist() == [0, 0, 0]


class TestHourlyStdDev:
    def test_population_std_with_enough_active_hours(self):
        readings = np.array([1, 3, 1, 3])
        assert hourly_std_dev(readings, 2.0) == pytest.approx(1.0)

    def test_sparse_fallback(self):
        """One active hour: max(mean / 2, (peak - mean) / 2)."""
        readings = np.array([0, 0, 5, 0])
        assert hourly_std_dev(readings, 1.25) == pytest.approx(1.875)

    def test_zero_mean(self):
        assert hourly_std_dev(np.zeros(5, dtype=int), 0.0) == 0.0


@pytest.mark.django_db
class TestRunBaseline:
    def test_constant_rate_converges(self):
        """One mention per hour for 30 days -> both baselines equal that rate."""
        event = make_event("steady topic", baseline_updated_at=None, has_historical_baseline=False)
        add_hourly_evidence(event, hours=30 * 24)

        result = run_baseline(now=NOW)

        event.refresh_from_db()
        assert result["processed"] == 1
        assert result["created"] == 1
        assert event.baseline_7d == pytest.approx(1.0)
        assert event.baseline_30d == pytest.approx(1.0)
        assert event.baseline_std_7d == pytest.approx(0.0)
        assert event.has_historical_baseline
        assert event.baseline_updated_at == NOW

        row = TrendBaseline.objects.get(event_key="steady topic")
        assert row.baseline_date == NOW.date()
        assert row.mentions_count == 168
        assert row.is_stable

    def test_short_history_gets_zero_baseline(self):
        event = make_event("brand new", baseline_updated_at=None)
        add_hourly_evidence(event, hours=24, per_hour=2)

        run_baseline(now=NOW)

        event.refresh_from_db()
        assert event.baseline_7d == 0.0
        assert event.baseline_30d == 0.0
        assert not event.has_historical_baseline
        assert event.baseline_updated_at == NOW

    def test_too_few_mentions_writes_no_row(self):
        event = make_event("lonely", baseline_updated_at=None)
        add_evidence(event, NOW - timedelta(days=5))

        result = run_baseline(now=NOW)

        assert result["skipped"] == 1
        assert not TrendBaseline.objects.exists()
        event.refresh_from_db()
        assert event.baseline_updated_at == NOW

    def test_evidence_ingested_after_snapshot_excluded(self):
        event = make_event("late arrivals", baseline_updated_at=None)
        add_hourly_evidence(event, hours=5 * 24)
        add_evidence(event, NOW - timedelta(hours=2), ingested_at=NOW + timedelta(minutes=5))

        run_baseline(now=NOW)

        row = TrendBaseline.objects.get(event_key="late arrivals")
        assert row.mentions_count == 5 * 24

    def test_rerun_same_day_updates_row(self):
        event = make_event("steady topic")
        add_hourly_evidence(event, hours=7 * 24)

        first = run_baseline(now=NOW)
        second = run_baseline(now=NOW + timedelta(minutes=30))

        assert first["created"] == 1
        assert second["updated"] == 1
        assert TrendBaseline.objects.count() == 1

    def test_keys_without_recent_evidence_are_skipped(self):
        event = make_event("old news", baseline_updated_at=None)
        add_evidence(event, NOW - timedelta(days=40))

        result = run_baseline(now=NOW)

        assert result["processed"] == 0
        event.refresh_from_db()
        assert event.baseline_updated_at is None

    def test_sentiment_and_mix_recorded(self):
        event = make_event("mixed")
        for hours_ago, source_type, sentiment in [(80, "wire", 0.5), (90, "social", -0.1), (100, "national", None)]:
            add_evidence(
                event, NOW - timedelta(hours=hours_ago), source_type=source_type, sentiment_score=sentiment
            )

        run_baseline(now=NOW)

        row = TrendBaseline.objects.get(event_key="mixed")
        assert row.news_mentions == 2
        assert row.social_mentions == 1
        assert row.avg_sentiment == pytest.approx(0.2)

    def test_per_key_failure_recorded_and_batch_continues(self, monkeypatch):
        from trendwatch.trends.jobs import baseline

        good = make_event("good key")
        bad = make_event("bad key")
        add_hourly_evidence(good, hours=96)
        add_hourly_evidence(bad, hours=96)

        real = baseline.compute_baseline

        def flaky(event, now, config):
            if event.event_key == "bad key":
                raise RuntimeError("boom")
            return real(event, now, config)

        monkeypatch.setattr(baseline, "compute_baseline", flaky)

        result = run_baseline(now=NOW, config=TrendConfig())

        assert result["failed"] == 1
        assert result["created"] == 1
        failure = JobFailure.objects.get(event_key="bad key")
        assert failure.job_type == "baseline"
        assert failure.retry_count == 1
        assert TrendEvent.objects.get(event_key="good key").baseline_updated_at == NOW
