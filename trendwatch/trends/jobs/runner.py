"""
Tracked entry points for the scheduled jobs.

Commands and the pipeline call run_job(); it resolves the config, picks
the schedule-slot idempotency key unless told otherwise, and executes the
job under the run ledger.
"""

from __future__ import annotations

from django.utils import timezone

from trendwatch.core.enums import JobType
from trendwatch.trends.config import TrendConfig, get_config
from trendwatch.trends.jobs.baseline import pending_baseline_events, run_baseline
from trendwatch.trends.jobs.detect import run_detect
from trendwatch.trends.jobs.feedback import run_feedback
from trendwatch.trends.jobs.ledger import TrackedRunResult, execute_tracked, window_idempotency_key

JOB_FUNCTIONS = {
    JobType.BASELINE: run_baseline,
    JobType.DETECT: run_detect,
    JobType.FEEDBACK: run_feedback,
}


def run_job(
    job_type: str,
    *,
    config: TrendConfig | None = None,
    idempotency_key: str | None = None,
    use_window_key: bool = True,
    triggered_by: str = "schedule",
) -> TrackedRunResult:
    """
    Run one scheduled job under the ledger.

    Args:
        job_type: baseline, detect or feedback
        config: Config to score with (default: global config)
        idempotency_key: Explicit key; overrides the schedule-slot key
        use_window_key: Derive a key from the current schedule slot when
            no explicit key is given
        triggered_by: schedule, manual or api

    Raises:
        KeyError: for a job type without a batch function
    """
    func = JOB_FUNCTIONS[job_type]
    config = config or get_config()
    if idempotency_key is None and use_window_key:
        idempotency_key = window_idempotency_key(job_type)

    return execute_tracked(
        job_type,
        lambda run: func(run=run, config=config),
        idempotency_key=idempotency_key,
        triggered_by=triggered_by,
    )


def run_pending_baselines(
    *,
    config: TrendConfig | None = None,
    triggered_by: str = "schedule",
) -> TrackedRunResult | None:
    """
    Baseline keys first seen since the last full baseline run.

    Runs without an idempotency key, and only when some key is pending.
    Returns None when nothing is pending.
    """
    config = config or get_config()
    if not pending_baseline_events(timezone.now(), config).exists():
        return None

    return execute_tracked(
        JobType.BASELINE,
        lambda run: run_baseline(run=run, config=config, pending_only=True),
        idempotency_key=None,
        triggered_by=triggered_by,
    )
