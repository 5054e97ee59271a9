"""
Management command to run the full trend cycle.

Usage:
    python manage.py trends_pipeline
    python manage.py trends_pipeline --skip-feedback

Order is fixed: baseline -> detect -> feedback. The full baseline step uses
the daily slot key, so it executes once per day. Every cycle then baselines
pending keys (missing or stale baseline) before detection, so a key first
seen after the daily run is scored in the same cycle.
A failed step raises and stops the cycle; detection never runs on a
baseline step that failed in this cycle.
"""

from __future__ import annotations

from django.core.management.base import BaseCommand

from trendwatch.core.enums import JobType
from trendwatch.trends.config import get_config
from trendwatch.trends.jobs.runner import run_job, run_pending_baselines


class Command(BaseCommand):
    help = "Run the trend cycle (baseline -> detect -> feedback)"

    def add_arguments(self, parser):
        parser.add_argument(
            "--skip-feedback",
            action="store_true",
            help="Stop after detection",
        )
        parser.add_argument(
            "--tenant",
            type=str,
            default=None,
            help="Tenant slug for config overrides",
        )

    def handle(self, *args, **options):
        config = get_config(options["tenant"])
        steps = [JobType.BASELINE, JobType.DETECT]
        if not options["skip_feedback"]:
            steps.append(JobType.FEEDBACK)

        for index, job_type in enumerate(steps, start=1):
            self.stdout.write(f"Stage {index}: {job_type}...")
            self._report(run_job(job_type, config=config))

            if job_type == JobType.BASELINE:
                pending = run_pending_baselines(config=config)
                if pending is not None:
                    self.stdout.write("  Pending keys:")
                    self._report(pending)

        self.stdout.write(self.style.SUCCESS("Pipeline complete!"))

    def _report(self, outcome):
        if not outcome.executed:
            self.stdout.write(f"  Skipped ({outcome.reason})")
            return
        result = outcome.result
        self.stdout.write(
            f"  processed={result.get('processed', 0)} "
            f"failed={result.get('failed', 0)} "
            f"skipped={result.get('skipped', 0)}"
        )
