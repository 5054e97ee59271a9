"""
Management command for the SLA monitor.

Usage:
    python manage.py trends_monitor

Marks running jobs that overran their SLA as stale (they are not killed),
then prints run health per job type.
"""

from __future__ import annotations

from django.core.management.base import BaseCommand

from trendwatch.trends.jobs.ledger import mark_stale_runs
from trendwatch.trends.services.health import get_run_health


class Command(BaseCommand):
    help = "Flag stale job runs and print run health"

    def handle(self, *args, **options):
        marked = mark_stale_runs()
        if marked:
            self.stdout.write(self.style.WARNING(f"Marked {marked} run(s) stale"))

        report = get_run_health()
        for job in report.jobs:
            line = (
                f"{job.job_type:<10} {job.freshness_status:<10} "
                f"last={job.last_status or '-'} "
                f"ok_24h={job.success_count_24h} failed_24h={job.failure_count_24h} "
                f"open_failures={job.open_failures}"
            )
            if job.freshness_status in ("error", "stale"):
                self.stdout.write(self.style.ERROR(line))
            elif job.freshness_status in ("warning", "never_run"):
                self.stdout.write(self.style.WARNING(line))
            else:
                self.stdout.write(line)
            if job.last_error and options.get("verbosity", 1) >= 2:
                self.stdout.write(f"    last_error: {job.last_error}")
