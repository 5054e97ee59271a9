"""
Management command to run the baseline job.

Usage:
    python manage.py trends_baseline
    python manage.py trends_baseline --force
    python manage.py trends_baseline --idempotency-key baseline:backfill-1
"""

from trendwatch.core.enums import JobType

from ._job_command import JobCommand


class Command(JobCommand):
    help = "Recompute 7d/30d baselines for every active key (run before detection)"
    job_type = JobType.BASELINE
