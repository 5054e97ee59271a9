"""
Management command to run the detect job.

Usage:
    python manage.py trends_detect
    python manage.py trends_detect --force
    python manage.py trends_detect --idempotency-key detect:backfill-1
"""

from trendwatch.core.enums import JobType

from ._job_command import JobCommand


class Command(JobCommand):
    help = "Score active keys: velocity, confidence, lifecycle, breaking and rank"
    job_type = JobType.DETECT
