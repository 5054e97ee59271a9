"""
Management command to run the feedback job.

Usage:
    python manage.py trends_feedback
    python manage.py trends_feedback --force
    python manage.py trends_feedback --idempotency-key feedback:backfill-1
"""

from trendwatch.core.enums import JobType

from ._job_command import JobCommand


class Command(JobCommand):
    help = "Derive decision scores and opportunity tiers from outcome history"
    job_type = JobType.FEEDBACK
