"""Shared base for the single-job trend commands."""

from __future__ import annotations

from django.core.management.base import BaseCommand

from trendwatch.trends.config import get_config
from trendwatch.trends.jobs.runner import run_job


class JobCommand(BaseCommand):
    """Runs one tracked job and prints its counts."""

    job_type: str = ""

    def add_arguments(self, parser):
        parser.add_argument(
            "--idempotency-key",
            type=str,
            default=None,
            help="Explicit idempotency key (default: current schedule slot)",
        )
        parser.add_argument(
            "--force",
            action="store_true",
            help="Run without an idempotency key, even if this slot already ran",
        )
        parser.add_argument(
            "--tenant",
            type=str,
            default=None,
            help="Tenant slug for config overrides",
        )
        parser.add_argument(
            "--triggered-by",
            type=str,
            default="schedule",
            choices=["schedule", "manual", "api"],
        )

    def handle(self, *args, **options):
        config = get_config(options["tenant"])
        self.stdout.write(f"Running {self.job_type} job (config {config.version})...")

        outcome = run_job(
            self.job_type,
            config=config,
            idempotency_key=options["idempotency_key"],
            use_window_key=not options["force"],
            triggered_by=options["triggered_by"],
        )

        if not outcome.executed:
            self.stdout.write(
                self.style.WARNING(
                    f"Skipped: run {outcome.run.id} for key "
                    f"{outcome.run.idempotency_key} ({outcome.reason})"
                )
            )
            return

        self.report(outcome.result)
        self.stdout.write(self.style.SUCCESS(f"{self.job_type} run {outcome.run.id} complete"))

    def report(self, result: dict) -> None:
        for key, value in result.items():
            self.stdout.write(f"  {key}: {value}")
