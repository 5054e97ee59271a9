"""
Management command to load the default source tier registry.

Usage:
    python manage.py trends_seed_sources
    python manage.py trends_seed_sources --overwrite
"""

from django.core.management.base import BaseCommand

from trendwatch.trends.sources import seed_source_tiers


class Command(BaseCommand):
    help = "Seed the source tier registry (existing domains kept unless --overwrite)"

    def add_arguments(self, parser):
        parser.add_argument(
            "--overwrite",
            action="store_true",
            help="Reset weights and tiers of existing domains to the defaults",
        )

    def handle(self, *args, **options):
        result = seed_source_tiers(overwrite=options["overwrite"])
        self.stdout.write(
            self.style.SUCCESS(
                f"Source tiers: {result['created']} created, "
                f"{result['updated']} updated, {result['unchanged']} unchanged"
            )
        )
