"""
Management command to ingest mentions from a JSONL file.

Usage:
    python manage.py trends_ingest mentions.jsonl
    python manage.py trends_ingest mentions.jsonl --idempotency-key backfill-2026-01-06

Each line is one mention in the ingestion contract. Malformed lines and
duplicates are counted and skipped; they never abort the file.
"""

from __future__ import annotations

import json
from pathlib import Path

from django.core.management.base import BaseCommand, CommandError

from trendwatch.core.enums import JobType
from trendwatch.trends.ingestion import ingest_batch
from trendwatch.trends.jobs.ledger import execute_tracked


def read_mentions(path: Path):
    """Yield parsed lines; undecodable lines yield their raw text (rejected downstream)."""
    with path.open(encoding="utf-8") as fh:
        for line in fh:
            line = line.strip()
            if not line:
                continue
            try:
                yield json.loads(line)
            except json.JSONDecodeError:
                yield {"_raw": line}


class Command(BaseCommand):
    help = "Ingest mentions from a JSONL file"

    def add_arguments(self, parser):
        parser.add_argument("path", type=str, help="Path to a .jsonl file")
        parser.add_argument(
            "--idempotency-key",
            type=str,
            default=None,
            help="Key that makes re-running the same file a no-op",
        )

    def handle(self, *args, **options):
        path = Path(options["path"])
        if not path.is_file():
            raise CommandError(f"File not found: {path}")

        def ingest(run):
            batch = ingest_batch(read_mentions(path))
            return {
                "processed": batch.created + batch.duplicate + batch.invalid,
                "created": batch.created,
                "skipped": batch.duplicate,
                "failed": batch.invalid,
            }

        outcome = execute_tracked(
            JobType.INGEST,
            ingest,
            idempotency_key=options["idempotency_key"],
            triggered_by="manual",
        )
        if not outcome.executed:
            self.stdout.write(self.style.WARNING(f"Skipped ({outcome.reason})"))
            return

        result = outcome.result
        self.stdout.write(
            self.style.SUCCESS(
                f"Ingested {result['created']} mentions "
                f"({result['skipped']} duplicate, {result['failed']} invalid)"
            )
        )
