"""
Evidence ingestion and deduplication.

Accepts normalized mentions from the extraction collaborator and appends
TrendEvidence rows:

1. Validate the payload (MentionDTO); malformed records are skipped
2. Normalize the domain, resolve its SourceTier (unknown -> weight 1.0)
3. Create the TrendEvent on first evidence for a key
4. Skip duplicates: same (event, source_type, source_id), or same
   content_hash on the same event
5. Move the primary flag to the earliest (then most authoritative) evidence
6. Refresh last_seen_at and distinct source counts on the event

Per-record problems never abort a batch.
"""

from __future__ import annotations

import hashlib
import logging
from datetime import datetime
from typing import Any, Iterable, Mapping
from urllib.parse import urlparse, urlunparse

from django.db import IntegrityError, transaction
from django.utils import timezone
from pydantic import ValidationError

from trendwatch.core.enums import EntityType
from trendwatch.trends.config import TrendConfig, get_config
from trendwatch.trends.dto import IngestBatchResultDTO, IngestResultDTO, MentionDTO
from trendwatch.trends.models import TrendEvent, TrendEvidence
from trendwatch.trends.scoring.confidence import EvidenceSource, summarize_sources
from trendwatch.trends.sources import TierInfo, load_tier_map, lookup_source_tier, normalize_domain

logger = logging.getLogger(__name__)


def compute_content_hash(canonical_url: str | None) -> str:
    """
    SHA-256 of the normalized URL.

    Scheme and host are lowercased (host via normalize_domain), the fragment
    and trailing slash dropped. Path case, port and query are kept.
    """
    if not canonical_url:
        return ""
    parts = urlparse(canonical_url.strip())
    if parts.netloc:
        netloc = normalize_domain(parts.hostname)
        try:
            port = parts.port
        except ValueError:
            port = None
        if port:
            netloc = f"{netloc}:{port}"
        url = urlunparse(
            (parts.scheme.lower(), netloc, parts.path.rstrip("/"), parts.params, parts.query, "")
        )
    else:
        url = urlunparse(parts._replace(fragment="")).rstrip("/")
    return hashlib.sha256(url.encode("utf-8")).hexdigest()


def _validation_reason(exc: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(loc) for loc in err['loc'])}: {err['msg']}"
        for err in exc.errors()[:3]
    )


def ingest_mention(
    payload: Mapping[str, Any] | MentionDTO,
    *,
    now: datetime | None = None,
    tier_map: dict[str, TierInfo] | None = None,
    config: TrendConfig | None = None,
) -> IngestResultDTO:
    """
    Ingest one mention.

    Args:
        payload: Raw mention dict or an already-validated MentionDTO
        now: Ingestion time (default timezone.now())
        tier_map: Preloaded SourceTier registry (batch callers pass one)
        config: Active TrendConfig

    Returns:
        IngestResultDTO with status created, duplicate or invalid
    """
    if isinstance(payload, MentionDTO):
        mention = payload
    else:
        try:
            mention = MentionDTO.model_validate(payload)
        except ValidationError as e:
            reason = _validation_reason(e)
            logger.warning(
                "Skipping malformed mention",
                extra={"reason": reason[:200]},
            )
            return IngestResultDTO(status="invalid", reason=reason)

    now = now or timezone.now()
    config = config or get_config()
    domain = normalize_domain(mention.source_domain or mention.canonical_url)
    tier = lookup_source_tier(domain, tier_map)
    content_hash = compute_content_hash(mention.canonical_url)
    seen_at = min(mention.published_at, now)

    with transaction.atomic():
        event, event_created = TrendEvent.objects.get_or_create(
            event_key=mention.event_key,
            defaults={
                "title": mention.title or mention.event_key,
                "entity_type": mention.entity_type or EntityType.TOPIC,
                "first_seen_at": now,
                "last_seen_at": seen_at,
            },
        )

        duplicate = TrendEvidence.objects.filter(
            event=event, source_type=mention.source_type, source_id=mention.source_id
        ).exists()
        if not duplicate and content_hash:
            duplicate = TrendEvidence.objects.filter(event=event, content_hash=content_hash).exists()
        if duplicate:
            return IngestResultDTO(
                status="duplicate",
                event_key=event.event_key,
                event_id=event.id,
                reason="evidence already recorded",
            )

        current_primary = event.evidence.select_for_update().filter(is_primary=True).first()
        is_primary = current_primary is None or _outranks(
            mention.published_at, tier.authority_weight, current_primary
        )
        try:
            with transaction.atomic():
                evidence = TrendEvidence.objects.create(
                    event=event,
                    source_type=mention.source_type,
                    source_id=mention.source_id,
                    source_domain=domain,
                    source_tier=tier.tier,
                    published_at=mention.published_at,
                    contribution_score=tier.authority_weight,
                    is_primary=is_primary,
                    canonical_url=mention.canonical_url or "",
                    content_hash=content_hash,
                    sentiment_score=mention.sentiment_score,
                    sentiment_label=mention.sentiment_label or "",
                    ingested_at=now,
                )
        except IntegrityError:
            # Lost a race with a concurrent ingest of the same mention
            return IngestResultDTO(
                status="duplicate",
                event_key=event.event_key,
                event_id=event.id,
                reason="evidence already recorded",
            )

        if is_primary and current_primary is not None:
            TrendEvidence.objects.filter(id=current_primary.id).update(is_primary=False)
        _refresh_event(event, mention, seen_at, config)

    return IngestResultDTO(
        status="created",
        event_key=event.event_key,
        event_id=event.id,
        evidence_id=evidence.id,
        event_created=event_created,
    )


def _outranks(published_at: datetime, weight: float, primary: TrendEvidence) -> bool:
    """Earlier publication wins; on a tie, the higher authority weight."""
    if published_at != primary.published_at:
        return published_at < primary.published_at
    return weight > primary.contribution_score


def _refresh_event(event: TrendEvent, mention: MentionDTO, seen_at: datetime, config: TrendConfig) -> None:
    """Update last_seen_at, extraction labels and lifetime source counts."""
    rows = TrendEvidence.objects.filter(event=event).values_list(
        "source_type", "source_domain", "source_id", "source_tier", "contribution_score"
    )
    breakdown = summarize_sources((EvidenceSource(*row) for row in rows), config)

    if seen_at > event.last_seen_at:
        event.last_seen_at = seen_at
    if mention.title and event.title in ("", event.event_key):
        event.title = mention.title
    if mention.entity_type:
        event.entity_type = mention.entity_type
    event.source_count = breakdown.source_count
    event.news_source_count = breakdown.news_source_count
    event.social_source_count = breakdown.social_source_count
    event.high_tier_source_count = breakdown.high_tier_source_count
    event.evidence_count = breakdown.evidence_count
    event.save(update_fields=[
        "last_seen_at", "title", "entity_type", "source_count", "news_source_count",
        "social_source_count", "high_tier_source_count", "evidence_count", "updated_at",
    ])


def ingest_batch(
    payloads: Iterable[Mapping[str, Any] | MentionDTO],
    *,
    now: datetime | None = None,
    config: TrendConfig | None = None,
) -> IngestBatchResultDTO:
    """
    Ingest many mentions, one transaction per record.

    Returns:
        IngestBatchResultDTO with per-status counts and per-record results
    """
    tier_map = load_tier_map()
    config = config or get_config()
    batch = IngestBatchResultDTO()

    for payload in payloads:
        result = ingest_mention(payload, now=now, tier_map=tier_map, config=config)
        batch.results.append(result)
        if result.status == "created":
            batch.created += 1
        elif result.status == "duplicate":
            batch.duplicate += 1
        else:
            batch.invalid += 1

    logger.info(
        "Evidence batch ingested",
        extra={
            "evidence_created": batch.created,
            "evidence_duplicate": batch.duplicate,
            "evidence_invalid": batch.invalid,
        },
    )
    return batch
