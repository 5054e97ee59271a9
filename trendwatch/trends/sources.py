"""
Source tier registry helpers.

Domains are normalized (lowercase, no scheme, no port, no leading www.)
before lookup. A subdomain falls back to its closest registered parent,
so "edition.cnn.com" resolves to the cnn.com entry.

Unregistered domains resolve to an unclassified tier with weight 1.0:
under-weighting an unknown source is preferable to dropping its evidence.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from urllib.parse import urlparse

from django.db import transaction

from trendwatch.core.enums import SourceTierLevel

from .models import SourceTier

logger = logging.getLogger(__name__)

DEFAULT_AUTHORITY_WEIGHT = 1.0

# (domain, tier, authority_weight, name, category)
DEFAULT_SOURCE_TIERS = [
    ("reuters.com", SourceTierLevel.TIER1, 2.0, "Reuters", "wire"),
    ("apnews.com", SourceTierLevel.TIER1, 2.0, "AP News", "wire"),
    ("bbc.com", SourceTierLevel.TIER1, 1.8, "BBC", "international"),
    ("nytimes.com", SourceTierLevel.TIER1, 1.8, "NYT", "national"),
    ("washingtonpost.com", SourceTierLevel.TIER1, 1.8, "WaPo", "national"),
    ("wsj.com", SourceTierLevel.TIER1, 1.8, "WSJ", "national"),
    ("npr.org", SourceTierLevel.TIER1, 1.5, "NPR", "national"),
    ("propublica.org", SourceTierLevel.TIER1, 1.5, "ProPublica", "investigative"),
    ("politico.com", SourceTierLevel.TIER2, 1.3, "Politico", "politics"),
    ("thehill.com", SourceTierLevel.TIER2, 1.3, "The Hill", "politics"),
    ("axios.com", SourceTierLevel.TIER2, 1.3, "Axios", "politics"),
    ("cnn.com", SourceTierLevel.TIER2, 1.2, "CNN", "national"),
    ("foxnews.com", SourceTierLevel.TIER2, 1.2, "Fox News", "national"),
    ("msnbc.com", SourceTierLevel.TIER2, 1.2, "MSNBC", "national"),
    ("bsky.app", SourceTierLevel.SOCIAL, 0.5, "Bluesky", "social"),
]


@dataclass(frozen=True)
class TierInfo:
    """Resolved tier for one domain."""

    tier: str
    authority_weight: float
    matched_domain: str | None = None

    @property
    def is_registered(self) -> bool:
        return self.matched_domain is not None


UNCLASSIFIED = TierInfo(tier=SourceTierLevel.UNCLASSIFIED, authority_weight=DEFAULT_AUTHORITY_WEIGHT)


def normalize_domain(value: str | None) -> str:
    """
    Normalize a domain or URL to a bare lowercase host.

    >>> normalize_domain("https://WWW.Reuters.com/world/x")
    'reuters.com'
    """
    if not value:
        return ""
    value = value.strip().lower()
    if "://" in value:
        value = urlparse(value).hostname or ""
    else:
        value = value.split("/", 1)[0]
        value = value.split(":", 1)[0]
    if value.startswith("www."):
        value = value[4:]
    return value.strip(".")


def _candidate_domains(domain: str):
    """Yield the domain then each parent down to two labels."""
    parts = domain.split(".")
    for i in range(0, max(1, len(parts) - 1)):
        yield ".".join(parts[i:])


def load_tier_map() -> dict[str, TierInfo]:
    """Load the full registry into memory (small, curated table)."""
    return {
        row.domain: TierInfo(row.tier, row.authority_weight, row.domain)
        for row in SourceTier.objects.all()
    }


def lookup_source_tier(domain: str, tier_map: dict[str, TierInfo] | None = None) -> TierInfo:
    """
    Resolve a normalized domain to its tier, falling back to parents.

    Args:
        domain: Domain as stored on evidence (normalized or not)
        tier_map: Optional preloaded registry (see load_tier_map)

    Returns:
        TierInfo; UNCLASSIFIED when nothing matches
    """
    domain = normalize_domain(domain)
    if not domain:
        return UNCLASSIFIED
    if tier_map is None:
        tier_map = load_tier_map()
    for candidate in _candidate_domains(domain):
        info = tier_map.get(candidate)
        if info is not None:
            return info
    return UNCLASSIFIED


@transaction.atomic
def seed_source_tiers(entries=None, overwrite: bool = False) -> dict:
    """
    Load the default tier registry.

    Existing domains are left untouched unless overwrite=True, so operator
    curation survives re-seeding.

    Returns:
        Dict with created, updated, unchanged counts
    """
    entries = entries if entries is not None else DEFAULT_SOURCE_TIERS
    created = 0
    updated = 0
    unchanged = 0

    for domain, tier, weight, name, category in entries:
        defaults = {
            "tier": tier,
            "authority_weight": weight,
            "name": name,
            "category": category,
        }
        if overwrite:
            _, was_created = SourceTier.objects.update_or_create(
                domain=normalize_domain(domain), defaults=defaults
            )
            if was_created:
                created += 1
            else:
                updated += 1
        else:
            _, was_created = SourceTier.objects.get_or_create(
                domain=normalize_domain(domain), defaults=defaults
            )
            if was_created:
                created += 1
            else:
                unchanged += 1

    logger.info(
        "Source tiers seeded",
        extra={"tiers_created": created, "tiers_updated": updated, "tiers_unchanged": unchanged},
    )
    return {"created": created, "updated": updated, "unchanged": unchanged}
