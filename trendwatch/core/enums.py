"""
Trendwatch domain enums.

All enums are Django TextChoices so they are stored as lowercase strings and
validate at the API boundary (Pydantic accepts TextChoices directly).
"""

from django.db import models


class SourceType(models.TextChoices):
    """Kind of outlet a mention came from."""
    WIRE = "wire", "News Wire"
    NATIONAL = "national", "National Outlet"
    REGIONAL = "regional", "Regional Outlet"
    AGGREGATOR = "aggregator", "News Aggregator"
    SOCIAL = "social", "Social Post"


# Every source type except SOCIAL counts as news for corroboration.
NEWS_SOURCE_TYPES = frozenset({
    SourceType.WIRE,
    SourceType.NATIONAL,
    SourceType.REGIONAL,
    SourceType.AGGREGATOR,
})


class SourceTierLevel(models.TextChoices):
    """Credibility tier of a registered source domain."""
    TIER1 = "tier1", "Tier 1 - Authoritative"
    TIER2 = "tier2", "Tier 2 - National / Politics"
    TIER3 = "tier3", "Tier 3 - Specialist / Advocacy"
    SOCIAL = "social", "Social"
    UNCLASSIFIED = "unclassified", "Unclassified"


class SentimentLabel(models.TextChoices):
    POSITIVE = "positive", "Positive"
    NEUTRAL = "neutral", "Neutral"
    NEGATIVE = "negative", "Negative"


class EntityType(models.TextChoices):
    """What a tracked trend refers to (supplied by the extraction service)."""
    PERSON = "person", "Person"
    ORGANIZATION = "organization", "Organization"
    EVENT = "event", "Event"
    LEGISLATION = "legislation", "Legislation"
    LOCATION = "location", "Location"
    HASHTAG = "hashtag", "Hashtag"
    TOPIC = "topic", "Topic"
    CATEGORY = "category", "Category"


class TrendStage(models.TextChoices):
    """
    Lifecycle stage of a trend.

    Recomputed from current signals on every detection run, so a stable trend
    can move back to surging when volume re-accelerates.
    """
    EMERGING = "emerging", "Emerging"
    SURGING = "surging", "Surging"
    PEAKING = "peaking", "Peaking"
    DECLINING = "declining", "Declining"
    STABLE = "stable", "Stable"


class OpportunityTier(models.TextChoices):
    """Actionability bucket derived from the decision score."""
    ACT_NOW = "act_now", "Act Now"
    CONSIDER = "consider", "Consider"
    WATCH = "watch", "Watch"
    IGNORE = "ignore", "Ignore"


class ActionType(models.TextChoices):
    """Actions an operator or alerting system can take on a trend."""
    SMS = "sms", "SMS Sent"
    EMAIL = "email", "Email Sent"
    ALERT = "alert", "Alert Sent"
    WATCHLIST = "watchlist", "Added to Watchlist"
    DISMISS = "dismiss", "Dismissed"
    SHARE = "share", "Shared"


class RunStatus(models.TextChoices):
    """
    Pipeline run status.

    STALE is set by the SLA monitor for runs that exceeded their expected
    duration without finishing; it is distinct from FAILED.
    """
    RUNNING = "running", "Running"
    SUCCESS = "success", "Success"
    FAILED = "failed", "Failed"
    SKIPPED = "skipped", "Skipped"
    STALE = "stale", "Stale"


class JobType(models.TextChoices):
    INGEST = "ingest", "Evidence Ingestion"
    BASELINE = "baseline", "Baseline Calculator"
    DETECT = "detect", "Trend Detection"
    FEEDBACK = "feedback", "Outcome Feedback"


class Freshness(models.TextChoices):
    """Age bucket of a trend's last mention."""
    FRESH = "fresh", "Fresh"
    RECENT = "recent", "Recent"
    AGING = "aging", "Aging"
    STALE = "stale", "Stale"
