"""
Tests for the source tier registry.
"""

import pytest

from trendwatch.core.enums import SourceTierLevel
from trendwatch.trends.models import SourceTier
from trendwatch.trends.sources import (
    DEFAULT_SOURCE_TIERS,
    UNCLASSIFIED,
    TierInfo,
    lookup_source_tier,
    normalize_domain,
    seed_source_tiers,
)


class TestNormalizeDomain:
    @pytest.mark.parametrize(
        "raw,expected",
        [
            ("reuters.com", "reuters.com"),
            ("WWW.Reuters.com", "reuters.com"),
            ("https://www.reuters.com/world/us/story-1", "reuters.com"),
            ("http://apnews.com:8080/article", "apnews.com"),
            ("edition.cnn.com/2026/01/06", "edition.cnn.com"),
            ("", ""),
            (None, ""),
        ],
    )
    def test_normalize(self, raw, expected):
        assert normalize_domain(raw) == expected


class TestLookup:
    TIER_MAP = {
        "cnn.com": TierInfo(SourceTierLevel.TIER2, 1.2, "cnn.com"),
        "reuters.com": TierInfo(SourceTierLevel.TIER1, 2.0, "reuters.com"),
    }

    def test_exact_match(self):
        assert lookup_source_tier("reuters.com", self.TIER_MAP).authority_weight == 2.0

    def test_subdomain_falls_back_to_parent(self):
        info = lookup_source_tier("edition.cnn.com", self.TIER_MAP)
        assert info.tier == SourceTierLevel.TIER2
        assert info.matched_domain == "cnn.com"

    def test_unknown_domain_gets_neutral_weight(self):
        """Unregistered sources are kept at weight 1.0, not dropped."""
        info = lookup_source_tier("smalltown-gazette.com", self.TIER_MAP)
        assert info == UNCLASSIFIED
        assert info.authority_weight == 1.0
        assert not info.is_registered

    def test_does_not_match_bare_tld(self):
        assert lookup_source_tier("com", {"com": TierInfo("tier1", 9.0, "com")}).tier == "tier1"
        assert lookup_source_tier("example.com", {"com": TierInfo("tier1", 9.0, "com")}) == UNCLASSIFIED

    def test_empty_domain(self):
        assert lookup_source_tier("", self.TIER_MAP) == UNCLASSIFIED


@pytest.mark.django_db
class TestSeedSourceTiers:
    def test_seed_creates_defaults(self):
        result = seed_source_tiers()
        assert result["created"] == len(DEFAULT_SOURCE_TIERS)
        assert SourceTier.objects.count() == len(DEFAULT_SOURCE_TIERS)

    def test_seed_is_idempotent_and_keeps_curation(self):
        seed_source_tiers()
        SourceTier.objects.filter(domain="cnn.com").update(authority_weight=1.5)

        result = seed_source_tiers()

        assert result["created"] == 0
        assert result["unchanged"] == len(DEFAULT_SOURCE_TIERS)
        assert SourceTier.objects.get(domain="cnn.com").authority_weight == 1.5

    def test_overwrite_restores_defaults(self):
        seed_source_tiers()
        SourceTier.objects.filter(domain="cnn.com").update(authority_weight=1.5)

        result = seed_source_tiers(overwrite=True)

        assert result["updated"] == len(DEFAULT_SOURCE_TIERS)
        assert SourceTier.objects.get(domain="cnn.com").authority_weight == 1.2

    def test_lookup_reads_registry_when_no_map_given(self):
        seed_source_tiers()
        assert lookup_source_tier("https://www.apnews.com/x").tier == SourceTierLevel.TIER1
