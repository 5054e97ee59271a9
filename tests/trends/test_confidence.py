"""
Tests for source breakdown, corroboration and confidence scoring.
"""

import pytest

from trendwatch.trends.config import TrendConfig
from trendwatch.trends.scoring.confidence import (
    EvidenceSource,
    confidence_score,
    corroboration_score,
    summarize_sources,
)


@pytest.fixture
def config():
    return TrendConfig()


def _src(source_type="national", domain="example.com", source_id="1", tier="unclassified", weight=1.0):
    return EvidenceSource(source_type, domain, source_id, tier, weight)


class TestSummarizeSources:
    def test_counts_distinct_domains(self, config):
        rows = [
            _src(domain="reuters.com", source_id="a", tier="tier1", weight=2.0),
            _src(domain="reuters.com", source_id="b", tier="tier1", weight=2.0),
            _src(domain="cnn.com", source_id="c", tier="tier2", weight=1.2),
            _src(source_type="social", domain="bsky.app", source_id="d", tier="social", weight=0.5),
        ]
        breakdown = summarize_sources(rows, config)
        assert breakdown.evidence_count == 4
        assert breakdown.source_count == 3
        assert breakdown.news_source_count == 2
        assert breakdown.social_source_count == 1
        assert breakdown.high_tier_source_count == 2

    def test_domainless_mentions_are_distinct_sources(self, config):
        rows = [_src(domain="", source_id="x"), _src(domain="", source_id="y")]
        assert summarize_sources(rows, config).source_count == 2

    def test_social_weight_is_discounted(self, config):
        breakdown = summarize_sources([_src(source_type="social", domain="bsky.app", weight=1.0)], config)
        assert breakdown.weights["bsky.app"] == pytest.approx(config.social_type_weight)

    def test_empty(self, config):
        breakdown = summarize_sources([], config)
        assert breakdown.source_count == 0
        assert breakdown.evidence_count == 0


class TestCorroborationScore:
    def test_weighted_sum(self, config):
        breakdown = summarize_sources([_src(domain="a.com"), _src(domain="b.com", source_id="2")], config)
        assert corroboration_score(breakdown, config) == pytest.approx(40.0)

    def test_news_and_social_mix_bonus(self, config):
        rows = [_src(domain="a.com"), _src(source_type="social", domain="bsky.app", source_id="2")]
        breakdown = summarize_sources(rows, config)
        # 1.0*20 + 0.5*20 + 15
        assert corroboration_score(breakdown, config) == pytest.approx(45.0)

    def test_capped_at_100(self, config):
        rows = [_src(domain=f"site{i}.com", source_id=str(i), weight=2.0) for i in range(10)]
        assert corroboration_score(summarize_sources(rows, config), config) == 100.0


class TestConfidenceScore:
    def test_sub_scores_are_capped(self, config):
        rows = [_src(domain=f"site{i}.com", source_id=str(i)) for i in range(20)]
        breakdown = summarize_sources(rows, config)
        result = confidence_score(100, 1, 9900, breakdown, config)
        assert result.factors["baseline_deviation"] == config.deviation_cap
        assert result.factors["cross_source"] == config.corroboration_cap
        assert result.factors["volume"] == config.volume_cap
        assert result.factors["velocity"] == config.velocity_cap
        assert result.score == 100.0

    def test_score_in_range_for_negative_velocity(self, config):
        breakdown = summarize_sources([_src()], config)
        result = confidence_score(0, 10, -100, breakdown, config)
        assert 0 <= result.score <= 100
        assert result.factors["baseline_deviation"] == 0
        assert result.factors["velocity"] == 0

    def test_zero_baseline_uses_ceiling_ratio(self, config):
        breakdown = summarize_sources([_src()], config)
        result = confidence_score(3, 0, config.velocity_ceiling, breakdown, config)
        # 500% ceiling -> ratio 5.0 -> 5.0 * 5
        assert result.factors["baseline_deviation"] == 25.0

    def test_factors_record_counts(self, config):
        breakdown = summarize_sources([_src(), _src(source_id="2")], config)
        result = confidence_score(2, 1, 100, breakdown, config)
        assert result.factors["source_count"] == 1
        assert result.factors["evidence_count"] == 2
