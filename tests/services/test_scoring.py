"""
Unit tests for quality scoring (src/services/deep_search/scoring.py).

This module tests:
- Authority, freshness, completeness, accuracy and relevance scores
- Overall score as the fixed weighted sum
- Verification status and cross-references
- Cross-validation boost and final ordering
- Injected authority and verification stores
"""

from datetime import datetime, timedelta

import pytest
from pydantic import ValidationError as PydanticValidationError

from src.core.constants import QUALITY_WEIGHTS
from src.services.deep_search.extractor import DataPointExtractor
from src.services.deep_search.models import (
    DataPoint,
    DataPointType,
    QualityMetrics,
    SearchResult,
    VerificationStatus,
)
from src.services.deep_search.scoring import (
    InMemoryStore,
    QualityScorer,
    neutral_metrics,
    weighted_overall,
)


def make_result(url="https://example.com/page", content="", title="", data_points=None, confidence=0.5, strategy="Broad Web Search"):
    return SearchResult(
        url=url,
        title=title,
        content=content,
        data_points=data_points or [],
        confidence=confidence,
        strategy=strategy,
    )


def currency(value, confidence=0.7):
    return DataPoint(
        value=value, type=DataPointType.CURRENCY, confidence=confidence, source="content"
    )


# ========================================
# Scenario: corroborated GDP figure
# ========================================


class TestGdpScenario:
    """Three pages about US GDP, one official and dated, two undated blogs."""

    @pytest.fixture
    def results(self):
        extractor = DataPointExtractor()
        query = "US GDP 2024"
        pages = [
            (
                "https://www.bea.gov/gdp",
                "US GDP reached $27.36 trillion according to the March 2024 release.",
            ),
            ("https://econblog.com/gdp", "Analysts say US GDP is $27.36 trillion."),
            ("https://markets.com/us-gdp", "The US GDP stands at $27.36 trillion."),
        ]
        return [
            make_result(
                url=url,
                content=content,
                title="US GDP",
                data_points=extractor.extract(content, "", query),
            )
            for url, content in pages
        ]

    def test_official_source_scores_highest(self, scorer, results):
        scored = scorer.score_results(results, "US GDP 2024")
        by_url = {r.url: r for r in scored}
        gov = by_url["https://www.bea.gov/gdp"].quality_metrics

        for url in ("https://econblog.com/gdp", "https://markets.com/us-gdp"):
            other = by_url[url].quality_metrics
            assert gov.authority > other.authority
            assert gov.freshness > other.freshness

    def test_figure_is_corroborated_everywhere(self, scorer, results):
        scored = scorer.score_results(results, "US GDP 2024")

        for result in scored:
            assert result.verification_status != VerificationStatus.UNVERIFIED
            assert result.cross_references

    def test_overall_is_weighted_sum(self, scorer, results):
        for result in scorer.score_results(results, "US GDP 2024"):
            metrics = result.quality_metrics
            assert metrics.overall == pytest.approx(min(weighted_overall(metrics), 1.0))


# ========================================
# Dimension scores
# ========================================


class TestAuthority:
    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://www.census.gov/data", 1.0),
            ("http://census.gov/data", 0.95),
            ("https://example.com", 0.55),
            ("http://example.org", 0.75),
            ("https://web.mit.edu/research", 0.9),
            ("http://www.ons.gov.uk/economy", 0.95),
            ("https://www.gartner.com/en", 0.9),
        ],
    )
    def test_domain_rules(self, scorer, url, expected):
        assert scorer.calculate_authority(url) == pytest.approx(expected)

    def test_update_authority_score_adjusts_from_base(self, scorer):
        scorer.update_authority_score("www.example.com", 0.3)

        assert scorer.authority_store.get("example.com") == pytest.approx(0.8)
        assert scorer.calculate_authority("https://example.com/a") == pytest.approx(0.85)

    def test_adjustments_accumulate(self, scorer):
        scorer.update_authority_score("example.com", 0.1)
        scorer.update_authority_score("example.com", 0.1)

        assert scorer.authority_store.get("example.com") == pytest.approx(0.7)

    def test_negative_adjustment_demotes_known_domain(self, scorer):
        scorer.update_authority_score("gartner.com", -0.2)

        assert scorer.calculate_authority("https://www.gartner.com/en") == pytest.approx(0.75)

    def test_update_is_clamped(self, scorer):
        scorer.update_authority_score("example.com", 5.0)

        assert scorer.calculate_authority("https://example.com") == 1.0

        scorer.update_authority_score("example.com", -9.0)

        assert scorer.authority_store.get("example.com") == 0.0

    def test_stores_are_isolated(self):
        first = QualityScorer()
        second = QualityScorer()

        first.update_authority_score("example.com", 0.9)

        assert second.calculate_authority("http://example.com") == pytest.approx(0.5)

    def test_injected_store(self):
        scorer = QualityScorer(authority_store=InMemoryStore({"trusted.io": 0.8}))

        assert scorer.calculate_authority("http://data.trusted.io") == pytest.approx(0.8)


class TestFreshness:
    @pytest.mark.parametrize(
        "content,expected",
        [
            ("Updated 2024-04-01", 1.0),
            ("Published March 2024", 0.9),
            ("As of 01/15/2024", 0.8),
            ("Results for Q1 2023", 0.5),
            ("Released June 5, 2021", 0.3),
            ("No dates here", 0.5),
            ("Forecast for 2030-01-01", 0.5),
            ("Old 2019-01-01, revised 2024-04-10", 1.0),
            ("Broken 2024-13-45", 0.5),
        ],
    )
    def test_age_brackets(self, scorer, frozen_now, content, expected):
        assert scorer.calculate_freshness(content, frozen_now) == expected

    @pytest.mark.parametrize(
        "days,expected",
        [(30, 1.0), (31, 0.9), (90, 0.9), (180, 0.8), (365, 0.7), (730, 0.5), (731, 0.3)],
    )
    def test_bracket_boundaries_are_inclusive(self, scorer, frozen_now, days, expected):
        published = (frozen_now - timedelta(days=days)).strftime("%Y-%m-%d")

        assert scorer.calculate_freshness(f"Updated {published}", frozen_now) == expected

    def test_uses_injected_clock(self):
        scorer = QualityScorer(clock=lambda: datetime(2030, 1, 1))
        result = make_result(content="Updated 2024-04-01")

        metrics = scorer.calculate_quality_metrics(result, "anything")

        assert metrics.freshness == 0.3


class TestCompleteness:
    def test_terms_and_keywords(self, scorer):
        result = make_result(content="Steel production overview")

        assert scorer.calculate_completeness(result, "steel production") == pytest.approx(0.35)

    def test_data_point_bonus(self, scorer):
        result = make_result(content="Steel production overview", data_points=[currency("$5")])

        assert scorer.calculate_completeness(result, "steel production") == pytest.approx(0.55)

    def test_length_and_count_bonuses(self, scorer):
        points = [currency(f"${i}") for i in range(6)]
        result = make_result(content="x" * 600, data_points=points)

        assert scorer.calculate_completeness(result, "zzz") == pytest.approx(0.4)

    def test_capped(self, scorer):
        points = [currency(f"${i}") for i in range(12)]
        content = " ".join(
            ["overview summary comprehensive detailed analysis report study research"] * 50
        )
        result = make_result(content=content, data_points=points)

        assert scorer.calculate_completeness(result, "report study") == 1.0


class TestAccuracy:
    def test_base(self, scorer):
        assert scorer.calculate_accuracy(make_result()) == pytest.approx(0.7)

    def test_confidence_and_citations(self, scorer):
        result = make_result(
            content="[1] Source: Bureau of Labor Statistics",
            data_points=[currency("$5", confidence=0.9)],
        )

        assert scorer.calculate_accuracy(result) == pytest.approx(0.9)

    def test_many_citations(self, scorer):
        result = make_result(content="[1] [2] [3] [4] [5] [6]")

        assert scorer.calculate_accuracy(result) == pytest.approx(0.9)

    @pytest.mark.parametrize("verified,expected", [(True, 0.95), (False, 0.3)])
    def test_explicit_verification_overrides(self, scorer, verified, expected):
        points = [currency("$5")]
        result = make_result(url="https://example.com/x", data_points=points)

        scorer.mark_data_verification("https://example.com/x", points, verified)

        assert scorer.calculate_accuracy(result) == pytest.approx(expected)

    def test_verification_is_keyed_by_data_points(self, scorer):
        scorer.mark_data_verification("https://example.com/x", [currency("$5")], True)
        result = make_result(url="https://example.com/x", data_points=[currency("$6")])

        assert scorer.calculate_accuracy(result) == pytest.approx(0.7)


class TestRelevance:
    def test_window_and_title_bonus(self, scorer):
        result = make_result(content="us steel production rose", title="Steel stats")

        assert scorer.calculate_relevance(result, "steel production") == pytest.approx(0.65)

    def test_window_bonus_applied_once(self, scorer):
        result = make_result(
            content="steel production up, steel production everywhere", title="Steel stats"
        )

        assert scorer.calculate_relevance(result, "steel production") == pytest.approx(0.65)

    def test_sector_bonus(self, scorer):
        result = make_result(content="manufacturing sector update")

        assert scorer.calculate_relevance(
            result, "zzz", sector="Manufacturing"
        ) == pytest.approx(0.65)

    @pytest.mark.parametrize(
        "url,title",
        [
            ("https://steel.example.com/x", "Output"),
            ("https://example.com/x", "Steel output"),
        ],
    )
    def test_sector_bonus_from_url_or_title(self, scorer, url, title):
        result = make_result(url=url, title=title, content="annual figures")

        assert scorer.calculate_relevance(result, "zzz", sector="steel") == pytest.approx(0.65)

    def test_no_sector_match(self, scorer):
        result = make_result(title="Output", content="annual figures")

        assert scorer.calculate_relevance(result, "zzz", sector="steel") == pytest.approx(0.5)

    def test_base_is_retrieval_confidence(self, scorer):
        result = make_result(content="nothing", confidence=0.3)

        assert scorer.calculate_relevance(result, "steel") == pytest.approx(0.3)


class TestConfidence:
    def test_strategy_bonus(self, scorer):
        metrics = QualityMetrics(
            authority=0.6,
            freshness=0.6,
            completeness=0.6,
            accuracy=0.6,
            relevance=0.6,
            overall=0.6,
            confidence=0.0,
        )
        result = make_result(strategy="Direct API Access")

        assert scorer.calculate_confidence(metrics, result) == pytest.approx(0.7)

    def test_averages_with_data_point_confidence(self, scorer):
        metrics = QualityMetrics(
            authority=0.6,
            freshness=0.6,
            completeness=0.6,
            accuracy=0.6,
            relevance=0.6,
            overall=0.6,
            confidence=0.0,
        )
        result = make_result(data_points=[currency("$5", confidence=1.0)])

        assert scorer.calculate_confidence(metrics, result) == pytest.approx(0.8)


# ========================================
# Corroboration
# ========================================


class TestVerification:
    def test_verified_with_references(self, scorer):
        a = make_result(url="https://a.example.com", data_points=[currency("$4.2 billion")])
        b = make_result(url="https://b.example.com", data_points=[currency("$4.25 billion")])
        c = make_result(url="https://c.example.com", data_points=[currency("$9 billion")])

        status, refs = scorer.verification_for(a, [a, b, c])

        assert status == VerificationStatus.VERIFIED
        assert refs == ["https://b.example.com"]
        assert scorer.verification_for(c, [a, b, c]) == (VerificationStatus.UNVERIFIED, [])

    def test_partially_verified(self, scorer):
        a = make_result(
            url="https://a.example.com",
            data_points=[currency("$4.2 billion"), currency("$100"), currency("$7")],
        )
        b = make_result(url="https://b.example.com", data_points=[currency("$4.2 billion")])

        status, _ = scorer.verification_for(a, [a, b])

        assert status == VerificationStatus.PARTIALLY_VERIFIED

    def test_same_url_does_not_corroborate(self, scorer):
        a = make_result(url="https://a.example.com", data_points=[currency("$5")])
        twin = make_result(url="https://a.example.com", data_points=[currency("$5")])

        assert scorer.verification_for(a, [a, twin])[0] == VerificationStatus.UNVERIFIED

    def test_no_data_points_is_unverified(self, scorer):
        a = make_result(url="https://a.example.com")

        assert scorer.verification_for(a, [a]) == (VerificationStatus.UNVERIFIED, [])


class TestCrossValidation:
    def test_shared_value_boosts_accuracy(self, scorer):
        a = make_result(url="https://a.example.com", data_points=[currency("$4.2 billion")])
        b = make_result(url="https://b.example.com", data_points=[currency("$4,200,000,000")])

        scored = scorer.score_results([a, b], "zzz")

        for result in scored:
            metrics = result.quality_metrics
            assert metrics.accuracy == pytest.approx(0.8)
            assert metrics.overall == pytest.approx(weighted_overall(metrics))

    def test_same_url_is_not_boosted(self, scorer):
        a = make_result(url="https://a.example.com", data_points=[currency("$5")])
        twin = make_result(url="https://a.example.com", data_points=[currency("$5")])

        scored = scorer.score_results([a, twin], "zzz")

        assert all(r.quality_metrics.accuracy == pytest.approx(0.7) for r in scored)

    def test_sorted_by_overall(self, scorer):
        results = [
            make_result(url="https://blog.example.com/a", content="short"),
            make_result(
                url="https://www.census.gov/a",
                content="Census report 2024-04-01 [1] overview",
                data_points=[currency("$5", confidence=0.9)],
            ),
            make_result(url="http://example.org/b", content="research"),
        ]

        scored = scorer.score_results(results, "census report")
        overall = [r.quality_metrics.overall for r in scored]

        assert overall == sorted(overall, reverse=True)
        assert scored[0].url == "https://www.census.gov/a"

    def test_scores_stay_in_bounds(self, scorer):
        rich_points = [currency(f"${i} billion", confidence=1.0) for i in range(12)]
        content = "[1] Source: According to (2024) " * 20 + " steel 2024-04-10 overview"
        results = [
            make_result(url="https://www.census.gov/a", content=content, title="steel steel", data_points=rich_points, confidence=1.0, strategy="Direct API Access"),
            make_result(url="https://www.bls.gov/b", content=content, title="steel", data_points=rich_points, confidence=1.0),
            make_result(url="http://x.example.com", content="", confidence=0.0),
        ]

        for result in scorer.score_results(results, "steel", sector="steel"):
            metrics = result.quality_metrics
            for name in ("authority", "freshness", "completeness", "accuracy", "relevance", "overall", "confidence"):
                assert 0.0 <= getattr(metrics, name) <= 1.0


# ========================================
# Metrics helpers
# ========================================


class TestMetricsHelpers:
    def test_weights_sum_to_one(self):
        assert sum(QUALITY_WEIGHTS.values()) == pytest.approx(1.0)

    def test_neutral_metrics(self):
        metrics = neutral_metrics(make_result(confidence=0.8))

        assert metrics.relevance == 0.8
        assert metrics.overall == pytest.approx(0.545)
        assert metrics.explanation == "Quality scoring unavailable"

    def test_rejects_nan(self):
        with pytest.raises(PydanticValidationError):
            QualityMetrics(
                authority=float("nan"),
                freshness=0.5,
                completeness=0.5,
                accuracy=0.5,
                relevance=0.5,
                overall=0.5,
                confidence=0.5,
            )

    def test_explanation_labels(self):
        metrics = QualityMetrics(
            authority=0.95,
            freshness=0.95,
            completeness=0.85,
            accuracy=0.95,
            relevance=0.85,
            overall=0.9,
            confidence=0.9,
        )

        explanation = QualityScorer.generate_explanation(metrics)

        assert explanation.startswith("Highly authoritative source. Very recent data")
        assert "Comprehensive coverage" in explanation
        assert not any(ch.isdigit() for ch in explanation)

    def test_explanation_default(self):
        metrics = QualityMetrics(
            authority=0.6,
            freshness=0.6,
            completeness=0.6,
            accuracy=0.6,
            relevance=0.6,
            overall=0.6,
            confidence=0.6,
        )

        assert QualityScorer.generate_explanation(metrics) == "Standard quality result"
