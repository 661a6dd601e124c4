"""Multi-factor quality scoring and cross-source corroboration.

This module handles:
- Authority, freshness, completeness, accuracy and relevance scores
- Weighted overall score and calibrated confidence
- Verification status from data points repeated across sources
- Cross-validation boost for results that agree with each other

Authority and verification lookups go through injected key-value stores,
so tests and concurrent pipelines never share hidden global state.
"""

import logging
import re
import threading
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Protocol

from src.core.constants import (
    ACCURACY_BASE,
    ACCURACY_CITATION_BONUS,
    ACCURACY_CORROBORATION_BOOST,
    ACCURACY_HIGH_CONFIDENCE_BONUS,
    ACCURACY_MANY_CITATIONS,
    ACCURACY_MANY_CITATIONS_BONUS,
    ACCURACY_REFUTED,
    ACCURACY_VERIFIED,
    AUTHORITY_BASE,
    AUTHORITY_EDU,
    AUTHORITY_GOV,
    AUTHORITY_HTTPS_BONUS,
    AUTHORITY_ORG,
    COMPLETENESS_DATA_BONUSES,
    COMPLETENESS_KEYWORD_BONUS,
    COMPLETENESS_KEYWORDS,
    COMPLETENESS_LENGTH_BONUSES,
    COMPLETENESS_TERM_WEIGHT,
    CORROBORATION_TOLERANCE_DEFAULT,
    FRESHNESS_BRACKETS,
    FRESHNESS_STALE,
    FRESHNESS_UNKNOWN,
    HIGH_VALUE_CONFIDENCE,
    KNOWN_AUTHORITY_DOMAINS,
    PARTIAL_RATIO,
    QUALITY_WEIGHTS,
    RELEVANCE_PROXIMITY_BONUS,
    RELEVANCE_SECTOR_BONUS,
    RELEVANCE_TITLE_TERM_BONUS,
    STRATEGY_CONFIDENCE_BONUSES,
    VERIFIED_RATIO,
)
from src.utils.text import query_terms
from src.utils.url_helpers import extract_domain_from_url

from .extractor import data_points_similar, normalized_key
from .models import (
    DataPoint,
    QualityMetrics,
    ScoredResult,
    SearchResult,
    VerificationStatus,
)

logger = logging.getLogger(__name__)

_MONTHS = (
    "January|February|March|April|May|June|July|August|September|October|"
    "November|December"
)

_CITATION_PATTERNS = (
    re.compile(r"\[\d+\]"),
    re.compile(r"\(\d{4}\)"),
    re.compile(r"Source:", re.IGNORECASE),
    re.compile(r"Reference:", re.IGNORECASE),
    re.compile(r"According to", re.IGNORECASE),
)


def _safe_strptime(text: str, fmt: str) -> datetime | None:
    try:
        return datetime.strptime(text, fmt)
    except ValueError:
        return None


def _parse_quarter(match: re.Match[str]) -> datetime | None:
    quarter, year = int(match.group(1)), int(match.group(2))
    try:
        return datetime(year, 3 * (quarter - 1) + 1, 1)
    except ValueError:
        return None


# Parsers return None for impossible dates
_DATE_PATTERNS: tuple[
    tuple[re.Pattern[str], Callable[[re.Match[str]], datetime | None]], ...
] = (
    (
        re.compile(r"\b(\d{1,2}/\d{1,2}/\d{4})\b"),
        lambda m: _safe_strptime(m.group(1), "%m/%d/%Y"),
    ),
    (
        re.compile(r"\b(\d{4}-\d{2}-\d{2})\b"),
        lambda m: _safe_strptime(m.group(1), "%Y-%m-%d"),
    ),
    (
        re.compile(rf"\b({_MONTHS})\s+(\d{{1,2}}),?\s+(\d{{4}})\b", re.IGNORECASE),
        lambda m: _safe_strptime(
            f"{m.group(1).title()} {m.group(2)} {m.group(3)}", "%B %d %Y"
        ),
    ),
    (
        re.compile(rf"\b({_MONTHS})\s+(\d{{4}})\b", re.IGNORECASE),
        lambda m: _safe_strptime(f"{m.group(1).title()} {m.group(2)}", "%B %Y"),
    ),
    (re.compile(r"\bQ([1-4])\s+(\d{4})\b"), _parse_quarter),
)


class KeyValueStore(Protocol):
    def get(self, key: str) -> object | None: ...

    def set(self, key: str, value: object) -> None: ...


class InMemoryStore:
    """Thread-safe dict-backed store with per-key atomic writes."""

    def __init__(self, initial: dict[str, object] | None = None):
        self._data: dict[str, object] = dict(initial or {})
        self._lock = threading.Lock()

    def get(self, key: str) -> object | None:
        return self._data.get(key)

    def set(self, key: str, value: object) -> None:
        with self._lock:
            self._data[key] = value


def default_authority_store() -> InMemoryStore:
    """Store preloaded with the known authoritative domains."""
    return InMemoryStore(dict(KNOWN_AUTHORITY_DOMAINS))


def verification_key(url: str, data_points: list[DataPoint]) -> str:
    return f"{url}-{','.join(str(dp.value) for dp in data_points)}"


def weighted_overall(metrics: QualityMetrics) -> float:
    return (
        metrics.authority * QUALITY_WEIGHTS["authority"]
        + metrics.freshness * QUALITY_WEIGHTS["freshness"]
        + metrics.completeness * QUALITY_WEIGHTS["completeness"]
        + metrics.accuracy * QUALITY_WEIGHTS["accuracy"]
        + metrics.relevance * QUALITY_WEIGHTS["relevance"]
    )


def neutral_metrics(result: SearchResult) -> QualityMetrics:
    """Flat metrics used when scoring is disabled or fails."""
    metrics = QualityMetrics(
        authority=0.5,
        freshness=0.5,
        completeness=0.5,
        accuracy=0.5,
        relevance=result.confidence,
        overall=0.0,
        confidence=result.confidence,
        explanation="Quality scoring unavailable",
    )
    metrics.overall = min(weighted_overall(metrics), 1.0)
    return metrics


def to_scored(
    result: SearchResult,
    metrics: QualityMetrics,
    status: VerificationStatus = VerificationStatus.UNVERIFIED,
    cross_references: list[str] | None = None,
) -> ScoredResult:
    fields = {name: getattr(result, name) for name in SearchResult.model_fields}
    return ScoredResult(
        **fields,
        quality_metrics=metrics,
        verification_status=status,
        cross_references=cross_references or [],
    )


class QualityScorer:
    """Score search results on five quality dimensions."""

    def __init__(
        self,
        authority_store: KeyValueStore | None = None,
        verification_store: KeyValueStore | None = None,
        tolerance: float = CORROBORATION_TOLERANCE_DEFAULT,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.authority_store = authority_store or default_authority_store()
        self.verification_store = verification_store or InMemoryStore()
        self.tolerance = tolerance
        self.clock = clock

    # ========================================
    # Public API
    # ========================================

    def score_results(
        self, results: list[SearchResult], query: str, sector: str | None = None
    ) -> list[ScoredResult]:
        """Score, corroborate and rank results, best first."""
        now = self.clock()
        scored = []
        for result in results:
            metrics = self.calculate_quality_metrics(result, query, sector, now)
            status, refs = self.verification_for(result, results)
            scored.append(to_scored(result, metrics, status, refs))
        return self.cross_validate(scored)

    def update_authority_score(self, domain: str, adjustment: float) -> None:
        """Shift a domain's stored authority by ``adjustment``, clamped to [0, 1].

        Domains without a stored score start from the neutral base.
        """
        domain = domain.lower().removeprefix("www.")
        current = self.authority_store.get(domain)
        if not isinstance(current, int | float):
            current = AUTHORITY_BASE
        self.authority_store.set(domain, max(0.0, min(1.0, current + adjustment)))

    def mark_data_verification(
        self, url: str, data_points: list[DataPoint], verified: bool
    ) -> None:
        """Record an external verdict on a result's data points."""
        self.verification_store.set(verification_key(url, data_points), verified)

    # ========================================
    # Dimension scores
    # ========================================

    def calculate_quality_metrics(
        self,
        result: SearchResult,
        query: str,
        sector: str | None = None,
        now: datetime | None = None,
    ) -> QualityMetrics:
        metrics = QualityMetrics(
            authority=self.calculate_authority(result.url),
            freshness=self.calculate_freshness(result.content, now or self.clock()),
            completeness=self.calculate_completeness(result, query),
            accuracy=self.calculate_accuracy(result),
            relevance=self.calculate_relevance(result, query, sector),
            overall=0.0,
            confidence=0.0,
        )
        metrics.overall = min(weighted_overall(metrics), 1.0)
        metrics.confidence = self.calculate_confidence(metrics, result)
        metrics.explanation = self.generate_explanation(metrics)
        return metrics

    def _cached_authority(self, domain: str) -> float | None:
        labels = domain.split(".")
        for i in range(len(labels)):
            cached = self.authority_store.get(".".join(labels[i:]))
            if isinstance(cached, int | float):
                return float(cached)
        return None

    def calculate_authority(self, url: str) -> float:
        domain = extract_domain_from_url(url)
        score = AUTHORITY_BASE
        cached = self._cached_authority(domain) if domain else None
        if cached is not None:
            score = max(score, cached)

        if domain.endswith(".gov") or ".gov." in domain:
            score = max(score, AUTHORITY_GOV)
        elif domain.endswith(".edu") or ".edu." in domain:
            score = max(score, AUTHORITY_EDU)
        elif domain.endswith(".org"):
            score = max(score, AUTHORITY_ORG)

        if url.lower().startswith("https://"):
            score += AUTHORITY_HTTPS_BONUS
        return min(score, 1.0)

    def calculate_freshness(self, content: str, now: datetime) -> float:
        """Score the most recent date in the content; future dates are ignored."""
        latest: datetime | None = None
        horizon = now + timedelta(days=1)
        for pattern, parse in _DATE_PATTERNS:
            for match in pattern.finditer(content):
                parsed = parse(match)
                if parsed is None or parsed > horizon:
                    continue
                if latest is None or parsed > latest:
                    latest = parsed
        if latest is None:
            return FRESHNESS_UNKNOWN

        age_days = max((now - latest).days, 0)
        for max_age, score in FRESHNESS_BRACKETS:
            if age_days <= max_age:
                return score
        return FRESHNESS_STALE

    def calculate_completeness(self, result: SearchResult, query: str) -> float:
        content = result.content.lower()
        score = 0.0
        terms = query_terms(query)
        if terms:
            found = sum(1 for term in terms if term in content)
            score += found / len(terms) * COMPLETENESS_TERM_WEIGHT

        count = len(result.data_points)
        for threshold, bonus in COMPLETENESS_DATA_BONUSES:
            if count > threshold:
                score += bonus

        for keyword in COMPLETENESS_KEYWORDS:
            if keyword in content:
                score += COMPLETENESS_KEYWORD_BONUS

        for threshold, bonus in COMPLETENESS_LENGTH_BONUSES:
            if len(result.content) > threshold:
                score += bonus
        return min(score, 1.0)

    def calculate_accuracy(self, result: SearchResult) -> float:
        score = ACCURACY_BASE
        if any(dp.confidence > HIGH_VALUE_CONFIDENCE for dp in result.data_points):
            score += ACCURACY_HIGH_CONFIDENCE_BONUS

        citations = sum(len(p.findall(result.content)) for p in _CITATION_PATTERNS)
        if citations > 0:
            score += ACCURACY_CITATION_BONUS
        if citations > ACCURACY_MANY_CITATIONS:
            score += ACCURACY_MANY_CITATIONS_BONUS

        verdict = self.verification_store.get(
            verification_key(result.url, result.data_points)
        )
        if verdict is True:
            score = ACCURACY_VERIFIED
        elif verdict is False:
            score = ACCURACY_REFUTED
        return min(score, 1.0)

    def calculate_relevance(
        self, result: SearchResult, query: str, sector: str | None = None
    ) -> float:
        score = result.confidence
        terms = query_terms(query)
        if terms:
            words = result.content.lower().split()
            size = len(terms)
            for i in range(max(len(words) - size + 1, 0)):
                window = " ".join(words[i : i + size])
                if all(term in window for term in terms):
                    score += RELEVANCE_PROXIMITY_BONUS
                    break

            title = result.title.lower()
            score += RELEVANCE_TITLE_TERM_BONUS * sum(1 for t in terms if t in title)

        if sector:
            needle = sector.lower()
            haystacks = (result.content.lower(), result.title.lower(), result.url.lower())
            if any(needle in text for text in haystacks):
                score += RELEVANCE_SECTOR_BONUS
        return max(0.0, min(score, 1.0))

    def calculate_confidence(
        self, metrics: QualityMetrics, result: SearchResult
    ) -> float:
        confidence = metrics.overall
        if result.data_points:
            mean = sum(dp.confidence for dp in result.data_points) / len(
                result.data_points
            )
            confidence = (confidence + mean) / 2
        confidence += STRATEGY_CONFIDENCE_BONUSES.get(result.strategy, 0.0)
        return min(confidence, 1.0)

    @staticmethod
    def generate_explanation(metrics: QualityMetrics) -> str:
        parts = []
        if metrics.authority >= 0.9:
            parts.append("Highly authoritative source")
        elif metrics.authority >= 0.7:
            parts.append("Reputable source")

        if metrics.freshness >= 0.9:
            parts.append("Very recent data")
        elif metrics.freshness <= 0.5:
            parts.append("Data may be outdated")

        if metrics.completeness >= 0.8:
            parts.append("Comprehensive coverage")
        if metrics.accuracy >= 0.9:
            parts.append("High confidence in accuracy")
        if metrics.relevance >= 0.8:
            parts.append("Highly relevant to query")
        return ". ".join(parts) or "Standard quality result"

    # ========================================
    # Corroboration
    # ========================================

    def verification_for(
        self, result: SearchResult, all_results: list[SearchResult]
    ) -> tuple[VerificationStatus, list[str]]:
        """Share of data points repeated by a result from another URL."""
        if not result.data_points:
            return VerificationStatus.UNVERIFIED, []

        corroborated = 0
        references: list[str] = []
        others = [o for o in all_results if o.url != result.url and o.data_points]
        for point in result.data_points:
            matched = False
            for other in others:
                if any(
                    data_points_similar(point, candidate, self.tolerance)
                    for candidate in other.data_points
                ):
                    matched = True
                    if other.url not in references:
                        references.append(other.url)
            if matched:
                corroborated += 1

        ratio = corroborated / len(result.data_points)
        if ratio >= VERIFIED_RATIO:
            status = VerificationStatus.VERIFIED
        elif ratio >= PARTIAL_RATIO:
            status = VerificationStatus.PARTIALLY_VERIFIED
        else:
            status = VerificationStatus.UNVERIFIED
        return status, references

    def cross_validate(self, results: list[ScoredResult]) -> list[ScoredResult]:
        """Boost accuracy of results that share a normalized value, then rank."""
        groups: dict[tuple[str, str], list[ScoredResult]] = {}
        for result in results:
            for point in result.data_points:
                members = groups.setdefault(normalized_key(point), [])
                if all(member is not result for member in members):
                    members.append(result)

        for members in groups.values():
            if len({m.url for m in members}) < 2:
                continue
            for member in members:
                metrics = member.quality_metrics
                metrics.accuracy = min(
                    metrics.accuracy + ACCURACY_CORROBORATION_BOOST, 1.0
                )
                metrics.overall = min(weighted_overall(metrics), 1.0)

        return sorted(results, key=lambda r: r.quality_metrics.overall, reverse=True)
