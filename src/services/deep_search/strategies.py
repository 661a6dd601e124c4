"""Search strategy set and the manager that fans out across it.

This module handles:
- The four retrieval strategies (direct data APIs, semantic ranking,
  pattern extraction, cross-reference validation)
- Applicability filtering and priority ordering
- Concurrent execution with per-strategy failure isolation
- Deduplication by (url, title) and ranking by confidence
"""

import asyncio
import logging
import math
from collections.abc import Sequence
from typing import Any, Protocol

import aiohttp
from openai import AsyncOpenAI

from src.core.constants import (
    HTTP_OK,
    HTTP_REQUEST_TIMEOUT_DEFAULT,
    SUMMARY_LENGTH,
    TARGET_DATA_LABELS,
)
from src.core.exceptions import FetchError
from src.services.fetch.base import SearchHit, WebFetcher
from src.utils.text import query_terms

from .extractor import DataPointExtractor, data_points_similar
from .models import DataPoint, DataPointType, SearchOptions, SearchResult

logger = logging.getLogger(__name__)

DIRECT_API = "Direct API Access"
SEMANTIC_SEARCH = "Semantic Document Search"
PATTERN_EXTRACTION = "Pattern-Based Data Extraction"
CROSS_REFERENCE = "Cross-Reference Validation"

DEFAULT_EMBEDDING_MODEL = "text-embedding-3-small"


class SearchStrategy(Protocol):
    """A named, prioritized retrieval approach."""

    name: str
    priority: int

    def applicable(self, query: str) -> bool: ...

    async def execute(
        self, query: str, options: SearchOptions
    ) -> list[SearchResult]: ...


def _hit_text(hit: SearchHit) -> str:
    return hit.markdown or hit.description


def _result_from_hit(
    hit: SearchHit,
    strategy: str,
    confidence: float,
    data_points: list[DataPoint] | None = None,
    **metadata: Any,
) -> SearchResult:
    content = _hit_text(hit)
    return SearchResult(
        url=hit.url,
        title=hit.title,
        content=content,
        summary=(hit.description or content)[:SUMMARY_LENGTH],
        data_points=data_points or [],
        confidence=max(0.0, min(1.0, confidence)),
        strategy=strategy,
        metadata={**hit.metadata, **metadata},
    )


async def _get_json(
    url: str, params: dict[str, Any], timeout: float = HTTP_REQUEST_TIMEOUT_DEFAULT
) -> Any:
    client_timeout = aiohttp.ClientTimeout(total=timeout)
    try:
        async with aiohttp.ClientSession(timeout=client_timeout) as session:
            async with session.get(url, params=params) as response:
                if response.status != HTTP_OK:
                    msg = f"{url} returned {response.status}"
                    raise FetchError(msg, status=response.status)
                return await response.json(content_type=None)
    except aiohttp.ClientError as e:
        msg = f"Request to {url} failed: {e}"
        raise FetchError(msg) from e


# ========================================
# Direct API Access
# ========================================

WORLD_BANK_INDICATORS: dict[str, tuple[str, DataPointType]] = {
    "gdp": ("NY.GDP.MKTP.CD", DataPointType.CURRENCY),
    "inflation": ("FP.CPI.TOTL.ZG", DataPointType.PERCENTAGE),
    "unemployment": ("SL.UEM.TOTL.ZS", DataPointType.PERCENTAGE),
    "census": ("SP.POP.TOTL", DataPointType.STATISTIC),
}
WORLD_BANK_URL = "https://api.worldbank.org/v2/country/{country}/indicator/{code}"
CLINICAL_TRIALS_URL = "https://clinicaltrials.gov/api/v2/studies"
OPENFDA_URL = "https://api.fda.gov/drug/drugsfda.json"

_API_STOPWORDS = {"fda", "approval", "approvals", "clinical", "trial", "trials"}


def _format_indicator(value: float, value_type: DataPointType) -> str:
    if value_type is DataPointType.PERCENTAGE:
        return f"{value:.2f}%"
    if value_type is DataPointType.CURRENCY:
        return f"${value:,.0f}"
    return f"{value:,.0f}"


class DirectAPIStrategy:
    """Query keyless public data APIs for official figures."""

    name = DIRECT_API
    priority = 10
    keywords = ("gdp", "inflation", "unemployment", "census", "fda approval", "clinical trial")

    def applicable(self, query: str) -> bool:
        lowered = query.lower()
        return any(keyword in lowered for keyword in self.keywords)

    async def execute(self, query: str, options: SearchOptions) -> list[SearchResult]:
        lowered = query.lower()
        calls = [
            self.query_world_bank(keyword, code, value_type, lowered, options)
            for keyword, (code, value_type) in WORLD_BANK_INDICATORS.items()
            if keyword in lowered
        ]
        if "clinical trial" in lowered:
            calls.append(self.query_clinical_trials(query, options))
        if "fda approval" in lowered:
            calls.append(self.query_openfda(query, options))

        results: list[SearchResult] = []
        for batch in await asyncio.gather(*calls, return_exceptions=True):
            if isinstance(batch, BaseException):
                logger.warning("Data API query failed: %s", batch)
                continue
            results.extend(batch)
        return results[: options.max_results]

    async def query_world_bank(
        self,
        keyword: str,
        code: str,
        value_type: DataPointType,
        query: str,
        options: SearchOptions,
    ) -> list[SearchResult]:
        country = "WLD" if ("world" in query or "global" in query) else "US"
        url = WORLD_BANK_URL.format(country=country, code=code)
        payload = await _get_json(
            url, {"format": "json", "mrv": 5}, timeout=options.timeout
        )
        if not isinstance(payload, list) or len(payload) < 2 or not payload[1]:
            return []

        rows = [row for row in payload[1] if row.get("value") is not None]
        if not rows:
            return []
        indicator = rows[0].get("indicator", {}).get("value", keyword.upper())
        country_name = rows[0].get("country", {}).get("value", country)
        data_points = [
            DataPoint(
                value=_format_indicator(row["value"], value_type),
                type=value_type,
                context=f"{indicator}, {country_name} {row.get('date', '')}".strip(),
                confidence=0.95,
                source="World Bank API",
            )
            for row in rows
        ]
        lines = [f"{row.get('date')}: {dp.value}" for row, dp in zip(rows, data_points)]
        content = f"{indicator} for {country_name}\n" + "\n".join(lines)
        return [
            SearchResult(
                url=f"https://data.worldbank.org/indicator/{code}?locations={country}",
                title=f"{indicator} - {country_name}",
                content=content,
                summary=content[:SUMMARY_LENGTH],
                data_points=data_points,
                confidence=0.9,
                strategy=self.name,
                metadata={"series": code, "api": "worldbank", "country": country},
            )
        ]

    async def query_clinical_trials(
        self, query: str, options: SearchOptions
    ) -> list[SearchResult]:
        terms = [t for t in query_terms(query) if t not in _API_STOPWORDS]
        payload = await _get_json(
            CLINICAL_TRIALS_URL,
            {"query.term": " ".join(terms) or query, "pageSize": options.max_results},
            timeout=options.timeout,
        )
        results = []
        for study in (payload or {}).get("studies", []):
            protocol = study.get("protocolSection", {})
            ident = protocol.get("identificationModule", {})
            status = protocol.get("statusModule", {})
            nct_id = ident.get("nctId")
            if not nct_id:
                continue
            summary = protocol.get("descriptionModule", {}).get("briefSummary", "")
            data_points = []
            start = status.get("startDateStruct", {}).get("date")
            if start:
                data_points.append(
                    DataPoint(
                        value=start,
                        type=DataPointType.DATE,
                        context=f"{nct_id} start date",
                        confidence=0.95,
                        source="ClinicalTrials.gov API",
                    )
                )
            results.append(
                SearchResult(
                    url=f"https://clinicaltrials.gov/study/{nct_id}",
                    title=ident.get("briefTitle", nct_id),
                    content=summary,
                    summary=summary[:SUMMARY_LENGTH],
                    data_points=data_points,
                    confidence=0.85,
                    strategy=self.name,
                    metadata={
                        "api": "clinicaltrials",
                        "status": status.get("overallStatus"),
                    },
                )
            )
        return results

    async def query_openfda(self, query: str, options: SearchOptions) -> list[SearchResult]:
        terms = [t for t in query_terms(query) if t not in _API_STOPWORDS]
        if not terms:
            return []
        payload = await _get_json(
            OPENFDA_URL,
            {"search": "+".join(terms), "limit": options.max_results},
            timeout=options.timeout,
        )
        results = []
        for item in (payload or {}).get("results", []):
            application = item.get("application_number")
            if not application:
                continue
            brand = ", ".join(item.get("openfda", {}).get("brand_name", [])) or application
            submissions = item.get("submissions", [])
            data_points = [
                DataPoint(
                    value=sub["submission_status_date"],
                    type=DataPointType.DATE,
                    context=f"{brand} {sub.get('submission_type', '')} "
                    f"{sub.get('submission_status', '')}".strip(),
                    confidence=0.95,
                    source="openFDA API",
                )
                for sub in submissions
                if sub.get("submission_status_date")
            ]
            content = f"{brand} ({application}), sponsor {item.get('sponsor_name', 'unknown')}"
            results.append(
                SearchResult(
                    url=f"https://www.accessdata.fda.gov/scripts/cder/daf/index.cfm?event=overview.process&ApplNo={application[-6:]}",
                    title=f"{brand} - FDA application {application}",
                    content=content,
                    summary=content[:SUMMARY_LENGTH],
                    data_points=data_points,
                    confidence=0.9,
                    strategy=self.name,
                    metadata={"api": "openfda", "application": application},
                )
            )
        return results


# ========================================
# Semantic Document Search
# ========================================


class Embedder(Protocol):
    async def embed(self, texts: list[str]) -> list[list[float]]: ...


class OpenAIEmbedder:
    """Batch embeddings through the OpenAI API."""

    def __init__(self, api_key: str, model: str = DEFAULT_EMBEDDING_MODEL):
        self.client = AsyncOpenAI(api_key=api_key)
        self.model = model

    async def embed(self, texts: list[str]) -> list[list[float]]:
        if not texts:
            return []
        response = await self.client.embeddings.create(model=self.model, input=texts)
        return [item.embedding for item in response.data]


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    dot = sum(x * y for x, y in zip(a, b))
    norm = math.sqrt(sum(x * x for x in a)) * math.sqrt(sum(y * y for y in b))
    return dot / norm if norm else 0.0


class SemanticSearchStrategy:
    """Rerank web hits by embedding similarity to the query.

    Without an embedder the hits are ranked by query-term coverage instead.
    """

    name = SEMANTIC_SEARCH
    priority = 8

    def __init__(self, fetcher: WebFetcher, embedder: Embedder | None = None):
        self.fetcher = fetcher
        self.embedder = embedder

    def applicable(self, query: str) -> bool:
        words = query.split()
        return len(words) > 5 or bool({"how", "why"} & set(query_terms(query)))

    async def execute(self, query: str, options: SearchOptions) -> list[SearchResult]:
        hits = await self.fetcher.search(query, options.max_results)
        if not hits:
            return []
        texts = [f"{hit.title}\n{_hit_text(hit)}"[:8000] for hit in hits]
        if self.embedder is not None:
            vectors = await self.embedder.embed([query, *texts])
            scores = [cosine_similarity(vectors[0], v) for v in vectors[1:]]
        else:
            terms = query_terms(query)
            scores = [
                0.4 + 0.5 * (sum(t in text.lower() for t in terms) / len(terms))
                if terms
                else 0.4
                for text in texts
            ]
        ranked = sorted(zip(hits, scores), key=lambda pair: pair[1], reverse=True)
        return [
            _result_from_hit(hit, self.name, score, similarity=round(score, 4))
            for hit, score in ranked
        ]


# ========================================
# Pattern-Based Data Extraction
# ========================================

_MAGNITUDE = r"(?:\s*(?:billion|million|trillion))?"


def build_data_patterns(query: str) -> list[str]:
    """Regexes for the figure types named in the query."""
    lowered = query.lower()
    patterns = []
    if "revenue" in lowered:
        patterns.append(rf"\$[\d,]+\.?\d*{_MAGNITUDE}\s*(?:in\s+)?(?:revenue|sales)")
        patterns.append(rf"revenue\s+of\s+\$[\d,]+\.?\d*{_MAGNITUDE}")
    if "growth" in lowered:
        patterns.append(r"(?:grew|increased|rose)\s+(?:by\s+)?[\d.]+%")
        patterns.append(r"[\d.]+%\s+(?:growth|increase|rise)")
    if "market" in lowered:
        patterns.append(rf"market\s+(?:size|value)\s+(?:of\s+)?\$[\d,]+\.?\d*{_MAGNITUDE}")
        patterns.append(rf"\$[\d,]+\.?\d*{_MAGNITUDE}\s+market")
    return patterns


def extract_target_data_points(query: str) -> list[str]:
    """Figure labels mentioned in the query, e.g. ``["revenue", "growth"]``."""
    lowered = query.lower()
    return [label for label in TARGET_DATA_LABELS if label in lowered]


class PatternExtractionStrategy:
    """Keep only hits whose text matches query-specific figure patterns."""

    name = PATTERN_EXTRACTION
    priority = 7
    keywords = ("revenue", "market size", "growth rate", "percentage", "ratio")

    def __init__(self, fetcher: WebFetcher, extractor: DataPointExtractor | None = None):
        self.fetcher = fetcher
        self.extractor = extractor or DataPointExtractor()

    def applicable(self, query: str) -> bool:
        lowered = query.lower()
        return any(keyword in lowered for keyword in self.keywords)

    async def execute(self, query: str, options: SearchOptions) -> list[SearchResult]:
        patterns = build_data_patterns(query)
        if not patterns:
            # "percentage" and "ratio" queries have no dedicated figure pattern
            patterns = [r"\d+(?:\.\d+)?\s*%", r"\d+(?:\.\d+)?\s*:\s*\d+(?:\.\d+)?"]
        hits = await self.fetcher.search(query, options.max_results)
        results = []
        for hit in hits:
            points = self.extractor.extract_pattern_matches(_hit_text(hit), patterns)
            if not points:
                continue
            confidence = min(0.9, 0.7 + 0.05 * len(points))
            results.append(
                _result_from_hit(
                    hit, self.name, confidence, points, pattern_matches=len(points)
                )
            )
        return results


# ========================================
# Cross-Reference Validation
# ========================================


class CrossReferenceStrategy:
    """Keep hits whose figures are repeated by at least one other hit."""

    name = CROSS_REFERENCE
    priority = 6
    keywords = ("verify", "accurate", "latest")

    def __init__(
        self,
        fetcher: WebFetcher,
        extractor: DataPointExtractor | None = None,
        tolerance: float = 0.05,
    ):
        self.fetcher = fetcher
        self.extractor = extractor or DataPointExtractor()
        self.tolerance = tolerance

    def applicable(self, query: str) -> bool:
        lowered = query.lower()
        return any(keyword in lowered for keyword in self.keywords)

    async def execute(self, query: str, options: SearchOptions) -> list[SearchResult]:
        hits = await self.fetcher.search(query, options.max_results)
        extracted = [
            (hit, self.extractor.extract(_hit_text(hit), "", query)) for hit in hits
        ]
        results = []
        for hit, points in extracted:
            corroborated = [
                point
                for point in points
                if any(
                    other_hit.url != hit.url
                    and any(
                        data_points_similar(point, other, self.tolerance)
                        for other in other_points
                    )
                    for other_hit, other_points in extracted
                )
            ]
            if corroborated:
                results.append(
                    _result_from_hit(
                        hit,
                        self.name,
                        0.8,
                        corroborated,
                        corroborated_points=len(corroborated),
                    )
                )
        return results


# ========================================
# Strategy Manager
# ========================================


class SearchStrategyManager:
    """Run every applicable strategy concurrently and merge the results."""

    def __init__(self, strategies: Sequence[SearchStrategy]):
        self.strategies = list(strategies)

    def applicable_strategies(self, query: str) -> list[SearchStrategy]:
        applicable = [s for s in self.strategies if s.applicable(query)]
        return sorted(applicable, key=lambda s: s.priority, reverse=True)

    async def execute_multi_strategy(
        self, query: str, options: SearchOptions | None = None
    ) -> list[SearchResult]:
        options = options or SearchOptions()
        strategies = self.applicable_strategies(query)
        if not strategies:
            return []
        logger.info(
            "Running %d strategies: %s",
            len(strategies),
            ", ".join(s.name for s in strategies),
        )
        batches = await asyncio.gather(
            *(self._run_strategy(s, query, options) for s in strategies)
        )
        return deduplicate_and_rank([r for batch in batches for r in batch])

    async def _run_strategy(
        self, strategy: SearchStrategy, query: str, options: SearchOptions
    ) -> list[SearchResult]:
        try:
            return await asyncio.wait_for(
                strategy.execute(query, options), timeout=options.timeout
            )
        except Exception as e:
            logger.warning("Strategy %s failed: %s", strategy.name, e)
            return []


def deduplicate_and_rank(results: list[SearchResult]) -> list[SearchResult]:
    """One result per (url, title), keeping the more confident one; sort by confidence."""
    unique: dict[tuple[str, str], SearchResult] = {}
    for result in results:
        key = (result.url, result.title)
        existing = unique.get(key)
        if existing is None or result.confidence > existing.confidence:
            unique[key] = result
    return sorted(unique.values(), key=lambda r: r.confidence, reverse=True)