"""Intelligent, relevance-driven crawler.

This module handles:
- Best-first crawling of a single domain from a seed URL
- Adaptive depth: data-rich pages earn deeper link following
- Crawling linked (and LLM-discovered) PDF reports
- Post-processing: cross-page data point deduplication and ranking

All crawl state lives in a ``CrawlState`` owned by one ``crawl()`` call, so
one crawler instance can serve concurrent crawls.
"""

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field

from src.core.constants import (
    DATA_LINK_INDICATORS,
    HIGH_VALUE_CONFIDENCE,
    LINK_RELEVANCE_DECAY,
    LINK_SCORE_BASE,
    LINK_SCORE_INDICATOR_BONUS,
    LINK_SCORE_PARENT_DATA_BONUS,
    LINK_SCORE_TERM_BONUS,
    MAX_LINKS_PER_PAGE,
    MAX_LINKS_PER_PAGE_ADAPTIVE,
    PAGE_DATA_POINT_BONUS,
    PAGE_HIGH_VALUE_BONUS,
    PAGE_TERM_FREQUENCY_WEIGHT,
    PAGE_WAIT_MS_DEFAULT,
)
from src.core.exceptions import (
    CollaboratorQuotaError,
    ConfigurationError,
    FetchError,
    ParseError,
)
from src.services.fetch.base import WebFetcher
from src.services.fetch.files import fetch_pdf_text
from src.utils.text import count_occurrences, query_terms
from src.utils.url_helpers import (
    file_name_from_url,
    is_file_url,
    is_pdf_url,
    is_same_domain,
    resolve_link,
)
from src.utils.validation import validate_crawl_url

from .extractor import DataPointExtractor
from .models import CrawlNode, CrawlOptions, CrawlResult, DataPoint
from .report_discovery import NullReportDiscoverer, ReportDiscovery

logger = logging.getLogger(__name__)

_ANCHOR_RE = re.compile(r"<a[^>]+href=[\"']([^\"']+)[\"']", re.IGNORECASE)
_PDF_VIEWER_RE = re.compile(r"application/pdf", re.IGNORECASE)
_TABLE_TAG_RE = re.compile(r"<table", re.IGNORECASE)
_VISUALIZATION_RE = re.compile(r"<(?:chart|graph|visualization)", re.IGNORECASE)


@dataclass
class CrawlState:
    """Mutable state of a single crawl run."""

    visited_urls: set[str] = field(default_factory=set)
    queue: list[CrawlNode] = field(default_factory=list)
    results: list[CrawlResult] = field(default_factory=list)
    attempts: int = 0


def detect_source_type(html: str) -> str:
    if _PDF_VIEWER_RE.search(html):
        return "pdf-viewer"
    if _TABLE_TAG_RE.search(html):
        return "data-table"
    if _VISUALIZATION_RE.search(html):
        return "visualization"
    return "article"


def calculate_page_relevance(
    content: str, query: str, data_points: list[DataPoint]
) -> float:
    """Term frequency plus data point bonuses, capped at 1."""
    score = 0.0
    for term in query_terms(query):
        frequency = count_occurrences(content, term)
        score += min(frequency * PAGE_TERM_FREQUENCY_WEIGHT, 1.0)
    score += PAGE_DATA_POINT_BONUS * len(data_points)
    if any(dp.confidence > HIGH_VALUE_CONFIDENCE for dp in data_points):
        score += PAGE_HIGH_VALUE_BONUS
    return min(score, 1.0)


def score_link_relevance(
    url: str, query: str, parent_data_points: list[DataPoint]
) -> float:
    score = LINK_SCORE_BASE
    url_lower = url.lower()
    for term in query_terms(query):
        if term in url_lower:
            score += LINK_SCORE_TERM_BONUS
    for indicator in DATA_LINK_INDICATORS:
        if indicator in url_lower:
            score += LINK_SCORE_INDICATOR_BONUS
    if parent_data_points:
        score += LINK_SCORE_PARENT_DATA_BONUS
    return min(score, 1.0)


def calculate_adaptive_depth(result: CrawlResult, options: CrawlOptions) -> int:
    """Depth ceiling for a page's children, never more than twice max_depth."""
    base = options.max_depth
    bonus = 0
    if len(result.data_points) > 5:
        bonus += 1
    if any(dp.confidence > 0.9 for dp in result.data_points):
        bonus += 1
    if result.relevance_score > 0.8:
        bonus += 1
    return min(base + bonus, base * 2)


def extract_links(
    html: str,
    base_url: str,
    domain: str,
    file_extensions: tuple[str, ...] = (".pdf", ".docx"),
) -> tuple[list[str], list[str]]:
    """Split in-domain anchors into web links and file links, deduplicated.

    Downloadable files with an extension outside ``file_extensions`` are dropped.
    """
    web_links: list[str] = []
    file_links: list[str] = []
    for href in _ANCHOR_RE.findall(html):
        url = resolve_link(href, base_url)
        if url is None or "#" in url or not is_same_domain(url, domain):
            continue
        if is_file_url(url):
            if not is_file_url(url, file_extensions):
                continue
            target = file_links
        else:
            target = web_links
        if url not in target:
            target.append(url)
    return web_links, file_links


def post_process_results(results: list[CrawlResult]) -> list[CrawlResult]:
    """Keep one data point per (value, type) across all pages and rank pages.

    The most confident instance of each value wins; every page keeps only
    the winning instances it produced. Pages are ordered by data point count,
    then relevance. Applying this twice gives the same output.
    """
    winners: dict[tuple[str, str], DataPoint] = {}
    for result in results:
        for point in result.data_points:
            key = (str(point.value), point.type.value)
            current = winners.get(key)
            if current is None or point.confidence > current.confidence:
                winners[key] = point

    processed = [
        result.model_copy(
            update={
                "data_points": [
                    p
                    for p in result.data_points
                    if winners.get((str(p.value), p.type.value)) is p
                ]
            }
        )
        for result in results
    ]
    processed.sort(key=lambda r: (len(r.data_points), r.relevance_score), reverse=True)
    return processed


def select_next_node(queue: list[CrawlNode], tie_margin: float) -> CrawlNode | None:
    """Pick the most relevant unexplored node; near-ties go to the shallower one."""
    pending = [node for node in queue if not node.explored]
    if not pending:
        return None
    best = max(node.relevance for node in pending)
    contenders = [node for node in pending if node.relevance >= best - tie_margin]
    return min(contenders, key=lambda node: (node.depth, -node.relevance))


class IntelligentCrawler:
    """Best-first domain crawler that extracts data points as it goes."""

    def __init__(
        self,
        fetcher: WebFetcher | None,
        extractor: DataPointExtractor | None = None,
        report_discoverer: ReportDiscovery | None = None,
        pdf_loader: Callable[[str], Awaitable[str]] = fetch_pdf_text,
        page_wait_ms: int = PAGE_WAIT_MS_DEFAULT,
        request_timeout: float | None = None,
    ):
        self.fetcher = fetcher
        self.extractor = extractor or DataPointExtractor()
        self.report_discoverer = report_discoverer or NullReportDiscoverer()
        self.pdf_loader = pdf_loader
        self.page_wait_ms = page_wait_ms
        self.request_timeout = request_timeout

    async def crawl(
        self,
        start_url: str,
        query: str,
        domain: str,
        options: CrawlOptions | None = None,
        state: CrawlState | None = None,
    ) -> list[CrawlResult]:
        """Crawl ``domain`` starting at ``start_url``.

        Args:
            start_url: Seed URL (depth 0, relevance 1.0)
            query: Research query driving extraction and link scoring
            domain: Links outside this domain are not followed
            options: Crawl knobs; defaults apply when omitted
            state: Optional caller-owned state, e.g. to inspect visited URLs

        Returns:
            Post-processed crawl results, richest pages first

        Raises:
            ConfigurationError: If no fetch collaborator is configured
            CollaboratorQuotaError: If the fetch collaborator rejects the key or quota
        """
        if self.fetcher is None:
            msg = "Fetch collaborator credentials are required for crawling"
            raise ConfigurationError(msg)

        options = options or CrawlOptions()
        state = state or CrawlState()
        state.queue.append(CrawlNode(url=start_url, depth=0, relevance=1.0))

        logger.info(
            "Crawling %s (domain=%s, max_depth=%d, max_pages=%d)",
            start_url,
            domain,
            options.max_depth,
            options.max_pages,
        )

        while state.attempts < options.max_pages:
            node = select_next_node(state.queue, options.tie_break_margin)
            if node is None:
                break
            node.explored = True
            if node.url in state.visited_urls:
                continue
            state.visited_urls.add(node.url)
            state.attempts += 1

            result = await self._crawl_page_safely(node, query, domain, options)
            if result is None:
                continue
            state.results.append(result)

            if options.include_files and node.depth < self._depth_ceiling(options):
                await self._crawl_files(result, node, query, options, state)

            if options.adaptive_depth and result.data_points:
                adapted = calculate_adaptive_depth(result, options)
                if adapted > node.depth:
                    self.queue_links_adaptively(result, node, query, options, state)
            elif options.follow_links and node.depth < options.max_depth:
                self.queue_links(result, node, state)

        logger.info(
            "Crawl of %s finished: %d results from %d attempts",
            start_url,
            len(state.results),
            state.attempts,
        )
        return post_process_results(state.results)

    @staticmethod
    def _depth_ceiling(options: CrawlOptions) -> int:
        return options.max_depth * 2 if options.adaptive_depth else options.max_depth

    async def _crawl_page_safely(
        self, node: CrawlNode, query: str, domain: str, options: CrawlOptions
    ) -> CrawlResult | None:
        try:
            return await self.crawl_page(node, query, domain, options)
        except (CollaboratorQuotaError, ConfigurationError):
            raise
        except Exception as e:
            logger.warning("Failed to crawl %s: %s", node.url, e)
            return None

    async def _crawl_files(
        self,
        result: CrawlResult,
        node: CrawlNode,
        query: str,
        options: CrawlOptions,
        state: CrawlState,
    ) -> None:
        for file_url in result.file_links:
            if state.attempts >= options.max_pages:
                break
            if file_url in state.visited_urls:
                continue
            state.visited_urls.add(file_url)
            state.attempts += 1
            file_result = await self._crawl_file_safely(file_url, query, node)
            if file_result is not None:
                state.results.append(file_result)

    async def _crawl_file_safely(
        self, url: str, query: str, parent: CrawlNode
    ) -> CrawlResult | None:
        try:
            return await self.crawl_file(url, query, parent)
        except (CollaboratorQuotaError, ConfigurationError):
            raise
        except Exception as e:
            logger.warning("Failed to crawl file %s: %s", url, e)
            return None

    async def crawl_page(
        self, node: CrawlNode, query: str, domain: str, options: CrawlOptions
    ) -> CrawlResult | None:
        """Fetch one page and turn it into a crawl result.

        Returns None when the page cannot be fetched.
        """
        check = validate_crawl_url(node.url)
        if not check["valid"]:
            logger.debug("Skipping %s: %s", node.url, check["error"])
            return None

        scrape = self.fetcher.scrape(
            node.url,
            formats=("markdown", "html"),
            only_main_content=True,
            wait_for_ms=self.page_wait_ms,
        )
        try:
            if self.request_timeout:
                page = await asyncio.wait_for(scrape, timeout=self.request_timeout)
            else:
                page = await scrape
        except (FetchError, asyncio.TimeoutError) as e:
            logger.debug("Fetch failed for %s: %s", node.url, e)
            return None

        content = page.markdown
        html = page.html
        data_points = self.extractor.extract(content, html, query, options.data_patterns)
        relevance = calculate_page_relevance(content, query, data_points)
        web_links, file_links = extract_links(
            html, node.url, domain, options.file_extensions
        )

        for report_url in await self.report_discoverer.discover(content, query):
            if report_url not in file_links:
                file_links.append(report_url)

        return CrawlResult(
            url=node.url,
            title=page.title or node.url,
            content=content,
            depth=node.depth,
            data_points=data_points,
            links=web_links,
            file_links=file_links,
            relevance_score=relevance,
            metadata={
                "content_type": "webpage",
                "content_length": len(content),
                "has_structured_data": bool(data_points),
                "source_type": detect_source_type(html),
                "parent": node.parent,
                "depth": node.depth,
            },
        )

    async def crawl_file(
        self, url: str, query: str, parent: CrawlNode
    ) -> CrawlResult | None:
        """Download and extract a linked file. Only PDFs are supported."""
        if not is_pdf_url(url):
            logger.debug("No extractor for file %s", url)
            return None
        check = validate_crawl_url(url)
        if not check["valid"]:
            logger.debug("Skipping file %s: %s", url, check["error"])
            return None
        try:
            content = await self.pdf_loader(url)
        except (FetchError, ParseError) as e:
            logger.warning("Failed to crawl file %s: %s", url, e)
            return None

        data_points = self.extractor.extract(content, "", query)
        return CrawlResult(
            url=url,
            title=file_name_from_url(url),
            content=content,
            depth=parent.depth + 1,
            data_points=data_points,
            relevance_score=calculate_page_relevance(content, query, data_points),
            metadata={
                "content_type": "file",
                "file_type": "pdf",
                "content_length": len(content),
                "parent": parent.url,
                "depth": parent.depth + 1,
            },
        )

    def queue_links(
        self, result: CrawlResult, node: CrawlNode, state: CrawlState
    ) -> None:
        """Queue the first unvisited links with decayed parent relevance."""
        fresh = [link for link in result.links if link not in state.visited_urls]
        for link in fresh[:MAX_LINKS_PER_PAGE]:
            state.queue.append(
                CrawlNode(
                    url=link,
                    depth=node.depth + 1,
                    relevance=result.relevance_score * LINK_RELEVANCE_DECAY,
                    parent=node.url,
                )
            )

    def queue_links_adaptively(
        self,
        result: CrawlResult,
        node: CrawlNode,
        query: str,
        options: CrawlOptions,
        state: CrawlState,
    ) -> None:
        """Queue the best-scoring links that clear the relevance threshold."""
        scored = [
            (link, score_link_relevance(link, query, result.data_points))
            for link in result.links
            if link not in state.visited_urls
        ]
        scored.sort(key=lambda pair: pair[1], reverse=True)
        for link, score in scored[:MAX_LINKS_PER_PAGE_ADAPTIVE]:
            if score > options.relevance_threshold:
                state.queue.append(
                    CrawlNode(
                        url=link, depth=node.depth + 1, relevance=score, parent=node.url
                    )
                )
