"""Deep search orchestrator.

This module runs the research pipeline:
1. Broad retrieval (web search, plus the multi-strategy set when enabled)
2. Initial quality scoring
3. Sequential intelligent crawls of the top seeds
4. Re-scoring of the union
5. Finalization into caller-facing results

Partial failures degrade gracefully. Only configuration errors and
collaborator quota errors reach the caller.
"""

import asyncio
import inspect
import logging
from collections.abc import Awaitable, Callable
from typing import Any

from src.core.constants import BROAD_SEARCH_STRATEGY, SUMMARY_LENGTH
from src.core.exceptions import (
    CollaboratorQuotaError,
    ConfigurationError,
    InputValidationError,
)
from src.services.fetch.base import SearchHit, WebFetcher
from src.utils.url_helpers import extract_domain_from_url
from src.utils.validation import validate_query

from .config import DeepSearchConfig
from .crawler import IntelligentCrawler
from .extractor import DataPointExtractor
from .models import (
    ContentType,
    CrawlOptions,
    CrawlResult,
    DataPoint,
    DeepSearchOptions,
    DeepSearchResult,
    ScoredResult,
    SearchOptions,
    SearchProgress,
    SearchResult,
    SourceDescriptor,
)
from .scoring import QualityScorer, neutral_metrics, to_scored
from .strategies import SearchStrategyManager, build_data_patterns

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[SearchProgress], Awaitable[None] | None]

STAGE_BROAD_SEARCH = "Conducting broad web search"
STAGE_BROAD_SEARCH_DONE = "Broad search complete"
STAGE_SCORING = "Scoring and verifying results"
STAGE_SCORING_DONE = "Scoring complete"
STAGE_RESCORING = "Re-scoring all results"
STAGE_FINALIZING = "Finalizing results"
STAGE_COMPLETE = "Search complete"


def infer_content_type(result: SearchResult) -> ContentType:
    declared = result.metadata.get("content_type")
    if declared in ("webpage", "file", "database", "spreadsheet"):
        return declared
    url = result.url.lower()
    if ".pdf" in url:
        return "file"
    if ".xls" in url or ".csv" in url:
        return "spreadsheet"
    if result.metadata.get("source_type") == "database":
        return "database"
    return "webpage"


def data_point_labels(data_points: list[DataPoint]) -> list[str]:
    """Strings stay as-is; numbers carry their type, e.g. ``"42 (statistic)"``."""
    return [
        dp.value if isinstance(dp.value, str) else f"{dp.value} ({dp.type.value})"
        for dp in data_points
    ]


def source_descriptor(url: str, sector: str | None) -> SourceDescriptor:
    domain = extract_domain_from_url(url)
    return SourceDescriptor(
        domain=domain,
        name=domain or url,
        description="Discovered Web Source",
        content_types=["articles"],
        categories=[sector] if sector else [],
    )


def merge_by_url(results: list[SearchResult]) -> list[SearchResult]:
    """One result per URL; the richer (more data points, then confidence) wins."""
    merged: dict[str, SearchResult] = {}
    for result in results:
        existing = merged.get(result.url)
        if existing is None or (len(result.data_points), result.confidence) > (
            len(existing.data_points),
            existing.confidence,
        ):
            merged[result.url] = result
    return list(merged.values())


class DeepSearchService:
    """Coordinate retrieval, scoring and crawling for one research query."""

    def __init__(
        self,
        fetcher: WebFetcher,
        scorer: QualityScorer,
        crawler: IntelligentCrawler,
        config: DeepSearchConfig | None = None,
        strategy_manager: SearchStrategyManager | None = None,
        extractor: DataPointExtractor | None = None,
    ):
        self.fetcher = fetcher
        self.scorer = scorer
        self.crawler = crawler
        self.config = config or DeepSearchConfig()
        self.strategy_manager = strategy_manager
        self.extractor = extractor or DataPointExtractor()

    async def perform_deep_search(
        self,
        query: str,
        options: DeepSearchOptions | None = None,
        progress_callback: ProgressCallback | None = None,
    ) -> list[DeepSearchResult]:
        """Run the full pipeline.

        Args:
            query: Natural-language research query
            options: Pipeline options; defaults apply when omitted
            progress_callback: Sync or async callable receiving ``SearchProgress``

        Returns:
            At most ``final_limit`` results, best first

        Raises:
            InputValidationError: If the query is empty or too long
            ConfigurationError: If a required collaborator is not configured
            CollaboratorQuotaError: If a paid collaborator rejects the request
        """
        check = validate_query(query)
        if not check["valid"]:
            raise InputValidationError(check["error"])
        query = check["query"]
        options = options or DeepSearchOptions()

        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.config.pipeline_timeout

        # Stage 1: broad retrieval
        await self._report(
            progress_callback,
            SearchProgress(completed=0, total=1, stage=STAGE_BROAD_SEARCH),
        )
        initial = await self._broad_retrieval(query, options, deadline)
        logger.info("Broad retrieval returned %d results", len(initial))
        await self._report(
            progress_callback,
            SearchProgress(completed=1, total=1, stage=STAGE_BROAD_SEARCH_DONE),
        )
        if not initial:
            await self._report(
                progress_callback,
                SearchProgress(completed=0, total=0, stage=STAGE_COMPLETE),
            )
            return []

        # Stage 2: initial scoring
        await self._report(
            progress_callback,
            SearchProgress(completed=0, total=len(initial), stage=STAGE_SCORING),
        )
        ranked = self._score(initial, query, options)
        await self._report(
            progress_callback,
            SearchProgress(
                completed=len(initial), total=len(initial), stage=STAGE_SCORING_DONE
            ),
        )

        # Stage 3: intelligent crawling of the top seeds
        crawled: list[SearchResult] = []
        if options.use_intelligent_crawling and self.config.seed_count > 0:
            seeds = ranked[: self.config.seed_count]
            crawled = await self._crawl_seeds(
                seeds, query, options, deadline, progress_callback
            )

        # Stage 4: re-score the union
        if crawled:
            await self._report(
                progress_callback,
                SearchProgress(completed=0, total=1, stage=STAGE_RESCORING),
            )
            ranked = self._score(merge_by_url(initial + crawled), query, options)

        # Stage 5: finalize
        await self._report(
            progress_callback,
            SearchProgress(completed=0, total=len(ranked), stage=STAGE_FINALIZING),
        )
        final = [self._finalize(r, options) for r in ranked]
        if not options.include_databases:
            final = [r for r in final if r.content_type != "database"]
        final.sort(key=self._final_sort_key, reverse=True)
        final = final[: self.config.final_limit]
        await self._report(
            progress_callback,
            SearchProgress(completed=len(final), total=len(final), stage=STAGE_COMPLETE),
        )
        return final

    # ========================================
    # Stages
    # ========================================

    async def _broad_retrieval(
        self, query: str, options: DeepSearchOptions, deadline: float
    ) -> list[SearchResult]:
        timeout = self._remaining(deadline)
        tasks: list[Awaitable[list[SearchResult]]] = [self._broad_search(query, timeout)]
        if options.use_multi_strategy and self.strategy_manager is not None:
            strategy_options = SearchOptions(
                max_results=10,
                timeout=max(min(self.config.request_timeout, timeout), 1.0),
                depth=options.max_depth,
                include_files=options.include_files,
            )
            tasks.append(
                self.strategy_manager.execute_multi_strategy(query, strategy_options)
            )

        batches = await asyncio.gather(*tasks, return_exceptions=True)
        results: list[SearchResult] = []
        for batch in batches:
            if isinstance(batch, CollaboratorQuotaError | ConfigurationError):
                raise batch
            if isinstance(batch, BaseException):
                logger.warning("Retrieval branch failed: %s", batch)
                continue
            results.extend(batch)
        return merge_by_url(results)

    async def _broad_search(self, query: str, timeout: float) -> list[SearchResult]:
        try:
            hits = await asyncio.wait_for(
                self.fetcher.search(
                    query,
                    self.config.broad_limit,
                    formats=("markdown",),
                    only_main_content=True,
                ),
                timeout=timeout,
            )
        except (CollaboratorQuotaError, ConfigurationError):
            raise
        except Exception as e:
            logger.warning("Broad search failed: %s", e)
            return []
        return [self._hit_to_result(hit, query) for hit in hits]

    def _hit_to_result(self, hit: SearchHit, query: str) -> SearchResult:
        content = hit.markdown or hit.description
        return SearchResult(
            url=hit.url,
            title=hit.title or hit.url,
            content=content,
            summary=content[:SUMMARY_LENGTH],
            data_points=self.extractor.extract(content, "", query),
            confidence=hit.score if hit.score is not None else 0.5,
            strategy=BROAD_SEARCH_STRATEGY,
            metadata=dict(hit.metadata),
        )

    def _score(
        self, results: list[SearchResult], query: str, options: DeepSearchOptions
    ) -> list[ScoredResult]:
        if options.use_quality_scoring:
            try:
                return self.scorer.score_results(results, query, options.sector)
            except Exception as e:
                logger.warning("Quality scoring failed, using neutral metrics: %s", e)
        scored = [to_scored(r, neutral_metrics(r)) for r in results]
        return sorted(scored, key=lambda r: r.confidence, reverse=True)

    async def _crawl_seeds(
        self,
        seeds: list[ScoredResult],
        query: str,
        options: DeepSearchOptions,
        deadline: float,
        progress_callback: ProgressCallback | None,
    ) -> list[SearchResult]:
        crawl_options = CrawlOptions(
            max_depth=options.max_depth,
            max_pages=self.config.crawl_max_pages,
            follow_links=True,
            adaptive_depth=True,
            data_patterns=build_data_patterns(
                " ".join([query, *options.target_data_points])
            ),
            relevance_threshold=self.config.relevance_threshold,
            include_files=options.include_files,
            file_extensions=self._file_extensions(options),
            tie_break_margin=self.config.tie_break_margin,
        )

        crawled: list[SearchResult] = []
        total = len(seeds)
        await self._report(
            progress_callback,
            SearchProgress(
                completed=0, total=total, stage=f"Performing deep dive on {total} sources"
            ),
        )
        for index, seed in enumerate(seeds):
            try:
                remaining = self._remaining(deadline)
                if remaining <= 0:
                    logger.warning(
                        "Time budget exhausted; skipping %d remaining seeds",
                        total - index,
                    )
                    break
                domain = extract_domain_from_url(seed.url)
                results = await asyncio.wait_for(
                    self.crawler.crawl(seed.url, query, domain, crawl_options),
                    timeout=remaining,
                )
                crawled.extend(self._crawl_to_result(r) for r in results)
            except (CollaboratorQuotaError, ConfigurationError):
                raise
            except asyncio.TimeoutError:
                logger.warning("Crawl of %s hit the time budget", seed.url)
            except Exception as e:
                logger.warning("Crawl of %s failed: %s", seed.url, e)
            finally:
                await self._report(
                    progress_callback,
                    SearchProgress(
                        completed=index + 1,
                        total=total,
                        stage="crawling",
                        current_seed=seed.url,
                    ),
                )
        logger.info("Crawling produced %d results from %d seeds", len(crawled), total)
        return crawled

    @staticmethod
    def _file_extensions(options: DeepSearchOptions) -> tuple[str, ...]:
        extensions: tuple[str, ...] = (".pdf", ".docx") if options.include_files else ()
        if options.include_spreadsheets:
            extensions += (".xlsx", ".xls", ".csv")
        return extensions

    @staticmethod
    def _crawl_to_result(result: CrawlResult) -> SearchResult:
        content_type = result.metadata.get("content_type") or "webpage"
        return SearchResult(
            url=result.url,
            title=result.title,
            content=result.content,
            summary=result.content[:SUMMARY_LENGTH],
            data_points=result.data_points,
            confidence=result.relevance_score,
            strategy=f"Deep-Dive ({content_type})",
            metadata={**result.metadata, "depth": result.depth},
        )

    def _finalize(self, result: ScoredResult, options: DeepSearchOptions) -> DeepSearchResult:
        metrics = result.quality_metrics
        return DeepSearchResult(
            url=result.url,
            title=result.title,
            content=result.content,
            content_type=infer_content_type(result),
            file_type=result.metadata.get("file_type"),
            relevance_score=metrics.overall if options.use_quality_scoring else result.confidence,
            data_points=data_point_labels(result.data_points),
            source=source_descriptor(result.url, options.sector),
            quality_metrics=metrics if options.use_quality_scoring else None,
            verification_status=result.verification_status
            if options.use_quality_scoring
            else None,
            cross_references=result.cross_references,
            strategy=result.strategy,
        )

    @staticmethod
    def _final_sort_key(result: DeepSearchResult) -> float:
        if result.quality_metrics is not None:
            return result.quality_metrics.overall
        return result.relevance_score

    # ========================================
    # Helpers
    # ========================================

    @staticmethod
    def _remaining(deadline: float) -> float:
        return deadline - asyncio.get_running_loop().time()

    @staticmethod
    async def _report(
        callback: ProgressCallback | None, progress: SearchProgress
    ) -> None:
        if callback is None:
            return
        try:
            outcome: Any = callback(progress)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.debug("Progress callback failed: %s", e)
