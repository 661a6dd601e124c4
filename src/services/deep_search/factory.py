"""Wiring of deep search collaborators from settings and per-call credentials."""

import logging

from src.config import Settings, get_settings
from src.core.exceptions import ConfigurationError
from src.services.fetch import Crawl4AIFetcher, FirecrawlFetcher, WebFetcher

from .config import DeepSearchConfig
from .crawler import IntelligentCrawler
from .extractor import DataPointExtractor
from .models import DeepSearchCredentials, DeepSearchOptions, DeepSearchResult
from .orchestrator import DeepSearchService, ProgressCallback
from .report_discovery import NullReportDiscoverer, ReportDiscoverer, ReportDiscovery
from .scoring import QualityScorer
from .strategies import (
    CrossReferenceStrategy,
    DirectAPIStrategy,
    OpenAIEmbedder,
    PatternExtractionStrategy,
    SearchStrategyManager,
    SemanticSearchStrategy,
)

logger = logging.getLogger(__name__)


def build_fetcher(
    settings: Settings, credentials: DeepSearchCredentials | None = None
) -> WebFetcher:
    """Create the configured fetch backend.

    Raises:
        ConfigurationError: If the backend's credentials are missing
    """
    if settings.fetch_backend == "crawl4ai":
        return Crawl4AIFetcher(
            searxng_url=settings.searxng_url or "",
            user_agent=settings.searxng_user_agent,
            search_timeout=settings.searxng_timeout,
            page_timeout=settings.deep_search_request_timeout,
        )

    api_key = (credentials and credentials.fetch_api_key) or settings.firecrawl_api_key
    if not api_key:
        msg = "Firecrawl API key is required for deep search (set FIRECRAWL_API_KEY)"
        raise ConfigurationError(msg)
    return FirecrawlFetcher(
        api_key=api_key,
        base_url=settings.firecrawl_base_url,
        timeout=settings.deep_search_request_timeout,
    )


def build_strategy_manager(
    fetcher: WebFetcher,
    extractor: DataPointExtractor,
    config: DeepSearchConfig,
    llm_api_key: str | None,
) -> SearchStrategyManager:
    embedder = OpenAIEmbedder(llm_api_key) if llm_api_key else None
    return SearchStrategyManager(
        [
            DirectAPIStrategy(),
            SemanticSearchStrategy(fetcher, embedder),
            PatternExtractionStrategy(fetcher, extractor),
            CrossReferenceStrategy(
                fetcher, extractor, tolerance=config.corroboration_tolerance
            ),
        ]
    )


def build_deep_search_service(
    credentials: DeepSearchCredentials | None = None,
    settings: Settings | None = None,
    scorer: QualityScorer | None = None,
) -> DeepSearchService:
    """Assemble a ready-to-run pipeline.

    Args:
        credentials: Per-call keys; settings supply anything missing
        settings: Application settings (defaults to the global instance)
        scorer: Shared scorer, so authority and verification caches persist

    Raises:
        ConfigurationError: If no fetch collaborator can be configured
    """
    settings = settings or get_settings()
    config = DeepSearchConfig.from_settings(settings)
    fetcher = build_fetcher(settings, credentials)
    extractor = DataPointExtractor()

    llm_api_key = (credentials and credentials.llm_api_key) or settings.openai_api_key
    discoverer: ReportDiscovery = NullReportDiscoverer()
    if llm_api_key and config.enable_report_discovery:
        discoverer = ReportDiscoverer(config.build_report_agent(llm_api_key), fetcher)
    else:
        logger.debug("Report discovery disabled (no LLM key or turned off)")

    crawler = IntelligentCrawler(
        fetcher,
        extractor=extractor,
        report_discoverer=discoverer,
        page_wait_ms=config.page_wait_ms,
        request_timeout=config.request_timeout,
    )
    return DeepSearchService(
        fetcher=fetcher,
        scorer=scorer or QualityScorer(tolerance=config.corroboration_tolerance),
        crawler=crawler,
        config=config,
        strategy_manager=build_strategy_manager(
            fetcher, extractor, config, llm_api_key
        ),
        extractor=extractor,
    )


# Singleton instances
_scorer_instance: QualityScorer | None = None
_service_instance: DeepSearchService | None = None


def get_quality_scorer() -> QualityScorer:
    """Get the process-wide scorer so authority and verification caches persist."""
    global _scorer_instance
    if _scorer_instance is None:
        config = DeepSearchConfig.from_settings()
        _scorer_instance = QualityScorer(tolerance=config.corroboration_tolerance)
    return _scorer_instance


def get_deep_search_service() -> DeepSearchService:
    """Get singleton DeepSearchService built from settings credentials.

    Raises:
        ConfigurationError: If no fetch collaborator can be configured
    """
    global _service_instance
    if _service_instance is None:
        _service_instance = build_deep_search_service(scorer=get_quality_scorer())
    return _service_instance


def reset_deep_search_service() -> None:
    """Drop cached instances (used by tests and after settings changes)."""
    global _scorer_instance, _service_instance
    _scorer_instance = None
    _service_instance = None


async def perform_deep_search(
    query: str,
    options: DeepSearchOptions | None = None,
    credentials: DeepSearchCredentials | None = None,
    progress_callback: ProgressCallback | None = None,
) -> list[DeepSearchResult]:
    """Run one query, with a dedicated pipeline when per-call credentials are given."""
    if credentials is not None and (
        credentials.fetch_api_key or credentials.llm_api_key
    ):
        service = build_deep_search_service(credentials, scorer=get_quality_scorer())
    else:
        service = get_deep_search_service()
    return await service.perform_deep_search(query, options, progress_callback)
