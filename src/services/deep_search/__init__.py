"""Deep search service - modular implementation.

This package implements the deep research pipeline:
- extractor: Data point extraction from page content
- strategies: Multi-strategy retrieval and its manager
- crawler: Relevance-driven intelligent crawling
- scoring: Quality scoring and cross-source corroboration
- orchestrator: Pipeline stages from broad search to final ranking
- factory: Wiring from settings and credentials
"""

from .config import DeepSearchConfig
from .crawler import CrawlState, IntelligentCrawler, post_process_results
from .extractor import DataPointExtractor, classify_data_type
from .factory import (
    build_deep_search_service,
    get_deep_search_service,
    get_quality_scorer,
    perform_deep_search,
    reset_deep_search_service,
)
from .mcp_wrapper import deep_search_impl
from .models import (
    CrawlOptions,
    CrawlResult,
    DataPoint,
    DataPointType,
    DeepSearchCredentials,
    DeepSearchOptions,
    DeepSearchResult,
    QualityMetrics,
    ScoredResult,
    SearchOptions,
    SearchProgress,
    SearchResult,
    VerificationStatus,
)
from .orchestrator import DeepSearchService
from .scoring import InMemoryStore, QualityScorer
from .strategies import SearchStrategyManager

__all__ = [
    "CrawlOptions",
    "CrawlResult",
    "CrawlState",
    "DataPoint",
    "DataPointExtractor",
    "DataPointType",
    "DeepSearchConfig",
    "DeepSearchCredentials",
    "DeepSearchOptions",
    "DeepSearchResult",
    "DeepSearchService",
    "InMemoryStore",
    "IntelligentCrawler",
    "QualityMetrics",
    "QualityScorer",
    "ScoredResult",
    "SearchOptions",
    "SearchProgress",
    "SearchResult",
    "SearchStrategyManager",
    "VerificationStatus",
    "build_deep_search_service",
    "classify_data_type",
    "deep_search_impl",
    "get_deep_search_service",
    "get_quality_scorer",
    "perform_deep_search",
    "post_process_results",
    "reset_deep_search_service",
]
