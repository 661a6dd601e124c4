"""Core functionality for the deep research server."""

from .constants import (
    BROAD_SEARCH_LIMIT_DEFAULT,
    CRAWL_SEED_COUNT_DEFAULT,
    FINAL_RESULT_LIMIT_DEFAULT,
    HTTP_OK,
    MAX_CRAWL_PAGES_DEFAULT,
    MAX_RETRIES_DEFAULT,
    QUALITY_WEIGHTS,
)
from .decorators import track_request
from .exceptions import (
    CollaboratorQuotaError,
    ConfigurationError,
    DeepSearchError,
    MCPToolError,
    QuotaErrorKind,
)
from .logging import configure_logging, logger

__all__ = [
    # Core
    "CollaboratorQuotaError",
    "ConfigurationError",
    "DeepSearchError",
    "MCPToolError",
    "QuotaErrorKind",
    "configure_logging",
    "logger",
    "track_request",
    # Constants - most commonly used
    "BROAD_SEARCH_LIMIT_DEFAULT",
    "CRAWL_SEED_COUNT_DEFAULT",
    "FINAL_RESULT_LIMIT_DEFAULT",
    "HTTP_OK",
    "MAX_CRAWL_PAGES_DEFAULT",
    "MAX_RETRIES_DEFAULT",
    "QUALITY_WEIGHTS",
]
