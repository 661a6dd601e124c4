"""Application-wide constants for the deep research server.

This module contains all magic values used by the extraction, crawling and
scoring code for better maintainability and discoverability.
"""

# ========================================
# Data Point Extraction Constants
# ========================================

# Confidence assigned per extraction pass
CONFIDENCE_PATTERN_MATCH = 0.8
CONFIDENCE_TABLE = 0.9
CONFIDENCE_STRUCTURED_DATA = 0.95
CONFIDENCE_CONTEXTUAL_NUMBER = 0.7

# Provenance tags
SOURCE_PATTERN_MATCH = "pattern-match"
SOURCE_TABLE = "table"
SOURCE_STRUCTURED_DATA = "structured-data"
SOURCE_CONTENT = "content"

# Context windows (characters on each side of a match)
CONTEXT_WINDOW_DEFAULT = 50
CONTEXT_WINDOW_NUMBERS = 100

MAX_DATA_VALUE_LENGTH = 100  # Longer cells are prose, not data

# ========================================
# Crawler Constants
# ========================================

MAX_CRAWL_PAGES_DEFAULT = 50
MAX_CRAWL_DEPTH_DEFAULT = 2
LINK_RELEVANCE_THRESHOLD_DEFAULT = 0.3
NODE_TIE_BREAK_MARGIN = 0.1

MAX_LINKS_PER_PAGE = 10  # Standard link following
MAX_LINKS_PER_PAGE_ADAPTIVE = 15  # Adaptive link following
LINK_RELEVANCE_DECAY = 0.8

LINK_SCORE_BASE = 0.5
LINK_SCORE_TERM_BONUS = 0.1
LINK_SCORE_INDICATOR_BONUS = 0.1
LINK_SCORE_PARENT_DATA_BONUS = 0.2
DATA_LINK_INDICATORS = ("data", "stats", "report", "analysis", "research", "download")

FILE_EXTENSIONS = (".pdf", ".xlsx", ".xls", ".csv", ".docx")

PAGE_TERM_FREQUENCY_WEIGHT = 0.1
PAGE_DATA_POINT_BONUS = 0.2
PAGE_HIGH_VALUE_BONUS = 0.5
HIGH_VALUE_CONFIDENCE = 0.8

REPORT_DISCOVERY_CONTENT_LIMIT = 8000

# ========================================
# Quality Scoring Constants
# ========================================

QUALITY_WEIGHTS = {
    "authority": 0.25,
    "freshness": 0.15,
    "completeness": 0.20,
    "accuracy": 0.25,
    "relevance": 0.15,
}

AUTHORITY_BASE = 0.5
AUTHORITY_HTTPS_BONUS = 0.05
AUTHORITY_GOV = 0.95
AUTHORITY_RESEARCH = 0.85
AUTHORITY_INDUSTRY = 0.80
AUTHORITY_ACADEMIC = 0.85
AUTHORITY_EDU = 0.85
AUTHORITY_ORG = 0.75

KNOWN_AUTHORITY_DOMAINS: dict[str, float] = {
    # Government statistics and regulators
    "census.gov": AUTHORITY_GOV,
    "bls.gov": AUTHORITY_GOV,
    "fda.gov": AUTHORITY_GOV,
    "cdc.gov": AUTHORITY_GOV,
    "cms.gov": AUTHORITY_GOV,
    "eia.gov": AUTHORITY_GOV,
    # Major research firms
    "gartner.com": AUTHORITY_RESEARCH,
    "idc.com": AUTHORITY_RESEARCH,
    "iqvia.com": AUTHORITY_RESEARCH,
    "nielsen.com": AUTHORITY_RESEARCH,
    # Industry associations
    "americanchemistry.com": AUTHORITY_INDUSTRY,
    "aha.org": AUTHORITY_INDUSTRY,
    "phrma.org": AUTHORITY_INDUSTRY,
    "steel.org": AUTHORITY_INDUSTRY,
    # Academic markers
    "edu": AUTHORITY_ACADEMIC,
    "academic": AUTHORITY_ACADEMIC,
    "journal": AUTHORITY_ACADEMIC,
}

# (inclusive max age in days, score); anything older scores FRESHNESS_STALE
FRESHNESS_BRACKETS = (
    (30, 1.0),
    (90, 0.9),
    (180, 0.8),
    (365, 0.7),
    (730, 0.5),
)
FRESHNESS_STALE = 0.3
FRESHNESS_UNKNOWN = 0.5

COMPLETENESS_TERM_WEIGHT = 0.3
COMPLETENESS_DATA_BONUSES = ((0, 0.2), (5, 0.1), (10, 0.1))
COMPLETENESS_KEYWORD_BONUS = 0.05
COMPLETENESS_KEYWORDS = (
    "overview",
    "summary",
    "comprehensive",
    "detailed",
    "analysis",
    "report",
    "study",
    "research",
)
COMPLETENESS_LENGTH_BONUSES = ((500, 0.1), (2000, 0.1))

ACCURACY_BASE = 0.7
ACCURACY_HIGH_CONFIDENCE_BONUS = 0.1
ACCURACY_CITATION_BONUS = 0.1
ACCURACY_MANY_CITATIONS_BONUS = 0.1
ACCURACY_MANY_CITATIONS = 5
ACCURACY_VERIFIED = 0.95
ACCURACY_REFUTED = 0.3
ACCURACY_CORROBORATION_BOOST = 0.1

RELEVANCE_PROXIMITY_BONUS = 0.1
RELEVANCE_TITLE_TERM_BONUS = 0.05
RELEVANCE_SECTOR_BONUS = 0.15

STRATEGY_CONFIDENCE_BONUSES = {
    "Direct API Access": 0.1,
    "Cross-Reference Validation": 0.05,
}

CORROBORATION_TOLERANCE_DEFAULT = 0.05
VERIFIED_RATIO = 0.8
PARTIAL_RATIO = 0.3

# ========================================
# Deep Search Pipeline Constants
# ========================================

BROAD_SEARCH_LIMIT_DEFAULT = 40
CRAWL_SEED_COUNT_DEFAULT = 5
FINAL_RESULT_LIMIT_DEFAULT = 10
SUMMARY_LENGTH = 300
BROAD_SEARCH_STRATEGY = "Broad Web Search"

TARGET_DATA_LABELS = (
    "revenue",
    "profit",
    "earnings",
    "sales",
    "growth",
    "market cap",
    "price",
    "value",
    "percentage",
    "rate",
    "ratio",
    "index",
    "gdp",
    "inflation",
    "unemployment",
    "interest rate",
)

# ========================================
# Network & Timeout Constants
# ========================================

# Timeouts (seconds)
SEARXNG_TIMEOUT_DEFAULT = 30
HTTP_REQUEST_TIMEOUT_DEFAULT = 30
LLM_API_TIMEOUT_DEFAULT = 60
PAGE_WAIT_MS_DEFAULT = 2000

# Retry limits
MAX_RETRIES_DEFAULT = 3

# ========================================
# Security Constants
# ========================================

MAX_URL_LENGTH = 2048  # Maximum URL length
MAX_QUERY_LENGTH = 1000  # Maximum search query length

# ========================================
# HTTP Status Codes
# ========================================

HTTP_OK = 200
HTTP_UNAUTHORIZED = 401
HTTP_PAYMENT_REQUIRED = 402
HTTP_FORBIDDEN = 403
HTTP_TOO_MANY_REQUESTS = 429
HTTP_GATEWAY_TIMEOUT = 504
