"""Utility functions for the deep research server."""

from .text import (
    count_occurrences,
    numeric_value,
    query_terms,
    strip_html,
    strip_numeric,
)
from .url_helpers import (
    extract_domain_from_url,
    file_extension,
    file_name_from_url,
    is_file_url,
    is_pdf_url,
    is_same_domain,
    normalize_url,
    resolve_link,
)
from .validation import is_safe_hostname, validate_crawl_url, validate_query

__all__ = [
    # Text helpers
    "count_occurrences",
    "numeric_value",
    "query_terms",
    "strip_html",
    "strip_numeric",
    # URL helpers
    "extract_domain_from_url",
    "file_extension",
    "file_name_from_url",
    "is_file_url",
    "is_pdf_url",
    "is_same_domain",
    "normalize_url",
    "resolve_link",
    # Validation
    "is_safe_hostname",
    "validate_crawl_url",
    "validate_query",
]
