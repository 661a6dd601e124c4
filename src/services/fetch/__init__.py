"""Fetch collaborators: web search, page scraping and file download."""

from .base import (
    FetchedPage,
    SearchHit,
    WebFetcher,
    classify_http_status,
    raise_for_quota_status,
)
from .crawl4ai_fetcher import Crawl4AIFetcher
from .files import download_file, extract_pdf_text, fetch_pdf_text
from .firecrawl import FirecrawlFetcher

__all__ = [
    "Crawl4AIFetcher",
    "FetchedPage",
    "FirecrawlFetcher",
    "SearchHit",
    "WebFetcher",
    "classify_http_status",
    "download_file",
    "extract_pdf_text",
    "fetch_pdf_text",
    "raise_for_quota_status",
]
