"""Self-hosted backend: SearXNG for search, crawl4ai for page rendering."""

import asyncio
import logging
from typing import Any

import aiohttp
from crawl4ai import AsyncWebCrawler, BrowserConfig, CacheMode, CrawlerRunConfig

from src.core.constants import (
    HTTP_OK,
    HTTP_REQUEST_TIMEOUT_DEFAULT,
    SEARXNG_TIMEOUT_DEFAULT,
)
from src.core.exceptions import ConfigurationError, FetchError, SearchError

from .base import FetchedPage, SearchHit, raise_for_quota_status

logger = logging.getLogger(__name__)


class Crawl4AIFetcher:
    """Fetch collaborator that needs no paid API key.

    Search results only carry the SearXNG snippet as markdown; full page
    content comes from ``scrape``.
    """

    def __init__(
        self,
        searxng_url: str,
        user_agent: str = "DeepResearch/1.0",
        search_timeout: float = SEARXNG_TIMEOUT_DEFAULT,
        page_timeout: float = HTTP_REQUEST_TIMEOUT_DEFAULT,
        browser_config: BrowserConfig | None = None,
    ):
        if not searxng_url:
            msg = "SEARXNG_URL is required for the crawl4ai fetch backend"
            raise ConfigurationError(msg)
        self.searxng_url = searxng_url.rstrip("/")
        self.user_agent = user_agent
        self.search_timeout = search_timeout
        self.page_timeout = page_timeout
        self.browser_config = browser_config or BrowserConfig(
            headless=True,
            verbose=False,
        )

    async def search(
        self,
        query: str,
        limit: int,
        *,
        formats: tuple[str, ...] = ("markdown",),
        only_main_content: bool = True,
    ) -> list[SearchHit]:
        params = {"q": query, "format": "json", "categories": "general"}
        headers = {"User-Agent": self.user_agent, "Accept": "application/json"}
        timeout = aiohttp.ClientTimeout(total=self.search_timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.get(
                    f"{self.searxng_url}/search", params=params, headers=headers
                ) as response:
                    raise_for_quota_status(response.status)
                    if response.status != HTTP_OK:
                        msg = f"SearXNG returned status {response.status}"
                        raise SearchError(msg)
                    data: dict[str, Any] = await response.json(content_type=None)
        except aiohttp.ClientError as e:
            msg = f"SearXNG request failed: {e}"
            raise SearchError(msg) from e
        except asyncio.TimeoutError as e:
            msg = f"SearXNG request timed out after {self.search_timeout}s"
            raise SearchError(msg) from e

        hits = []
        for item in (data.get("results") or [])[:limit]:
            url = item.get("url")
            if not url:
                continue
            snippet = item.get("content") or ""
            hits.append(
                SearchHit(
                    url=url,
                    title=item.get("title") or "",
                    description=snippet,
                    markdown=snippet,
                    score=_normalize_searxng_score(item.get("score")),
                    metadata={"engines": item.get("engines", [])},
                )
            )
        logger.debug("SearXNG search %r returned %d hits", query, len(hits))
        return hits

    async def scrape(
        self,
        url: str,
        *,
        formats: tuple[str, ...] = ("markdown", "html"),
        only_main_content: bool = True,
        wait_for_ms: int = 0,
    ) -> FetchedPage:
        run_config = CrawlerRunConfig(
            cache_mode=CacheMode.BYPASS,
            stream=False,
            wait_until="domcontentloaded",
            exclude_all_images=True,
            excluded_tags=["nav", "footer", "header", "aside"]
            if only_main_content
            else None,
            delay_before_return_html=wait_for_ms / 1000 if wait_for_ms else 0.1,
            page_timeout=int(self.page_timeout * 1000),
        )
        try:
            async with AsyncWebCrawler(config=self.browser_config) as crawler:
                result = await crawler.arun(url=url, config=run_config)
        except Exception as e:
            msg = f"crawl4ai failed for {url}: {e}"
            raise FetchError(msg) from e

        if not result.success:
            msg = f"crawl4ai could not fetch {url}: {result.error_message}"
            raise FetchError(msg, status=getattr(result, "status_code", None))

        metadata = result.metadata or {}
        return FetchedPage(
            url=url,
            title=metadata.get("title") or "",
            markdown=str(result.markdown or ""),
            html=(result.html or "") if "html" in formats else "",
            metadata=metadata,
        )


def _normalize_searxng_score(score: Any) -> float | None:
    """SearXNG scores are unbounded; squash them into (0, 1)."""
    if not isinstance(score, int | float) or score <= 0:
        return None
    return min(1.0, score / (score + 1.0))
