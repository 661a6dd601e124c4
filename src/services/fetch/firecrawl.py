"""Firecrawl REST backend for search and page scraping."""

import asyncio
import logging
from typing import Any

import aiohttp

from src.core.constants import HTTP_OK, HTTP_REQUEST_TIMEOUT_DEFAULT
from src.core.exceptions import ConfigurationError, FetchError

from .base import FetchedPage, SearchHit, raise_for_quota_status

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.firecrawl.dev"


class FirecrawlFetcher:
    """Fetch collaborator backed by the Firecrawl ``/v1`` API.

    Each call opens its own ``aiohttp.ClientSession`` so the fetcher is safe
    to share between concurrent pipeline runs.
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = HTTP_REQUEST_TIMEOUT_DEFAULT,
    ):
        if not api_key:
            msg = "Firecrawl API key is required"
            raise ConfigurationError(msg)
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    async def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        timeout = aiohttp.ClientTimeout(total=self.timeout)
        try:
            async with aiohttp.ClientSession(timeout=timeout) as session:
                async with session.post(
                    url, json=payload, headers=self._headers()
                ) as response:
                    raise_for_quota_status(response.status)
                    if response.status != HTTP_OK:
                        body = await response.text()
                        msg = f"Firecrawl {path} returned {response.status}: {body[:200]}"
                        raise FetchError(msg, status=response.status)
                    data = await response.json()
        except aiohttp.ClientError as e:
            msg = f"Firecrawl {path} request failed: {e}"
            raise FetchError(msg) from e
        except asyncio.TimeoutError as e:
            msg = f"Firecrawl {path} request timed out after {self.timeout}s"
            raise FetchError(msg) from e

        if not isinstance(data, dict) or data.get("success") is False:
            error = data.get("error") if isinstance(data, dict) else data
            msg = f"Firecrawl {path} reported failure: {error}"
            raise FetchError(msg)
        return data

    async def search(
        self,
        query: str,
        limit: int,
        *,
        formats: tuple[str, ...] = ("markdown",),
        only_main_content: bool = True,
    ) -> list[SearchHit]:
        payload = {
            "query": query,
            "limit": limit,
            "scrapeOptions": {
                "formats": list(formats),
                "onlyMainContent": only_main_content,
            },
        }
        data = await self._post("/v1/search", payload)
        hits = []
        for item in data.get("data") or []:
            if not isinstance(item, dict) or not item.get("url"):
                continue
            metadata = item.get("metadata") or {}
            hits.append(
                SearchHit(
                    url=item["url"],
                    title=item.get("title") or metadata.get("title") or "",
                    description=item.get("description") or "",
                    markdown=item.get("markdown") or "",
                    score=item.get("score"),
                    metadata=metadata,
                )
            )
        logger.debug("Firecrawl search %r returned %d hits", query, len(hits))
        return hits

    async def scrape(
        self,
        url: str,
        *,
        formats: tuple[str, ...] = ("markdown", "html"),
        only_main_content: bool = True,
        wait_for_ms: int = 0,
    ) -> FetchedPage:
        payload: dict[str, Any] = {
            "url": url,
            "formats": list(formats),
            "onlyMainContent": only_main_content,
        }
        if wait_for_ms:
            payload["waitFor"] = wait_for_ms
        data = await self._post("/v1/scrape", payload)
        page = data.get("data") or {}
        metadata = page.get("metadata") or {}
        return FetchedPage(
            url=metadata.get("sourceURL") or url,
            title=metadata.get("title") or "",
            markdown=page.get("markdown") or "",
            html=page.get("html") or page.get("rawHtml") or "",
            metadata=metadata,
        )
