"""
Shared pytest fixtures and configuration for all tests.

No test talks to a real fetch collaborator or LLM: the fetcher is an
in-memory fake serving canned search hits and pages, and anything that
would open a network connection is patched in the test itself.
"""

from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from src.config import reset_settings
from src.core.exceptions import FetchError
from src.services.deep_search import reset_deep_search_service
from src.services.deep_search.scoring import QualityScorer
from src.services.fetch.base import FetchedPage, SearchHit

# Fixed "now" for freshness scoring
FROZEN_NOW = datetime(2024, 4, 15)


class FakeFetcher:
    """In-memory fetch collaborator.

    ``search`` returns the configured hits, ``scrape`` serves pages by URL
    and raises ``FetchError`` for unknown URLs. Both are ``AsyncMock``s so
    tests can assert on calls or swap in a ``side_effect``.
    """

    def __init__(
        self,
        hits: list[SearchHit] | None = None,
        pages: dict[str, FetchedPage] | None = None,
    ):
        self.hits = hits or []
        self.pages = pages or {}
        self.search = AsyncMock(side_effect=self._search)
        self.scrape = AsyncMock(side_effect=self._scrape)

    async def _search(self, query, limit, **kwargs):
        return list(self.hits)[:limit]

    async def _scrape(self, url, **kwargs):
        if url not in self.pages:
            msg = f"404 for {url}"
            raise FetchError(msg, status=404)
        return self.pages[url]


def make_page(url: str, markdown: str = "", html: str = "", title: str = "") -> FetchedPage:
    return FetchedPage(url=url, title=title, markdown=markdown, html=html or f"<p>{markdown}</p>")


def make_hit(url: str, markdown: str = "", title: str = "", score: float | None = None, **metadata) -> SearchHit:
    return SearchHit(
        url=url,
        title=title or url,
        description=markdown[:100],
        markdown=markdown,
        score=score,
        metadata=metadata,
    )


# ========================================
# Isolation
# ========================================


@pytest.fixture(autouse=True)
def reset_singletons():
    """Drop cached settings and services between tests."""
    reset_settings()
    reset_deep_search_service()
    yield
    reset_settings()
    reset_deep_search_service()


# ========================================
# Factories
# ========================================


@pytest.fixture
def fetcher_factory():
    """Build a ``FakeFetcher`` from hits and pages."""
    return FakeFetcher


@pytest.fixture
def page_factory():
    return make_page


@pytest.fixture
def hit_factory():
    return make_hit


@pytest.fixture
def frozen_now():
    return FROZEN_NOW


@pytest.fixture
def scorer():
    """Scorer with isolated caches and a fixed clock."""
    return QualityScorer(clock=lambda: FROZEN_NOW)
