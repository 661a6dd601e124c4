"""
Unit tests for fetch collaborators (src/services/fetch/).

This module tests:
- HTTP status classification into quota error kinds
- FirecrawlFetcher search/scrape payloads and response parsing
- Error mapping (quota errors, transient FetchError, reported failures)
- SearXNG search parsing in the crawl4ai backend
- PDF text extraction and download helpers
"""

import io
from unittest.mock import AsyncMock, MagicMock, patch

import aiohttp
import pytest
from pypdf import PdfWriter

from src.core.exceptions import (
    CollaboratorQuotaError,
    ConfigurationError,
    FetchError,
    ParseError,
    QuotaErrorKind,
    SearchError,
)
from src.services.fetch import (
    Crawl4AIFetcher,
    FirecrawlFetcher,
    classify_http_status,
    download_file,
    extract_pdf_text,
    fetch_pdf_text,
)

# ========================================
# Fixtures
# ========================================


def mock_session(method, status=200, json_data=None, text="", body=b""):
    """aiohttp.ClientSession replacement answering ``method`` calls."""
    mock_response = MagicMock()
    mock_response.status = status
    mock_response.json = AsyncMock(return_value=json_data)
    mock_response.text = AsyncMock(return_value=text)
    mock_response.read = AsyncMock(return_value=body)
    mock_response.content_length = len(body)
    mock_response.__aenter__ = AsyncMock(return_value=mock_response)
    mock_response.__aexit__ = AsyncMock(return_value=None)

    session = MagicMock()
    setattr(session, method, MagicMock(return_value=mock_response))
    session.__aenter__ = AsyncMock(return_value=session)
    session.__aexit__ = AsyncMock(return_value=None)
    return session


@pytest.fixture
def firecrawl():
    return FirecrawlFetcher(api_key="fc-test", base_url="https://api.firecrawl.test/")


# ========================================
# Status classification
# ========================================


class TestClassifyHttpStatus:
    @pytest.mark.parametrize(
        "status,expected",
        [
            (401, QuotaErrorKind.INVALID_CREDENTIAL),
            (403, QuotaErrorKind.INVALID_CREDENTIAL),
            (402, QuotaErrorKind.INSUFFICIENT_QUOTA),
            (429, QuotaErrorKind.RATE_LIMITED),
            (504, QuotaErrorKind.TIMED_OUT),
            (408, None),
            (500, None),
            (200, None),
        ],
    )
    def test_mapping(self, status, expected):
        assert classify_http_status(status) == expected


# ========================================
# Firecrawl
# ========================================


class TestFirecrawlConfig:
    def test_requires_api_key(self):
        with pytest.raises(ConfigurationError):
            FirecrawlFetcher(api_key="")


@pytest.mark.asyncio
class TestFirecrawlSearch:
    async def test_search_success(self, firecrawl):
        data = {
            "success": True,
            "data": [
                {
                    "url": "https://example.com/a",
                    "title": "A",
                    "description": "desc",
                    "markdown": "# A",
                    "metadata": {"statusCode": 200},
                },
                {"title": "missing url"},
            ],
        }
        session = mock_session("post", json_data=data)

        with patch("aiohttp.ClientSession", return_value=session):
            hits = await firecrawl.search("steel", 5)

        assert len(hits) == 1
        assert hits[0].url == "https://example.com/a"
        assert hits[0].markdown == "# A"

        args, kwargs = session.post.call_args
        assert args[0] == "https://api.firecrawl.test/v1/search"
        assert kwargs["json"]["limit"] == 5
        assert kwargs["json"]["scrapeOptions"]["formats"] == ["markdown"]
        assert kwargs["headers"]["Authorization"] == "Bearer fc-test"

    @pytest.mark.parametrize(
        "status,kind",
        [
            (401, QuotaErrorKind.INVALID_CREDENTIAL),
            (402, QuotaErrorKind.INSUFFICIENT_QUOTA),
            (429, QuotaErrorKind.RATE_LIMITED),
            (504, QuotaErrorKind.TIMED_OUT),
        ],
    )
    async def test_quota_statuses(self, firecrawl, status, kind):
        with patch("aiohttp.ClientSession", return_value=mock_session("post", status=status)):
            with pytest.raises(CollaboratorQuotaError) as exc_info:
                await firecrawl.search("steel", 5)

        assert exc_info.value.kind == kind
        assert exc_info.value.status == status

    async def test_server_error_is_transient(self, firecrawl):
        session = mock_session("post", status=500, text="internal error")

        with patch("aiohttp.ClientSession", return_value=session):
            with pytest.raises(FetchError) as exc_info:
                await firecrawl.search("steel", 5)

        assert exc_info.value.status == 500

    async def test_reported_failure(self, firecrawl):
        session = mock_session("post", json_data={"success": False, "error": "bad query"})

        with patch("aiohttp.ClientSession", return_value=session):
            with pytest.raises(FetchError, match="bad query"):
                await firecrawl.search("steel", 5)

    async def test_connection_error(self, firecrawl):
        session = mock_session("post")
        session.post.side_effect = aiohttp.ClientError("connection refused")

        with patch("aiohttp.ClientSession", return_value=session):
            with pytest.raises(FetchError):
                await firecrawl.search("steel", 5)


@pytest.mark.asyncio
class TestFirecrawlScrape:
    async def test_scrape_success(self, firecrawl):
        data = {
            "success": True,
            "data": {
                "markdown": "# Title",
                "html": "<h1>Title</h1>",
                "metadata": {"title": "Title", "sourceURL": "https://example.com/final"},
            },
        }
        session = mock_session("post", json_data=data)

        with patch("aiohttp.ClientSession", return_value=session):
            page = await firecrawl.scrape("https://example.com/start", wait_for_ms=2000)

        assert page.url == "https://example.com/final"
        assert page.title == "Title"
        assert page.html == "<h1>Title</h1>"
        payload = session.post.call_args.kwargs["json"]
        assert payload["waitFor"] == 2000
        assert payload["formats"] == ["markdown", "html"]

    async def test_scrape_without_wait(self, firecrawl):
        session = mock_session("post", json_data={"success": True, "data": {}})

        with patch("aiohttp.ClientSession", return_value=session):
            page = await firecrawl.scrape("https://example.com/start")

        assert page.url == "https://example.com/start"
        assert "waitFor" not in session.post.call_args.kwargs["json"]


# ========================================
# SearXNG search (crawl4ai backend)
# ========================================


class TestCrawl4AIFetcherConfig:
    def test_requires_searxng_url(self):
        with pytest.raises(ConfigurationError):
            Crawl4AIFetcher(searxng_url="", browser_config=MagicMock())


@pytest.mark.asyncio
class TestCrawl4AIFetcherSearch:
    @pytest.fixture
    def fetcher(self):
        return Crawl4AIFetcher(searxng_url="https://searx.example.com/", browser_config=MagicMock())

    async def test_search_success(self, fetcher):
        data = {
            "results": [
                {"url": "https://example.com/a", "title": "A", "content": "snippet", "score": 3.0},
                {"title": "no url"},
                {"url": "https://example.com/b", "title": "B"},
            ]
        }
        session = mock_session("get", json_data=data)

        with patch("aiohttp.ClientSession", return_value=session):
            hits = await fetcher.search("steel", 10)

        assert [h.url for h in hits] == ["https://example.com/a", "https://example.com/b"]
        assert hits[0].markdown == "snippet"
        assert hits[0].score == pytest.approx(0.75)
        assert hits[1].score is None
        assert session.get.call_args.args[0] == "https://searx.example.com/search"

    async def test_search_error(self, fetcher):
        with patch("aiohttp.ClientSession", return_value=mock_session("get", status=500)):
            with pytest.raises(SearchError):
                await fetcher.search("steel", 10)


# ========================================
# Files
# ========================================


def blank_pdf() -> bytes:
    writer = PdfWriter()
    writer.add_blank_page(width=72, height=72)
    buffer = io.BytesIO()
    writer.write(buffer)
    return buffer.getvalue()


class TestExtractPdfText:
    def test_blank_pdf_has_no_text(self):
        assert extract_pdf_text(blank_pdf()) == ""

    def test_empty_bytes_raise_parse_error(self):
        with pytest.raises(ParseError):
            extract_pdf_text(b"")


@pytest.mark.asyncio
class TestDownloads:
    async def test_download_file(self):
        session = mock_session("get", body=b"%PDF-1.4")

        with patch("aiohttp.ClientSession", return_value=session):
            data = await download_file("https://example.com/r.pdf")

        assert data == b"%PDF-1.4"

    async def test_download_not_found(self):
        with patch("aiohttp.ClientSession", return_value=mock_session("get", status=404)):
            with pytest.raises(FetchError) as exc_info:
                await download_file("https://example.com/r.pdf")

        assert exc_info.value.status == 404

    async def test_fetch_pdf_text(self):
        with (
            patch(
                "src.services.fetch.files.download_file",
                AsyncMock(return_value=b"pdf-bytes"),
            ),
            patch(
                "src.services.fetch.files.extract_pdf_text", return_value="Report text"
            ) as extract,
        ):
            text = await fetch_pdf_text("https://example.com/r.pdf")

        assert text == "Report text"
        extract.assert_called_once_with(b"pdf-bytes")
