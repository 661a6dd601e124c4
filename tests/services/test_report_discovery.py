"""
Unit tests for LLM-assisted report discovery (src/services/deep_search/report_discovery.py).
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic_ai.exceptions import UnexpectedModelBehavior

from src.core.exceptions import CollaboratorQuotaError, FetchError, QuotaErrorKind
from src.services.deep_search.models import MentionedReport, MentionedReports
from src.services.deep_search.report_discovery import (
    NullReportDiscoverer,
    ReportDiscoverer,
    build_discovery_prompt,
    build_report_query,
)

PAGE = "According to the 2023 Annual Steel Report by worldsteel, output grew."


def mock_agent(*reports, error=None):
    agent = MagicMock()
    run_result = MagicMock()
    run_result.output = MentionedReports(reports=list(reports))
    agent.run = AsyncMock(return_value=run_result, side_effect=error)
    return agent


class TestPromptBuilding:
    def test_report_query(self):
        report = MentionedReport(name='"Annual Steel Report" ', publisher="worldsteel", year="2023")

        assert build_report_query(report) == '"Annual Steel Report" worldsteel 2023 filetype:pdf'

    def test_report_query_without_optional_fields(self):
        assert build_report_query(MentionedReport(name="Outlook")) == '"Outlook" filetype:pdf'

    def test_prompt_contains_query_and_content(self):
        prompt = build_discovery_prompt(PAGE, "steel output")

        assert "steel output" in prompt
        assert PAGE in prompt


@pytest.mark.asyncio
class TestReportDiscoverer:
    async def test_returns_pdf_urls(self, fetcher_factory, hit_factory):
        fetcher = fetcher_factory(hits=[hit_factory("https://worldsteel.org/report-2023.pdf")])
        agent = mock_agent(MentionedReport(name="Annual Steel Report", year="2023"))

        urls = await ReportDiscoverer(agent, fetcher).discover(PAGE, "steel output")

        assert urls == ["https://worldsteel.org/report-2023.pdf"]
        assert fetcher.search.call_args.args == (
            '"Annual Steel Report" 2023 filetype:pdf',
            1,
        )

    async def test_non_pdf_hits_are_ignored(self, fetcher_factory, hit_factory):
        fetcher = fetcher_factory(hits=[hit_factory("https://worldsteel.org/news")])
        agent = mock_agent(MentionedReport(name="Annual Steel Report"))

        assert await ReportDiscoverer(agent, fetcher).discover(PAGE, "steel") == []

    async def test_duplicate_urls_are_collapsed(self, fetcher_factory, hit_factory):
        fetcher = fetcher_factory(hits=[hit_factory("https://worldsteel.org/report.pdf")])
        agent = mock_agent(MentionedReport(name="Report A"), MentionedReport(name="Report B"))

        urls = await ReportDiscoverer(agent, fetcher).discover(PAGE, "steel")

        assert urls == ["https://worldsteel.org/report.pdf"]

    async def test_blank_content_skips_llm(self, fetcher_factory):
        agent = mock_agent()

        assert await ReportDiscoverer(agent, fetcher_factory()).discover("  ", "steel") == []
        agent.run.assert_not_awaited()

    @pytest.mark.parametrize(
        "error", [UnexpectedModelBehavior("bad json"), RuntimeError("api down")]
    )
    async def test_llm_failure_yields_nothing(self, fetcher_factory, error):
        agent = mock_agent(error=error)

        assert await ReportDiscoverer(agent, fetcher_factory()).discover(PAGE, "steel") == []

    async def test_search_failure_skips_report(self, fetcher_factory):
        fetcher = fetcher_factory()
        fetcher.search.side_effect = FetchError("down", status=500)
        agent = mock_agent(MentionedReport(name="Annual Steel Report"))

        assert await ReportDiscoverer(agent, fetcher).discover(PAGE, "steel") == []

    async def test_quota_error_propagates(self, fetcher_factory):
        fetcher = fetcher_factory()
        fetcher.search.side_effect = CollaboratorQuotaError(QuotaErrorKind.RATE_LIMITED, 429)
        agent = mock_agent(MentionedReport(name="Annual Steel Report"))

        with pytest.raises(CollaboratorQuotaError):
            await ReportDiscoverer(agent, fetcher).discover(PAGE, "steel")

    async def test_null_discoverer(self):
        assert await NullReportDiscoverer().discover(PAGE, "steel") == []
