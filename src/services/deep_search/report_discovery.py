"""LLM-assisted discovery of reports mentioned in page content.

A page that says "according to the 2023 Annual Steel Report" often links
nowhere. The report discoverer asks the LLM for the named reports and then
searches for a matching PDF for each one.
"""

import logging
from typing import Protocol

from pydantic_ai import Agent
from pydantic_ai.exceptions import UnexpectedModelBehavior

from src.core.constants import REPORT_DISCOVERY_CONTENT_LIMIT
from src.core.exceptions import CollaboratorQuotaError
from src.services.fetch.base import WebFetcher
from src.utils.url_helpers import is_pdf_url

from .models import MentionedReport, MentionedReports

logger = logging.getLogger(__name__)


class ReportDiscovery(Protocol):
    async def discover(self, content: str, query: str) -> list[str]: ...


class NullReportDiscoverer:
    """Used when no LLM is configured; discovers nothing."""

    async def discover(self, content: str, query: str) -> list[str]:
        return []


def build_discovery_prompt(content: str, query: str) -> str:
    excerpt = content[:REPORT_DISCOVERY_CONTENT_LIMIT]
    return f"""A researcher is looking for: {query}

List the named reports, studies, surveys or datasets mentioned in the page
below that are likely to contain that data. Only include documents that are
explicitly named. Give the publisher and year when the page states them.

PAGE CONTENT:
{excerpt}
"""


def build_report_query(report: MentionedReport) -> str:
    parts = [f'"{report.name}"']
    if report.publisher:
        parts.append(report.publisher)
    if report.year:
        parts.append(report.year)
    parts.append("filetype:pdf")
    return " ".join(parts)


class ReportDiscoverer:
    """Find PDF URLs for reports the LLM spots in a page."""

    def __init__(self, agent: Agent[None, MentionedReports], fetcher: WebFetcher):
        self.agent = agent
        self.fetcher = fetcher

    async def discover(self, content: str, query: str) -> list[str]:
        """Return PDF URLs for reports mentioned in ``content``.

        Any LLM or search failure yields an empty list; quota errors from
        the fetch collaborator still propagate.
        """
        if not content.strip():
            return []
        try:
            result = await self.agent.run(build_discovery_prompt(content, query))
            reports = result.output.reports
        except UnexpectedModelBehavior as e:
            logger.warning("Report discovery returned invalid output: %s", e)
            return []
        except Exception as e:
            logger.warning("Report discovery LLM call failed: %s", e)
            return []

        urls: list[str] = []
        for report in reports:
            try:
                hits = await self.fetcher.search(build_report_query(report), 1)
            except CollaboratorQuotaError:
                raise
            except Exception as e:
                logger.debug("Report search for %r failed: %s", report.name, e)
                continue
            if hits and is_pdf_url(hits[0].url) and hits[0].url not in urls:
                urls.append(hits[0].url)

        if urls:
            logger.info("Discovered %d report PDFs", len(urls))
        return urls
