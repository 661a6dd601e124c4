"""
Research tools for MCP server.

This module contains the deep research MCP tool:
- deep_search: Multi-stage search, crawl and quality ranking for data-heavy queries
"""

import logging
from typing import TYPE_CHECKING

from fastmcp import Context

if TYPE_CHECKING:
    from fastmcp import FastMCP

from src.core import MCPToolError, track_request
from src.services.deep_search import deep_search_impl

logger = logging.getLogger(__name__)


def register_research_tools(mcp: "FastMCP") -> None:
    """
    Register research-related MCP tools.

    Args:
        mcp: FastMCP instance to register tools with
    """

    @mcp.tool()
    @track_request("deep_search")
    async def deep_search(
        ctx: Context,
        query: str,
        *,
        max_depth: int | None = None,
        sector: str | None = None,
        include_files: bool = True,
        include_spreadsheets: bool = False,
        target_data_points: list[str] | None = None,
        use_quality_scoring: bool = True,
        use_intelligent_crawling: bool = True,
    ) -> str:
        """
        Deep research search for statistics, figures and reports.

        Pipeline:
        1. Broad web search (plus targeted strategies such as public data APIs)
        2. Quality scoring on authority, freshness, completeness, accuracy, relevance
        3. Intelligent crawl of the top sources, following data-rich links and PDFs
        4. Re-scoring with cross-source corroboration
        5. Returns the top ranked results with extracted data points

        Args:
            ctx: The MCP context for execution
            query: Research question, e.g. "US steel production 2024"
            max_depth: Base crawl depth per source (default: DEEP_SEARCH_CRAWL_MAX_DEPTH)
            sector: Industry sector; results mentioning it rank higher
            include_files: Crawl linked PDF reports (default: true)
            include_spreadsheets: Also collect spreadsheet links (default: false)
            target_data_points: Figure labels to look for, e.g. ["revenue", "growth"]
            use_quality_scoring: Rank by multi-factor quality (default: true)
            use_intelligent_crawling: Crawl top sources in depth (default: true)

        Returns:
            JSON with ranked results, quality metrics and verification status.
        """
        try:
            return await deep_search_impl(
                ctx=ctx,
                query=query,
                max_depth=max_depth,
                sector=sector,
                include_files=include_files,
                include_spreadsheets=include_spreadsheets,
                target_data_points=target_data_points,
                use_quality_scoring=use_quality_scoring,
                use_intelligent_crawling=use_intelligent_crawling,
            )
        except MCPToolError:
            raise
        except Exception as e:
            logger.exception("Unexpected error in deep_search tool")
            msg = f"Deep search failed: {e!s}"
            raise MCPToolError(msg) from e
