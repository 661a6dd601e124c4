"""MCP tool wrapper for deep search.

This module provides the MCP tool entry point: it builds options from tool
arguments, forwards crawl progress to the MCP client and maps pipeline
errors to ``MCPToolError``.
"""

import json
import logging

from fastmcp import Context

from src.core import MCPToolError
from src.core.exceptions import (
    CollaboratorQuotaError,
    ConfigurationError,
    InputValidationError,
)

from .factory import get_deep_search_service
from .models import DeepSearchOptions, SearchProgress
from .strategies import extract_target_data_points

logger = logging.getLogger(__name__)


def _progress_forwarder(ctx: Context):
    async def forward(progress: SearchProgress) -> None:
        message = progress.stage
        if progress.current_seed:
            message = f"{progress.stage}: {progress.current_seed}"
        await ctx.report_progress(
            progress=progress.completed, total=progress.total, message=message
        )

    return forward


async def deep_search_impl(
    ctx: Context,
    query: str,
    max_depth: int | None = None,
    sector: str | None = None,
    include_files: bool = True,
    include_spreadsheets: bool = False,
    target_data_points: list[str] | None = None,
    use_quality_scoring: bool = True,
    use_intelligent_crawling: bool = True,
) -> str:
    """Execute a deep search and return JSON results.

    Raises:
        MCPToolError: If the search cannot run or a collaborator rejects it
    """
    try:
        service = get_deep_search_service()
        # Unset depth falls back to the configured crawl depth
        depth = service.config.crawl_max_depth if max_depth is None else max_depth
        options = DeepSearchOptions(
            max_depth=max(0, depth),
            include_files=include_files,
            include_spreadsheets=include_spreadsheets,
            target_data_points=target_data_points or extract_target_data_points(query),
            use_quality_scoring=use_quality_scoring,
            use_intelligent_crawling=use_intelligent_crawling,
            sector=sector,
        )
        results = await service.perform_deep_search(
            query, options, progress_callback=_progress_forwarder(ctx)
        )
    except CollaboratorQuotaError as e:
        raise MCPToolError(json.dumps(e.to_dict())) from e
    except (ConfigurationError, InputValidationError) as e:
        raise MCPToolError(f"Deep search unavailable: {e}") from e
    except Exception as e:
        logger.exception("Deep search implementation failed")
        raise MCPToolError(f"Deep search failed: {e}") from e

    return json.dumps(
        {
            "success": True,
            "query": query,
            "count": len(results),
            "results": [r.model_dump(mode="json") for r in results],
        },
        indent=2,
    )
