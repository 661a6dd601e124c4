"""
Main entry point for the deep research MCP server.
"""

import asyncio
import sys
import traceback

from fastmcp import FastMCP

from src.config import get_settings
from src.core import configure_logging, logger
from src.tools import register_tools

# Get settings instance
settings = get_settings()
configure_logging(debug=settings.debug or None)

try:
    logger.info("Initializing FastMCP server...")
    mcp = FastMCP("Deep Research MCP Server")
    logger.info("FastMCP server initialized successfully")
except Exception as e:
    logger.error("Failed to initialize FastMCP server: %s", e)
    logger.error("Traceback: %s", traceback.format_exc())
    sys.exit(1)


register_tools(mcp)


def create_mcp_server() -> FastMCP:
    """
    Create and return a fully registered MCP server instance for testing purposes.
    """
    server = FastMCP("Deep Research MCP Server Test")
    register_tools(server)
    return server


async def main() -> None:
    """
    Main async function to run the MCP server.
    """
    try:
        transport = settings.transport.lower()
        logger.info("Transport mode: %s", transport)
        if not settings.has_fetch_credentials():
            logger.warning(
                "No fetch credentials configured; deep_search calls will fail "
                "until FIRECRAWL_API_KEY is set or FETCH_BACKEND=crawl4ai"
            )

        # Normalize transport names to FastMCP Transport literals
        transport_map = {
            "http": "streamable-http",
            "streamable-http": "streamable-http",
            "sse": "sse",
            "stdio": "stdio",
        }
        fastmcp_transport = transport_map.get(transport, "stdio")

        if fastmcp_transport in ("streamable-http", "sse"):
            logger.info(
                "Setting up %s server on %s:%s...",
                fastmcp_transport,
                settings.host,
                settings.port,
            )
            await mcp.run_async(
                transport=fastmcp_transport,  # type: ignore[arg-type]
                host=settings.host,
                port=int(settings.port),
            )
        else:
            logger.info("Setting up stdio server...")
            await mcp.run_async(transport="stdio")

    except Exception as e:
        logger.error("Error in main function: %s", e)
        logger.error("Traceback: %s", traceback.format_exc())
        raise


def run() -> None:
    """Console entry point."""
    try:
        asyncio.run(main())
    except Exception as e:
        logger.error("Error in main: %s", e)
        sys.exit(1)


if __name__ == "__main__":
    run()
