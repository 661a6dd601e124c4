"""
MCP Tools Package.

This package contains all MCP tool definitions organized by category:
- research: Deep research search tool

Each module provides a register_*_tools() function to register tools with FastMCP.
"""

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fastmcp import FastMCP

from src.tools.research import register_research_tools

logger = logging.getLogger(__name__)


def register_tools(mcp: "FastMCP") -> None:
    """
    Register all MCP tools with the FastMCP instance.

    Args:
        mcp: FastMCP instance to register tools with
    """
    logger.info("Registering all MCP tools...")
    register_research_tools(mcp)
    logger.info("All MCP tools registered successfully")


__all__ = [
    "register_research_tools",
    "register_tools",
]
