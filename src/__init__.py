"""
Deep Research MCP Server - multi-stage search, crawl and quality ranking.

This package provides an MCP (Model Context Protocol) tool that turns a
research query into ranked, corroborated results with extracted data points.
"""

__version__ = "0.1.0"

# Re-export commonly used utilities for easier imports in tests
from src.config.settings import Settings, get_settings, reset_settings
from src.core.decorators import track_request
from src.core.exceptions import (
    CollaboratorQuotaError,
    ConfigurationError,
    DeepSearchError,
    MCPToolError,
    NetworkError,
    ValidationError,
)

__all__ = [
    "CollaboratorQuotaError",
    "ConfigurationError",
    "DeepSearchError",
    "MCPToolError",
    "NetworkError",
    "Settings",
    "ValidationError",
    "__version__",
    "get_settings",
    "reset_settings",
    "track_request",
]
