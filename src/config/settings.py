"""Configuration settings for the deep research server using Pydantic Settings.

This module provides type-safe configuration management with automatic validation,
environment variable loading, and documentation generation.
"""

import logging
from typing import Any, Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Central configuration management with Pydantic validation.

    All settings are loaded from environment variables with automatic type conversion
    and validation. Default values are provided for non-critical settings.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
        validate_default=True,
        populate_by_name=True,
    )

    # ========================================
    # Debug Settings
    # ========================================
    debug: bool = Field(
        default=False,
        alias="MCP_DEBUG",
        description="Enable debug mode with verbose logging",
    )

    # ========================================
    # Server Settings
    # ========================================
    host: str = Field(
        default="0.0.0.0",
        description="Server host address",
    )

    port: int = Field(
        default=8051,
        ge=1024,
        le=65535,
        description="Server port number",
    )

    transport: str = Field(
        default="http",
        description="Transport mode (http, sse or stdio)",
    )

    # ========================================
    # Fetch Collaborator Settings
    # ========================================
    fetch_backend: Literal["firecrawl", "crawl4ai"] = Field(
        default="firecrawl",
        description="Backend used to search the web and scrape pages",
    )

    firecrawl_api_key: str | None = Field(
        default=None,
        description="Firecrawl API key (required for the firecrawl backend)",
    )

    firecrawl_base_url: str = Field(
        default="https://api.firecrawl.dev",
        description="Firecrawl API base URL (override for self-hosted deployments)",
    )

    searxng_url: str | None = Field(
        default="http://localhost:8080",
        description="SearXNG instance URL (search half of the crawl4ai backend)",
    )

    searxng_user_agent: str = Field(
        default="Deep-Research-Server/1.0",
        description="User agent for SearXNG requests",
    )

    searxng_timeout: int = Field(
        default=30,
        ge=5,
        le=120,
        description="Timeout in seconds for SearXNG requests",
    )

    # ========================================
    # Language Model Settings
    # ========================================
    openai_api_key: str | None = Field(
        default=None,
        description="OpenAI API key for report discovery (optional)",
    )

    model_choice: str = Field(
        default="gpt-4o-mini",
        description="LLM model used for report discovery",
    )

    deep_search_llm_temperature: float = Field(
        default=0.3,
        ge=0.0,
        le=2.0,
        description="LLM temperature for structured extraction calls",
    )

    # ========================================
    # Deep Search Settings
    # ========================================
    deep_search_broad_limit: int = Field(
        default=40,
        ge=1,
        le=100,
        description="Result cap for the broad retrieval stage",
    )

    deep_search_seed_count: int = Field(
        default=5,
        ge=0,
        le=20,
        description="Number of top-scored results crawled in depth",
    )

    deep_search_final_limit: int = Field(
        default=10,
        ge=1,
        le=100,
        description="Number of ranked results returned to the caller",
    )

    deep_search_crawl_max_depth: int = Field(
        default=2,
        ge=0,
        le=10,
        description="Base crawl depth per seed when a tool call omits max_depth",
    )

    deep_search_crawl_max_pages: int = Field(
        default=10,
        ge=1,
        le=200,
        description="Maximum pages processed per seed crawl",
    )

    deep_search_relevance_threshold: float = Field(
        default=0.3,
        ge=0.0,
        le=1.0,
        description="Minimum link score for adaptive link enqueueing",
    )

    deep_search_corroboration_tolerance: float = Field(
        default=0.05,
        gt=0.0,
        le=1.0,
        description="Relative difference under which two numeric data points agree",
    )

    deep_search_tie_break_margin: float = Field(
        default=0.1,
        ge=0.0,
        le=1.0,
        description="Relevance margin treated as a tie in crawl node selection",
    )

    deep_search_request_timeout: int = Field(
        default=30,
        ge=1,
        le=300,
        description="Timeout in seconds for each external fetch",
    )

    deep_search_pipeline_timeout: int = Field(
        default=300,
        ge=10,
        le=3600,
        description="Wall-clock budget in seconds for one deep search",
    )

    deep_search_page_wait_ms: int = Field(
        default=2000,
        ge=0,
        le=30000,
        description="Milliseconds the scraper waits for dynamic content",
    )

    deep_search_enable_report_discovery: bool = Field(
        default=True,
        description="Ask the LLM for reports mentioned but not linked on crawled pages",
    )

    # ========================================
    # Helper Methods
    # ========================================
    def has_fetch_credentials(self) -> bool:
        """Check if the configured fetch backend has what it needs."""
        if self.fetch_backend == "firecrawl":
            return bool(self.firecrawl_api_key)
        return bool(self.searxng_url)

    def to_dict(self) -> dict[str, Any]:
        """Export settings as a dictionary (safe version without secrets)."""
        return {
            "debug": self.debug,
            "host": self.host,
            "port": self.port,
            "transport": self.transport,
            "fetch_backend": self.fetch_backend,
            "has_firecrawl": bool(self.firecrawl_api_key),
            "has_searxng": bool(self.searxng_url),
            "has_openai": bool(self.openai_api_key),
            "model_choice": self.model_choice,
            "deep_search_broad_limit": self.deep_search_broad_limit,
            "deep_search_seed_count": self.deep_search_seed_count,
            "deep_search_final_limit": self.deep_search_final_limit,
            "deep_search_crawl_max_depth": self.deep_search_crawl_max_depth,
            "deep_search_crawl_max_pages": self.deep_search_crawl_max_pages,
            "deep_search_pipeline_timeout": self.deep_search_pipeline_timeout,
        }


# Singleton pattern with proper typing
_settings_instance: Settings | None = None


def get_settings() -> Settings:
    """Get cached settings instance (singleton pattern)."""
    global _settings_instance
    if _settings_instance is None:
        _settings_instance = Settings()
        logger.info("Settings initialized from environment")
        logger.debug("Fetch backend: %s", _settings_instance.fetch_backend)
        if not _settings_instance.has_fetch_credentials():
            logger.warning(
                "No credentials for fetch backend '%s'. Deep search will be unavailable.",
                _settings_instance.fetch_backend,
            )
        if not _settings_instance.openai_api_key:
            logger.warning(
                "OPENAI_API_KEY is missing. Report discovery will be skipped.",
            )
    return _settings_instance


def reset_settings() -> None:
    """Reset settings instance (useful for testing)."""
    global _settings_instance
    _settings_instance = None
