"""Configuration and agent initialization for deep search.

This module handles:
- Pipeline parameters (limits, timeouts, tolerances) from settings
- Pydantic AI agent creation for report discovery
- OpenAI model setup with per-call API keys
"""

import logging
from dataclasses import dataclass

from pydantic_ai import Agent
from pydantic_ai.models.openai import OpenAIModel
from pydantic_ai.providers.openai import OpenAIProvider
from pydantic_ai.settings import ModelSettings

from src.config import Settings, get_settings
from src.core.constants import LLM_API_TIMEOUT_DEFAULT, MAX_RETRIES_DEFAULT

from .models import MentionedReports

logger = logging.getLogger(__name__)

REPORT_DISCOVERY_INSTRUCTIONS = (
    "You extract the names of reports, studies and datasets that a web page "
    "mentions. Never invent documents that the page does not name."
)


@dataclass
class DeepSearchConfig:
    """Tunable parameters of one deep search pipeline."""

    broad_limit: int = 40
    seed_count: int = 5
    final_limit: int = 10
    crawl_max_depth: int = 2
    crawl_max_pages: int = 10
    relevance_threshold: float = 0.3
    corroboration_tolerance: float = 0.05
    tie_break_margin: float = 0.1
    request_timeout: float = 30.0
    pipeline_timeout: float = 300.0
    page_wait_ms: int = 2000
    enable_report_discovery: bool = True
    model_choice: str = "gpt-4o-mini"
    llm_temperature: float = 0.3

    @classmethod
    def from_settings(cls, settings: Settings | None = None) -> "DeepSearchConfig":
        settings = settings or get_settings()
        return cls(
            broad_limit=settings.deep_search_broad_limit,
            seed_count=settings.deep_search_seed_count,
            final_limit=settings.deep_search_final_limit,
            crawl_max_depth=settings.deep_search_crawl_max_depth,
            crawl_max_pages=settings.deep_search_crawl_max_pages,
            relevance_threshold=settings.deep_search_relevance_threshold,
            corroboration_tolerance=settings.deep_search_corroboration_tolerance,
            tie_break_margin=settings.deep_search_tie_break_margin,
            request_timeout=float(settings.deep_search_request_timeout),
            pipeline_timeout=float(settings.deep_search_pipeline_timeout),
            page_wait_ms=settings.deep_search_page_wait_ms,
            enable_report_discovery=settings.deep_search_enable_report_discovery,
            model_choice=settings.model_choice,
            llm_temperature=settings.deep_search_llm_temperature,
        )

    def build_report_agent(self, api_key: str) -> Agent[None, MentionedReports]:
        """Create the structured-output agent used for report discovery."""
        model = OpenAIModel(
            model_name=self.model_choice,
            provider=OpenAIProvider(api_key=api_key),
        )
        # Per Pydantic AI docs: timeout, temperature configured via ModelSettings
        model_settings = ModelSettings(
            temperature=self.llm_temperature,
            timeout=LLM_API_TIMEOUT_DEFAULT,
        )
        return Agent(
            model=model,
            output_type=MentionedReports,
            output_retries=MAX_RETRIES_DEFAULT,
            model_settings=model_settings,
            instructions=REPORT_DISCOVERY_INSTRUCTIONS,
        )
