"""
Unit tests for application settings (src/config/settings.py).
"""

import pytest
from pydantic import ValidationError

from src.config import Settings, get_settings, reset_settings
from src.services.deep_search.config import DeepSearchConfig


class TestSettings:
    def test_defaults(self):
        settings = Settings(_env_file=None)

        assert settings.fetch_backend == "firecrawl"
        assert settings.deep_search_broad_limit == 40
        assert settings.deep_search_seed_count == 5
        assert settings.deep_search_final_limit == 10
        assert settings.deep_search_corroboration_tolerance == 0.05
        assert settings.deep_search_tie_break_margin == 0.1

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("FIRECRAWL_API_KEY", "fc-env")
        monkeypatch.setenv("DEEP_SEARCH_SEED_COUNT", "3")
        monkeypatch.setenv("MCP_DEBUG", "true")

        settings = Settings(_env_file=None)

        assert settings.firecrawl_api_key == "fc-env"
        assert settings.deep_search_seed_count == 3
        assert settings.debug is True

    def test_out_of_range_values_rejected(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, deep_search_final_limit=0)
        with pytest.raises(ValidationError):
            Settings(_env_file=None, fetch_backend="scrapy")

    @pytest.mark.parametrize(
        "overrides,expected",
        [
            ({"fetch_backend": "firecrawl", "firecrawl_api_key": None}, False),
            ({"fetch_backend": "firecrawl", "firecrawl_api_key": "fc"}, True),
            ({"fetch_backend": "crawl4ai", "searxng_url": "http://searx"}, True),
            ({"fetch_backend": "crawl4ai", "searxng_url": None}, False),
        ],
    )
    def test_has_fetch_credentials(self, overrides, expected):
        assert Settings(_env_file=None, **overrides).has_fetch_credentials() is expected

    def test_to_dict_hides_secrets(self):
        settings = Settings(
            _env_file=None, firecrawl_api_key="fc-secret", openai_api_key="sk-secret"
        )

        exported = settings.to_dict()

        assert exported["has_firecrawl"] is True
        assert exported["has_openai"] is True
        assert "fc-secret" not in exported.values()
        assert "sk-secret" not in exported.values()


class TestSettingsSingleton:
    def test_cached_until_reset(self):
        first = get_settings()

        assert get_settings() is first
        reset_settings()
        assert get_settings() is not first


class TestDeepSearchConfig:
    def test_from_settings(self):
        settings = Settings(
            _env_file=None,
            deep_search_seed_count=2,
            deep_search_pipeline_timeout=60,
            deep_search_enable_report_discovery=False,
            model_choice="gpt-4.1-mini",
        )

        config = DeepSearchConfig.from_settings(settings)

        assert config.seed_count == 2
        assert config.pipeline_timeout == 60.0
        assert config.enable_report_discovery is False
        assert config.model_choice == "gpt-4.1-mini"
