"""
Tests for application configuration and settings validation.
"""

import os
import pytest
from unittest.mock import patch


def test_settings_loads_defaults():
    """Settings should load with sensible defaults in development."""
    from ppc_copilot.config import get_settings
    get_settings.cache_clear()

    with patch.dict(os.environ, {"ENVIRONMENT": "development"}, clear=False):
        get_settings.cache_clear()
        settings = get_settings()
        assert settings.environment == "development"
        assert settings.is_production is False
        assert settings.campaign_cache_ttl_seconds == 300
        assert settings.report_max_polls == 60
        assert settings.feedback_max_entries == 200
        get_settings.cache_clear()


def test_settings_cors_origin_list():
    """CORS origins string should be split into a list."""
    from ppc_copilot.config import get_settings
    get_settings.cache_clear()

    with patch.dict(os.environ, {
        "ENVIRONMENT": "development",
        "CORS_ORIGINS": "http://localhost:3000, http://example.com",
    }, clear=False):
        get_settings.cache_clear()
        settings = get_settings()
        origins = settings.cors_origin_list
        assert len(origins) == 2
        assert "http://localhost:3000" in origins
        assert "http://example.com" in origins
        get_settings.cache_clear()


def test_model_priority_list():
    from ppc_copilot.config import Settings
    settings = Settings(_env_file=None, ai_model_priority=" openai:gpt-4o-mini , anthropic:claude-3-5-haiku-latest,")
    assert settings.model_priority_list == ["openai:gpt-4o-mini", "anthropic:claude-3-5-haiku-latest"]


def test_ads_configured_strips_profile_id():
    from ppc_copilot.config import Settings
    settings = Settings(
        _env_file=None,
        amazon_ads_client_id="cid",
        amazon_ads_client_secret="secret",
        amazon_ads_refresh_token="refresh",
        amazon_ads_profile_id="  12345\n",
    )
    assert settings.amazon_ads_profile_id == "12345"
    assert settings.ads_configured is True

    assert Settings(_env_file=None, amazon_ads_client_id="", amazon_ads_profile_id="12345").ads_configured is False


def test_production_requires_api_key():
    """Production mode should refuse to start without an API key."""
    from ppc_copilot.config import Settings

    with pytest.raises(ValueError, match="API_KEY must be set"):
        Settings(_env_file=None, environment="production", api_key="")


def test_production_accepts_api_key():
    from ppc_copilot.config import Settings
    settings = Settings(_env_file=None, environment="production", api_key="a-real-api-key")
    assert settings.is_production is True
