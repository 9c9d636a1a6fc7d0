"""
Tests for the FastAPI application and health endpoint.
"""

import pytest
from httpx import AsyncClient, ASGITransport

from ppc_copilot.config import Settings
from ppc_copilot.main import create_app
from ppc_copilot.models import DerivedCampaign
from ppc_copilot.services.campaign_cache import CampaignCache
from ppc_copilot.services.campaign_service import FetchResult


def make_app(tmp_path, **kwargs):
    params = dict(
        _env_file=None,
        environment="development",
        api_key="",
        openai_api_key="",
        anthropic_api_key="",
        amazon_ads_client_id="",
        amazon_ads_client_secret="",
        amazon_ads_refresh_token="",
        amazon_ads_profile_id="",
        feedback_file=str(tmp_path / "ai-feedback.json"),
    )
    params.update(kwargs)
    return create_app(Settings(**params))


@pytest.mark.anyio
async def test_health_endpoint_unconfigured(tmp_path):
    """Health endpoint reports missing credentials and an empty cache."""
    app = make_app(tmp_path)
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/api/health")
        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["service"] == "PPC Copilot"
        assert data["amazonAds"] == "not_configured"
        assert data["aiConfigured"] is False
        assert data["cache"] == {"state": "empty", "refreshing": False}


@pytest.mark.anyio
async def test_health_endpoint_configured(tmp_path):
    """Health endpoint reflects configured Amazon Ads and AI credentials."""
    app = make_app(
        tmp_path,
        amazon_ads_client_id="cid",
        amazon_ads_client_secret="secret",
        amazon_ads_refresh_token="refresh",
        amazon_ads_profile_id="12345",
        anthropic_api_key="sk-ant-test",
    )
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        data = (await client.get("/api/health")).json()
        assert data["amazonAds"] == "configured"
        assert data["aiConfigured"] is True


class StaticFetcher:
    async def fetch_listing(self, date_from, date_to):
        return FetchResult([DerivedCampaign(id="1", name="Campaign 1")], False)

    async def fetch_full(self, date_from, date_to):
        return FetchResult([DerivedCampaign(id="1", name="Campaign 1")], True)


@pytest.mark.anyio
async def test_health_reports_cache_freshness(tmp_path, clock):
    """Health endpoint reports the state of whatever range is cached."""
    app = make_app(tmp_path)
    cache = CampaignCache(StaticFetcher(), ttl_seconds=300, clock=clock)
    app.state.campaign_cache = cache
    await cache.get("2024-03-01", "2024-03-07")

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        data = (await client.get("/api/health")).json()
        assert data["cache"] == {"state": "fresh", "refreshing": False}

        clock.advance(301)
        data = (await client.get("/api/health")).json()
        assert data["cache"]["state"] == "stale"
