"""
PPC Copilot — FastAPI Backend
Serves Amazon Sponsored Products campaign data (listing + report metrics,
cached per date range) and LLM-generated suggestions calibrated by seller
feedback.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional
import httpx
from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from ppc_copilot.ads_client import create_ads_client
from ppc_copilot.auth import require_auth
from ppc_copilot.config import Settings, get_settings
from ppc_copilot.routers import ai, amazon, feedback
from ppc_copilot.services.campaign_cache import CampaignCache
from ppc_copilot.services.campaign_service import CampaignDataService
from ppc_copilot.services.feedback_service import FeedbackStore

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SERVICE_NAME = "PPC Copilot"


def _init_services(app: FastAPI, settings: Settings, http: Optional[httpx.AsyncClient]) -> None:
    """Build the process-wide services and hang them on app.state."""
    state = app.state
    state.settings = settings
    state.owns_http = http is None
    state.http = http or httpx.AsyncClient(timeout=30.0)
    state.ads_client = create_ads_client(settings, state.http)
    state.campaign_data = CampaignDataService(state.ads_client)
    state.campaign_cache = CampaignCache(state.campaign_data, ttl_seconds=settings.campaign_cache_ttl_seconds)
    state.feedback_store = FeedbackStore(settings.feedback_file, settings.feedback_max_entries)
    # Built on first AI request so a missing LLM key only affects /api/ai
    state.recommendations = None


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    logger.info(
        f"Starting {SERVICE_NAME} ({settings.environment}) — "
        f"Amazon Ads {'configured' if settings.ads_configured else 'NOT configured, serving demo data'}"
    )
    yield
    logger.info("Shutting down...")
    await app.state.campaign_cache.aclose()
    if app.state.owns_http:
        await app.state.http.aclose()


def create_app(settings: Optional[Settings] = None, http: Optional[httpx.AsyncClient] = None) -> FastAPI:
    settings = settings or get_settings()

    app = FastAPI(
        title=SERVICE_NAME,
        description="Amazon Sponsored Products analytics with AI suggestions",
        version="1.0.0",
        lifespan=lifespan,
    )
    _init_services(app, settings, http)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ── Register Routers (all require auth) ──────────────────────────
    _auth = [Depends(require_auth)]
    app.include_router(amazon.router, prefix="/api/amazon", tags=["Amazon Ads"], dependencies=_auth)
    app.include_router(feedback.router, prefix="/api/ai/feedback", tags=["AI Feedback"], dependencies=_auth)
    app.include_router(ai.router, prefix="/api/ai", tags=["AI Assistant"], dependencies=_auth)

    @app.get("/api/health")
    async def health_check(request: Request):
        state = request.app.state
        cache: CampaignCache = state.campaign_cache
        return {
            "status": "healthy",
            "service": SERVICE_NAME,
            "amazonAds": "configured" if state.settings.ads_configured else "not_configured",
            "aiConfigured": bool(state.settings.openai_api_key or state.settings.anthropic_api_key),
            "cache": {"state": cache.current_state(), "refreshing": cache.refreshing},
        }

    return app


app = create_app()
