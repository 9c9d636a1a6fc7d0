"""
Request-scoped accessors for the long-lived services built in main.create_app().
"""

from typing import Optional
from fastapi import Request
from ppc_copilot.ads_client import AmazonAdsClient
from ppc_copilot.config import Settings
from ppc_copilot.services.ai_service import create_ai_service
from ppc_copilot.services.campaign_cache import CampaignCache
from ppc_copilot.services.campaign_service import CampaignDataService
from ppc_copilot.services.feedback_service import FeedbackStore
from ppc_copilot.services.recommendation_service import RecommendationService


def get_app_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_ads_client(request: Request) -> AmazonAdsClient:
    return request.app.state.ads_client


def get_campaign_data(request: Request) -> CampaignDataService:
    return request.app.state.campaign_data


def get_campaign_cache(request: Request) -> CampaignCache:
    return request.app.state.campaign_cache


def get_feedback_store(request: Request) -> FeedbackStore:
    return request.app.state.feedback_store


def get_recommendation_service(request: Request) -> RecommendationService:
    """
    Build the recommendation service on first use so a missing LLM key only
    affects the AI endpoints. Raises ConfigurationError when no provider is usable.
    """
    state = request.app.state
    service: Optional[RecommendationService] = state.recommendations
    if service is None:
        settings: Settings = state.settings
        ai = create_ai_service(settings)
        service = RecommendationService(ai, state.feedback_store, settings.feedback_summary_window)
        state.recommendations = service
    return service
