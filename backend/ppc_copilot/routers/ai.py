"""
AI Router — campaign suggestions and timeline-aware insights.
Campaigns default to the cached dashboard data when the caller sends none.
"""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import Field
from ppc_copilot.dependencies import get_campaign_cache, get_recommendation_service
from ppc_copilot.exceptions import (
    ConfigurationError,
    OracleError,
    OracleParseError,
    OracleRateLimitError,
)
from ppc_copilot.mock_data import MOCK_CAMPAIGNS
from ppc_copilot.models import CamelModel, ChangeEvent, DateRange, DerivedCampaign
from ppc_copilot.services.campaign_cache import CampaignCache
from ppc_copilot.services.recommendation_service import RecommendationService
from ppc_copilot.utils import safe_error_detail

logger = logging.getLogger(__name__)

router = APIRouter()


# ── Request Models ────────────────────────────────────────────────────

class SuggestionsRequest(CamelModel):
    campaigns: Optional[list[DerivedCampaign]] = None
    change_events: list[ChangeEvent] = Field(default_factory=list)
    date_range: DateRange


class InsightsRequest(SuggestionsRequest):
    comparison_period: Optional[DateRange] = None


# ── Helpers ───────────────────────────────────────────────────────────

def _campaigns_for(body: SuggestionsRequest, cache: CampaignCache) -> list[DerivedCampaign]:
    if body.campaigns is not None:
        return body.campaigns
    entry = cache.entry
    if entry is not None:
        return list(entry.campaigns)
    return list(MOCK_CAMPAIGNS)


def _error(status_code: int, message: str, code: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"success": False, "error": message, "code": code})


def _oracle_error_response(exc: Exception) -> JSONResponse:
    if isinstance(exc, OracleRateLimitError):
        return _error(429, str(exc), "RATE_LIMIT")
    if isinstance(exc, OracleParseError):
        return _error(502, "The AI returned a response that could not be read. Please try again.", "PARSE_ERROR")
    if isinstance(exc, ConfigurationError):
        return _error(503, str(exc), "AI_NOT_CONFIGURED")
    return _error(500, safe_error_detail(exc, "AI request failed. Please try again later."), "AI_ERROR")


# ── Endpoints ─────────────────────────────────────────────────────────

@router.post("/campaign-suggestions")
async def campaign_suggestions(
    body: SuggestionsRequest,
    request: Request,
    cache: CampaignCache = Depends(get_campaign_cache),
):
    """Up to two actionable suggestions per campaign, keyed by campaign id."""
    campaigns = _campaigns_for(body, cache)
    try:
        service: RecommendationService = get_recommendation_service(request)
        suggestions = await service.generate_suggestions(campaigns, body.change_events, body.date_range)
    except Exception as e:
        logger.warning(f"AI suggestions failed: {e}", exc_info=not isinstance(e, (ConfigurationError, OracleError)))
        return _oracle_error_response(e)

    return {"success": True, "suggestions": suggestions}


@router.post("/insights")
async def insights(
    body: InsightsRequest,
    request: Request,
    cache: CampaignCache = Depends(get_campaign_cache),
):
    """Timeline-aware insights plus a portfolio summary."""
    campaigns = _campaigns_for(body, cache)
    try:
        service: RecommendationService = get_recommendation_service(request)
        result = await service.generate_insights(
            campaigns, body.change_events, body.date_range, body.comparison_period
        )
    except Exception as e:
        logger.warning(f"AI insights failed: {e}", exc_info=not isinstance(e, (ConfigurationError, OracleError)))
        return _oracle_error_response(e)

    return {"success": True, **result}
