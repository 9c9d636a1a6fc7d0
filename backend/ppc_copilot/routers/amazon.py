"""
Amazon Router — campaign, product and profile data for the dashboard.
Unconfigured credentials or upstream failures fall back to demo data so the
UI always has something to render; the failure is reported in `error`.
"""

import logging
from typing import Optional
import httpx
from fastapi import APIRouter, Depends, HTTPException, Query
from ppc_copilot.ads_client import AmazonAdsClient
from ppc_copilot.dependencies import get_ads_client, get_campaign_cache, get_campaign_data
from ppc_copilot.exceptions import PPCCopilotError
from ppc_copilot.mock_data import MOCK_CAMPAIGN_PRODUCT_MAP, MOCK_CAMPAIGNS, MOCK_PRODUCTS
from ppc_copilot.models import Phase
from ppc_copilot.services.campaign_cache import CampaignCache
from ppc_copilot.services.campaign_service import CampaignDataService
from ppc_copilot.utils import parse_iso_date, safe_error_detail

logger = logging.getLogger(__name__)

router = APIRouter()

UPSTREAM_ERRORS = (PPCCopilotError, httpx.HTTPError)


def _mock_campaigns(phase: str, error: Optional[str] = None) -> dict:
    body = {
        "success": True,
        "source": "mock",
        "phase": phase,
        "cached": False,
        "metricsAvailable": True,
        "data": [c.to_json_dict() for c in MOCK_CAMPAIGNS],
    }
    if error:
        body["error"] = error
    return body


@router.get("/campaigns")
async def get_campaigns(
    date_from: Optional[str] = Query(None, alias="from"),
    date_to: Optional[str] = Query(None, alias="to"),
    phase: Phase = "all",
    client: AmazonAdsClient = Depends(get_ads_client),
    cache: CampaignCache = Depends(get_campaign_cache),
):
    """Campaigns with current and previous-period KPIs for the date range."""
    start = parse_iso_date(date_from, "from")
    end = parse_iso_date(date_to, "to")
    if start and end and start > end:
        raise HTTPException(status_code=400, detail="'from' must not be after 'to'")

    if not client.is_configured:
        logger.info("[Amazon] Credentials not configured — serving demo campaigns")
        return _mock_campaigns(phase)

    try:
        result = await cache.get(
            start.isoformat() if start else None,
            end.isoformat() if end else None,
            phase,
        )
    except UPSTREAM_ERRORS as e:
        logger.error(f"[Amazon] Campaign fetch failed, serving demo data: {e}", exc_info=True)
        return _mock_campaigns(phase, error=str(e))

    body = {k: v for k, v in result.to_json_dict().items() if v is not None}
    body["success"] = True
    return body


@router.get("/products")
async def get_products(
    client: AmazonAdsClient = Depends(get_ads_client),
    data: CampaignDataService = Depends(get_campaign_data),
):
    """Advertised ASINs and which campaigns advertise them."""
    if not client.is_configured:
        return {
            "success": True,
            "source": "mock",
            "products": MOCK_PRODUCTS,
            "campaignProducts": MOCK_CAMPAIGN_PRODUCT_MAP,
        }

    try:
        products, campaign_products = await data.fetch_products()
    except UPSTREAM_ERRORS as e:
        logger.error(f"[Products] Fetch failed, serving demo data: {e}", exc_info=True)
        return {
            "success": True,
            "source": "mock",
            "products": MOCK_PRODUCTS,
            "campaignProducts": MOCK_CAMPAIGN_PRODUCT_MAP,
            "error": str(e),
        }

    return {
        "success": True,
        "source": "live",
        "products": products,
        "campaignProducts": campaign_products,
    }


@router.get("/profiles")
async def get_profiles(client: AmazonAdsClient = Depends(get_ads_client)):
    """Advertising profiles visible to the configured refresh token."""
    if not client.is_configured:
        return {"success": True, "configured": False, "profiles": []}

    try:
        profiles = await client.list_profiles()
    except UPSTREAM_ERRORS as e:
        raise HTTPException(
            status_code=502,
            detail=safe_error_detail(e, "Failed to fetch Amazon Ads profiles."),
        )

    return {
        "success": True,
        "configured": True,
        "profileId": client.profile_id,
        "profiles": profiles,
    }
