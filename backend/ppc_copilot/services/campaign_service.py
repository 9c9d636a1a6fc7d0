"""
Campaign Service — merges the SP campaign listing with current and
previous-period report metrics. Used by the campaign cache as its fetcher.
"""

import logging
from datetime import date
from typing import NamedTuple, Optional
import httpx
from ppc_copilot.ads_client import AmazonAdsClient
from ppc_copilot.exceptions import PPCCopilotError
from ppc_copilot.models import DerivedCampaign
from ppc_copilot.services.metrics_service import (
    get_comparison_range_for_dates,
    map_campaign,
    merge_campaigns,
)

logger = logging.getLogger(__name__)

# Report failures that degrade metrics instead of failing the fetch
REPORT_ERRORS = (PPCCopilotError, httpx.HTTPError)


class FetchResult(NamedTuple):
    campaigns: list[DerivedCampaign]
    metrics_available: bool


class CampaignDataService:
    """Builds DerivedCampaign lists from live Amazon Ads data."""

    def __init__(self, client: AmazonAdsClient):
        self.client = client

    async def fetch_listing(self, date_from: Optional[str], date_to: Optional[str]) -> FetchResult:
        """Fast path: listing only, no report wait. Metrics are all zero."""
        raw = await self.client.list_campaigns()
        logger.info(f"[Amazon] Fetched {len(raw)} campaigns (listing only)")
        return FetchResult([map_campaign(rc) for rc in raw], False)

    async def fetch_full(self, date_from: Optional[str], date_to: Optional[str]) -> FetchResult:
        """
        Listing plus current and previous-period reports.
        Listing failures propagate. A failed current report degrades to
        metrics_available=False; the comparison report is best-effort.
        """
        raw = await self.client.list_campaigns()

        report: list[dict] = []
        prev_report: Optional[list[dict]] = None
        metrics_available = False

        if date_from and date_to:
            try:
                report = await self.client.fetch_campaign_report(date_from, date_to)
                metrics_available = True
                logger.info(f"[Amazon] Report: {len(report)} rows")
            except REPORT_ERRORS as e:
                logger.warning(f"[Amazon] Report unavailable: {e}")

            if metrics_available:
                prev_from, prev_to = get_comparison_range_for_dates(
                    date.fromisoformat(date_from), date.fromisoformat(date_to)
                )
                try:
                    prev_report = await self.client.fetch_campaign_report(
                        prev_from.isoformat(), prev_to.isoformat()
                    )
                except REPORT_ERRORS as e:
                    logger.info(f"[Amazon] Comparison report unavailable: {e}")

        campaigns = merge_campaigns(raw, report, prev_report)
        return FetchResult(campaigns, metrics_available)

    async def fetch_products(self) -> tuple[list[dict], dict[str, list[str]]]:
        """
        Unique advertised ASINs plus a campaignId → [asin] map.
        The Ads API does not return product titles, so the name is the ASIN.
        """
        ads = await self.client.list_product_ads()
        products: dict[str, dict] = {}
        campaign_products: dict[str, list[str]] = {}

        for ad in ads:
            asin = ad.get("asin")
            if not asin:
                continue
            products.setdefault(asin, {"id": asin, "asin": asin, "name": asin})
            asins = campaign_products.setdefault(str(ad.get("campaignId")), [])
            if asin not in asins:
                asins.append(asin)

        logger.info(f"[Products] {len(products)} unique ASINs, {len(campaign_products)} campaigns mapped")
        return list(products.values()), campaign_products
