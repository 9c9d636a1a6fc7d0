"""
Tests for merging listings with current and comparison report metrics.
"""

import httpx
import pytest

from ppc_copilot.exceptions import ReportTimeoutError, UpstreamRequestError
from ppc_copilot.services.campaign_service import CampaignDataService

LISTING = [
    {"campaignId": 111, "name": "Exact", "state": "ENABLED", "targetingType": "MANUAL"},
    {"campaignId": 222, "name": "Auto", "state": "PAUSED", "targetingType": "AUTO"},
]


class FakeAdsClient:
    def __init__(self, reports=None, listing_error=None):
        # (start, end) → rows, or an exception to raise
        self.reports = reports or {}
        self.listing_error = listing_error
        self.report_calls: list[tuple[str, str]] = []

    async def list_campaigns(self):
        if self.listing_error:
            raise self.listing_error
        return LISTING

    async def fetch_campaign_report(self, start, end):
        self.report_calls.append((start, end))
        result = self.reports.get((start, end), [])
        if isinstance(result, Exception):
            raise result
        return result

    async def list_product_ads(self):
        return [
            {"campaignId": 111, "asin": "B001"},
            {"campaignId": 111, "asin": "B001"},
            {"campaignId": 222, "asin": "B002"},
            {"campaignId": 222, "asin": "B001"},
            {"campaignId": 333},
        ]


CURRENT = ("2024-03-08", "2024-03-14")
PREVIOUS = ("2024-03-01", "2024-03-07")


@pytest.mark.anyio
async def test_fetch_listing_has_zero_metrics():
    service = CampaignDataService(FakeAdsClient())
    result = await service.fetch_listing(*CURRENT)

    assert result.metrics_available is False
    assert [c.id for c in result.campaigns] == ["111", "222"]
    assert all(c.current.clicks == 0 and c.previous is None for c in result.campaigns)


@pytest.mark.anyio
async def test_fetch_full_merges_both_periods():
    client = FakeAdsClient(reports={
        CURRENT: [{"campaignId": 111, "clicks": 100, "cost": 250, "sales7d": 500, "impressions": 2000}],
        PREVIOUS: [{"campaignId": 111, "clicks": 80, "cost": 200, "sales7d": 500, "impressions": 1800}],
    })
    result = await CampaignDataService(client).fetch_full(*CURRENT)

    assert result.metrics_available is True
    assert client.report_calls == [CURRENT, PREVIOUS]
    exact, auto = result.campaigns
    assert exact.current.acos == 50.0
    assert exact.previous.acos == 40.0
    # Comparison report ran but had no row for this campaign
    assert auto.previous is None


@pytest.mark.anyio
async def test_current_report_failure_degrades_metrics():
    client = FakeAdsClient(reports={CURRENT: ReportTimeoutError("r-1", 60, 120)})
    result = await CampaignDataService(client).fetch_full(*CURRENT)

    assert result.metrics_available is False
    assert client.report_calls == [CURRENT]
    assert len(result.campaigns) == 2


@pytest.mark.anyio
async def test_previous_report_failure_is_best_effort():
    client = FakeAdsClient(reports={
        CURRENT: [{"campaignId": 111, "clicks": 5}],
        PREVIOUS: UpstreamRequestError("Report create error", 500),
    })
    result = await CampaignDataService(client).fetch_full(*CURRENT)

    assert result.metrics_available is True
    assert result.campaigns[0].current.clicks == 5
    assert result.campaigns[0].previous is None


@pytest.mark.anyio
async def test_report_transport_errors_degrade_metrics():
    client = FakeAdsClient(reports={CURRENT: httpx.ReadTimeout("timed out")})
    result = await CampaignDataService(client).fetch_full(*CURRENT)

    assert result.metrics_available is False
    assert len(result.campaigns) == 2

    client = FakeAdsClient(reports={
        CURRENT: [{"campaignId": 111, "clicks": 5}],
        PREVIOUS: httpx.ConnectError("connection refused"),
    })
    result = await CampaignDataService(client).fetch_full(*CURRENT)

    assert result.metrics_available is True
    assert all(c.previous is None for c in result.campaigns)


@pytest.mark.anyio
async def test_listing_failure_propagates():
    client = FakeAdsClient(listing_error=UpstreamRequestError("Listing failed", 401))
    with pytest.raises(UpstreamRequestError):
        await CampaignDataService(client).fetch_full(*CURRENT)


@pytest.mark.anyio
async def test_no_reports_without_dates():
    client = FakeAdsClient()
    result = await CampaignDataService(client).fetch_full(None, None)
    assert result.metrics_available is False
    assert client.report_calls == []


@pytest.mark.anyio
async def test_fetch_products_dedupes_asins():
    products, campaign_products = await CampaignDataService(FakeAdsClient()).fetch_products()

    assert [p["asin"] for p in products] == ["B001", "B002"]
    assert campaign_products == {"111": ["B001"], "222": ["B002", "B001"]}
