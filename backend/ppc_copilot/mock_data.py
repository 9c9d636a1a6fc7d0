"""
Demo data served when Amazon Ads credentials are missing or the live
data path fails.
"""

from ppc_copilot.models import ChangeEvent, DerivedCampaign
from ppc_copilot.services.metrics_service import map_campaign

_RAW_CAMPAIGNS = [
    {
        "campaignId": 100000001,
        "name": "Demo | Bamboo Cutting Board | Exact",
        "state": "ENABLED",
        "targetingType": "MANUAL",
        "budget": {"budget": 50.0, "budgetType": "DAILY"},
        "startDate": "2024-01-15",
        "dynamicBidding": {"strategy": "LEGACY_FOR_SALES"},
    },
    {
        "campaignId": 100000002,
        "name": "Demo | Bamboo Cutting Board | Auto",
        "state": "ENABLED",
        "targetingType": "AUTO",
        "budget": {"budget": 25.0, "budgetType": "DAILY"},
        "startDate": "2024-02-01",
        "dynamicBidding": {"strategy": "AUTO_FOR_SALES"},
    },
    {
        "campaignId": 100000003,
        "name": "Demo | Knife Set | Broad",
        "state": "PAUSED",
        "targetingType": "MANUAL",
        "budget": {"budget": 30.0, "budgetType": "DAILY"},
        "startDate": "2023-11-20",
        "dynamicBidding": {"strategy": "LEGACY_FOR_SALES"},
    },
]

_CURRENT_ROWS = {
    100000001: {"impressions": 18450, "clicks": 412, "cost": 523.24, "purchases7d": 31, "unitsSoldClicks7d": 34, "sales7d": 1084.69},
    100000002: {"impressions": 9210, "clicks": 133, "cost": 98.42, "purchases7d": 12, "unitsSoldClicks7d": 12, "sales7d": 419.88},
    100000003: {"impressions": 0, "clicks": 0, "cost": 0, "purchases7d": 0, "unitsSoldClicks7d": 0, "sales7d": 0},
}

_PREVIOUS_ROWS = {
    100000001: {"impressions": 31200, "clicks": 498, "cost": 612.54, "purchases7d": 44, "unitsSoldClicks7d": 47, "sales7d": 1539.56},
    100000002: {"impressions": 8840, "clicks": 121, "cost": 91.96, "purchases7d": 9, "unitsSoldClicks7d": 10, "sales7d": 314.91},
}

MOCK_CAMPAIGNS: list[DerivedCampaign] = [
    map_campaign(rc, _CURRENT_ROWS.get(rc["campaignId"]), _PREVIOUS_ROWS.get(rc["campaignId"]))
    for rc in _RAW_CAMPAIGNS
]

MOCK_CHANGE_EVENTS: list[ChangeEvent] = [
    ChangeEvent(
        id="demo-change-1",
        campaign_id="100000001",
        campaign_name="Demo | Bamboo Cutting Board | Exact",
        change_type="bid",
        field="Default bid",
        old_value=2.24,
        new_value=1.60,
        changed_at="2024-03-04T09:12:00.000Z",
        changed_by="user",
    ),
    ChangeEvent(
        id="demo-change-2",
        campaign_id="100000003",
        campaign_name="Demo | Knife Set | Broad",
        change_type="status",
        field="State",
        old_value="Enabled",
        new_value="Paused",
        changed_at="2024-03-06T17:40:00.000Z",
        changed_by="user",
    ),
]

MOCK_PRODUCTS: list[dict] = [
    {"id": "B0DEMO0001", "asin": "B0DEMO0001", "name": "Bamboo Cutting Board (demo)"},
    {"id": "B0DEMO0002", "asin": "B0DEMO0002", "name": "Chef Knife Set (demo)"},
]

MOCK_CAMPAIGN_PRODUCT_MAP: dict[str, list[str]] = {
    "100000001": ["B0DEMO0001"],
    "100000002": ["B0DEMO0001"],
    "100000003": ["B0DEMO0002"],
}
