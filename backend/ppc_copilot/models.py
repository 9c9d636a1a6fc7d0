"""
Domain models — campaigns with derived KPIs, change events, seller feedback.

All models serialise to camelCase JSON (the frontend contract) and accept
either camelCase or snake_case on input.
"""

import uuid
from datetime import date
from typing import Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json_dict(self, **kwargs) -> dict:
        return self.model_dump(by_alias=True, mode="json", **kwargs)


CampaignStatus = Literal["Enabled", "Paused", "Archived"]
CampaignType = Literal["SP Manual", "SP Auto", "SB", "SD"]
BiddingStrategy = Literal["Fixed Bid", "Dynamic Bids - Down Only", "Dynamic Bids - Up and Down"]
FeedbackAction = Literal["approve", "deny", "modify"]
DataSource = Literal["live", "mock"]
Phase = Literal["listing", "metrics", "all"]
Value = Union[float, str]


# ── Campaigns ─────────────────────────────────────────────────────────

class KpiSet(CamelModel):
    """Period-scoped campaign KPIs. Money and ratios are pre-rounded to 2 dp."""

    model_config = ConfigDict(frozen=True)

    impressions: int = 0
    clicks: int = 0
    orders: int = 0
    units: int = 0
    sales: float = 0.0
    spend: float = 0.0
    cpc: float = 0.0
    ctr: float = 0.0
    acos: float = 0.0
    roas: float = 0.0
    conversion_rate: float = 0.0


class DerivedCampaign(CamelModel):
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    type: CampaignType = "SP Manual"
    status: CampaignStatus = "Enabled"
    daily_budget: float = 0.0
    start_date: str = ""
    bidding_strategy: BiddingStrategy = "Fixed Bid"
    portfolio: str = ""
    product_ids: tuple[str, ...] = ()
    current: KpiSet = Field(default_factory=KpiSet)
    # None means "no previous-period data", not zero activity
    previous: Optional[KpiSet] = None


# ── Change history ────────────────────────────────────────────────────

class ChangeEvent(CamelModel):
    model_config = ConfigDict(frozen=True)

    id: Optional[str] = None
    campaign_id: str
    campaign_name: Optional[str] = None
    change_type: Literal["bid", "budget", "status", "keyword", "placement"]
    field: str
    old_value: Value
    new_value: Value
    changed_at: str
    changed_by: Literal["user", "automation"] = "user"


# ── Feedback ──────────────────────────────────────────────────────────

class FeedbackEntry(CamelModel):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    campaign_id: str
    campaign_name: str
    suggestion_type: str
    suggestion_title: str
    action: FeedbackAction
    user_note: Optional[str] = None
    current_value: Optional[Value] = None
    recommended_value: Optional[Value] = None
    unit: Optional[str] = None
    timestamp: Optional[str] = None


# ── Request / response payloads ──────────────────────────────────────

class DateRange(CamelModel):
    from_: date = Field(alias="from")
    to: date


class CacheRead(CamelModel):
    """What the campaigns endpoint returns for a cache-backed read."""

    source: DataSource
    phase: str
    cached: bool = False
    cache_age: Optional[int] = None
    metrics_available: bool = False
    refreshing: Optional[bool] = None
    data: list[DerivedCampaign] = Field(default_factory=list)
