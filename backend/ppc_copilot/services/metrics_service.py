"""
Metrics Service — derives comparable period-over-period campaign KPIs from
raw Sponsored Products report rows and maps SP v3 campaign listings onto
DerivedCampaign objects.

Everything here is pure: no I/O, no clock. Values are rounded to 2 dp at the
point of derivation so cached and transmitted figures are stable.
"""

from datetime import date, timedelta
from typing import Iterable, Optional, Tuple

from ppc_copilot.models import DerivedCampaign, KpiSet

# SP v3 listing → display values
STATUS_MAP = {"ENABLED": "Enabled", "PAUSED": "Paused"}

STRATEGY_MAP = {
    "LEGACY_FOR_SALES": "Fixed Bid",
    "MANUAL": "Fixed Bid",
    "AUTO_FOR_SALES": "Dynamic Bids - Down Only",
    "AUTO_FOR_SALES_UP_AND_DOWN": "Dynamic Bids - Up and Down",
    "RULE_BASED": "Dynamic Bids - Up and Down",
}

# KPI keys compared across periods
DELTA_KEYS = (
    "impressions", "clicks", "orders", "units", "sales", "spend",
    "cpc", "ctr", "acos", "roas", "conversion_rate",
)


# ── Date-range helpers ────────────────────────────────────────────────

def get_comparison_range_for_dates(start_date: date, end_date: date) -> Tuple[date, date]:
    """Return the previous period of the same duration, ending the day before start."""
    duration = (end_date - start_date).days + 1
    prev_end = start_date - timedelta(days=1)
    prev_start = prev_end - timedelta(days=duration - 1)
    return prev_start, prev_end


def date_key(date_from: Optional[str], date_to: Optional[str]) -> str:
    """Cache key for a date range. Missing bounds are kept as empty strings."""
    return f"{date_from or ''}|{date_to or ''}"


# ── KPI derivation ────────────────────────────────────────────────────

def _number(row: dict, key: str) -> float:
    value = row.get(key)
    return float(value) if value is not None else 0.0


def derive_kpis(row: Optional[dict]) -> KpiSet:
    """
    Turn one raw report row into a KpiSet.
    A missing row means zero activity for the period, so it yields all zeros.
    """
    if not row:
        return KpiSet()

    impressions = int(_number(row, "impressions"))
    clicks = int(_number(row, "clicks"))
    orders = int(_number(row, "purchases7d"))
    units = int(_number(row, "unitsSoldClicks7d"))
    sales = _number(row, "sales7d")
    spend = _number(row, "cost")

    cpc = spend / clicks if clicks > 0 else 0
    ctr = clicks / impressions * 100 if impressions > 0 else 0
    acos = spend / sales * 100 if sales > 0 else 0
    roas = sales / spend if spend > 0 else 0
    cvr = orders / clicks * 100 if clicks > 0 else 0

    return KpiSet(
        impressions=impressions,
        clicks=clicks,
        orders=orders,
        units=units,
        sales=round(sales, 2),
        spend=round(spend, 2),
        cpc=round(cpc, 2),
        ctr=round(ctr, 2),
        acos=round(acos, 2),
        roas=round(roas, 2),
        conversion_rate=round(cvr, 2),
    )


def map_campaign(
    raw: dict,
    current_row: Optional[dict] = None,
    previous_row: Optional[dict] = None,
) -> DerivedCampaign:
    """Map an SP v3 campaign listing plus its report rows to a DerivedCampaign."""
    budget = raw.get("budget") or {}
    dynamic_bidding = raw.get("dynamicBidding") or {}
    targeting = (raw.get("targetingType") or "").upper()

    return DerivedCampaign(
        id=str(raw.get("campaignId", "")),
        name=raw.get("name") or "",
        type="SP Auto" if targeting == "AUTO" else "SP Manual",
        status=STATUS_MAP.get((raw.get("state") or "").upper(), "Archived"),
        daily_budget=float(budget.get("budget") or 0),
        start_date=raw.get("startDate") or "",
        bidding_strategy=STRATEGY_MAP.get(dynamic_bidding.get("strategy") or "", "Fixed Bid"),
        current=derive_kpis(current_row),
        previous=derive_kpis(previous_row) if previous_row is not None else None,
    )


def index_rows(rows: Iterable[dict]) -> dict[str, dict]:
    """Index report rows by campaign ID (string, since the listing uses ints)."""
    return {str(r.get("campaignId")): r for r in rows if isinstance(r, dict) and r.get("campaignId") is not None}


def merge_campaigns(
    raw_campaigns: list[dict],
    current_rows: Iterable[dict] = (),
    previous_rows: Optional[Iterable[dict]] = None,
) -> list[DerivedCampaign]:
    """
    Join listings with current and previous report rows.
    previous_rows=None means the comparison report was unavailable, so every
    campaign gets previous=None. An empty list means the report ran and no
    campaign had prior activity rows.
    """
    current = index_rows(current_rows)
    previous = index_rows(previous_rows) if previous_rows is not None else {}
    campaigns = []
    for raw in raw_campaigns:
        cid = str(raw.get("campaignId", ""))
        campaigns.append(map_campaign(raw, current.get(cid), previous.get(cid)))
    return campaigns


# ── Period-over-period change ─────────────────────────────────────────

def pct_change(current: Optional[float], previous: Optional[float]) -> Optional[float]:
    """
    Percent change from previous to current, rounded to 1 dp.

    Returns None when there is nothing to compare against: previous is absent,
    or previous is zero while current is not (growth from zero is undefined).
    Zero to zero is a genuine 0% change.
    """
    if previous is None or current is None:
        return None
    if previous == 0:
        return 0.0 if current == 0 else None
    return round((current - previous) / abs(previous) * 100, 1)


def compute_deltas(current: KpiSet, previous: Optional[KpiSet]) -> dict[str, Optional[float]]:
    """Percent change per KPI. All None when the previous period has no data."""
    deltas = {}
    for key in DELTA_KEYS:
        prev = getattr(previous, key) if previous is not None else None
        deltas[key] = pct_change(getattr(current, key), prev)
    return deltas
