"""
Recommendation Service — builds the request sent to the LLM for campaign
suggestions and timeline-aware insights, then parses and hydrates the answer.

Requests carry the already-derived, rounded KPI snapshots (never raw report
rows), the full change history, and the seller feedback digest.
"""

import json
import logging
from dataclasses import dataclass, field
from datetime import date
from typing import Optional
from pydantic.alias_generators import to_camel
from ppc_copilot.models import ChangeEvent, DateRange, DerivedCampaign
from ppc_copilot.services.ai_service import AIService
from ppc_copilot.services.feedback_service import FeedbackDigest, FeedbackStore
from ppc_copilot.services.metrics_service import compute_deltas, get_comparison_range_for_dates
from ppc_copilot.services.response_parser import (
    CampaignSuggestionsResponse,
    InsightsResponse,
    ParsedResponse,
    ResponseKind,
    try_parse,
)
from ppc_copilot.utils import utc_isoformat

logger = logging.getLogger(__name__)

SUGGESTIONS_SYSTEM_PROMPT = """You are a senior Amazon PPC manager with 10+ years of experience optimizing
Sponsored Products campaigns.

You compare campaign performance across two periods, read the seller's change history,
and produce STRUCTURED, ACTIONABLE suggestions per campaign.

Rules:
1. Always explain WHY, citing the metrics you are reacting to.
2. Attribute every performance shift to either a SELLER ACTION (a specific bid/budget/status
   change) or the MARKET.
3. Warn about over-optimization: ACOS improved while orders/sales collapsed.
4. Warn about Top of Search loss: impressions dropped sharply after a bid decrease.
5. Scale winners: high ROAS on low spend means budget is underused.
6. Be conservative: prefer partial bid adjustments over extreme ones.
7. A campaign with "previous": null has no prior-period data. Do not invent a trend for it.
8. Respond with valid JSON only."""

INSIGHTS_SYSTEM_PROMPT = """You are a senior Amazon PPC analyst who reasons across TIME: what changed,
why it changed, and what to do next.

You are not a rules dashboard. Like a human PPC manager you:
- follow the timeline of bid/budget/status changes,
- separate drops caused by the seller's own actions from market movement,
- spot over-optimization (ACOS improved but volume collapsed),
- spot Top of Search loss (impressions fell sharply after bid cuts),
- call out wins and scale them,
- always explain your reasoning.

Respond with valid JSON only, no markdown."""

SUGGESTIONS_INSTRUCTIONS = """For EACH campaign, work out:
1. Current vs previous period metrics and their % changes
2. Whether a change event lines up with a performance shift
3. The likely cause (seller action vs market)
4. The best action, with specific numbers

Return a JSON object with exactly this structure:
{
  "campaignSuggestions": [
    {
      "campaignId": "string",
      "suggestions": [
        {
          "type": "raise_bid" | "lower_bid" | "increase_budget" | "decrease_budget" | "pause_campaign" | "enable_campaign" | "add_negative_keyword" | "adjust_placement",
          "title": "short title (max 10 words)",
          "description": "1-2 sentence description",
          "rationale": "data-driven explanation referencing specific metrics and change events",
          "impact": "estimated outcome (e.g. 'Est. ACOS improvement from 70% to 50-55%')",
          "confidence": "High" | "Medium" | "Low",
          "currentValue": number | null,
          "recommendedValue": number | null,
          "unit": "$" | "%" | null
        }
      ]
    }
  ]
}

Only include genuinely actionable suggestions. A campaign that needs no change gets an empty
suggestions array. At most 2 suggestions per campaign."""

INSIGHTS_INSTRUCTIONS = """Produce timeline-aware insights, one per significant finding. Focus on:
1. Top of Search loss — impressions fell sharply after a bid decrease
2. Over-optimization — ACOS improved while orders/sales collapsed
3. Declining campaigns — several metrics deteriorating, possibly after changes
4. Unprofitable campaigns — ACOS > 80%, ROAS < 1.2
5. Scaling opportunities — high ROAS + low spend + strong CVR

Each campaign carries "changePct" (percent change per KPI, null where there is no comparison)
and "relatedChanges" (its own change events).

Every insight needs a specific action with exact values
(e.g. "raise bid from $2.24 to $2.65", not "raise bids").

Return exactly this JSON structure:
{
  "insights": [
    {
      "campaignId": "string",
      "campaignName": "string",
      "category": "top_of_search_loss" | "over_optimized" | "declining" | "dying" | "improving" | "budget_limited",
      "severity": "critical" | "warning" | "opportunity" | "info",
      "title": "Concise title (max 12 words)",
      "whatChanged": "Which metrics changed and by how much",
      "likelyCause": "Seller action (cite the change event date and values) or market forces",
      "recommendedAction": "Step-by-step recommendation with specific values",
      "confidence": "High" | "Medium" | "Low",
      "confidenceScore": 0-100,
      "metrics": [
        {"label": "ACOS" | "ROAS" | "Impressions" | "Clicks" | "Orders" | "Sales" | "Spend" | "CPC" | "CVR",
         "current": number, "previous": number, "change": number, "unit": "$" | "%" | "x" | ""}
      ],
      "structuredAction": {
        "type": "raise_bid" | "lower_bid" | "increase_budget" | "decrease_budget" | "pause_campaign" | "enable_campaign" | "add_negative_keyword" | "adjust_placement",
        "title": "Action title",
        "description": "What exactly to do",
        "rationale": "Why, based on the data",
        "impact": "Expected outcome",
        "confidence": "High" | "Medium" | "Low",
        "currentValue": number | null,
        "recommendedValue": number | null,
        "unit": "$" | "%" | null
      }
    }
  ],
  "portfolioSummary": {
    "overallHealth": "good" | "declining" | "mixed" | "critical",
    "topOpportunity": "the single most impactful action for the whole portfolio",
    "biggestRisk": "the most urgent problem to fix"
  }
}

Only report campaigns with genuinely notable changes or opportunities. Sort by severity, critical first."""


@dataclass
class RecommendationRequest:
    kind: str
    system: str
    instructions: str
    payload: dict = field(default_factory=dict)


# ── Builders ──────────────────────────────────────────────────────────

def _date_range_dict(date_from: date, date_to: date) -> dict:
    return {"from": date_from.isoformat(), "to": date_to.isoformat()}


def campaign_snapshot(c: DerivedCampaign) -> dict:
    """Decision-relevant view of a campaign: identity, config, and both KPI sets."""
    return {
        "id": c.id,
        "name": c.name,
        "type": c.type,
        "status": c.status,
        "dailyBudget": c.daily_budget,
        "biddingStrategy": c.bidding_strategy,
        "current": c.current.to_json_dict(),
        "previous": c.previous.to_json_dict() if c.previous is not None else None,
    }


def _change_pct(c: DerivedCampaign) -> dict:
    return {to_camel(k): v for k, v in compute_deltas(c.current, c.previous).items()}


def build_suggestions_request(
    campaigns: list[DerivedCampaign],
    change_events: list[ChangeEvent],
    date_range: DateRange,
    digest: Optional[FeedbackDigest] = None,
) -> RecommendationRequest:
    feedback = digest.to_prompt() if digest is not None else ""
    payload = {
        "dateRange": _date_range_dict(date_range.from_, date_range.to),
        "changeEvents": [e.to_json_dict(exclude_none=True) for e in change_events],
        "campaigns": [campaign_snapshot(c) for c in campaigns],
        "feedback": feedback or None,
    }
    return RecommendationRequest("suggestions", SUGGESTIONS_SYSTEM_PROMPT, SUGGESTIONS_INSTRUCTIONS, payload)


def build_insights_request(
    campaigns: list[DerivedCampaign],
    change_events: list[ChangeEvent],
    date_range: DateRange,
    digest: Optional[FeedbackDigest] = None,
    comparison_period: Optional[DateRange] = None,
) -> RecommendationRequest:
    if comparison_period is not None:
        comp_from, comp_to = comparison_period.from_, comparison_period.to
    else:
        comp_from, comp_to = get_comparison_range_for_dates(date_range.from_, date_range.to)

    events = [e.to_json_dict(exclude_none=True) for e in change_events]
    snapshots = []
    for c in campaigns:
        snap = campaign_snapshot(c)
        snap["changePct"] = _change_pct(c)
        snap["relatedChanges"] = [ev for ev, e in zip(events, change_events) if e.campaign_id == c.id]
        snapshots.append(snap)

    feedback = digest.to_prompt() if digest is not None else ""
    payload = {
        "dateRange": _date_range_dict(date_range.from_, date_range.to),
        "comparisonPeriod": _date_range_dict(comp_from, comp_to),
        "changeEvents": events,
        "campaigns": snapshots,
        "feedback": feedback or None,
    }
    return RecommendationRequest("insights", INSIGHTS_SYSTEM_PROMPT, INSIGHTS_INSTRUCTIONS, payload)


def render_prompt(request: RecommendationRequest) -> str:
    """Lay the payload out as the user prompt text."""
    p = request.payload
    parts = ["## Analysis Context", f"Current period: {p['dateRange']['from']} → {p['dateRange']['to']}"]
    if p.get("comparisonPeriod"):
        parts.append(f"Previous period: {p['comparisonPeriod']['from']} → {p['comparisonPeriod']['to']}")

    if p.get("feedback"):
        parts.append("\n## Seller Feedback on Past Suggestions")
        parts.append(p["feedback"])

    parts.append("\n## Change History (bid/budget/status changes made by the seller)")
    parts.append(json.dumps(p["changeEvents"], indent=2))

    parts.append("\n## Campaign Performance Data")
    parts.append(json.dumps(p["campaigns"], indent=2))

    parts.append("\n## Instructions")
    parts.append(request.instructions)
    return "\n".join(parts)


# ── Hydration ─────────────────────────────────────────────────────────

def _hydrate_action(raw: dict, action_id: str, campaign_id: str, created_at: str) -> dict:
    action = {
        "id": action_id,
        "campaignId": campaign_id,
        "type": raw.get("type"),
        "title": raw.get("title", ""),
        "description": raw.get("description", ""),
        "rationale": raw.get("rationale", ""),
        "impact": raw.get("impact", ""),
        "confidence": raw.get("confidence", "Low"),
        "status": "pending",
        "createdAt": created_at,
    }
    for key in ("currentValue", "recommendedValue", "unit"):
        if raw.get(key) is not None:
            action[key] = raw[key]
    return action


def hydrate_suggestions(parsed: CampaignSuggestionsResponse, created_at: Optional[str] = None) -> dict[str, list[dict]]:
    """campaignId → pending suggestions with stable IDs."""
    created_at = created_at or utc_isoformat()
    by_campaign: dict[str, list[dict]] = {}
    for group in parsed.campaign_suggestions:
        by_campaign[group.campaign_id] = [
            _hydrate_action(s, f"ai-{group.campaign_id}-{idx}", group.campaign_id, created_at)
            for idx, s in enumerate(group.suggestions)
            if isinstance(s, dict)
        ]
    return by_campaign


def _clamp_score(value) -> int:
    try:
        return int(min(100, max(0, float(value))))
    except (TypeError, ValueError):
        return 0


def hydrate_insights(
    parsed: InsightsResponse,
    change_events: list[ChangeEvent],
    detected_at: Optional[str] = None,
) -> dict:
    detected_at = detected_at or utc_isoformat()
    insights = []
    for i, raw in enumerate(parsed.insights):
        if not isinstance(raw, dict):
            continue
        campaign_id = str(raw.get("campaignId", ""))
        insight = dict(raw)
        insight["id"] = f"ai-insight-{i}"
        insight["campaignId"] = campaign_id
        insight["confidenceScore"] = _clamp_score(raw.get("confidenceScore"))
        insight["metrics"] = raw.get("metrics") if isinstance(raw.get("metrics"), list) else []
        insight["structuredAction"] = _hydrate_action(
            raw.get("structuredAction") if isinstance(raw.get("structuredAction"), dict) else {},
            f"ai-action-{i}",
            campaign_id,
            detected_at,
        )
        related = next((e for e in change_events if e.campaign_id == campaign_id), None)
        if related is not None:
            insight["relatedChangeEvent"] = related.to_json_dict(exclude_none=True)
        insight["detectedAt"] = detected_at
        insights.append(insight)
    return {"insights": insights, "portfolioSummary": parsed.portfolio_summary}


# ── Service ───────────────────────────────────────────────────────────

class RecommendationService:
    """Feedback digest → request → LLM → parsed, hydrated recommendations."""

    def __init__(self, ai: AIService, feedback: Optional[FeedbackStore] = None, summary_window: int = 50):
        self.ai = ai
        self.feedback = feedback
        self.summary_window = summary_window

    async def _digest(self) -> Optional[FeedbackDigest]:
        if self.feedback is None:
            return None
        try:
            return await self.feedback.summarize(self.summary_window)
        except (OSError, ValueError) as e:
            # Calibration context is optional; a broken log must not block suggestions
            logger.warning(f"Feedback digest unavailable: {e}")
            return None

    @staticmethod
    def _parse(text: str, kind: ResponseKind) -> ParsedResponse:
        result = try_parse(text, kind)
        if not result.ok:
            logger.warning(f"AI {kind} rejected ({result.error.reason})")
            raise result.error
        return result.value

    async def generate_suggestions(
        self,
        campaigns: list[DerivedCampaign],
        change_events: list[ChangeEvent],
        date_range: DateRange,
    ) -> dict[str, list[dict]]:
        request = build_suggestions_request(campaigns, change_events, date_range, await self._digest())
        text = await self.ai.generate(render_prompt(request), system=request.system)
        parsed = self._parse(text, "suggestions")
        result = hydrate_suggestions(parsed)
        logger.info(f"AI suggestions: {sum(len(v) for v in result.values())} across {len(result)} campaigns")
        return result

    async def generate_insights(
        self,
        campaigns: list[DerivedCampaign],
        change_events: list[ChangeEvent],
        date_range: DateRange,
        comparison_period: Optional[DateRange] = None,
    ) -> dict:
        request = build_insights_request(
            campaigns, change_events, date_range, await self._digest(), comparison_period
        )
        text = await self.ai.generate(render_prompt(request), system=request.system)
        parsed = self._parse(text, "insights")
        result = hydrate_insights(parsed, change_events)
        logger.info(f"AI insights: {len(result['insights'])} generated")
        return result
