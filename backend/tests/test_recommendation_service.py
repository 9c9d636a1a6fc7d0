"""
Tests for building recommendation requests and hydrating LLM answers.
"""

import json

import pytest

from ppc_copilot.exceptions import OracleParseError
from ppc_copilot.models import ChangeEvent, DateRange
from ppc_copilot.services.feedback_service import FeedbackDigest
from ppc_copilot.services.metrics_service import map_campaign
from ppc_copilot.services.recommendation_service import (
    RecommendationService,
    build_insights_request,
    build_suggestions_request,
    hydrate_insights,
    hydrate_suggestions,
    render_prompt,
)
from ppc_copilot.services.response_parser import parse_oracle_response

DATE_RANGE = DateRange.model_validate({"from": "2024-03-08", "to": "2024-03-14"})

CAMPAIGN = map_campaign(
    {"campaignId": 111, "name": "Exact", "state": "ENABLED", "targetingType": "MANUAL", "budget": {"budget": 40}},
    {"impressions": 2000, "clicks": 100, "cost": 250, "purchases7d": 10, "sales7d": 500},
    {"impressions": 1800, "clicks": 80, "cost": 200, "purchases7d": 8, "sales7d": 500},
)
NEW_CAMPAIGN = map_campaign({"campaignId": 222, "name": "New", "state": "ENABLED"}, None, None)

EVENTS = [
    ChangeEvent(campaign_id="111", change_type="bid", field="Default bid", old_value=2.24, new_value=1.6,
                changed_at="2024-03-10T09:00:00.000Z"),
    ChangeEvent(campaign_id="999", change_type="budget", field="Daily budget", old_value=20, new_value=30,
                changed_at="2024-03-11T09:00:00.000Z"),
]


class FakeAI:
    def __init__(self, response: str):
        self.response = response
        self.prompts: list[str] = []

    async def generate(self, prompt, system=None):
        self.prompts.append(prompt)
        return self.response


class FakeFeedback:
    def __init__(self, digest=None, error=None):
        self.digest = digest or FeedbackDigest()
        self.error = error

    async def summarize(self, window_size=50):
        if self.error:
            raise self.error
        return self.digest


def test_suggestions_request_payload():
    digest = FeedbackDigest(denied=[{"suggestionType": "pause_campaign", "suggestionTitle": "Pause", "campaignName": "Exact"}])
    request = build_suggestions_request([CAMPAIGN, NEW_CAMPAIGN], EVENTS, DATE_RANGE, digest)

    payload = request.payload
    assert request.kind == "suggestions"
    assert payload["dateRange"] == {"from": "2024-03-08", "to": "2024-03-14"}
    # Change history is passed through unfiltered
    assert len(payload["changeEvents"]) == 2
    assert payload["changeEvents"][0]["campaignId"] == "111"
    assert payload["campaigns"][0]["current"]["acos"] == 50.0
    assert payload["campaigns"][0]["previous"]["acos"] == 40.0
    assert payload["campaigns"][0]["dailyBudget"] == 40.0
    assert payload["campaigns"][1]["previous"] is None
    assert "DENIED (1)" in payload["feedback"]


def test_suggestions_request_without_feedback():
    request = build_suggestions_request([CAMPAIGN], [], DATE_RANGE, FeedbackDigest())
    assert request.payload["feedback"] is None
    assert "Seller Feedback" not in render_prompt(request)


def test_insights_request_adds_timeline_context():
    request = build_insights_request([CAMPAIGN, NEW_CAMPAIGN], EVENTS, DATE_RANGE)
    payload = request.payload

    assert payload["comparisonPeriod"] == {"from": "2024-03-01", "to": "2024-03-07"}
    first, second = payload["campaigns"]
    assert first["changePct"]["acos"] == 25.0
    assert first["changePct"]["conversionRate"] == 0.0
    assert [e["field"] for e in first["relatedChanges"]] == ["Default bid"]
    assert all(v is None for v in second["changePct"].values())
    assert second["relatedChanges"] == []

    prompt = render_prompt(request)
    assert "Previous period: 2024-03-01 → 2024-03-07" in prompt
    assert "Default bid" in prompt


def test_insights_request_explicit_comparison_period():
    comparison = DateRange.model_validate({"from": "2024-02-08", "to": "2024-02-14"})
    request = build_insights_request([CAMPAIGN], [], DATE_RANGE, comparison_period=comparison)
    assert request.payload["comparisonPeriod"] == {"from": "2024-02-08", "to": "2024-02-14"}


def test_hydrate_suggestions():
    parsed = parse_oracle_response(json.dumps({"campaignSuggestions": [
        {"campaignId": "111", "suggestions": [
            {"type": "lower_bid", "title": "Lower bid", "confidence": "High", "currentValue": 2.24,
             "recommendedValue": 1.9, "unit": "$"},
            {"type": "increase_budget", "title": "More budget"},
        ]},
    ]}), "suggestions")

    result = hydrate_suggestions(parsed, created_at="2024-03-15T00:00:00.000Z")
    first, second = result["111"]
    assert first["id"] == "ai-111-0"
    assert second["id"] == "ai-111-1"
    assert first["status"] == "pending"
    assert first["recommendedValue"] == 1.9
    assert "unit" not in second
    assert second["confidence"] == "Low"
    assert first["createdAt"] == "2024-03-15T00:00:00.000Z"


def test_hydrate_insights():
    parsed = parse_oracle_response(json.dumps({
        "insights": [
            {"campaignId": "111", "title": "Lost Top of Search", "confidenceScore": 140,
             "structuredAction": {"type": "raise_bid", "title": "Raise bid"}},
            {"campaignId": "222", "title": "Scale", "confidenceScore": "n/a"},
        ],
        "portfolioSummary": {"overallHealth": "mixed"},
    }), "insights")

    result = hydrate_insights(parsed, EVENTS, detected_at="2024-03-15T00:00:00.000Z")
    first, second = result["insights"]
    assert first["id"] == "ai-insight-0"
    assert first["confidenceScore"] == 100
    assert first["structuredAction"]["id"] == "ai-action-0"
    assert first["structuredAction"]["status"] == "pending"
    assert first["relatedChangeEvent"]["field"] == "Default bid"
    assert second["confidenceScore"] == 0
    assert second["metrics"] == []
    assert "relatedChangeEvent" not in second
    assert result["portfolioSummary"] == {"overallHealth": "mixed"}


@pytest.mark.anyio
async def test_generate_suggestions_end_to_end():
    ai = FakeAI("```json\n" + json.dumps({"campaignSuggestions": [
        {"campaignId": 111, "suggestions": [{"type": "lower_bid", "title": "Lower bid"}]},
    ]}) + "\n```")
    digest = FeedbackDigest(approved=[{"suggestionType": "lower_bid", "suggestionTitle": "Trim bid", "campaignName": "Exact"}])
    service = RecommendationService(ai, FakeFeedback(digest))

    result = await service.generate_suggestions([CAMPAIGN], EVENTS, DATE_RANGE)

    assert list(result) == ["111"]
    assert result["111"][0]["id"] == "ai-111-0"
    assert "APPROVED (1)" in ai.prompts[0]


@pytest.mark.anyio
async def test_generate_insights_parse_error_propagates():
    service = RecommendationService(FakeAI("I could not analyse this."))
    with pytest.raises(OracleParseError):
        await service.generate_insights([CAMPAIGN], EVENTS, DATE_RANGE)


@pytest.mark.anyio
async def test_generate_suggestions_rejects_wrong_shape():
    service = RecommendationService(FakeAI(json.dumps({"insights": []})))
    with pytest.raises(OracleParseError) as exc_info:
        await service.generate_suggestions([CAMPAIGN], EVENTS, DATE_RANGE)
    assert exc_info.value.reason == "invalid_shape"


@pytest.mark.anyio
async def test_broken_feedback_log_does_not_block_suggestions():
    ai = FakeAI(json.dumps({"campaignSuggestions": []}))
    service = RecommendationService(ai, FakeFeedback(error=ValueError("corrupt json")))

    assert await service.generate_suggestions([CAMPAIGN], [], DATE_RANGE) == {}
    assert "Seller Feedback" not in ai.prompts[0]
