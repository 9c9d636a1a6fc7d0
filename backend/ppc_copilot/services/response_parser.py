"""
Response Parser — turns raw LLM text into validated recommendation payloads.

Models are asked for bare JSON but sometimes wrap it in a markdown code fence.
Only the top-level shape is validated; individual suggestion/insight entries
stay loosely typed dicts for the caller to interpret.
"""

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, Literal, Optional, Union
from pydantic import ConfigDict, ValidationError, field_validator
from ppc_copilot.exceptions import OracleParseError
from ppc_copilot.models import CamelModel

logger = logging.getLogger(__name__)

ResponseKind = Literal["suggestions", "insights"]

_FENCE_RE = re.compile(r"```(?:json)?\n?([\s\S]*?)\n?```")


class SuggestionGroup(CamelModel):
    campaign_id: str
    suggestions: list[dict] = []

    @field_validator("campaign_id", mode="before")
    @classmethod
    def _stringify_id(cls, v: Any) -> Any:
        return str(v) if isinstance(v, int) else v


class CampaignSuggestionsResponse(CamelModel):
    campaign_suggestions: list[SuggestionGroup]


class InsightsResponse(CamelModel):
    model_config = ConfigDict(extra="allow")

    insights: list[dict]
    portfolio_summary: Optional[dict] = None


ParsedResponse = Union[CampaignSuggestionsResponse, InsightsResponse]


@dataclass(frozen=True)
class ParseResult:
    """Tagged result: exactly one of value / error is set."""

    value: Optional[ParsedResponse] = None
    error: Optional[OracleParseError] = None

    @property
    def ok(self) -> bool:
        return self.error is None


def extract_json(text: str) -> Any:
    """Parse text as JSON, falling back to the first fenced code block."""
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        pass

    match = _FENCE_RE.search(text or "")
    if match:
        try:
            return json.loads(match.group(1))
        except json.JSONDecodeError:
            pass

    logger.warning(f"Unparseable AI response: {(text or '')[:200]!r}")
    raise OracleParseError("Failed to parse AI response as JSON", raw=text or "", reason="unparseable")


def parse_oracle_response(text: str, kind: ResponseKind) -> ParsedResponse:
    data = extract_json(text)
    try:
        if kind == "suggestions":
            if isinstance(data, list):
                data = {"campaignSuggestions": data}
            return CampaignSuggestionsResponse.model_validate(data)
        return InsightsResponse.model_validate(data)
    except ValidationError as e:
        logger.warning(f"AI {kind} response has unexpected shape: {e.error_count()} error(s)")
        raise OracleParseError(
            f"AI response is not a valid {kind} payload", raw=text, reason="invalid_shape"
        ) from e


def try_parse(text: str, kind: ResponseKind) -> ParseResult:
    try:
        return ParseResult(value=parse_oracle_response(text, kind))
    except OracleParseError as e:
        return ParseResult(error=e)
