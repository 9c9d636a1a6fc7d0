"""
Tests for the LLM oracle: provider key filtering and rate-limit rotation.
"""

from unittest.mock import AsyncMock, patch

import httpx
import openai
import pytest

from ppc_copilot.exceptions import ConfigurationError, OracleError, OracleRateLimitError
from ppc_copilot.services.ai_service import AIService, is_rate_limit_error

TWO_MODELS = ["openai:gpt-4o", "anthropic:claude-3-5-haiku-latest"]


def make_service(**kwargs) -> AIService:
    params = dict(model_priority=TWO_MODELS, openai_api_key="sk-test", anthropic_api_key="sk-ant-test")
    params.update(kwargs)
    return AIService(**params)


def rate_limited() -> Exception:
    return Exception("Error code: 429 - Too Many Requests")


def test_is_rate_limit_error():
    request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
    sdk_error = openai.RateLimitError("slow down", response=httpx.Response(429, request=request), body=None)
    assert is_rate_limit_error(sdk_error)
    assert is_rate_limit_error(Exception("too many requests"))
    assert not is_rate_limit_error(ValueError("context length exceeded"))


def test_requires_a_provider_key():
    with pytest.raises(ConfigurationError):
        AIService(model_priority=TWO_MODELS)


def test_unknown_provider_rejected():
    with pytest.raises(ConfigurationError):
        AIService(model_priority=["mistral:large"], openai_api_key="sk-test")


def test_models_without_key_are_skipped():
    service = make_service(anthropic_api_key=None)
    assert service.model_priority == ["openai:gpt-4o"]


@pytest.mark.anyio
async def test_generate_returns_first_success():
    service = make_service()
    with patch.object(service, "_completion", new_callable=AsyncMock, return_value='{"ok": true}') as completion:
        assert await service.generate("prompt", system="sys") == '{"ok": true}'
    completion.assert_awaited_once_with("openai:gpt-4o", "prompt", "sys")


@pytest.mark.anyio
async def test_rate_limit_rotates_then_gives_up():
    service = make_service()
    completion = AsyncMock(side_effect=[rate_limited(), rate_limited(), rate_limited()])

    with patch.object(service, "_completion", completion):
        with pytest.raises(OracleRateLimitError) as exc_info:
            await service.generate("prompt")

    assert completion.await_count == 2
    assert exc_info.value.models_tried == TWO_MODELS
    assert service.model_id == "anthropic:claude-3-5-haiku-latest"


@pytest.mark.anyio
async def test_rate_limit_recovers_on_fallback_and_stays_there():
    service = make_service()
    completion = AsyncMock(side_effect=[rate_limited(), "first", "second"])

    with patch.object(service, "_completion", completion):
        assert await service.generate("prompt") == "first"
        assert await service.generate("prompt") == "second"

    assert [c.args[0] for c in completion.await_args_list] == [
        "openai:gpt-4o",
        "anthropic:claude-3-5-haiku-latest",
        "anthropic:claude-3-5-haiku-latest",
    ]


@pytest.mark.anyio
async def test_attempt_budget_caps_rotation():
    service = make_service(
        model_priority=["openai:gpt-4o", "openai:gpt-4o-mini", "openai:gpt-4.1", "openai:gpt-4.1-mini"],
        max_attempts=3,
    )
    completion = AsyncMock(side_effect=[rate_limited() for _ in range(4)])

    with patch.object(service, "_completion", completion):
        with pytest.raises(OracleRateLimitError):
            await service.generate("prompt")
    assert completion.await_count == 3


@pytest.mark.anyio
async def test_other_errors_are_not_retried():
    service = make_service()
    completion = AsyncMock(side_effect=ValueError("bad request"))

    with patch.object(service, "_completion", completion):
        with pytest.raises(OracleError) as exc_info:
            await service.generate("prompt")

    assert not isinstance(exc_info.value, OracleRateLimitError)
    assert completion.await_count == 1
