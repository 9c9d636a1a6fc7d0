"""
AI Service — Multi-provider LLM access (OpenAI GPT, Anthropic Claude) with a
fixed model priority list. A rate-limited call rotates to the next model and
retries; running out of attempts or models raises OracleRateLimitError.
"""

import logging
from typing import Optional
import anthropic
import openai
from openai import AsyncOpenAI
from anthropic import AsyncAnthropic
from ppc_copilot.config import Settings, get_settings
from ppc_copilot.exceptions import ConfigurationError, OracleError, OracleRateLimitError

logger = logging.getLogger(__name__)

DEFAULT_MODEL_PRIORITY = [
    "openai:gpt-4o",
    "openai:gpt-4o-mini",
    "anthropic:claude-3-5-haiku-latest",
]

MAX_ATTEMPTS = 3


def _parse_model_id(model_id: str) -> tuple[str, str]:
    """Parse 'provider:model' into (provider, model). Bare names are OpenAI models."""
    if ":" in model_id:
        p, m = model_id.split(":", 1)
        return (p.strip().lower(), m.strip())
    return ("openai", model_id.strip())


def is_rate_limit_error(exc: Exception) -> bool:
    """Recognise a rate-limit signal from either SDK or from a raw error message."""
    if isinstance(exc, (openai.RateLimitError, anthropic.RateLimitError)):
        return True
    if getattr(exc, "status_code", None) == 429:
        return True
    msg = str(exc).lower()
    return "429" in msg or "too many requests" in msg


class AIService:
    """
    Text-in, text-out LLM oracle. Rotation is sticky: once a model is rate
    limited, later calls on this instance start from the fallback model.
    """

    def __init__(
        self,
        model_priority: Optional[list[str]] = None,
        openai_api_key: Optional[str] = None,
        anthropic_api_key: Optional[str] = None,
        max_attempts: int = MAX_ATTEMPTS,
        temperature: float = 0.3,
        max_tokens: int = 8000,
    ):
        self.model_priority = list(model_priority or DEFAULT_MODEL_PRIORITY)
        if not self.model_priority:
            raise ConfigurationError("No AI models configured.")
        self.max_attempts = max_attempts
        self.temperature = temperature
        self.max_tokens = max_tokens
        self._model_index = 0
        self._openai_key = openai_api_key
        self._anthropic_key = anthropic_api_key
        self._openai_client: Optional[AsyncOpenAI] = None
        self._anthropic_client: Optional[AsyncAnthropic] = None

        keys = {"openai": openai_api_key, "anthropic": anthropic_api_key}
        for model_id in self.model_priority:
            provider, _ = _parse_model_id(model_id)
            if provider not in keys:
                raise ConfigurationError(f"Unknown AI provider: {provider}")

        # Models whose provider has no key can never be called
        usable = [m for m in self.model_priority if keys[_parse_model_id(m)[0]]]
        if not usable:
            raise ConfigurationError(
                "No AI provider key configured. Set OPENAI_API_KEY or ANTHROPIC_API_KEY env."
            )
        if len(usable) < len(self.model_priority):
            skipped = [m for m in self.model_priority if m not in usable]
            logger.info(f"Skipping AI models without a provider key: {skipped}")
        self.model_priority = usable

    @property
    def model_id(self) -> str:
        return self.model_priority[self._model_index]

    def rotate_fallback_model(self) -> bool:
        """Move to the next model in the priority list. False when none is left."""
        if self._model_index >= len(self.model_priority) - 1:
            return False
        self._model_index += 1
        logger.warning(f"Rotating AI model to fallback {self.model_id}")
        return True

    def _client_for(self, provider: str):
        if provider == "openai":
            if self._openai_client is None:
                if not self._openai_key:
                    raise ConfigurationError("OPENAI_API_KEY not configured. Set OPENAI_API_KEY env.")
                self._openai_client = AsyncOpenAI(api_key=self._openai_key)
            return self._openai_client
        if self._anthropic_client is None:
            if not self._anthropic_key:
                raise ConfigurationError("ANTHROPIC_API_KEY not configured. Set ANTHROPIC_API_KEY env.")
            self._anthropic_client = AsyncAnthropic(api_key=self._anthropic_key)
        return self._anthropic_client

    async def _completion(self, model_id: str, prompt: str, system: Optional[str] = None) -> str:
        """Call the appropriate provider's completion API."""
        provider, model = _parse_model_id(model_id)
        client = self._client_for(provider)

        if provider == "openai":
            messages = []
            if system:
                messages.append({"role": "system", "content": system})
            messages.append({"role": "user", "content": prompt})
            response = await client.chat.completions.create(
                model=model,
                messages=messages,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                response_format={"type": "json_object"},
            )
            return response.choices[0].message.content or ""

        kwargs = dict(
            model=model,
            max_tokens=self.max_tokens,
            temperature=self.temperature,
            messages=[{"role": "user", "content": prompt}],
        )
        if system:
            kwargs["system"] = system
        response = await client.messages.create(**kwargs)
        if response.content and response.content[0].type == "text":
            return response.content[0].text
        return ""

    async def generate(self, prompt: str, system: Optional[str] = None) -> str:
        """
        Run the prompt against the current model, rotating through the
        fallback list on rate limits. Non rate-limit errors are not retried.
        """
        tried: list[str] = []
        for attempt in range(self.max_attempts):
            model_id = self.model_id
            tried.append(model_id)
            try:
                text = await self._completion(model_id, prompt, system)
                logger.info(f"AI response from {model_id}: {len(text)} chars")
                return text
            except ConfigurationError:
                raise
            except Exception as e:
                if not is_rate_limit_error(e):
                    logger.error(f"AI call failed on {model_id}: {e}")
                    raise OracleError(f"AI call failed: {e}") from e
                logger.warning(f"AI rate limited on {model_id} (attempt {attempt + 1}/{self.max_attempts})")
                if not self.rotate_fallback_model() or attempt == self.max_attempts - 1:
                    raise OracleRateLimitError(tried) from e

        raise OracleRateLimitError(tried)


def create_ai_service(settings: Optional[Settings] = None) -> AIService:
    """Factory function to create an AI service instance from application settings."""
    settings = settings or get_settings()
    return AIService(
        model_priority=settings.model_priority_list,
        openai_api_key=settings.openai_api_key,
        anthropic_api_key=settings.anthropic_api_key,
        max_attempts=settings.ai_max_attempts,
    )
