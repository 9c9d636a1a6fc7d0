import logging
from pydantic_settings import BaseSettings
from pydantic import model_validator, ConfigDict
from functools import lru_cache

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = ConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Environment: "development" or "production"
    environment: str = "development"

    api_key: str = ""  # Required in production; in dev, empty = auth disabled
    cors_origins: str = "http://localhost:5173,http://localhost:3000"

    # Amazon Ads (Login with Amazon refresh-token credentials, single profile)
    amazon_ads_client_id: str = ""
    amazon_ads_client_secret: str = ""
    amazon_ads_refresh_token: str = ""
    amazon_ads_profile_id: str = ""
    amazon_ads_api_base: str = "https://advertising-api.amazon.com"  # NA region
    lwa_token_url: str = "https://api.amazon.com/auth/o2/token"

    # Async report polling: 60 polls × 2s = 120s ceiling
    report_poll_interval: float = 2.0
    report_max_polls: int = 60

    # Campaign cache
    campaign_cache_ttl_seconds: int = 300

    # LLM providers. Models are tried in priority order on rate limits.
    openai_api_key: str = ""
    anthropic_api_key: str = ""
    ai_model_priority: str = "openai:gpt-4o,openai:gpt-4o-mini,anthropic:claude-3-5-haiku-latest"
    ai_max_attempts: int = 3

    # Seller feedback on AI suggestions
    feedback_file: str = "data/ai-feedback.json"
    feedback_max_entries: int = 200
    feedback_summary_window: int = 50

    @model_validator(mode="before")
    @classmethod
    def _strip_profile_id(cls, values: dict) -> dict:
        """Profile IDs are often pasted with whitespace from the console."""
        if not isinstance(values, dict):
            return values
        profile_id = values.get("amazon_ads_profile_id")
        if isinstance(profile_id, str):
            values["amazon_ads_profile_id"] = profile_id.strip()
        return values

    @model_validator(mode="after")
    def _validate_production_settings(self) -> "Settings":
        """Enforce that critical secrets are set when running in production."""
        if self.is_production:
            if not self.api_key:
                raise ValueError(
                    "API_KEY must be set in production. "
                    "Generate one with: python -c \"import secrets; print(secrets.token_hex(32))\""
                )
            if not self.ads_configured:
                logger.warning("Amazon Ads credentials are not set in production — campaigns will use demo data.")
        return self

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def ads_configured(self) -> bool:
        return all((
            self.amazon_ads_client_id,
            self.amazon_ads_client_secret,
            self.amazon_ads_refresh_token,
            self.amazon_ads_profile_id,
        ))

    @property
    def model_priority_list(self) -> list[str]:
        return [m.strip() for m in self.ai_model_priority.split(",") if m.strip()]

    @property
    def cors_origin_list(self) -> list[str]:
        origins = [o.strip() for o in self.cors_origins.split(",") if o.strip()]
        return origins or ["http://localhost:5173", "http://localhost:3000"]


@lru_cache
def get_settings() -> Settings:
    return Settings()
