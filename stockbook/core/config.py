import json
from typing import List, Union

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

WEAK_SECRET_KEYS = {
    "",
    "change_me",
    "secret",
    "stockbook-dev-secret",
}


def _split_list_setting(value: Union[str, List[str], None], setting_name: str) -> List[str]:
    """Accepts a JSON list or a comma separated string from the environment."""
    if value is None:
        return []
    if isinstance(value, list):
        return [str(item).strip() for item in value if str(item).strip()]
    raw = str(value).strip()
    if not raw:
        return []
    if raw.startswith("["):
        parsed = json.loads(raw)
        if not isinstance(parsed, list):
            raise ValueError(f"{setting_name} JSON value must be a list")
        return [str(item).strip() for item in parsed if str(item).strip()]
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings(BaseSettings):
    app_name: str = "Stockbook API"
    env: str = "dev"
    log_level: str = "INFO"

    # TOKENS
    secret_key: str
    access_token_expire_minutes: int = Field(default=60, ge=1)
    refresh_token_expire_days: int = Field(default=14, ge=1)

    # DATABASE
    database_url: str
    db_pool_size: int = Field(default=10, ge=1, le=100)
    db_max_overflow: int = Field(default=20, ge=0, le=200)
    db_pool_timeout_seconds: int = Field(default=30, ge=1, le=300)
    db_pool_recycle_seconds: int = Field(default=1800, ge=30, le=86_400)

    # BOOKKEEPING
    default_currency: str = "USD"
    low_stock_default_threshold: int = Field(default=5, ge=0)
    dashboard_recent_sales_limit: int = Field(default=5, ge=1, le=50)
    dashboard_daily_series_days: int = Field(default=7, ge=1, le=90)

    # SMART BUY
    ai_provider: str = "stub"
    ai_model: str = "stockbook-smart-buy-v1"
    ai_vendor: str = "local"
    ai_temperature: float = Field(default=0.2, ge=0, le=2)
    ai_timeout_seconds: float = Field(default=30.0, gt=0, le=600)
    ai_cost_per_1k_tokens_usd: float = Field(default=0.0, ge=0)
    openai_api_key: str | None = None
    openai_base_url: str | None = None
    smart_buy_fallback_message: str = (
        "Sorry, I couldn't generate a suggestion at this time. "
        "Please check your input data or try again later."
    )

    # GOOGLE SIGN-IN
    google_client_id: str | None = None
    google_hosted_domain: str | None = None

    # LOGIN THROTTLING
    auth_rate_limit_max_attempts: int = Field(default=5, ge=1)
    auth_rate_limit_window_seconds: int = Field(default=300, ge=1)
    auth_rate_limit_lock_seconds: int = Field(default=900, ge=1)
    api_timeout_hint_ms: int = Field(default=300000, ge=1000, le=1_800_000)

    # CORS
    cors_origins: List[str] = Field(default_factory=lambda: ["http://localhost:3000"])
    cors_origin_regex: str | None = None

    @field_validator("cors_origins", mode="before")
    @classmethod
    def assemble_cors_origins(cls, value: Union[str, List[str], None]) -> List[str]:
        return _split_list_setting(value, "CORS_ORIGINS")

    @field_validator(
        "openai_api_key",
        "openai_base_url",
        "google_client_id",
        "google_hosted_domain",
        "cors_origin_regex",
        mode="before",
    )
    @classmethod
    def normalize_optional_strings(cls, value: str | None) -> str | None:
        if value is None:
            return None
        cleaned = str(value).strip()
        return cleaned or None

    @field_validator("default_currency")
    @classmethod
    def validate_default_currency(cls, value: str) -> str:
        cleaned = value.strip().upper()
        if len(cleaned) != 3 or not cleaned.isalpha():
            raise ValueError("DEFAULT_CURRENCY must be a 3-letter ISO code")
        return cleaned

    @field_validator("ai_provider")
    @classmethod
    def normalize_ai_provider(cls, value: str) -> str:
        return value.strip().lower()

    @model_validator(mode="after")
    def validate_production_safety(self) -> "Settings":
        if self.env.lower().strip() not in {"prod", "production"}:
            return self

        problems = []
        secret = self.secret_key.strip()
        if secret in WEAK_SECRET_KEYS or len(secret) < 32:
            problems.append("SECRET_KEY must be a random value of at least 32 characters")
        if "*" in self.cors_origins:
            problems.append("CORS_ORIGINS cannot contain '*'")
        if self.cors_origin_regex:
            problems.append("CORS_ORIGIN_REGEX cannot be set")
        if self.ai_provider == "openai" and not self.openai_api_key:
            problems.append("OPENAI_API_KEY is required when AI_PROVIDER=openai")
        if problems:
            raise ValueError("Unsafe production settings: " + "; ".join(problems))
        return self

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
        enable_decoding=False,
    )


settings = Settings()
