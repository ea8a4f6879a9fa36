"""Application configuration with validation."""
from typing import Optional, Literal
from functools import lru_cache
from pydantic import Field, field_validator, model_validator, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings read from the environment and .env."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "Curation Critique Service"
    APP_VERSION: str = "2.0.0"
    APP_ENV: Literal["development", "staging", "production"] = "development"
    DEBUG: bool = False
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    LOG_FORMAT: Literal["json", "console"] = "json"

    # API
    API_V1_PREFIX: str = "/api/v1"
    MAX_PAYLOAD_BYTES: int = Field(
        default=4_500_000,
        ge=1024,
        description="Upper bound for one base64 image payload (upstream API limit)",
    )

    # Vision evaluator
    EVALUATOR_MODE: Literal["auto", "anthropic", "synthetic"] = "auto"
    ANTHROPIC_API_KEY: Optional[SecretStr] = None
    ANTHROPIC_API_URL: str = "https://api.anthropic.com/v1/messages"
    ANTHROPIC_API_VERSION: str = "2023-06-01"
    VISION_MODEL: str = "claude-3-5-sonnet-20241022"
    LLM_MAX_TOKENS: int = Field(default=2000, ge=256, le=8192)
    LLM_TIMEOUT_SECONDS: float = Field(default=60.0, gt=0, le=300)
    SYNTHETIC_SEED: Optional[int] = None
    MAX_CONCURRENT_EVALUATIONS: int = Field(default=4, ge=1, le=32)

    # Scoring
    DEFAULT_CURATOR: str = "nina"
    INCLUDE_MIN_OVERRIDE: Optional[float] = Field(default=None, ge=0, le=100)
    MAYBE_MIN_OVERRIDE: Optional[float] = Field(default=None, ge=0, le=100)
    PLAYOFF_POOL_SIZE: int = Field(default=40, ge=1, le=500)
    PLAYOFF_TOP_N: int = Field(default=10, ge=0, le=500)
    PERCENTILE_OVERRIDE: bool = True
    INCLUDE_PERCENTILE: float = Field(default=0.20, ge=0, le=1)

    # Redis / history
    REDIS_URL: Optional[str] = None
    HISTORY_TTL_SECONDS: int = Field(default=7 * 86400, ge=60)
    EVALUATION_CACHE_SIZE: int = Field(default=256, ge=0, le=100_000)

    @field_validator("ANTHROPIC_API_KEY")
    @classmethod
    def validate_anthropic_key(cls, v: Optional[SecretStr]) -> Optional[SecretStr]:
        if v is None or not v.get_secret_value().strip():
            return None
        if not v.get_secret_value().startswith("sk-ant-"):
            raise ValueError("Invalid Anthropic API key format")
        return v

    @model_validator(mode="after")
    def validate_threshold_overrides(self):
        """Overridden band edges must stay ordered."""
        if self.INCLUDE_MIN_OVERRIDE is not None and self.MAYBE_MIN_OVERRIDE is not None:
            if self.MAYBE_MIN_OVERRIDE > self.INCLUDE_MIN_OVERRIDE:
                raise ValueError(
                    f"MAYBE_MIN_OVERRIDE ({self.MAYBE_MIN_OVERRIDE}) must be <= "
                    f"INCLUDE_MIN_OVERRIDE ({self.INCLUDE_MIN_OVERRIDE})"
                )
        return self

    @model_validator(mode="after")
    def validate_production_settings(self):
        """Ensure production does not run debug or silently on demo scores."""
        if self.APP_ENV == "production":
            if self.DEBUG:
                raise ValueError("DEBUG must be False in production")
            if self.EVALUATOR_MODE == "anthropic" and not self.ANTHROPIC_API_KEY:
                raise ValueError("ANTHROPIC_API_KEY required when EVALUATOR_MODE=anthropic")
        return self

    @property
    def use_anthropic(self) -> bool:
        """auto resolves to the real evaluator iff a key is configured."""
        if self.EVALUATOR_MODE == "anthropic":
            return True
        if self.EVALUATOR_MODE == "synthetic":
            return False
        return self.ANTHROPIC_API_KEY is not None


@lru_cache
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
