"""Configuration settings for Polya Tutor."""

from typing import List, Tuple

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    APP_NAME: str = "polya_tutor"
    APP_ENV: str = "development"
    DEBUG: bool = True

    # API
    API_V1_PREFIX: str = "/api/v1"

    # Gemini through its OpenAI-compatible endpoint
    LLM_BASE_URL: str = "https://generativelanguage.googleapis.com/v1beta/openai/"
    LLM_TEMPERATURE: float = 0.7
    LLM_MAX_TOKENS: int = 2048
    LLM_TIMEOUT_SECONDS: float = 60.0

    # Credentials - comma-separated, tried in order
    GEMINI_API_KEYS: str = Field(default="", description="Comma-separated Gemini API keys")

    # Models - comma-separated "name:daily_budget", highest priority first
    GEMINI_MODELS: str = "gemini-2.5-flash-lite:20,gemini-2.5-flash:20,gemini-3-flash:20"

    # Dispatch pacing
    DISPATCH_DELAY_SECONDS: float = 2.0
    RATE_LIMIT_COOLDOWN_SECONDS: float = 10.0
    RATE_LIMIT_RETRIES: int = 1
    ROTATION_LOG_CAPACITY: int = 20

    # Sessions - oldest in-memory sessions are dropped beyond this many
    MAX_TUTOR_SESSIONS: int = 500

    # LangSmith tracing
    LANGSMITH_TRACING: bool = False
    LANGSMITH_API_KEY: str = Field(default="", description="LangSmith API key")
    LANGSMITH_ENDPOINT: str = "https://api.smith.langchain.com"
    LANGSMITH_PROJECT: str = "polya-tutor"

    # CORS - Accept comma-separated string from .env
    CORS_ORIGINS: str = "http://localhost:3000"
    CORS_ALLOW_CREDENTIALS: bool = True

    # Logging
    LOG_LEVEL: str = "INFO"

    @field_validator("RATE_LIMIT_RETRIES", "ROTATION_LOG_CAPACITY")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must be >= 0")
        return value

    @field_validator("MAX_TUTOR_SESSIONS")
    @classmethod
    def _positive(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be >= 1")
        return value

    @property
    def cors_origins_list(self) -> List[str]:
        """Convert CORS_ORIGINS string to a list."""
        return [origin.strip() for origin in self.CORS_ORIGINS.split(",") if origin.strip()]

    @property
    def api_keys_list(self) -> List[str]:
        """Convert GEMINI_API_KEYS string to an ordered list of secrets."""
        return [key.strip() for key in self.GEMINI_API_KEYS.split(",") if key.strip()]

    @property
    def model_budgets_list(self) -> List[Tuple[str, int]]:
        """
        Convert GEMINI_MODELS to (name, daily_budget) pairs in priority order.

        Entries without an explicit budget get a budget of 20 calls per day.
        """
        result = []
        for entry in self.GEMINI_MODELS.split(","):
            entry = entry.strip()
            if not entry:
                continue
            name, _, budget = entry.partition(":")
            result.append((name.strip(), int(budget) if budget.strip() else 20))
        return result


def get_settings() -> Settings:
    """Get settings instance."""
    return Settings()


settings = get_settings()
