"""
Application configuration with environment-based settings.
All configuration is explicit, validated, and logged at startup.
"""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import AliasChoices, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_SEED_PATH = Path(__file__).resolve().parent.parent / "data" / "medical_conditions.json"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    All settings have sensible defaults for development but require
    explicit configuration in production environments.
    """

    model_config = SettingsConfigDict(
        env_file="../.env",  # Load from project root (relative to backend/)
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        env_ignore_empty=True,
    )

    # Application
    app_name: str = Field(default="Symptom Checker", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    environment: Literal["development", "staging", "production"] = Field(
        default="development",
        description="Deployment environment"
    )
    debug: bool = Field(default=False, description="Enable debug mode")

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=3001, description="Server port")

    # CORS
    cors_origins: list[str] = Field(
        default=["http://localhost:5173"],
        description="Allowed CORS origins"
    )
    cors_origin_regex: str | None = Field(
        default=r"https://.*\.vercel\.app",
        description="Additional allowed origins as a regex"
    )

    # LLM Provider (any OpenAI-compatible endpoint, Groq by default)
    llm_api_key: str = Field(
        default="",
        validation_alias=AliasChoices("llm_api_key", "groq_api_key"),
        description="Completion service API key (LLM_API_KEY or GROQ_API_KEY)",
    )
    llm_base_url: str = Field(
        default="https://api.groq.com/openai/v1",
        description="Completion service base URL"
    )
    llm_model: str = Field(default="llama-3.3-70b-versatile", description="LLM model to use")
    llm_temperature: float = Field(default=0.7, ge=0.0, le=2.0, description="Model temperature")
    llm_max_tokens_questions: int = Field(default=512, gt=0, description="Token budget for clarification questions")
    llm_max_tokens_analysis: int = Field(default=2048, gt=0, description="Token budget for symptom analysis")
    llm_retry_attempts: int = Field(default=2, ge=1, description="Total attempts per completion call")
    llm_retry_base_delay_seconds: float = Field(
        default=1.0,
        ge=0.0,
        description="First backoff delay; doubles after each failed attempt"
    )
    llm_timeout_seconds: float = Field(default=30.0, gt=0, description="Per-attempt request timeout")
    restrict_to_matched_conditions: bool = Field(
        default=True,
        description="Drop analysed conditions that were not among the matched catalog entries"
    )

    # Storage
    storage_backend: Literal["memory", "arango"] = Field(
        default="memory",
        description="Where the condition catalog and query history live"
    )
    arango_host: str = Field(default="http://localhost:8529", description="ArangoDB host URL")
    arango_username: str = Field(
        default="root",
        validation_alias=AliasChoices("arango_username", "arangodb_username"),
        description="ArangoDB username",
    )
    arango_password: str = Field(
        default="",
        validation_alias=AliasChoices("arango_password", "arangodb_password"),
        description="ArangoDB password",
    )
    arango_database: str = Field(default="symptom_checker", description="ArangoDB database name")
    catalog_seed_path: Path = Field(
        default=DEFAULT_SEED_PATH,
        description="JSON file with the curated medical conditions"
    )

    # Input validation
    symptom_min_length: int = Field(default=3, description="Minimum symptom length")
    symptom_max_length: int = Field(default=500, description="Maximum symptom length")
    context_min_length: int = Field(default=10, description="Minimum analysis context length")
    context_max_length: int = Field(default=2000, description="Maximum analysis context length")

    # Rate Limiting
    rate_limit_enabled: bool = Field(default=True, description="Apply rate limits to /api routes")
    rate_limit_requests: int = Field(default=100, description="Requests per window")
    rate_limit_window_seconds: int = Field(default=900, description="Rate limit window")

    # Logging
    log_level: str = Field(default="INFO", description="Logging level")
    log_format: Literal["json", "console"] = Field(
        default="console",
        description="Log output format"
    )

    @property
    def rate_limit(self) -> str:
        """Rate limit expressed in slowapi's limit string syntax."""
        return f"{self.rate_limit_requests} per {self.rate_limit_window_seconds} seconds"

    def get_safe_config_dict(self) -> dict:
        """Return configuration dict with secrets redacted for logging."""
        config = self.model_dump(mode="json")
        # Redact sensitive values
        for key in ("llm_api_key", "arango_password"):
            if config.get(key):
                config[key] = "***REDACTED***"
        return config


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings.

    Settings are loaded once and cached for the application lifetime.
    Use dependency injection in FastAPI routes for testability.
    """
    return Settings()
