"""
Settings Module
===============

Pydantic-based configuration with environment variable loading.

Version: 0.1.0
"""

from enum import Enum
from functools import lru_cache

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(ValueError):
    """A required setting (typically a provider credential) is missing."""


class Environment(str, Enum):
    """Deployment environment."""

    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TESTING = "testing"


class LogLevel(str, Enum):
    """Logging levels."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ClaudeSettings(BaseSettings):
    """Anthropic Claude API configuration."""

    model_config = SettingsConfigDict(env_prefix="CLAUDE_")

    api_key: SecretStr = Field(
        default=SecretStr(""),
        alias="ANTHROPIC_API_KEY",
    )
    model: str = "claude-sonnet-4-20250514"
    max_tokens: int = 1024


class LLMSettings(BaseSettings):
    """LLM provider configuration."""

    model_config = SettingsConfigDict(env_prefix="LLM_")

    temperature: float = 0.0
    timeout_seconds: float = 60.0

    claude: ClaudeSettings = Field(default_factory=ClaudeSettings)


class RetrievalSettings(BaseSettings):
    """Ragie retrieval API configuration."""

    model_config = SettingsConfigDict(env_prefix="RAGIE_")

    api_key: SecretStr = SecretStr("")
    base_url: str = "https://api.ragie.ai"
    timeout_seconds: float = 60.0

    # Defaults applied when a caller does not pass its own
    top_k: int = 24
    max_chunks_per_document: int = 6
    rerank: bool = True


class RetrySettings(BaseSettings):
    """Retry policy for outbound provider calls."""

    model_config = SettingsConfigDict(env_prefix="RETRY_")

    max_attempts: int = Field(default=3, ge=1)
    backoff_base_ms: int = Field(default=750, ge=0)
    max_backoff_seconds: float = 30.0

    @property
    def backoff_base_seconds(self) -> float:
        """Backoff base converted to seconds."""
        return self.backoff_base_ms / 1000


class AssessmentSettings(BaseSettings):
    """Assessment run configuration."""

    model_config = SettingsConfigDict(env_prefix="ASSESSMENT_")

    default_company_id: str = "default"

    # Evidence retrieval per criterion
    retrieval_top_k: int = 10
    retrieval_max_per_document: int = 4
    retrieval_rerank: bool = True

    # Throttle between classification calls in batch mode
    batch_delay_ms: int = 100


class CORSSettings(BaseSettings):
    """CORS configuration."""

    model_config = SettingsConfigDict(env_prefix="CORS_")

    origins: str = "http://localhost:3000,http://localhost:5173"
    allow_credentials: bool = True

    @property
    def origins_list(self) -> list[str]:
        """Parse origins string into list."""
        return [o.strip() for o in self.origins.split(",") if o.strip()]


class Settings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables with sensible defaults.
    Use the global `settings` singleton or call `get_settings()`.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # General
    environment: Environment = Environment.DEVELOPMENT
    debug: bool = True
    log_level: LogLevel = LogLevel.INFO
    port: int = Field(default=8010, alias="SAFEGUARD_ASSESSMENT_PORT")

    # Providers
    llm: LLMSettings = Field(default_factory=LLMSettings)
    retrieval: RetrievalSettings = Field(default_factory=RetrievalSettings)
    retry: RetrySettings = Field(default_factory=RetrySettings)

    # Assessment runs
    assessment: AssessmentSettings = Field(default_factory=AssessmentSettings)

    # Security
    cors: CORSSettings = Field(default_factory=CORSSettings)

    @field_validator("log_level", mode="before")
    @classmethod
    def uppercase_log_level(cls, v: str | LogLevel) -> LogLevel:
        """Ensure log level is uppercase."""
        if isinstance(v, str):
            return LogLevel(v.upper())
        return v

    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.environment == Environment.PRODUCTION


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Returns:
        Settings: Application settings singleton.
    """
    return Settings()
