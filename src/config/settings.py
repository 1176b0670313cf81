# ABOUTME: Configuration settings for the turn-phase engine using Pydantic Settings.
# ABOUTME: Loads all environment variables and provides type-safe configuration access.

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration loaded from environment variables"""

    # OpenAI API Configuration
    openai_api_key: str = Field(
        default="",
        description="OpenAI API key for the validator, generator, and narrator"
    )
    openai_model: str = Field(
        default="gpt-4o-mini",
        description="OpenAI model used for all generative calls"
    )
    llm_timeout_seconds: float = Field(
        default=30.0,
        description="Request timeout for a single LLM call; timeouts fail the step attempt"
    )
    llm_transport_attempts: int = Field(
        default=2,
        ge=1,
        description="Tries per LLM request for connection errors, rate limits, and 5xx responses"
    )

    # Redis Configuration
    redis_url: str = Field(
        default="redis://localhost:6379",
        description="Redis connection URL (session store, step ledger, RQ)"
    )

    # RQ Worker Configuration
    turn_queue_name: str = Field(
        default="turns",
        description="RQ queue that runs turn jobs"
    )
    turn_job_timeout: int = Field(
        default=300,
        description="Maximum seconds for one turn job"
    )

    # Step retry policy
    step_max_attempts: int = Field(
        default=3,
        ge=1,
        description="Attempts per workflow step before the turn fails"
    )
    step_backoff_base: float = Field(
        default=2.0,
        gt=0,
        description="Backoff base: attempt n waits base ** n seconds"
    )

    # Client polling
    phase_poll_interval_seconds: float = Field(
        default=2.0,
        gt=0,
        description="How often clients poll the phase endpoint while it is blocking"
    )

    # Meta events
    meta_event_title_max_length: int = Field(
        default=255,
        description="Titles longer than this are truncated"
    )

    # Application Settings
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR)"
    )
    log_dir: str = Field(
        default="logs",
        description="Directory for rotating log files"
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )


# Singleton settings instance - lazy initialization to allow import without .env
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the singleton settings instance"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
