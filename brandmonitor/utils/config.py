"""
Configuration Management

Uses Pydantic Settings for environment-based configuration.
Loads from .env file automatically.

Settings is read once by the HTTP layer; the pipeline itself only
receives an explicit PipelineConfig at construction time.
"""

from dataclasses import dataclass
from typing import Optional
from functools import lru_cache
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment."""

    # AI providers (each one is enabled when its key is set)
    OPENAI_API_KEY: Optional[str] = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    ANTHROPIC_API_KEY: Optional[str] = None
    ANTHROPIC_MODEL: str = "claude-3-5-haiku-latest"
    GOOGLE_GENERATIVE_AI_API_KEY: Optional[str] = None
    GOOGLE_MODEL: str = "gemini-1.5-flash"
    PERPLEXITY_API_KEY: Optional[str] = None
    PERPLEXITY_MODEL: str = "sonar"

    # Firecrawl (Optional - for scraping company websites)
    FIRECRAWL_API_KEY: Optional[str] = None

    # Application Settings
    ENVIRONMENT: str = "development"
    LOG_LEVEL: str = "INFO"
    ANALYSES_STORAGE_PATH: Optional[str] = None

    # Limits
    MAX_CONCURRENT_QUERIES: int = 4
    MAX_DISCOVERED_COMPETITORS: int = 6
    EVENT_QUEUE_SIZE: int = 100

    # Timeouts
    PROVIDER_TIMEOUT_SECONDS: float = 30.0
    RUN_TIMEOUT_SECONDS: float = 300.0
    SCRAPE_MAX_AGE_SECONDS: int = 7 * 24 * 3600

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"  # Ignore extra fields in .env file
        case_sensitive = False  # Allow both UPPERCASE and lowercase


@lru_cache
def get_settings() -> Settings:
    """Get or create cached settings instance."""
    return Settings()


@dataclass(frozen=True)
class PipelineConfig:
    """Per-run limits handed to the orchestrator and its stages."""
    provider_timeout: float = 30.0
    max_concurrency: int = 4
    run_timeout: float = 300.0
    scrape_max_age: Optional[int] = 7 * 24 * 3600
    max_discovered_competitors: int = 6
    event_queue_size: int = 100

    @classmethod
    def from_settings(cls, settings: Settings) -> "PipelineConfig":
        return cls(
            provider_timeout=settings.PROVIDER_TIMEOUT_SECONDS,
            max_concurrency=max(1, settings.MAX_CONCURRENT_QUERIES),
            run_timeout=settings.RUN_TIMEOUT_SECONDS,
            scrape_max_age=settings.SCRAPE_MAX_AGE_SECONDS,
            max_discovered_competitors=settings.MAX_DISCOVERED_COMPETITORS,
            event_queue_size=max(1, settings.EVENT_QUEUE_SIZE),
        )
