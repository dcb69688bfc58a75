"""
Configuration management for CV Tailor.

Loads settings from environment variables with sensible defaults.
Uses pydantic-settings for validation.
"""

from typing import Optional
from pydantic_settings import BaseSettings
from pydantic import AliasChoices, Field


class LLMSettings(BaseSettings):
    """LLM API settings - Claude (Anthropic)."""

    anthropic_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("LLM_ANTHROPIC_API_KEY", "ANTHROPIC_API_KEY"),
        description="Anthropic API key for Claude (required for tailoring)"
    )
    model: str = Field(
        default="claude-sonnet-4-20250514",
        description="Claude model used for CV and cover letter generation"
    )
    temperature: float = Field(
        default=0.7,
        description="Sampling temperature - balanced creativity for writing"
    )
    max_tokens: int = Field(
        default=4000,
        description="Maximum tokens in LLM response (CV + cover letter + summary)"
    )

    class Config:
        env_prefix = "LLM_"
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True


class ScraperSettings(BaseSettings):
    """Job scraper configuration."""

    # Primary strategy (headless browser)
    navigation_timeout_ms: int = Field(
        default=30000,
        description="Page navigation timeout for the headless browser"
    )
    headless: bool = Field(default=True)
    user_agent: str = Field(
        default=(
            "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
            "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
        ),
        description="Browser user agent, avoids trivial bot detection"
    )

    # Fallback strategy (hosted scraping API)
    firecrawl_api_key: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("SCRAPER_FIRECRAWL_API_KEY", "FIRECRAWL_API_KEY"),
        description="Firecrawl API key. Without it the fallback is disabled"
    )
    firecrawl_url: str = Field(
        default="https://api.firecrawl.dev/v0/scrape",
        description="Firecrawl scrape endpoint"
    )
    fallback_timeout: float = Field(
        default=30.0,
        description="Seconds to wait for the fallback scraping API"
    )

    class Config:
        env_prefix = "SCRAPER_"
        env_file = ".env"
        extra = "ignore"
        populate_by_name = True


class SessionSettings(BaseSettings):
    """Session lifecycle settings."""

    max_age_seconds: int = Field(
        default=3600,
        description="Sessions older than this are removed by the cleanup sweep"
    )

    class Config:
        env_prefix = "SESSION_"


class ChunkSettings(BaseSettings):
    """CV chunking settings."""

    chunk_size: int = Field(default=800, description="Maximum characters per chunk")
    overlap: int = Field(default=200, description="Characters shared by consecutive chunks")

    class Config:
        env_prefix = "CHUNK_"


class UploadSettings(BaseSettings):
    """CV upload limits."""

    max_pdf_bytes: int = Field(
        default=10 * 1024 * 1024,
        description="Largest accepted PDF upload (10MB)"
    )

    class Config:
        env_prefix = "UPLOAD_"


class Settings(BaseSettings):
    """Main application settings aggregating all sub-settings."""

    # Application
    app_name: str = "CV Tailor"
    debug: bool = Field(default=False)
    environment: str = Field(default="development")

    # Sub-settings
    llm: LLMSettings = Field(default_factory=LLMSettings)
    scraper: ScraperSettings = Field(default_factory=ScraperSettings)
    session: SessionSettings = Field(default_factory=SessionSettings)
    chunking: ChunkSettings = Field(default_factory=ChunkSettings)
    upload: UploadSettings = Field(default_factory=UploadSettings)

    class Config:
        env_prefix = "CVTAILOR_"


# Global settings instance
settings = Settings()


def get_settings() -> Settings:
    """Get application settings. Useful for dependency injection."""
    return settings
