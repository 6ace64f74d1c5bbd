"""
Runtime configuration with graceful degradation.
Every key is optional: collectors without credentials fall back to simulated data
and synthesis is skipped when no LLM provider is configured.
"""
from __future__ import annotations

import logging
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Constants
HTTP_TIMEOUT_SECONDS = 15.0
FEED_ITEM_LIMIT = 10
USER_AGENT = "Rule-of-Thirds-Agent/1.0"

DEFAULT_RSS_FEEDS = [
    "https://techcrunch.com/feed/",
    "https://feeds.feedburner.com/venturebeat",
    "https://blog.ycombinator.com/feed",
    "https://a16z.com/feed/",
    "https://www.producthunt.com/feed",
]
DEFAULT_RESEARCH_DIRECTORIES = ["./processed-research", "./research-outputs", "./docs"]
DEFAULT_RESEARCH_FILE_TYPES = [".md", ".txt", ".vtt", ".json", ".csv"]
DEFAULT_EXCLUDE_PATTERNS = ["node_modules", ".git", "build", "dist"]


class Settings(BaseSettings):
    """
    Application settings loaded from the environment and ``.env``.
    List-valued keys are read as JSON arrays.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # OPTIONAL: OpenAI Configuration
    OPENAI_API_KEY: str | None = None
    OPENAI_MODEL: str = "gpt-4o-mini"
    OPENAI_MAX_TOKENS: int = 4000
    OPENAI_TEMPERATURE: float = 0.7

    # OPTIONAL: Azure OpenAI Configuration (takes precedence when complete)
    AZURE_OPENAI_ENDPOINT: str | None = None
    AZURE_OPENAI_API_KEY: str | None = None
    AZURE_OPENAI_DEPLOYMENT_NAME: str | None = None
    AZURE_OPENAI_API_VERSION: str = "2024-02-15-preview"
    ENABLE_LLM_SYNTHESIS: bool = True

    # OPTIONAL: External signal providers
    NEWS_API_KEY: str | None = None
    YOUTUBE_API_KEY: str | None = None
    RSS_FEEDS: list[str] = DEFAULT_RSS_FEEDS
    EXTERNAL_MAX_RESULTS: int = 20

    # OPTIONAL: Internal research discovery
    RESEARCH_DIRECTORIES: list[str] = DEFAULT_RESEARCH_DIRECTORIES
    RESEARCH_FILE_TYPES: list[str] = DEFAULT_RESEARCH_FILE_TYPES
    RESEARCH_EXCLUDE_PATTERNS: list[str] = DEFAULT_EXCLUDE_PATTERNS
    RESEARCH_MAX_FILE_SIZE: int = 10 * 1024 * 1024
    INTERNAL_MAX_RESULTS: int = 50

    # OPTIONAL: Product metrics
    AMPLITUDE_API_KEY: str | None = None
    AMPLITUDE_SECRET_KEY: str | None = None
    CUSTOM_METRICS_ENDPOINTS: list[str] = []
    PRODUCT_MAX_RESULTS: int = 50

    # OPTIONAL: Orchestration
    ORCHESTRATOR_RETRIES: int = 2
    ORCHESTRATOR_TIMEOUT_SECONDS: float = 30.0
    OUTPUT_DIR: str = "./outputs"
    TEMPLATE_DIR: str | None = None

    # OPTIONAL: Google Sheets report index
    GOOGLE_CREDENTIALS: str | None = None  # JSON string of service account credentials
    SHEET_ID: str | None = None

    # OPTIONAL: Application Settings
    LOG_LEVEL: str = "INFO"
    LOG_SILENT: bool = False
    ENVIRONMENT: str = "production"
    CORS_ORIGINS: list[str] = []

    @field_validator("ORCHESTRATOR_RETRIES")
    @classmethod
    def validate_retries(cls, v: int) -> int:
        """Keep the retry budget between 1 and 10 attempts."""
        if not 1 <= v <= 10:
            raise ValueError("ORCHESTRATOR_RETRIES must be between 1 and 10")
        return v

    @field_validator("ORCHESTRATOR_TIMEOUT_SECONDS")
    @classmethod
    def validate_timeout(cls, v: float) -> float:
        if not 1 <= v <= 300:
            raise ValueError("ORCHESTRATOR_TIMEOUT_SECONDS must be between 1 and 300")
        return v

    @field_validator("LOG_LEVEL")
    @classmethod
    def normalise_log_level(cls, v: str) -> str:
        return v.strip().upper()

    @field_validator("RESEARCH_FILE_TYPES")
    @classmethod
    def normalise_extensions(cls, v: list[str]) -> list[str]:
        """Accept ``md`` as well as ``.md``."""
        return [ext if ext.startswith(".") else f".{ext}" for ext in (item.strip().lower() for item in v) if ext]

    @property
    def llm_provider(self) -> str | None:
        """Return ``azure``, ``openai`` or None depending on which credentials are present."""
        if self.AZURE_OPENAI_ENDPOINT and self.AZURE_OPENAI_API_KEY and self.AZURE_OPENAI_DEPLOYMENT_NAME:
            return "azure"
        if self.OPENAI_API_KEY:
            return "openai"
        return None

    def log_startup_summary(self) -> None:
        """Log configuration summary on startup (without leaking secrets)."""
        logger.info("=" * 60)
        logger.info("Rule of Thirds - Configuration")
        logger.info("=" * 60)
        logger.info("Environment: %s", self.ENVIRONMENT)
        logger.info("Log Level: %s", self.LOG_LEVEL)
        logger.info("LLM Provider: %s", self.llm_provider or "○ Not configured (synthesis skipped)")
        logger.info("News API Key: %s", "✓ Present" if self.NEWS_API_KEY else "○ Simulated data")
        logger.info("YouTube API Key: %s", "✓ Present" if self.YOUTUBE_API_KEY else "○ Simulated data")
        logger.info("RSS Feeds: %d configured", len(self.RSS_FEEDS))
        logger.info("Research Directories: %s", ", ".join(self.RESEARCH_DIRECTORIES) or "none")
        logger.info(
            "Amplitude: %s",
            "✓ Configured" if self.AMPLITUDE_API_KEY and self.AMPLITUDE_SECRET_KEY else "○ Not configured",
        )
        logger.info("Custom Metrics Endpoints: %d configured", len(self.CUSTOM_METRICS_ENDPOINTS))
        logger.info("Retries: %d, Timeout: %.0fs", self.ORCHESTRATOR_RETRIES, self.ORCHESTRATOR_TIMEOUT_SECONDS)
        logger.info("Google Sheets Index: %s", "✓ Configured" if self.GOOGLE_CREDENTIALS and self.SHEET_ID else "○ Disabled")
        logger.info("=" * 60)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    settings = Settings()
    settings.log_startup_summary()
    return settings
