"""Pantry configuration management.

Loads configuration from environment variables with sensible defaults.
Prices are recorded in USD per the portal's food program.
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

# Load .env file if present
load_dotenv()


@dataclass
class DBConfig:
    """Database connection configuration."""

    url: str
    pool_size: int = 10
    pool_max_overflow: int = 20
    pool_timeout: int = 30
    echo: bool = False  # SQL logging


@dataclass
class SearchConfig:
    """Web search API used to find vendor price snippets."""

    api_key: str | None = None
    url: str = "https://api.search.brave.com/res/v1/web/search"
    result_count: int = 5
    timeout_seconds: float = 15.0


@dataclass
class LLMConfig:
    """Text-generation service used to read prices out of snippets."""

    api_key: str | None = None
    llm_model: str = "gpt-4o-mini"
    temperature: float = 0.0
    max_tokens: int = 100


@dataclass
class RefreshConfig:
    """Ingredient price refresh job settings."""

    cooldown_hours: float = 24.0
    delay_seconds: float = 0.4  # Pause after every pair
    max_run_minutes: int = 120  # A "running" status older than this is stale


@dataclass
class AppConfig:
    """Root application configuration.

    Loads from environment variables with fail-fast on missing required values.
    """

    db: DBConfig
    log_level: str = "INFO"
    log_format: str = "text"  # json or text

    search: SearchConfig = field(default_factory=SearchConfig)
    llm: LLMConfig = field(default_factory=LLMConfig)
    refresh: RefreshConfig = field(default_factory=RefreshConfig)

    @classmethod
    def from_env(cls) -> AppConfig:
        """Load configuration from environment variables.

        Required environment variables:
        - DATABASE_URL: async SQLAlchemy connection string

        Optional (with defaults):
        - BRAVE_API_KEY / OPENAI_API_KEY: credentials for the price refresh job
        - LOG_LEVEL: Logging verbosity (default: "INFO")
        - REFRESH_*: cooldown, pacing and stale-run thresholds

        Raises:
            KeyError: If required environment variables are missing
        """
        database_url = os.environ.get("DATABASE_URL")
        if not database_url:
            raise KeyError(
                "DATABASE_URL environment variable is required. "
                "Example: sqlite+aiosqlite:///./pantry.db"
            )

        return cls(
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            log_format="json" if os.getenv("JSON_LOGS", "false").lower() == "true" else "text",
            db=DBConfig(
                url=database_url,
                pool_size=int(os.getenv("DB_POOL_SIZE", "10")),
                pool_max_overflow=int(os.getenv("DB_POOL_MAX_OVERFLOW", "20")),
                pool_timeout=int(os.getenv("DB_POOL_TIMEOUT", "30")),
                echo=os.getenv("DB_ECHO", "false").lower() == "true",
            ),
            search=SearchConfig(
                api_key=os.getenv("BRAVE_API_KEY") or None,
                url=os.getenv(
                    "BRAVE_SEARCH_URL",
                    "https://api.search.brave.com/res/v1/web/search",
                ),
                result_count=int(os.getenv("SEARCH_RESULT_COUNT", "5")),
                timeout_seconds=float(os.getenv("SEARCH_TIMEOUT_SECONDS", "15")),
            ),
            llm=LLMConfig(
                api_key=os.getenv("OPENAI_API_KEY") or None,
                llm_model=os.getenv("LLM_MODEL", "gpt-4o-mini"),
                max_tokens=int(os.getenv("LLM_MAX_TOKENS", "100")),
            ),
            refresh=RefreshConfig(
                cooldown_hours=float(os.getenv("REFRESH_COOLDOWN_HOURS", "24")),
                delay_seconds=float(os.getenv("REFRESH_DELAY_SECONDS", "0.4")),
                max_run_minutes=int(os.getenv("REFRESH_MAX_RUN_MINUTES", "120")),
            ),
        )

    @property
    def refresh_configured(self) -> bool:
        """True when both external credentials for the refresh job are present."""
        return bool(self.search.api_key and self.llm.api_key)


# Singleton instance (lazy-loaded)
_config: AppConfig | None = None


def get_config() -> AppConfig:
    """Get or create singleton AppConfig instance from environment.

    Returns:
        AppConfig: Application configuration

    Raises:
        KeyError: If required environment variables are missing
    """
    global _config
    if _config is None:
        _config = AppConfig.from_env()
    return _config


def reset_config() -> None:
    """Drop the cached config so the next get_config() re-reads the environment."""
    global _config
    _config = None
