"""
Application configuration with environment-specific secrets management.

Supported environment files (loaded in order of precedence):
1. .env.{ENVIRONMENT} (e.g., .env.production, .env.development)
2. .env (fallback)

Required secrets for production:
- DATABASE_URL
- ODDS_FEED_API_KEY
"""
import os
import logging
from pathlib import Path
from typing import Optional, Literal
from pydantic_settings import BaseSettings
from pydantic import ConfigDict

# Project root directory (2 levels up from this file)
PROJECT_ROOT = Path(__file__).parent.parent.parent

DEFAULT_DATABASE_URL = "sqlite:///./wagerbook.db"

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings with environment-specific configuration."""

    # Environment
    ENVIRONMENT: Literal["development", "production", "test"] = "development"

    model_config = ConfigDict(
        env_file=str(PROJECT_ROOT / ".env"),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )

    # Application
    APP_NAME: str = "Wagerbook Settlement Engine"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False

    # Server
    HOST: str = "0.0.0.0"
    PORT: int = 8001

    # Database
    DATABASE_URL: str = os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)

    # Logging
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True

    # Odds feed (The Odds API v4 compatible)
    ODDS_FEED_BASE_URL: str = "https://api.the-odds-api.com/v4"
    ODDS_FEED_API_KEY: str = ""
    ODDS_FEED_SPORT: str = "basketball_nba"
    ODDS_FEED_REGIONS: str = "us"
    ODDS_PREFERRED_BOOKMAKER: Optional[str] = None

    # Results feed (per-date scoreboard)
    RESULTS_FEED_BASE_URL: str = "https://results.example.com/nba"

    # Feed transport
    FEED_TIMEOUT_SECONDS: float = 15.0
    FEED_MAX_ATTEMPTS: int = 3
    FEED_BACKOFF_MIN_SECONDS: float = 1.0
    FEED_BACKOFF_MAX_SECONDS: float = 10.0

    # Matching and lifecycle
    MATCH_TIMEZONE: str = "America/New_York"
    LIFECYCLE_GRACE_HOURS: int = 24
    RETENTION_DAYS: int = 7

    # Scheduler
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_TIMEZONE: str = "America/New_York"
    INGESTION_INTERVAL_MINUTES: int = 15
    SETTLEMENT_SWEEP_MINUTES: int = 30

    # Ledger
    STARTING_BALANCE: float = 1000.0

    # Rate limiting
    RATE_LIMIT_ENABLED: bool = True

    # CORS - comma-separated string for env var parsing
    CORS_ORIGINS_STR: str = ""

    @property
    def CORS_ORIGINS(self) -> list[str]:
        """Get CORS origins with environment-aware defaults."""
        if self.CORS_ORIGINS_STR:
            origins = [o.strip() for o in self.CORS_ORIGINS_STR.split(",") if o.strip()]
            if origins:
                if self.is_production() and "*" in origins:
                    logger.warning(
                        "Wildcard CORS origins (*) are not allowed in production. "
                        "Please set explicit origins in CORS_ORIGINS_STR environment variable."
                    )
                    return []
                return origins

        if self.is_production():
            logger.warning(
                "CORS_ORIGINS_STR not set in production. "
                "Please set CORS_ORIGINS_STR environment variable with explicit origins."
            )
            return []

        return [
            "http://localhost:3000",
            "http://localhost:5173",
            "http://127.0.0.1:3000",
        ]

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.ENVIRONMENT == "production"

    def is_test(self) -> bool:
        """Check if running under the test environment."""
        return self.ENVIRONMENT == "test"

    def validate_required_secrets(self) -> list[str]:
        """
        Validate that required secrets are set for the current environment.

        Returns:
            List of missing secret names (empty if all present)
        """
        missing = []

        if self.is_production() and self.DATABASE_URL == DEFAULT_DATABASE_URL:
            missing.append("DATABASE_URL")

        if self.is_production() and not self.ODDS_FEED_API_KEY:
            missing.append("ODDS_FEED_API_KEY")

        return missing


def _load_env_file() -> Path:
    """
    Pick the environment file based on the ENVIRONMENT variable.

    Loads in order of precedence:
    1. .env.{ENVIRONMENT} (e.g., .env.production, .env.development)
    2. .env (fallback)
    """
    environment = os.getenv("ENVIRONMENT", "development")

    env_file = PROJECT_ROOT / f".env.{environment}"
    if env_file.exists():
        logger.info(f"Loading environment from {env_file.name}")
        return env_file

    default_env = PROJECT_ROOT / ".env"
    if default_env.exists():
        logger.info(f"Loading environment from .env (environment: {environment})")
        return default_env

    logger.debug(f"No environment file found for '{environment}' (checked .env.{environment}, .env)")
    return default_env


_env_file = _load_env_file()


class _SettingsWithEnvFile(Settings):
    model_config = ConfigDict(
        env_file=str(_env_file),
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore"
    )


settings = _SettingsWithEnvFile()


# Validate secrets on startup
missing_secrets = settings.validate_required_secrets()
if missing_secrets:
    logger.warning(f"Missing required secrets for {settings.ENVIRONMENT}: {', '.join(missing_secrets)}")
    if settings.is_production():
        raise ValueError(
            f"Cannot start in production with missing secrets: {', '.join(missing_secrets)}. "
            f"Please set these environment variables in .env.production"
        )
