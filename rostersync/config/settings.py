import logging
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

VALID_LOG_LEVELS = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]


class AppSettings(BaseSettings):
    """Application settings loaded from environment variables or .env file."""

    # Provider Credentials
    gemini_api_key: Optional[str] = Field(None, description="API key for Google Gemini.")
    openrouter_api_key: Optional[str] = Field(
        None, description="API key for OpenRouter (optional fallback provider)."
    )

    # Provider Strategy
    provider_order: List[str] = Field(
        default_factory=lambda: [
            "gemini:gemini-1.5-flash",
            "gemini:gemini-flash-lite-latest",
        ],
        description="Providers tried in order, as '<kind>:<model>' entries.",
    )
    backoff_base_seconds: float = Field(
        2.0,
        gt=0,
        description="Delay before provider N+1 is base ** N seconds (2s, 4s, ...).",
    )
    request_timeout_seconds: float = Field(
        60.0, gt=0, description="Timeout applied to each provider HTTP call."
    )
    transport_retry_attempts: int = Field(
        2,
        ge=1,
        description="Attempts per provider call on network errors before giving up.",
    )

    # Logging Configuration
    log_level: str = Field(
        "INFO", description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)."
    )

    # Pydantic Settings Configuration
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
    )

    @property
    def secrets(self) -> List[str]:
        """Configured credential values, for log masking."""
        return [s for s in (self.gemini_api_key, self.openrouter_api_key) if s]


def load_settings(**overrides) -> AppSettings:
    """Loads and validates application settings."""
    try:
        settings = AppSettings(**overrides)
        log_level_upper = settings.log_level.upper()
        # Validate log_level even if loaded from .env
        if log_level_upper not in VALID_LOG_LEVELS:
            logging.warning(
                f"Invalid LOG_LEVEL '{settings.log_level}' found in .env or default. Using INFO."
            )
            settings.log_level = "INFO"
        else:
            settings.log_level = log_level_upper
        return settings
    except Exception as e:
        logging.exception(f"Error loading application settings: {e}")
        raise SystemExit("Failed to load application settings. Exiting.")
