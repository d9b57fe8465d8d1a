"""
Unified Configuration Module for StockSense.

This module provides a single source of truth for all configuration settings using
pydantic-settings for validation and environment variable loading.
"""

from functools import lru_cache
from typing import Any, List

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from stocksense.engine.parameters import DEFAULT_CONFIDENCE_THRESHOLD, AnalysisConfig


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.

    Nothing is required: without GEMINI_API_KEY the engine still returns the
    structured analysis and reports the narrative as unavailable.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Narrative collaborator (Optional)
    GEMINI_API_KEY: SecretStr | None = Field(
        default=None,
        description="Google Gemini API key used for narrative insights",
    )
    GEMINI_MODEL: str = Field(
        default="gemini-2.5-flash",
        description="Gemini model used for narrative insights",
        min_length=1,
    )
    GEMINI_API_URL: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Base URL of the Gemini generative language API",
    )
    NARRATIVE_TIMEOUT_SECONDS: float = Field(
        default=30.0,
        description="HTTP timeout for one narrative request (no retries)",
        gt=0.0,
        le=300.0,
    )

    # Analysis parameters
    CONFIDENCE_THRESHOLD: float = Field(
        default=DEFAULT_CONFIDENCE_THRESHOLD,
        description="Findings at or below this confidence are discarded",
        ge=0.0,
        le=1.0,
    )
    RSI_PERIOD: int = Field(default=14, ge=1)
    SMA_PERIODS: List[int] | str = Field(
        default=[20, 50],
        description="SMA periods to compute (comma-separated in env)",
    )
    DISABLED_DETECTORS: List[str] | str = Field(
        default=[],
        description="Pattern names to skip (comma-separated in env)",
    )

    LOG_LEVEL: str = Field(default="INFO")

    @field_validator("SMA_PERIODS", "DISABLED_DETECTORS", mode="before")
    @classmethod
    def parse_list_from_str(cls, v: Any) -> Any:
        """Parse comma-separated string into list."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        if isinstance(v, int):
            return [v]
        return v

    @field_validator("GEMINI_API_KEY", mode="before")
    @classmethod
    def blank_key_is_unset(cls, v: Any) -> Any:
        """Treat an empty key as not configured."""
        if isinstance(v, str) and v.strip() == "":
            return None
        return v

    @field_validator("GEMINI_API_URL", mode="after")
    @classmethod
    def validate_api_url(cls, v: str) -> str:
        """Require an https base URL without trailing slash."""
        if not v.startswith("https://"):
            raise ValueError("GEMINI_API_URL must be an https URL")
        return v.rstrip("/")

    @property
    def narrative_enabled(self) -> bool:
        """Check if a Gemini key is configured."""
        return self.GEMINI_API_KEY is not None

    def analysis_config(self, **overrides: Any) -> AnalysisConfig:
        """
        Build the AnalysisConfig parameter object from these settings.

        Args:
            **overrides: Field values that take precedence (e.g. from the CLI).
        """
        values = {
            "confidence_threshold": self.CONFIDENCE_THRESHOLD,
            "rsi_period": self.RSI_PERIOD,
            "sma_periods": tuple(int(p) for p in self.SMA_PERIODS),
            "disabled_detectors": frozenset(self.DISABLED_DETECTORS),
        }
        values.update({k: v for k, v in overrides.items() if v is not None})
        return AnalysisConfig(**values)


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.

    Returns:
        Settings: Validated application settings

    Raises:
        pydantic.ValidationError: If an environment variable is invalid
    """
    return Settings()
