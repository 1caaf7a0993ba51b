"""
Configuration Management for moneystore

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
The data layer itself reads no environment variables; the application
entry point loads these settings once and hands them to the Database.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from moneystore.analytics.money import CURRENCIES


class StoreSettings(BaseSettings):
    """Embedded store configuration."""

    model_config = SettingsConfigDict(
        env_prefix="MONEYSTORE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    database_name: str = Field(
        default="maraudersmoney",
        min_length=1,
        max_length=100,
        description="Logical name of the database (used in logs)"
    )
    default_currency: str = Field(
        default="INR",
        description="Currency used when formatting amounts without an explicit code"
    )
    enforce_references: bool = Field(
        default=True,
        description="Reject writes whose foreign keys point at missing records"
    )

    # Initialization retry policy
    init_max_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="How many times the entry point tries to open the database"
    )
    init_retry_wait_seconds: float = Field(
        default=0.5,
        ge=0.0,
        le=30.0,
        description="Base wait between initialization attempts"
    )

    # Analytics windows
    budget_period_aware: bool = Field(
        default=False,
        description="Use each budget's own period instead of month-to-date"
    )
    recent_window_days: int = Field(
        default=30,
        ge=1,
        le=366,
        description="Trailing window for category breakdown and cash flow"
    )
    monthly_series_months: int = Field(
        default=6,
        ge=1,
        le=60,
        description="Number of months in the income/expense series"
    )

    @field_validator('default_currency')
    @classmethod
    def validate_default_currency(cls, v: str) -> str:
        """Only currencies with a known configuration can be the default."""
        code = v.strip().upper()
        if code not in CURRENCIES:
            raise ValueError(
                f"Unsupported currency code: {v}. Supported: {sorted(CURRENCIES)}"
            )
        return code


class LoggingSettings(BaseSettings):
    """Structured logging configuration."""

    model_config = SettingsConfigDict(
        env_prefix="MONEYSTORE_LOG_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    level: str = Field(
        default="INFO",
        pattern="^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        description="Minimum log level"
    )
    json_output: bool = Field(
        default=True,
        description="Render log lines as JSON (False renders for the console)"
    )


class Settings(BaseSettings):
    """
    Root settings container.

    Aggregates all sub-settings for easy access.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    store: StoreSettings = Field(default_factory=StoreSettings)
    logging: LoggingSettings = Field(default_factory=LoggingSettings)


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()
