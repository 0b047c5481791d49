"""
Configuration for Finance Tracker

Two groups of settings, both read from the environment or a .env file:
- SupabaseSettings: project URL and anon key (SUPABASE_ prefix)
- AppSettings: profile defaults, verification code rules, form limits
  and ledger retry bounds

The Supabase group is required to run the app and is validated on
first access; AppSettings has a default for everything.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SupabaseSettings(BaseSettings):
    """Supabase project configuration (identity provider + tables)."""

    model_config = SettingsConfigDict(
        env_prefix="SUPABASE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    url: str = Field(
        ...,
        description="Supabase project URL"
    )
    anon_key: str = Field(
        ...,
        description="Supabase anonymous (public) API key"
    )

    @field_validator('url')
    @classmethod
    def validate_url(cls, v: str) -> str:
        """The client library needs an absolute https URL."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Supabase URL must start with http(s)://, got {v!r}")
        return v.rstrip("/")


class AppSettings(BaseSettings):
    """
    Main application settings.

    Loads configuration from environment variables and .env file.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment
    app_environment: str = Field(
        default="development",
        description="Application environment"
    )
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )
    log_level: str = Field(
        default="INFO",
        description="Minimum level for structured logs"
    )

    # Profile defaults
    default_country: str = Field(
        default="Cameroun",
        description="Country given to newly provisioned profiles"
    )
    default_currency: str = Field(
        default="FCFA",
        description="Currency given to newly provisioned profiles"
    )
    default_display_name: str = Field(
        default="User",
        description="Display name used when the identity carries none"
    )

    # Verification codes
    otp_length: int = Field(
        default=6,
        ge=4,
        le=10,
        description="Number of digits in an email verification code"
    )
    resend_cooldown_seconds: int = Field(
        default=60,
        ge=0,
        le=3600,
        description="Minimum delay between two code resends for the same email"
    )

    # Form validation
    min_password_length: int = Field(
        default=6,
        ge=6,
        description="Shortest password accepted at sign-up (the provider minimum is 6)"
    )
    max_expense_amount: int = Field(
        default=10_000_000,
        gt=0,
        description="Expenses above this amount (FCFA) trigger a confirmation warning"
    )
    future_date_tolerance_days: int = Field(
        default=0,
        ge=0,
        description="How many days in the future an expense date may be without a warning"
    )

    # Ledger
    max_delta_attempts: int = Field(
        default=5,
        ge=1,
        le=50,
        description="Compare-and-swap attempts when adjusting a budget total"
    )

    @field_validator('log_level')
    @classmethod
    def normalize_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level


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

    # Note: These are loaded lazily to allow partial configuration

    @property
    def supabase(self) -> SupabaseSettings:
        return SupabaseSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Process-wide settings; call get_settings.cache_clear() to reload.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Check that each settings group loads.

    Returns {"supabase": bool, "app": bool} plus a "<group>_error"
    message for each group that failed. Shown on the profile page.
    """
    results = {}

    settings = get_settings()

    try:
        _ = settings.supabase
        results["supabase"] = True
    except Exception as e:
        results["supabase"] = False
        results["supabase_error"] = str(e)

    try:
        _ = settings.app
        results["app"] = True
    except Exception as e:
        results["app"] = False
        results["app_error"] = str(e)

    return results
