"""
Configuration Management for TapMoney

Uses pydantic-settings for type-safe configuration from environment variables.

DESIGN DECISION: All configuration is centralized here.
This makes it easy to see what external dependencies exist and
ensures all required configuration is validated at startup.
"""

from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_PARSER_ENDPOINT = "https://openai-proxy.yinull-cloud.workers.dev"


class ParserSettings(BaseSettings):
    """Remote language-understanding endpoint configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TAPMONEY_PARSER_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    endpoint_url: str = Field(
        default=DEFAULT_PARSER_ENDPOINT,
        description="URL the prompt is POSTed to"
    )
    timeout_seconds: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="Ceiling for a single request, surfaced as a transport failure"
    )
    diagnostics_enabled: bool = Field(
        default=True,
        description="Re-send failed prompts once to capture the raw payload in the logs"
    )
    strict_timestamps: bool = Field(
        default=False,
        description="Reject unparseable timestamps instead of falling back to now"
    )

    @field_validator('endpoint_url')
    @classmethod
    def validate_endpoint_url(cls, v: str) -> str:
        """Only http(s) endpoints are supported."""
        if not v.startswith(("http://", "https://")):
            raise ValueError(f"Parser endpoint must be an http(s) URL, got: {v}")
        return v


class StorageSettings(BaseSettings):
    """Record storage configuration."""

    model_config = SettingsConfigDict(
        env_prefix="TAPMONEY_STORAGE_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    data_path: str = Field(
        default="tapmoney_records.json",
        description="Path of the JSON file holding persisted records"
    )
    write_attempts: int = Field(
        default=3,
        ge=1,
        le=10,
        description="How many times a failed file write is attempted"
    )


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
    log_json: bool = Field(
        default=True,
        description="Render logs as JSON (False gives console output)"
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

    @property
    def parser(self) -> ParserSettings:
        return ParserSettings()

    @property
    def storage(self) -> StorageSettings:
        return StorageSettings()

    @property
    def app(self) -> AppSettings:
        return AppSettings()


@lru_cache()
def get_settings() -> Settings:
    """
    Get application settings (cached).

    Uses LRU cache to ensure settings are only loaded once.
    Call get_settings.cache_clear() to reload if needed.
    """
    return Settings()


def validate_all_settings() -> dict[str, bool]:
    """
    Validate all settings are properly configured.

    Returns a dict of {setting_name: is_valid}, plus a
    "<name>_error" entry for every group that failed.
    """
    results = {}

    settings = get_settings()

    for name in ("parser", "storage", "app"):
        try:
            getattr(settings, name)
            results[name] = True
        except Exception as e:
            results[name] = False
            results[f"{name}_error"] = str(e)

    return results
