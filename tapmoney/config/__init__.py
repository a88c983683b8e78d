"""Configuration package."""

from tapmoney.config.settings import (
    DEFAULT_PARSER_ENDPOINT,
    AppSettings,
    ParserSettings,
    Settings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)

__all__ = [
    "DEFAULT_PARSER_ENDPOINT",
    "AppSettings",
    "ParserSettings",
    "Settings",
    "StorageSettings",
    "get_settings",
    "validate_all_settings",
]
