"""
Tests for configuration loading.
"""

import pytest
from pydantic import ValidationError

from tapmoney.config import (
    DEFAULT_PARSER_ENDPOINT,
    ParserSettings,
    StorageSettings,
    get_settings,
    validate_all_settings,
)


@pytest.fixture(autouse=True)
def fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class TestParserSettings:
    """Tests for the remote parser configuration."""

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("TAPMONEY_PARSER_ENDPOINT_URL", raising=False)
        monkeypatch.delenv("TAPMONEY_PARSER_TIMEOUT_SECONDS", raising=False)
        monkeypatch.delenv("TAPMONEY_PARSER_STRICT_TIMESTAMPS", raising=False)
        settings = ParserSettings()
        assert settings.endpoint_url == DEFAULT_PARSER_ENDPOINT
        assert settings.timeout_seconds == 30.0
        assert settings.strict_timestamps is False

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("TAPMONEY_PARSER_ENDPOINT_URL", "http://localhost:8787")
        monkeypatch.setenv("TAPMONEY_PARSER_STRICT_TIMESTAMPS", "true")
        settings = get_settings().parser
        assert settings.endpoint_url == "http://localhost:8787"
        assert settings.strict_timestamps is True

    def test_non_http_endpoint_rejected(self):
        with pytest.raises(ValidationError):
            ParserSettings(endpoint_url="ftp://example.com")

    def test_timeout_bounds(self):
        with pytest.raises(ValidationError):
            ParserSettings(timeout_seconds=0)


class TestStorageSettings:
    """Tests for the storage configuration."""

    def test_write_attempts_bounds(self):
        with pytest.raises(ValidationError):
            StorageSettings(write_attempts=0)


class TestValidateAllSettings:
    """Tests for startup validation."""

    def test_all_valid(self, monkeypatch):
        monkeypatch.delenv("TAPMONEY_PARSER_ENDPOINT_URL", raising=False)
        results = validate_all_settings()
        assert results == {"parser": True, "storage": True, "app": True}

    def test_invalid_group_reported(self, monkeypatch):
        monkeypatch.setenv("TAPMONEY_PARSER_ENDPOINT_URL", "not a url")
        results = validate_all_settings()
        assert results["parser"] is False
        assert "parser_error" in results
        assert results["storage"] is True
