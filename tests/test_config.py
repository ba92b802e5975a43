"""Tests for environment settings."""

import pytest

from pizza_perf.config import Settings
from pizza_perf.constants import DEFAULT_BASE_URL


class TestSettingsFromEnv:
    def test_defaults(self, monkeypatch):
        for name in ("BASE_URL", "LOG_LEVEL", "STRICT_SETUP", "REQUEST_TIMEOUT"):
            monkeypatch.delenv(name, raising=False)
        settings = Settings.from_env()
        assert settings.base_url == DEFAULT_BASE_URL == "http://localhost:3333"
        assert settings.log_level == "INFO"
        assert settings.strict_setup is False
        assert settings.request_timeout == 60.0

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv("BASE_URL", "http://pizza.internal:8080")
        monkeypatch.setenv("LOG_LEVEL", "debug")
        monkeypatch.setenv("STRICT_SETUP", "yes")
        monkeypatch.setenv("REQUEST_TIMEOUT", "5")
        settings = Settings.from_env()
        assert settings.base_url == "http://pizza.internal:8080"
        assert settings.log_level == "DEBUG"
        assert settings.strict_setup is True
        assert settings.request_timeout == 5.0

    def test_non_positive_timeout(self, monkeypatch):
        monkeypatch.setenv("REQUEST_TIMEOUT", "-1")
        with pytest.raises(ValueError, match="REQUEST_TIMEOUT"):
            Settings.from_env()
