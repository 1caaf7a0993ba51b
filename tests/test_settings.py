"""Tests for configuration loading."""

import pytest

from moneystore.config import LoggingSettings, Settings, StoreSettings, get_settings


class TestStoreSettings:

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("MONEYSTORE_DATABASE_NAME", raising=False)
        settings = StoreSettings(_env_file=None)

        assert settings.database_name == "maraudersmoney"
        assert settings.default_currency == "INR"
        assert settings.enforce_references is True
        assert settings.init_max_attempts == 3
        assert settings.budget_period_aware is False

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("MONEYSTORE_DATABASE_NAME", "otherdb")
        monkeypatch.setenv("MONEYSTORE_INIT_MAX_ATTEMPTS", "5")

        settings = StoreSettings(_env_file=None)
        assert settings.database_name == "otherdb"
        assert settings.init_max_attempts == 5

    def test_currency_normalised(self):
        assert StoreSettings(default_currency=" usd ", _env_file=None).default_currency == "USD"

    def test_unknown_currency_rejected(self):
        with pytest.raises(ValueError, match="Unsupported currency"):
            StoreSettings(default_currency="XYZ", _env_file=None)

    def test_attempt_bounds(self):
        with pytest.raises(ValueError):
            StoreSettings(init_max_attempts=0, _env_file=None)


class TestLoggingSettings:

    def test_level_validated(self):
        with pytest.raises(ValueError):
            LoggingSettings(level="LOUD", _env_file=None)

    def test_environment_prefix(self, monkeypatch):
        monkeypatch.setenv("MONEYSTORE_LOG_JSON_OUTPUT", "false")
        assert LoggingSettings(_env_file=None).json_output is False


class TestSettings:

    def test_aggregates_sub_settings(self):
        settings = Settings(_env_file=None)
        assert isinstance(settings.store, StoreSettings)
        assert isinstance(settings.logging, LoggingSettings)

    def test_get_settings_cached(self):
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()
