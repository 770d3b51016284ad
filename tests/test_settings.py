"""Tests for the pydantic-settings configuration classes."""

import pytest
from pydantic import ValidationError as PydanticValidationError

from config import (
    AdvisorySettings,
    DatabaseSettings,
    RegimeSettings,
    Settings,
    get_database_settings,
    get_settings,
)
from domain import Money, TaxRegime


class TestSettings:
    """Tests for the APP_ settings."""

    def test_environment_from_conftest(self):
        assert get_settings().environment == "test"
        assert not get_settings().is_production

    def test_cached(self):
        assert get_settings() is get_settings()

    def test_log_level_normalized(self, monkeypatch):
        monkeypatch.setenv("APP_LOG_LEVEL", "debug")
        get_settings.cache_clear()
        assert get_settings().log_level == "DEBUG"

    def test_invalid_log_level(self):
        with pytest.raises(PydanticValidationError):
            Settings(log_level="verbose")

    @pytest.mark.parametrize("environment,production", [
        ("production", True),
        ("staging", True),
        ("development", False),
    ])
    def test_is_production(self, environment, production):
        assert Settings(environment=environment).is_production is production

    def test_nested_settings(self):
        settings = Settings()
        assert isinstance(settings.regime, RegimeSettings)
        assert isinstance(settings.advisory, AdvisorySettings)
        assert isinstance(settings.database, DatabaseSettings)


class TestRegimeSettings:
    """Tests for the REGIME_ settings."""

    def test_defaults(self):
        settings = RegimeSettings()
        assert settings.simples_ceiling == Money(4_800_000_00)
        assert settings.presumido_ceiling == Money(78_000_000_00)
        assert settings.default_baseline == TaxRegime.SIMPLES_NACIONAL

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("REGIME_SIMPLES_REVENUE_CEILING", "100000000")
        monkeypatch.setenv("REGIME_DEFAULT_BASELINE", " lucro_real ")

        settings = RegimeSettings()
        assert settings.simples_ceiling == Money(1_000_000_00)
        assert settings.default_baseline == TaxRegime.LUCRO_REAL

    def test_ceiling_must_be_positive(self):
        with pytest.raises(PydanticValidationError):
            RegimeSettings(simples_revenue_ceiling=0)

    def test_unknown_regime(self):
        with pytest.raises(PydanticValidationError):
            RegimeSettings(default_baseline="MEI")


class TestAdvisorySettings:
    """Tests for the ADVISORY_ settings."""

    def test_defaults(self):
        settings = AdvisorySettings()
        assert settings.description_max_length == 1000
        assert settings.review_notes_min_length == 1

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("ADVISORY_DESCRIPTION_MAX_LENGTH", "50")
        assert AdvisorySettings().description_max_length == 50

    def test_notes_minimum_at_least_one(self):
        with pytest.raises(PydanticValidationError):
            AdvisorySettings(review_notes_min_length=0)


class TestDatabaseSettings:
    """Tests for the DB_ settings."""

    def test_url_override(self):
        settings = DatabaseSettings(url="sqlite://")
        assert settings.sync_url == "sqlite://"
        assert settings.is_sqlite
        assert settings.get_connect_args() == {"check_same_thread": False}

    def test_sqlite_file_default(self):
        settings = DatabaseSettings(url=None, driver="sqlite")
        assert settings.sync_url.startswith("sqlite:///")
        assert settings.sync_url.endswith("agente_tributario.db")

    def test_postgres_url(self):
        settings = DatabaseSettings(
            url=None,
            driver="postgresql+psycopg2",
            host="db",
            user="agente",
            password="secret",
        )
        assert settings.sync_url == "postgresql+psycopg2://agente:secret@db:5432/agente_tributario"
        assert not settings.is_sqlite
        assert settings.get_connect_args() == {}

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("DB_URL", "sqlite:///tmp/test.db")
        get_database_settings.cache_clear()
        assert get_database_settings().sync_url == "sqlite:///tmp/test.db"

    def test_pool_size_bounds(self):
        with pytest.raises(PydanticValidationError):
            DatabaseSettings(pool_size=0)
