"""Application settings using Pydantic Settings.

Centralized configuration for the tax-regime guidance core.

All values can be overridden through environment variables (or a .env
file) using the prefix of each settings class:
- APP_*: application name, environment, logging
- REGIME_*: regime eligibility ceilings and default baseline
- ADVISORY_*: advisory request boundary limits
- DB_*: database connection (see config.database)
"""

import logging
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from domain import Money, TaxRegime

logger = logging.getLogger(__name__)


class RegimeSettings(BaseSettings):
    """Regime comparison configuration."""

    model_config = SettingsConfigDict(
        env_prefix="REGIME_",
        extra="ignore",
    )

    # Annual gross revenue ceilings, in centavos
    simples_revenue_ceiling: int = Field(
        default=4_800_000_00,
        gt=0,
        description="Simples Nacional ceiling in centavos (R$ 4,8 mi)"
    )
    presumido_revenue_ceiling: int = Field(
        default=78_000_000_00,
        gt=0,
        description="Lucro Presumido ceiling in centavos (R$ 78 mi)"
    )
    default_baseline: TaxRegime = Field(
        default=TaxRegime.SIMPLES_NACIONAL,
        description="Regime assumed current when an analysis declares none"
    )
    tax_year: int = Field(default=2024, ge=2000, le=2050, description="Rate table year")

    @field_validator("default_baseline", mode="before")
    @classmethod
    def _upper_regime(cls, v):
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @property
    def simples_ceiling(self) -> Money:
        return Money(self.simples_revenue_ceiling)

    @property
    def presumido_ceiling(self) -> Money:
        return Money(self.presumido_revenue_ceiling)


class AdvisorySettings(BaseSettings):
    """Advisory workflow boundary limits."""

    model_config = SettingsConfigDict(
        env_prefix="ADVISORY_",
        extra="ignore",
    )

    description_max_length: int = Field(
        default=1000,
        ge=1,
        description="Max characters in a request description"
    )
    review_notes_min_length: int = Field(
        default=1,
        ge=1,
        description="Min characters in the accountant's review notes"
    )


class Settings(BaseSettings):
    """Main application settings."""

    model_config = SettingsConfigDict(
        env_prefix="APP_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Application info
    name: str = Field(default="Agente Tributário", description="Application name")
    version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Debug mode")
    environment: str = Field(default="development", description="Environment name")

    # Logging
    log_level: str = Field(default="INFO", description="Root log level")
    log_json: bool = Field(default=False, description="JSON log lines (production)")

    @field_validator("log_level")
    @classmethod
    def _valid_level(cls, v: str) -> str:
        level = v.strip().upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Invalid log level: {v}")
        return level

    # Nested settings (loaded separately)
    @property
    def regime(self) -> RegimeSettings:
        return RegimeSettings()

    @property
    def advisory(self) -> AdvisorySettings:
        return AdvisorySettings()

    @property
    def database(self):
        from config.database import get_database_settings
        return get_database_settings()

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment in ("production", "prod", "staging")


@lru_cache
def get_settings() -> Settings:
    """
    Get cached application settings instance.

    Returns:
        Settings: Cached settings loaded from environment.
    """
    return Settings()
