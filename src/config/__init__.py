"""Configuration module for the tax-regime guidance core."""

from .database import DatabaseSettings, get_database_settings
from .settings import AdvisorySettings, RegimeSettings, Settings, get_settings

__all__ = [
    "AdvisorySettings",
    "DatabaseSettings",
    "get_database_settings",
    "RegimeSettings",
    "Settings",
    "get_settings",
]
