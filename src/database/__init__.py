"""
Database Layer for the tax-regime guidance core.

This module provides:
- SQLAlchemy ORM model for advisory requests
- Engine and session management (PostgreSQL or SQLite)
- Repository implementations (SQL and in-memory)
"""

from .models import Base, AdvisoryRequestRecord

from .connection import (
    create_engine_from_settings,
    create_session_factory,
    init_db,
    get_sync_engine,
    get_sync_session_factory,
    session_scope,
    get_db_session,
    close_sync_engine,
)

from .repositories import (
    SQLAdvisoryRepository,
    InMemoryAdvisoryRepository,
    InMemoryAnalysisRepository,
    InMemoryCompanyDirectory,
    StaticAccountantAvailability,
)

__all__ = [
    # Models
    "Base",
    "AdvisoryRequestRecord",
    # Connection
    "create_engine_from_settings",
    "create_session_factory",
    "init_db",
    "get_sync_engine",
    "get_sync_session_factory",
    "session_scope",
    "get_db_session",
    "close_sync_engine",
    # Repositories
    "SQLAdvisoryRepository",
    "InMemoryAdvisoryRepository",
    "InMemoryAnalysisRepository",
    "InMemoryCompanyDirectory",
    "StaticAccountantAvailability",
]
