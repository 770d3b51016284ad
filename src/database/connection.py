"""
Database Connection Module

Provides synchronous SQLAlchemy engine and session management.

Usage:
    with get_db_session() as session:
        result = session.execute(query)

    # Explicit engine (tests, tools)
    engine = create_engine_from_settings(DatabaseSettings(url="sqlite://"))
    init_db(engine)
    factory = create_session_factory(engine)
"""

import logging
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import NullPool, QueuePool, StaticPool

from config.database import DatabaseSettings, get_database_settings
from database.models import Base

logger = logging.getLogger(__name__)

# Global sync engine and session factory (lazy initialization)
_sync_engine = None
_sync_session_factory = None


def create_engine_from_settings(settings: DatabaseSettings) -> Engine:
    """
    Build a new engine for the given settings.

    In-memory SQLite uses a single shared connection so every session
    sees the same database.
    """
    url = settings.sync_url

    logger.info(
        "Creating sync database engine",
        extra={"extra_data": {"sqlite": settings.is_sqlite}}
    )

    # Pool configuration differs for SQLite vs PostgreSQL
    if settings.is_sqlite:
        in_memory = url in ("sqlite://", "sqlite:///:memory:")
        pool_class = StaticPool if in_memory else NullPool
        pool_kwargs = {}
    else:
        pool_class = QueuePool
        pool_kwargs = {
            "pool_size": settings.pool_size,
            "max_overflow": settings.max_overflow,
            "pool_timeout": settings.pool_timeout,
            "pool_recycle": settings.pool_recycle,
            "pool_pre_ping": settings.pool_pre_ping,
        }

    return create_engine(
        url,
        echo=settings.echo_sql,
        poolclass=pool_class,
        connect_args=settings.get_connect_args(),
        **pool_kwargs,
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(
        bind=engine,
        expire_on_commit=False,
        autoflush=False,
        autocommit=False,
    )


def init_db(engine: Engine) -> None:
    """Create missing tables."""
    Base.metadata.create_all(engine)


def get_sync_engine(settings: Optional[DatabaseSettings] = None) -> Engine:
    """
    Get or create the global synchronous SQLAlchemy engine.

    Args:
        settings: Database settings. If None, loads from environment.

    Returns:
        Engine: Synchronous SQLAlchemy engine.
    """
    global _sync_engine

    if _sync_engine is None:
        _sync_engine = create_engine_from_settings(settings or get_database_settings())

    return _sync_engine


def get_sync_session_factory(
    settings: Optional[DatabaseSettings] = None
) -> sessionmaker:
    """
    Get or create the global sync session factory.

    Args:
        settings: Optional database settings.

    Returns:
        sessionmaker: Factory for creating sync sessions.
    """
    global _sync_session_factory

    if _sync_session_factory is None:
        _sync_session_factory = create_session_factory(get_sync_engine(settings))

    return _sync_session_factory


@contextmanager
def session_scope(session_factory: sessionmaker) -> Generator[Session, None, None]:
    """
    Transactional scope around a series of operations.

    Yields:
        Session: Commits on success, rolls back on error.
    """
    session = session_factory()

    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()


@contextmanager
def get_db_session(
    settings: Optional[DatabaseSettings] = None
) -> Generator[Session, None, None]:
    """
    Get a synchronous database session from the global factory.

    Usage:
        with get_db_session() as session:
            session.add(new_record)

    Yields:
        Session: SQLAlchemy session that auto-commits on success, rollbacks on error.
    """
    with session_scope(get_sync_session_factory(settings)) as session:
        yield session


def close_sync_engine() -> None:
    """
    Close the sync database engine and cleanup connections.

    Should be called during application shutdown.
    """
    global _sync_engine, _sync_session_factory

    if _sync_engine is not None:
        logger.info("Closing sync database engine")
        _sync_engine.dispose()
        _sync_engine = None
        _sync_session_factory = None
