"""
Database connection management with SQLAlchemy async.
Provides session dependency injection and connection pooling.

Production runs on Postgres (asyncpg); local development and the test suite
run on SQLite (aiosqlite).
"""
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Annotated

from fastapi import Depends
from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from chesapeake.core.config import settings
from chesapeake.core.logging import get_logger

logger = get_logger(__name__)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base for all models."""
    pass


def normalize_async_url(url: str) -> str:
    """Map plain driver URLs onto their async drivers."""
    if url.startswith("sqlite://"):
        return url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    return url


def make_async_engine(database_url: str) -> AsyncEngine:
    """Create async database engine with proper configuration."""
    db_url = normalize_async_url(database_url)

    kw: dict = dict(echo=settings.database_echo, pool_pre_ping=True)
    if db_url.startswith("postgresql+asyncpg://"):
        kw.update(
            pool_size=settings.database_pool_size,
            max_overflow=settings.database_max_overflow,
        )

    engine = create_async_engine(db_url, **kw)

    if db_url.startswith("sqlite+aiosqlite://"):
        # SAVEPOINT needs BEGIN emitted by SQLAlchemy, not by the driver.
        @event.listens_for(engine.sync_engine, "connect")
        def _sqlite_pragmas(dbapi_connection, _):
            dbapi_connection.isolation_level = None
            cur = dbapi_connection.cursor()
            cur.execute("PRAGMA journal_mode=WAL;")
            cur.execute("PRAGMA busy_timeout=5000;")
            cur.close()

        @event.listens_for(engine.sync_engine, "begin")
        def _sqlite_begin(conn):
            conn.exec_driver_sql("BEGIN")

    return engine


def make_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


# Global engine and session factory
engine = make_async_engine(settings.database_url)
async_session_factory = make_session_factory(engine)


async def get_db_session() -> AsyncGenerator[AsyncSession, None]:
    """
    Dependency that provides a database session with automatic cleanup.

    Commits when the request handler returns, rolls back if it raises.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


# Type alias for dependency injection
DbSession = Annotated[AsyncSession, Depends(get_db_session)]


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """Context manager for database sessions outside of request context."""
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise


async def init_db(target: AsyncEngine | None = None) -> None:
    """
    Create missing tables and probe the orders schema.

    Existing tables are left as they are; columns they lack are recorded in
    the schema capability set instead of being added here (see alembic).
    """
    import chesapeake.models  # noqa: F401  registers tables on Base.metadata
    from chesapeake.core.schema import probe_schema, set_schema_capabilities

    target = target or engine
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        capabilities = await probe_schema(conn)
    set_schema_capabilities(capabilities)
    logger.info(
        "Database initialized",
        order_columns=sorted(capabilities.order_columns),
    )


async def close_db() -> None:
    """Close database connections."""
    await engine.dispose()
    logger.info("Database connections closed")
