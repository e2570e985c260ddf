"""Database configuration and session management."""

import os
from typing import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import declarative_base

from skillswap.core.logging import get_logger

logger = get_logger(__name__)


def normalize_database_url(url: str) -> str:
    """Rewrite provider URLs so SQLAlchemy picks the asyncpg driver."""
    if url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql+asyncpg://", 1)
    if url.startswith("postgresql://"):
        return url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if not url:
        return "postgresql+asyncpg://skillswap:dev_password_change_in_prod@db:5432/skillswap_dev"
    return url


def build_engine(url: str, **kwargs) -> AsyncEngine:
    """Create an async engine.

    SQLite connections take the write lock when a transaction begins
    (BEGIN IMMEDIATE) so booking transactions are serialized there as well.
    """
    if url.startswith("sqlite"):
        kwargs.setdefault("connect_args", {"timeout": 30})

    engine = create_async_engine(url, **kwargs)

    if engine.dialect.name == "sqlite":

        @event.listens_for(engine.sync_engine, "connect")
        def _disable_pysqlite_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine.sync_engine, "begin")
        def _begin_immediate(conn):
            conn.exec_driver_sql("BEGIN IMMEDIATE")

    return engine


DATABASE_URL = normalize_database_url(os.getenv("DATABASE_URL", ""))

engine = build_engine(DATABASE_URL, pool_pre_ping=True)

# Session factory
AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

# Declarative base
Base = declarative_base()


async def create_tables(target: AsyncEngine | None = None) -> None:
    """Create all tables (development and tests; deployments run ``alembic upgrade head``)."""
    # Register every mapped class on Base.metadata
    import skillswap.models  # noqa: F401

    target = target or engine
    async with target.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("db.tables_created", dialect=target.dialect.name)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """FastAPI dependency for database sessions."""
    async with AsyncSessionLocal() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
