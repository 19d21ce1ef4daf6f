"""Async SQLAlchemy engine and session factory.

One engine (and pool) per process; every document run opens its own session
from ``async_session_maker``.
"""

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from manual_kb.core.config import settings
from manual_kb.utils.logging import get_logger

LOGGER = get_logger(__name__)


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy models."""

    pass


engine = create_async_engine(
    settings.database_url,
    pool_size=settings.database_pool_size,
    max_overflow=settings.database_max_overflow,
    echo=settings.database_echo,
    # Disable prepared statement cache for PgBouncer compatibility
    connect_args={"statement_cache_size": 0},
)

async_session_maker = async_sessionmaker(
    engine, class_=AsyncSession, expire_on_commit=False
)


async def check_connection(db_engine: AsyncEngine = engine) -> None:
    """Run ``SELECT 1``; raises if the database is unreachable."""
    try:
        async with db_engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception:
        LOGGER.error("Database connection failed", exc_info=True)
        raise
    LOGGER.info("Database connection successful")


async def create_schema(db_engine: AsyncEngine = engine) -> None:
    """Create the vector extension and any missing tables (local development).

    Deployed databases are migrated with the Alembic revisions instead.
    """
    # Register models on Base.metadata
    from manual_kb.database import models  # noqa: F401

    async with db_engine.begin() as conn:
        await conn.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
        await conn.run_sync(Base.metadata.create_all)
    LOGGER.info("Database tables created/verified")


async def init_database(create_missing_tables: bool = False) -> None:
    """Verify connectivity and optionally create the schema."""
    LOGGER.info("Initializing database connection...")
    await check_connection()
    if create_missing_tables:
        await create_schema()


async def close_database() -> None:
    """Dispose of the engine's connection pool."""
    await engine.dispose()
    LOGGER.info("Database connection closed")
