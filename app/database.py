"""
Database connection and session management for Postgres.
Uses asyncpg with SQLAlchemy async.
"""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.orm import DeclarativeBase

from app.config import settings

logger = logging.getLogger(__name__)


def get_database_url() -> str:
    """Get database URL normalized for the asyncpg driver."""
    url = settings.database_url
    if not url:
        return ""
    # asyncpg does not accept sslmode as a query param
    if "?sslmode=" in url:
        url = url.split("?sslmode=")[0]
    elif "&sslmode=" in url:
        url = url.replace("&sslmode=require", "").replace("&sslmode=disable", "")
    if url.startswith("postgres://"):
        url = "postgresql+asyncpg://" + url[len("postgres://"):]
    elif url.startswith("postgresql://"):
        url = "postgresql+asyncpg://" + url[len("postgresql://"):]
    return url


def create_engine_if_configured() -> Optional[AsyncEngine]:
    """Create async engine only if DATABASE_URL is configured."""
    db_url = get_database_url()
    if not db_url:
        logger.warning("DATABASE_URL not configured. Database features disabled.")
        return None

    return create_async_engine(
        db_url,
        echo=settings.debug,
        pool_pre_ping=True,
        pool_size=5,
        max_overflow=10,
    )


# May be None if DATABASE_URL is not configured
engine = create_engine_if_configured()

async_session_maker = (
    async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    if engine
    else None
)


class Base(DeclarativeBase):
    """Base class for all database models."""
    pass


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency to get database session."""
    if not async_session_maker:
        raise RuntimeError("Database not configured. Set DATABASE_URL environment variable.")

    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


@asynccontextmanager
async def get_db_context() -> AsyncGenerator[AsyncSession, None]:
    """Context manager for database session (for use outside FastAPI)."""
    if not async_session_maker:
        raise RuntimeError("Database not configured. Set DATABASE_URL environment variable.")

    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()


async def init_db() -> None:
    """Create tables (development only; production runs alembic)."""
    if not engine:
        logger.info("Skipping database initialization - DATABASE_URL not configured")
        return

    import app.models  # noqa: F401  registers mappers on Base.metadata

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def close_db() -> None:
    """Close database connections."""
    if engine:
        await engine.dispose()
