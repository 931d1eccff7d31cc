"""
Pytest configuration and fixtures.
"""

import sys
import os
from itertools import count
from typing import AsyncGenerator

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker

# Add app to path
sys.path.append(os.getcwd())

from app.database import Base
import app.models  # noqa: F401  registers every table on Base.metadata
from app.fsm.states import UserRole
from app.models.user import User
from app.schemas.engagement import EngagementSettings

# Use in-memory SQLite for tests
TEST_DB_URL = "sqlite+aiosqlite:///:memory:"

_emails = count(1)


@pytest_asyncio.fixture(scope="function")
async def test_engine():
    """Create async engine for tests. Fresh schema per test since services commit."""
    engine = create_async_engine(TEST_DB_URL, echo=False)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture(scope="function")
async def db(test_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for a test."""
    async_session = async_sessionmaker(
        test_engine, class_=AsyncSession, expire_on_commit=False
    )

    async with async_session() as session:
        yield session
        await session.rollback()


@pytest.fixture
def make_user(db):
    """Factory for users: `await make_user(name=..., role=..., therapist=...)`."""

    async def _make_user(name: str = "Alex", role: UserRole = UserRole.CLIENT, therapist=None) -> User:
        user = User(
            name=name,
            email=f"user{next(_emails)}@example.com",
            role=role.value,
            therapist_id=therapist.id if therapist else None,
        )
        db.add(user)
        await db.flush()
        return user

    return _make_user


@pytest.fixture
def utc_settings() -> EngagementSettings:
    """Engagement settings evaluated in UTC so test clocks read naturally."""
    return EngagementSettings(timezone="UTC")
