"""
Test configuration and fixtures.
Uses SQLite in-memory for fast tests. Redis and external callers are mocked.
"""
import os

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("WEBHOOK_SECRET", "test-webhook-secret")
os.environ.setdefault("AUTH_JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("APP_TIMEZONE", "Europe/Berlin")
os.environ.setdefault("LOG_LEVEL", "WARNING")

import uuid
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.dialects.postgresql import JSONB

from campus.database import Base
from campus.models.user import User


# Register JSONB as JSON for SQLite compatibility in tests
@compiles(JSONB, "sqlite")
def _compile_jsonb_sqlite(type_, compiler, **kw):
    return "JSON"


@pytest.fixture
async def db():
    """In-memory SQLite database for tests."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session
    await engine.dispose()


@pytest.fixture
def make_user(db):
    """Factory for persisted users."""
    async def _make(email: str | None = None, **fields) -> User:
        user = User(email=email or f"user-{uuid.uuid4().hex[:8]}@example.com", **fields)
        db.add(user)
        await db.flush()
        return user
    return _make


@pytest.fixture
async def user(make_user):
    return await make_user("anna@example.com", first_name="Anna")


@pytest.fixture
def mock_redis():
    """Mock for async Redis - prevents real Redis calls in tests."""
    with patch("campus.utils.redis.get_redis", new_callable=AsyncMock) as mock:
        redis_mock = AsyncMock()
        redis_mock.ping = AsyncMock(return_value=True)
        mock.return_value = redis_mock
        yield redis_mock
