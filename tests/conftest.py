"""
Global test fixtures and configuration.

This module provides base fixtures for all tests:
- SQLite database file per test (tables created fresh)
- Database session for arranging and inspecting data
- Redis client (in-memory fake)
- HTTP client with dependency overrides
- Base data fixtures (user, super_admin, auth headers, grant helpers)
"""

import os
import pytest
from typing import AsyncGenerator
from httpx import ASGITransport, AsyncClient
from sqlalchemy import select
from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.pool import NullPool
from fakeredis import FakeAsyncRedis

# Set test environment variables BEFORE importing app
os.environ["MODE"] = "test"
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["CREATE_TABLES_ON_STARTUP"] = "false"
os.environ["ACCESS_LOG_ENABLED"] = "false"
os.environ["NOTIFICATIONS_ENABLED"] = "false"
os.environ["SENTRY_DSN"] = ""
os.environ["LOGIN_RATE_LIMIT"] = "5"

from app.main import app
from app.api.dependencies import get_db, get_redis
from app.core.security import create_access_token
from app.db.base import Base
from app.models.permission import Permission


# ==================== Database ====================

@pytest.fixture(scope="function")
async def test_engine(tmp_path):
    """
    Create a test database engine backed by a throwaway SQLite file.

    Every test gets its own file, so no cleanup is needed between tests.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        poolclass=NullPool,
        echo=False  # Set to True for SQL debugging
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture(scope="function")
async def db_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """
    Session used by tests to arrange data and inspect results.

    Requests get their own sessions; commit arranged data before calling the API.
    """
    async with session_factory() as session:
        yield session


# ==================== Redis ====================

@pytest.fixture(scope="function")
async def redis_client() -> AsyncGenerator[FakeAsyncRedis, None]:
    """Fake Redis client (in-memory) for each test."""
    redis = FakeAsyncRedis()
    yield redis
    await redis.flushall()
    await redis.aclose()


# ==================== FastAPI Client ====================

@pytest.fixture(scope="function")
async def client(session_factory, redis_client: FakeAsyncRedis) -> AsyncGenerator[AsyncClient, None]:
    """
    Create HTTP client for testing FastAPI endpoints.

    Overrides get_db and get_redis dependencies to use test fixtures.
    """

    async def override_get_db():
        async with session_factory() as session:
            yield session

    async def override_get_redis():
        yield redis_client

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_redis] = override_get_redis

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


# ==================== Base Data Fixtures ====================

def headers_for(user) -> dict:
    token = create_access_token(data={"sub": str(user.id)}, token_version=user.token_version)
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
async def user(db_session: AsyncSession):
    """A regular admin user with no permissions."""
    from tests.factories.user import UserFactory
    user = await UserFactory.create_async(db_session)
    await db_session.commit()
    return user


@pytest.fixture
async def super_admin(db_session: AsyncSession):
    """A super admin: bypasses every permission check."""
    from tests.factories.user import UserFactory
    user = await UserFactory.create_async(
        db_session,
        email="root@test.com",
        name="Root Admin",
        role="super_admin"
    )
    await db_session.commit()
    return user


@pytest.fixture
async def auth_headers(user):
    return headers_for(user)


@pytest.fixture
async def super_admin_headers(super_admin):
    return headers_for(super_admin)


@pytest.fixture
def grant(db_session: AsyncSession):
    """
    Grant actions on a permission directly to a user, creating the permission
    when it does not exist yet.

    Usage:
        await grant(user, "user-groups", ["edit"])
    """
    from tests.factories.permission import PermissionFactory
    from tests.factories.user_permission import UserPermissionFactory

    async def _grant(user, permission_name: str, actions=("view",)) -> Permission:
        result = await db_session.execute(select(Permission).filter(Permission.name == permission_name))
        permission = result.scalar_one_or_none()
        if permission is None:
            permission = await PermissionFactory.create_async(db_session, name=permission_name)
        await UserPermissionFactory.create_async(
            db_session,
            user_id=user.id,
            permission_id=permission.id,
            granted_actions=list(actions)
        )
        await db_session.commit()
        return permission

    return _grant
