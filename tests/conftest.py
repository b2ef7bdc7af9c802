"""
Test configuration and shared fixtures.
Uses an in-memory SQLite database for fast, isolated tests and a temporary
directory for stored images.
"""
from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from datetime import timedelta
from typing import Any

# Must be set before any pitlane module reads settings
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("RATE_LIMIT_ENABLED", "false")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

import pitlane.models  # noqa: F401
from pitlane.core.security import create_access_token
from pitlane.db.base import Base
from pitlane.db.session import get_db
from pitlane.main import app
from pitlane.models.user import User
from pitlane.services.draft_registry import ImageDraftRegistry, get_draft_registry
from pitlane.services.image_store import LocalImageStore, get_image_store

# ── Test database ─────────────────────────────────────────────────────────────
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)


# aiosqlite defers BEGIN on its own, which breaks SAVEPOINT; emit it ourselves.
@event.listens_for(test_engine.sync_engine, "connect")
def _disable_driver_transactions(dbapi_connection, connection_record) -> None:
    dbapi_connection.isolation_level = None


@event.listens_for(test_engine.sync_engine, "begin")
def _emit_begin(conn) -> None:
    conn.exec_driver_sql("BEGIN")


TestSessionLocal = async_sessionmaker(
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
    join_transaction_mode="create_savepoint",
)


@pytest_asyncio.fixture(scope="session", loop_scope="session", autouse=True)
async def create_tables():
    """Create all tables once per test session."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await test_engine.dispose()


@pytest_asyncio.fixture(loop_scope="session")
async def db() -> AsyncGenerator[AsyncSession, None]:
    """
    Provide a session inside an outer transaction that is rolled back after
    each test. Commits made by the code under test only release a savepoint.
    """
    async with test_engine.connect() as conn:
        outer = await conn.begin()
        session = TestSessionLocal(bind=conn)
        try:
            yield session
        finally:
            await session.close()
            await outer.rollback()


@pytest.fixture
def image_store(tmp_path) -> LocalImageStore:
    return LocalImageStore(str(tmp_path / "uploads"), "/uploads")


@pytest.fixture
def registry() -> ImageDraftRegistry:
    registry = ImageDraftRegistry(
        ttl=timedelta(minutes=30), preview_url_base="/api/v1/image-drafts"
    )
    yield registry
    registry.close_all()


@pytest_asyncio.fixture(loop_scope="session")
async def client(
    db: AsyncSession,
    image_store: LocalImageStore,
    registry: ImageDraftRegistry,
) -> AsyncGenerator[AsyncClient, None]:
    """Provide an async HTTP test client with the test DB, store and registry injected."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_image_store] = lambda: image_store
    app.dependency_overrides[get_draft_registry] = lambda: registry

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac

    app.dependency_overrides.clear()


# ── Helper fixtures ───────────────────────────────────────────────────────────

async def _create_user(db: AsyncSession, email: str, username: str) -> User:
    user = User(email=email, username=username, full_name=username.title())
    db.add(user)
    await db.flush()
    await db.refresh(user)
    return user


def _headers_for(user: User) -> dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(str(user.id))}"}


@pytest_asyncio.fixture(loop_scope="session")
async def driver(db: AsyncSession) -> User:
    """A user provisioned by the identity provider."""
    return await _create_user(db, "driver@example.com", "driver")


@pytest_asyncio.fixture(loop_scope="session")
async def auth_headers(driver: User) -> dict[str, str]:
    return _headers_for(driver)


@pytest_asyncio.fixture(loop_scope="session")
async def other_headers(db: AsyncSession) -> dict[str, str]:
    """Authorization headers for a second, unrelated user."""
    other = await _create_user(db, "other@example.com", "otherdriver")
    return _headers_for(other)


@pytest_asyncio.fixture(loop_scope="session")
async def pitstop(client: AsyncClient, auth_headers: dict) -> dict[str, Any]:
    """A drive log owned by the driver with a single pitstop."""
    response = await client.post(
        "/api/v1/drive-logs/",
        json={
            "title": "Sunday canyon run",
            "start_location": "Malibu",
            "end_location": "Ojai",
            "distance": 112.5,
            "duration": 140,
        },
        headers=auth_headers,
    )
    assert response.status_code == 201, response.text
    drive_log = response.json()

    response = await client.post(
        f"/api/v1/drive-logs/{drive_log['id']}/pitstops",
        json={"name": "Rock Store", "latitude": 34.12, "longitude": -118.75},
        headers=auth_headers,
    )
    assert response.status_code == 201, response.text
    return response.json()
