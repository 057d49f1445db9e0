"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, datetime, timedelta

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from bunnyvault.config import settings
from bunnyvault.core.base_model import Base
from bunnyvault.core.database import get_db
from bunnyvault.core.redis import get_cache
from bunnyvault.main import create_app
from bunnyvault.modules.placement import models as placement_models  # noqa: F401
from bunnyvault.modules.provider.client import get_stream_provider
from bunnyvault.modules.shards.models import ShardMetadata
from tests.fixtures import FakeCache, FakeStreamProvider, ShardMetadataFactory

# ============================================================================
# Test Data Constants
# ============================================================================

ADMIN_KEY = "test-admin-key"
BASE_TIME = datetime(2026, 1, 1, tzinfo=UTC)


# ============================================================================
# Provider and Cache Fakes
# ============================================================================


@pytest.fixture
def provider() -> FakeStreamProvider:
    """Fresh fake provider per test."""
    return FakeStreamProvider()


@pytest.fixture
def cache() -> FakeCache:
    """Fresh fake cache per test."""
    return FakeCache()


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest_asyncio.fixture(scope="function")
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """SQLite file database with the schema created from the models.

    A file (not :memory:) so that concurrent sessions get separate
    connections and the partial unique indexes are shared between them.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'placement.db'}",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory configured like the application's."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )


@pytest_asyncio.fixture(scope="function")
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Create test database session."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def add_shard(
    session_factory: async_sessionmaker[AsyncSession],
    provider: FakeStreamProvider,
) -> Callable[..., Awaitable[ShardMetadata]]:
    """Register a shard at the fake provider and in local metadata.

    ``age`` orders shards by creation: a larger age means created earlier.
    """

    async def _add(
        shard_id: str,
        region: str = "eu",
        *,
        age: int = 0,
        is_active: bool = True,
        in_provider: bool = True,
    ) -> ShardMetadata:
        if in_provider:
            provider.add_shard(shard_id, region=region)
        meta = ShardMetadataFactory(
            shard_id=shard_id,
            region=region,
            is_active=is_active,
            created_at=BASE_TIME - timedelta(days=age),
        )
        async with session_factory() as session:
            session.add(meta)
            await session.commit()
        return meta

    return _add


# ============================================================================
# Application Fixtures
# ============================================================================


@pytest.fixture
def admin_key(monkeypatch: pytest.MonkeyPatch) -> str:
    """Enable the admin API with a known key."""
    monkeypatch.setattr(settings, "admin_api_key", ADMIN_KEY)
    return ADMIN_KEY


@pytest_asyncio.fixture(scope="function")
async def app(
    session_factory: async_sessionmaker[AsyncSession],
    provider: FakeStreamProvider,
    cache: FakeCache,
) -> FastAPI:
    """Create test FastAPI application."""
    application = create_app()

    # One session per request, like get_db
    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_db] = override_get_db
    application.dependency_overrides[get_stream_provider] = lambda: provider
    application.dependency_overrides[get_cache] = lambda: cache

    return application


@pytest_asyncio.fixture(scope="function")
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Create test HTTP client."""
    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as ac:
        yield ac
