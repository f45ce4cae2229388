"""Pytest configuration and fixtures."""

from collections.abc import AsyncGenerator, Generator

import pytest
from fastapi.testclient import TestClient
from httpx import ASGITransport, AsyncClient
from sqlalchemy import StaticPool
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

from followup.api.deps import get_provider
from followup.core.security import create_access_token
from followup.db.base import Base
from followup.db.session import get_db
from followup.main import app
from followup.models import Practitioner
from tests.factories import RecordingProvider

# Use SQLite for testing (simpler than spinning up postgres)
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"


@pytest.fixture(scope="function")
async def async_engine():
    """Create async test database engine."""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)

    await engine.dispose()


@pytest.fixture(scope="function")
async def async_session(async_engine) -> AsyncGenerator[AsyncSession, None]:
    """Create async database session for tests."""
    async_session_maker = async_sessionmaker(
        async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )

    async with async_session_maker() as session:
        yield session


@pytest.fixture
def provider() -> RecordingProvider:
    """Delivery provider that records every send."""
    return RecordingProvider()


@pytest.fixture(scope="function")
def client() -> Generator[TestClient, None, None]:
    """Synchronous test client for endpoints that do not touch the database."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(scope="function")
async def async_client(
    async_session: AsyncSession,
    provider: RecordingProvider,
) -> AsyncGenerator[AsyncClient, None]:
    """Async test client sharing the test session and provider."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield async_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_provider] = lambda: provider

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
async def practitioner(async_session: AsyncSession) -> Practitioner:
    """Create a test practitioner."""
    practitioner = Practitioner(
        email="dr.martin@followup.local",
        full_name="Dr Claire Martin",
        is_active=True,
    )
    async_session.add(practitioner)
    await async_session.commit()
    await async_session.refresh(practitioner)
    return practitioner


@pytest.fixture
async def other_practitioner(async_session: AsyncSession) -> Practitioner:
    """Create a second practitioner for ownership checks."""
    practitioner = Practitioner(
        email="dr.other@followup.local",
        full_name="Dr Other",
        is_active=True,
    )
    async_session.add(practitioner)
    await async_session.commit()
    await async_session.refresh(practitioner)
    return practitioner


def create_test_token(practitioner: Practitioner) -> str:
    """Create a test JWT token for a practitioner."""
    return create_access_token(
        subject=practitioner.id,
        additional_claims={
            "actor_type": "practitioner",
            "email": practitioner.email,
        },
    )


@pytest.fixture
def auth_headers(practitioner: Practitioner) -> dict[str, str]:
    """Create authorization headers for the test practitioner."""
    return {"Authorization": f"Bearer {create_test_token(practitioner)}"}
