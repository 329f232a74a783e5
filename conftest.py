"""
Pytest configuration and fixtures for backend tests.

This module provides the core testing infrastructure including:
- An in-memory SQLite database standing in for PostgreSQL
- Session fixtures for database access
- Test client for gateway API integration tests
- Client-side fixtures: fake gateway transport, notification sink, dispatcher
"""

from collections.abc import AsyncGenerator, Generator

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from devicepush.db import base  # noqa: F401  # ensure models are imported for metadata
from devicepush.db.session import get_session
from devicepush.main import app
from devicepush.services.background_tasks import BackgroundDispatcher
from devicepush.testing import RecordingGatewayTransport, RecordingNotificationSink

TEST_DATABASE_URL = "sqlite+aiosqlite://"


@pytest.fixture(scope="function")
async def engine():
    """Create a fresh in-memory database with all tables."""
    test_engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        future=True,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with test_engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield test_engine
    await test_engine.dispose()


@pytest.fixture(scope="function")
async def session(engine) -> AsyncGenerator[AsyncSession, None]:
    """
    Create a fresh database session for each test.

    The database lives only as long as the engine fixture, so no
    cleanup is needed between tests.
    """
    async_session = sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autocommit=False,
        autoflush=False,
    )

    async with async_session() as test_session:
        yield test_session


@pytest.fixture
async def client(session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """
    Create an async HTTP client for testing gateway endpoints.

    Usage:
        async def test_endpoint(client: AsyncClient):
            response = await client.post("/register-token", json={...})
            assert response.status_code == 200
    """

    async def override_get_session() -> AsyncGenerator[AsyncSession, None]:
        yield session

    app.dependency_overrides[get_session] = override_get_session

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()


@pytest.fixture
def dispatcher() -> Generator[BackgroundDispatcher, None, None]:
    """Background dispatcher that is shut down after the test."""
    test_dispatcher = BackgroundDispatcher(name="test-dispatch")
    yield test_dispatcher
    test_dispatcher.shutdown(timeout=2.0)


@pytest.fixture
def gateway_transport() -> Generator[RecordingGatewayTransport, None, None]:
    transport = RecordingGatewayTransport()
    yield transport
    # Never leave a stalled request hanging on the worker loop
    transport.release.set()


@pytest.fixture
def notification_sink() -> RecordingNotificationSink:
    return RecordingNotificationSink(drawables={"ic_notification"})
