"""Integration test fixtures for database tests.

These fixtures require a running PostgreSQL instance. Deselect the suite
with `-m "not integration"` when no database is available.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator, Awaitable, Callable

import pytest
import pytest_asyncio
from pydantic import SecretStr
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from infrastructure.database.engines import create_engine, create_session_factory
from infrastructure.database.models import Base
from infrastructure.settings import DatabaseSettings
from messaging.application.services import EventTrackingService
from messaging.infrastructure.event_tracking_repository import (
    EventTrackingRepository,
)
from messaging.infrastructure.models import EventTrackingModel  # noqa: F401


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers",
        "integration: mark test as integration test (requires database)",
    )


@pytest.fixture(scope="session")
def integration_db_settings() -> DatabaseSettings:
    """Database settings for integration tests.

    Override with environment variables:
        EVENTSYNC_DB_HOST, EVENTSYNC_DB_PORT, etc.
    """
    return DatabaseSettings(
        host=os.getenv("EVENTSYNC_DB_HOST", "localhost"),
        port=int(os.getenv("EVENTSYNC_DB_PORT", "5432")),
        database=os.getenv("EVENTSYNC_DB_DATABASE", "eventsync"),
        username=os.getenv("EVENTSYNC_DB_USERNAME", "eventsync"),
        password=SecretStr(
            os.getenv("EVENTSYNC_DB_PASSWORD", "eventsync_dev_password")
        ),
        pool_enabled=False,
    )


@pytest_asyncio.fixture
async def session_factory(
    integration_db_settings: DatabaseSettings,
) -> AsyncGenerator[async_sessionmaker[AsyncSession], None]:
    """Provide a session factory over a clean event_tracking table.

    Creates the table if needed and empties it before and after each test.
    """
    engine = create_engine(integration_db_settings)
    async with engine.begin() as connection:
        await connection.run_sync(Base.metadata.create_all)
        await connection.execute(text("DELETE FROM event_tracking"))

    yield create_session_factory(engine)

    async with engine.begin() as connection:
        await connection.execute(text("DELETE FROM event_tracking"))
    await engine.dispose()


@pytest.fixture
def tracking_service(
    session_factory: async_sessionmaker[AsyncSession],
) -> EventTrackingService:
    return EventTrackingService(
        session_factory=session_factory,
        repository_factory=EventTrackingRepository,
    )


@pytest.fixture
def backdate(
    session_factory: async_sessionmaker[AsyncSession],
) -> Callable[[str, float], Awaitable[None]]:
    """Move a record's published_at into the past by the given number of hours."""

    async def _backdate(event_id: str, hours: float) -> None:
        async with session_factory() as session, session.begin():
            await session.execute(
                text(
                    "UPDATE event_tracking "
                    "SET published_at = NOW() - make_interval(secs => :seconds) "
                    "WHERE event_id = :event_id"
                ),
                {"seconds": hours * 3600, "event_id": event_id},
            )

    return _backdate
