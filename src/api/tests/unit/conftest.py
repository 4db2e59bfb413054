"""Unit test fixtures with mocked dependencies."""

from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from messaging.domain.value_objects import EventRecord, EventStatus
from messaging.ports.repositories import IEventTrackingRepository


@pytest.fixture
def mock_db_settings():
    """Provide test database settings."""
    from infrastructure.settings import DatabaseSettings

    return DatabaseSettings(
        host="testhost",
        port=5432,
        database="testdb",
        username="testuser",
        password="testpass",
    )


@pytest.fixture
def mock_session() -> AsyncMock:
    """Provide a mocked AsyncSession whose begin() is an async context manager."""
    session = AsyncMock()
    session.add = MagicMock()
    session.begin = MagicMock(return_value=AsyncMock())
    return session


@pytest.fixture
def mock_session_factory(mock_session: AsyncMock) -> MagicMock:
    """Provide a session factory yielding mock_session."""
    factory = MagicMock()
    factory.return_value.__aenter__.return_value = mock_session
    factory.return_value.__aexit__.return_value = False
    return factory


@pytest.fixture
def mock_repository() -> AsyncMock:
    """Provide a mocked outbox repository."""
    return AsyncMock(spec=IEventTrackingRepository)


@pytest.fixture
def repository_factory(mock_repository: AsyncMock) -> MagicMock:
    """Provide a repository factory returning mock_repository."""
    return MagicMock(return_value=mock_repository)


@pytest.fixture
def make_record() -> Callable[..., EventRecord]:
    """Build EventRecord instances with sensible defaults."""

    def _make(event_id: str = "evt-1", **overrides: Any) -> EventRecord:
        now = datetime(2026, 3, 1, 12, 0, 0, tzinfo=UTC)
        fields: dict[str, Any] = {
            "event_id": event_id,
            "event_type": "credit_config_changed",
            "tenant_id": "tenant-1",
            "entity_id": None,
            "stream_key": "inter-app-events",
            "source_application": "wrapper",
            "target_application": "crm",
            "event_data": {"credits": 10},
            "published_by": "system",
            "status": EventStatus.PENDING,
            "acknowledged": False,
            "acknowledged_at": None,
            "error_message": None,
            "retry_count": 0,
            "last_retry_at": None,
            "metadata": {},
            "published_at": now,
            "updated_at": now,
        }
        fields.update(overrides)
        return EventRecord(**fields)

    return _make
