"""Unit tests for infrastructure settings."""

import pytest
from pydantic import ValidationError

from infrastructure.settings import (
    DatabaseSettings,
    OutboxSettings,
    Settings,
    get_outbox_settings,
)
from messaging.domain.value_objects import RetentionPolicy


class TestDatabaseSettingsPoolConfiguration:
    """Tests for connection pool configuration."""

    def test_default_pool_settings(self):
        """Should have sensible pool defaults."""
        settings = DatabaseSettings()
        assert settings.pool_min_connections >= 1
        assert settings.pool_max_connections >= settings.pool_min_connections
        assert settings.pool_max_connections <= 20
        assert settings.pool_enabled is True

    def test_pool_can_be_disabled(self):
        """Should allow disabling pool for tests."""
        settings = DatabaseSettings(pool_enabled=False)
        assert settings.pool_enabled is False

    def test_pool_max_must_be_greater_than_or_equal_to_min(self):
        """Should validate max >= min."""
        with pytest.raises(ValidationError) as exc_info:
            DatabaseSettings(pool_min_connections=10, pool_max_connections=5)

        assert "pool_max_connections" in str(exc_info.value)

    def test_pool_max_equal_to_min_is_valid(self):
        settings = DatabaseSettings(pool_min_connections=5, pool_max_connections=5)
        assert settings.pool_max_connections == 5

    def test_pool_min_must_be_positive(self):
        with pytest.raises(ValidationError):
            DatabaseSettings(pool_min_connections=0)

    def test_pool_max_respects_upper_limit(self):
        with pytest.raises(ValidationError):
            DatabaseSettings(pool_max_connections=101)


class TestDatabaseSettingsEnvironment:
    """Tests for environment variable loading."""

    def test_reads_prefixed_variables(self, monkeypatch):
        monkeypatch.setenv("EVENTSYNC_DB_HOST", "db.internal")
        monkeypatch.setenv("EVENTSYNC_DB_PORT", "6543")
        monkeypatch.setenv("EVENTSYNC_DB_PASSWORD", "s3cret")

        settings = DatabaseSettings()

        assert settings.host == "db.internal"
        assert settings.port == 6543
        assert settings.password.get_secret_value() == "s3cret"

    def test_connection_string_omits_password(self):
        settings = DatabaseSettings(
            host="db", username="svc", password="hunter2", database="events"
        )

        assert settings.connection_string == "postgresql://svc@db:5432/events"
        assert "hunter2" not in settings.connection_string


class TestOutboxSettings:
    """Tests for outbox tuning."""

    def test_defaults(self):
        settings = OutboxSettings()

        assert settings.unacknowledged_query_cap == 500
        assert settings.replay_batch_size == 100
        assert settings.max_retries == 10
        assert settings.publish_timeout_seconds == 10.0
        assert settings.retention_days == 7
        assert settings.parked_retention_days == 30
        assert settings.retention_policy is RetentionPolicy.TERMINAL_ONLY
        assert settings.scheduler_enabled is True

    def test_reads_policy_from_environment(self, monkeypatch):
        monkeypatch.setenv("EVENTSYNC_OUTBOX_RETENTION_POLICY", "all")
        monkeypatch.setenv("EVENTSYNC_OUTBOX_MAX_RETRIES", "3")

        settings = OutboxSettings()

        assert settings.retention_policy is RetentionPolicy.ALL
        assert settings.max_retries == 3

    def test_rejects_unknown_policy(self):
        with pytest.raises(ValidationError):
            OutboxSettings(retention_policy="everything")

    @pytest.mark.parametrize(
        "field, value",
        [
            ("replay_batch_size", 0),
            ("max_retries", 0),
            ("publish_timeout_seconds", 0),
            ("retention_days", -1),
        ],
    )
    def test_rejects_out_of_range_values(self, field, value):
        with pytest.raises(ValidationError):
            OutboxSettings(**{field: value})

    def test_getter_is_cached(self):
        get_outbox_settings.cache_clear()
        try:
            assert get_outbox_settings() is get_outbox_settings()
        finally:
            get_outbox_settings.cache_clear()


class TestSettings:
    def test_publisher_factory_from_environment(self, monkeypatch):
        monkeypatch.setenv("EVENTSYNC_PUBLISHER_FACTORY", "broker.redis:create")

        assert Settings().publisher_factory == "broker.redis:create"

    def test_publisher_factory_unset_by_default(self, monkeypatch):
        monkeypatch.delenv("EVENTSYNC_PUBLISHER_FACTORY", raising=False)

        assert Settings().publisher_factory is None
