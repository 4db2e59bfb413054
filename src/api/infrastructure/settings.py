"""Application settings using pydantic-settings.

Settings are loaded from environment variables with sensible defaults
for development. Production deployments should set all values explicitly.
"""

from functools import lru_cache

from pydantic import Field, SecretStr, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from messaging.domain.value_objects import RetentionPolicy


class DatabaseSettings(BaseSettings):
    """Database connection settings.

    Environment variables:
        EVENTSYNC_DB_HOST: Database host (default: localhost)
        EVENTSYNC_DB_PORT: Database port (default: 5432)
        EVENTSYNC_DB_DATABASE: Database name (default: eventsync)
        EVENTSYNC_DB_USERNAME: Database user (default: eventsync)
        EVENTSYNC_DB_PASSWORD: Database password (required in production)
        EVENTSYNC_DB_POOL_MIN_CONNECTIONS: Minimum connections in pool (default: 2)
        EVENTSYNC_DB_POOL_MAX_CONNECTIONS: Maximum connections in pool (default: 10)
        EVENTSYNC_DB_POOL_ENABLED: Enable connection pooling (default: true)
    """

    model_config = SettingsConfigDict(
        env_prefix="EVENTSYNC_DB_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    host: str = Field(default="localhost", description="Database host")
    port: int = Field(default=5432, description="Database port")
    database: str = Field(default="eventsync", description="Database name")
    username: str = Field(default="eventsync", description="Database username")
    password: SecretStr = Field(
        default=SecretStr(""),
        description="Database password",
    )
    pool_min_connections: int = Field(
        default=2,
        description="Minimum connections in pool",
        ge=1,
        le=100,
    )
    pool_max_connections: int = Field(
        default=10,
        description="Maximum connections in pool",
        ge=1,
        le=100,
    )
    pool_enabled: bool = Field(
        default=True,
        description="Enable connection pooling (disable for tests)",
    )

    @model_validator(mode="after")
    def validate_pool_settings(self) -> "DatabaseSettings":
        """Validate pool max >= min."""
        if self.pool_max_connections < self.pool_min_connections:
            raise ValueError(
                f"pool_max_connections ({self.pool_max_connections}) must be >= "
                f"pool_min_connections ({self.pool_min_connections})"
            )
        return self

    @property
    def connection_string(self) -> str:
        """Generate a connection string (without password for logging)."""
        return f"postgresql://{self.username}@{self.host}:{self.port}/{self.database}"


class OutboxSettings(BaseSettings):
    """Event outbox tuning.

    Environment variables:
        EVENTSYNC_OUTBOX_UNACKNOWLEDGED_QUERY_CAP: Row cap for reconciliation queries (default: 500)
        EVENTSYNC_OUTBOX_REPLAY_BATCH_SIZE: Records per replay batch (default: 100)
        EVENTSYNC_OUTBOX_MAX_RETRIES: Retries before a record is parked (default: 10)
        EVENTSYNC_OUTBOX_PUBLISH_TIMEOUT_SECONDS: Broker call timeout (default: 10)
        EVENTSYNC_OUTBOX_RETENTION_DAYS: Age of terminal records to delete (default: 7)
        EVENTSYNC_OUTBOX_PARKED_RETENTION_DAYS: Age of parked records to delete (default: 30)
        EVENTSYNC_OUTBOX_RETENTION_POLICY: terminal_only | all (default: terminal_only)
        EVENTSYNC_OUTBOX_REPLAY_INTERVAL_SECONDS: Scheduler replay period (default: 30)
        EVENTSYNC_OUTBOX_CLEANUP_INTERVAL_SECONDS: Scheduler cleanup period (default: 3600)
        EVENTSYNC_OUTBOX_SCHEDULER_ENABLED: Run the in-process scheduler (default: true)
    """

    model_config = SettingsConfigDict(
        env_prefix="EVENTSYNC_OUTBOX_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    unacknowledged_query_cap: int = Field(
        default=500,
        description="Maximum rows returned by the unacknowledged-events query",
        ge=1,
    )
    replay_batch_size: int = Field(
        default=100,
        description="Maximum records selected per replay batch",
        ge=1,
        le=10_000,
    )
    max_retries: int = Field(
        default=10,
        description="Retry count at which a record is parked",
        ge=1,
    )
    publish_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout applied to each broker publish call",
        gt=0,
    )
    retention_days: int = Field(
        default=7,
        description="Age in days after which terminal records are deleted",
        ge=0,
    )
    parked_retention_days: int = Field(
        default=30,
        description="Age in days after which parked records are deleted",
        ge=0,
    )
    retention_policy: RetentionPolicy = Field(
        default=RetentionPolicy.TERMINAL_ONLY,
        description="Which records are eligible for deletion",
    )
    replay_interval_seconds: float = Field(
        default=30.0,
        description="How often the scheduler replays pending events",
        gt=0,
    )
    cleanup_interval_seconds: float = Field(
        default=3600.0,
        description="How often the scheduler runs the retention sweep",
        gt=0,
    )
    scheduler_enabled: bool = Field(
        default=True,
        description="Whether this instance runs the maintenance scheduler",
    )


class Settings(BaseSettings):
    """Main application settings aggregating all configuration sections."""

    model_config = SettingsConfigDict(
        env_prefix="EVENTSYNC_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    app_name: str = Field(default="eventsync", description="Application name")
    log_level: str = Field(default="INFO", description="Minimum log level")
    publisher_factory: str | None = Field(
        default=None,
        description=(
            "Import path ('package.module:callable') of a zero-argument "
            "factory returning the broker publisher"
        ),
    )

    @property
    def database(self) -> DatabaseSettings:
        """Get database settings."""
        return get_database_settings()

    @property
    def outbox(self) -> OutboxSettings:
        """Get outbox settings."""
        return get_outbox_settings()


@lru_cache
def get_settings() -> Settings:
    """Get cached application settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return Settings()


@lru_cache
def get_database_settings() -> DatabaseSettings:
    """Get cached database settings.

    Uses lru_cache to ensure settings are only loaded once.
    """
    return DatabaseSettings()


@lru_cache
def get_outbox_settings() -> OutboxSettings:
    """Get cached outbox settings."""
    return OutboxSettings()
