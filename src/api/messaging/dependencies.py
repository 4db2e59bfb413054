"""Dependency wiring for the messaging bounded context.

MessagingContainer owns the engine, the session factory and the outbox
services. It is constructed explicitly by the entrypoint (or a test) and
passed to whoever needs it; nothing here is a module-level singleton.
"""

from __future__ import annotations

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from infrastructure.database.engines import create_engine, create_session_factory
from infrastructure.database.exceptions import DatabaseConnectionError
from infrastructure.observability import DatabaseProbe, DefaultDatabaseProbe
from infrastructure.settings import DatabaseSettings, OutboxSettings
from messaging.application.scheduler import MaintenanceScheduler
from messaging.application.services import (
    EventTrackingService,
    HealthReporter,
    InterAppEventService,
    ReplayWorker,
    RetentionSweeper,
)
from messaging.infrastructure.event_tracking_repository import (
    EventTrackingRepository,
)
from messaging.ports.publisher import EventPublisher


class MessagingContainer:
    """Explicitly constructed container for the outbox services.

    Lifecycle:
        container = MessagingContainer(db_settings, outbox_settings, publisher)
        await container.initialize()
        ...
        await container.close()

    Accessing a service before initialize() raises RuntimeError.
    """

    def __init__(
        self,
        database_settings: DatabaseSettings,
        outbox_settings: OutboxSettings,
        publisher: EventPublisher,
        engine: AsyncEngine | None = None,
        probe: DatabaseProbe | None = None,
    ) -> None:
        """Initialize the container without touching the database.

        Args:
            database_settings: Connection settings for the outbox database
            outbox_settings: Outbox tuning (batch sizes, retention, intervals)
            publisher: Broker collaborator used by replay and publish
            engine: Optional pre-built engine; disposed by close() either way
            probe: Optional domain probe for observability
        """
        self._database_settings = database_settings
        self._outbox_settings = outbox_settings
        self._publisher = publisher
        self._engine = engine
        self._probe = probe or DefaultDatabaseProbe()
        self._session_factory: async_sessionmaker[AsyncSession] | None = None
        self._tracking_service: EventTrackingService | None = None
        self._replay_worker: ReplayWorker | None = None
        self._health_reporter: HealthReporter | None = None
        self._retention_sweeper: RetentionSweeper | None = None
        self._inter_app_service: InterAppEventService | None = None
        self._scheduler: MaintenanceScheduler | None = None

    @property
    def is_initialized(self) -> bool:
        return self._session_factory is not None

    async def initialize(self, verify_connection: bool = True) -> None:
        """Create the engine and services.

        Args:
            verify_connection: Run a round-trip query before returning

        Raises:
            DatabaseConnectionError: If verify_connection is set and the
                database cannot be reached
        """
        if self.is_initialized:
            return

        settings = self._database_settings
        if self._engine is None:
            self._engine = create_engine(settings)
            self._probe.engine_created(
                host=settings.host,
                database=settings.database,
                pool_size=settings.pool_max_connections,
            )

        if verify_connection:
            await self._verify_connection()

        self._session_factory = create_session_factory(self._engine)
        self._build_services(self._session_factory)

    async def close(self) -> None:
        """Stop the scheduler and dispose the engine."""
        if self._scheduler is not None:
            await self._scheduler.stop()

        if self._engine is not None:
            await self._engine.dispose()
            self._probe.engine_disposed()

        self.reset()

    def reset(self) -> None:
        """Drop all built objects so the container can be initialized again.

        Does not dispose the engine; use close() for an orderly shutdown.
        """
        self._engine = None
        self._session_factory = None
        self._tracking_service = None
        self._replay_worker = None
        self._health_reporter = None
        self._retention_sweeper = None
        self._inter_app_service = None
        self._scheduler = None

    @property
    def session_factory(self) -> async_sessionmaker[AsyncSession]:
        return self._require(self._session_factory)

    @property
    def tracking_service(self) -> EventTrackingService:
        return self._require(self._tracking_service)

    @property
    def replay_worker(self) -> ReplayWorker:
        return self._require(self._replay_worker)

    @property
    def health_reporter(self) -> HealthReporter:
        return self._require(self._health_reporter)

    @property
    def retention_sweeper(self) -> RetentionSweeper:
        return self._require(self._retention_sweeper)

    @property
    def inter_app_service(self) -> InterAppEventService:
        return self._require(self._inter_app_service)

    @property
    def scheduler(self) -> MaintenanceScheduler:
        return self._require(self._scheduler)

    def _build_services(
        self, session_factory: async_sessionmaker[AsyncSession]
    ) -> None:
        outbox = self._outbox_settings

        self._tracking_service = EventTrackingService(
            session_factory=session_factory,
            repository_factory=EventTrackingRepository,
            unacknowledged_query_cap=outbox.unacknowledged_query_cap,
        )
        self._replay_worker = ReplayWorker(
            session_factory=session_factory,
            repository_factory=EventTrackingRepository,
            publisher=self._publisher,
            batch_size=outbox.replay_batch_size,
            max_retries=outbox.max_retries,
            publish_timeout_seconds=outbox.publish_timeout_seconds,
        )
        self._health_reporter = HealthReporter(
            session_factory=session_factory,
            repository_factory=EventTrackingRepository,
            max_retries=outbox.max_retries,
        )
        self._retention_sweeper = RetentionSweeper(
            session_factory=session_factory,
            repository_factory=EventTrackingRepository,
            retention_days=outbox.retention_days,
            parked_retention_days=outbox.parked_retention_days,
            policy=outbox.retention_policy,
            max_retries=outbox.max_retries,
        )
        self._inter_app_service = InterAppEventService(
            tracking_service=self._tracking_service,
            publisher=self._publisher,
            publish_timeout_seconds=outbox.publish_timeout_seconds,
        )
        self._scheduler = MaintenanceScheduler(
            replay_worker=self._replay_worker,
            retention_sweeper=self._retention_sweeper,
            replay_interval_seconds=outbox.replay_interval_seconds,
            cleanup_interval_seconds=outbox.cleanup_interval_seconds,
        )

    async def _verify_connection(self) -> None:
        assert self._engine is not None
        settings = self._database_settings
        try:
            async with self._engine.connect() as connection:
                await connection.execute(text("SELECT 1"))
        except (SQLAlchemyError, OSError) as e:
            self._probe.connection_failed(
                host=settings.host, database=settings.database, error=e
            )
            raise DatabaseConnectionError(
                f"Cannot reach database at {settings.connection_string}",
                host=settings.host,
            ) from e

        self._probe.connection_verified(host=settings.host, database=settings.database)

    @staticmethod
    def _require(value):
        if value is None:
            raise RuntimeError(
                "MessagingContainer is not initialized. Call initialize() first."
            )
        return value
