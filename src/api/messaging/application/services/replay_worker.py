"""Replay worker for undelivered outbox events.

Selects a bounded batch of pending or failed records, republishes them
concurrently, and writes the outcome back with at most two bulk UPDATEs
regardless of batch size.
"""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from messaging.application.observability import (
    DefaultReplayWorkerProbe,
    ReplayWorkerProbe,
)
from messaging.application.transactions import (
    RepositoryFactory,
    repository_transaction,
)
from messaging.domain.value_objects import EventRecord, ReplayFailure
from messaging.ports.exceptions import PublishError, PublishTimeoutError
from messaging.ports.publisher import EventPublisher

DEFAULT_REPLAY_BATCH_SIZE = 100
DEFAULT_MAX_RETRIES = 10
DEFAULT_PUBLISH_TIMEOUT_SECONDS = 10.0


class ReplayWorker:
    """Batch-bounded retry engine for the outbox.

    Rows are locked with FOR UPDATE SKIP LOCKED for the duration of the
    batch, so several workers may run against the same table without
    republishing the same record concurrently. If the batch cannot be
    committed its rows are simply selected again on the next run, which
    is the at-least-once guarantee.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        repository_factory: RepositoryFactory,
        publisher: EventPublisher,
        batch_size: int = DEFAULT_REPLAY_BATCH_SIZE,
        max_retries: int = DEFAULT_MAX_RETRIES,
        publish_timeout_seconds: float = DEFAULT_PUBLISH_TIMEOUT_SECONDS,
        probe: ReplayWorkerProbe | None = None,
    ) -> None:
        """Initialize the replay worker.

        Args:
            session_factory: Factory for the per-batch database session
            repository_factory: Builds a repository bound to a session
            publisher: Broker collaborator used to republish events
            batch_size: Default maximum records per batch
            max_retries: Default retry budget; records at or above it are parked
            publish_timeout_seconds: Timeout applied to each broker call
            probe: Optional domain probe for observability
        """
        self._session_factory = session_factory
        self._repository_factory = repository_factory
        self._publisher = publisher
        self._batch_size = batch_size
        self._max_retries = max_retries
        self._publish_timeout_seconds = publish_timeout_seconds
        self._probe = probe or DefaultReplayWorkerProbe()

    async def replay_pending_events(
        self,
        max_batch_size: int | None = None,
        max_retries: int | None = None,
    ) -> int:
        """Republish one batch of pending or failed events.

        Individual publish failures, including timeouts, are recorded on
        their rows and never raised.

        Args:
            max_batch_size: Maximum records to select (defaults to configured batch size)
            max_retries: Records at or above this retry count are skipped

        Returns:
            Number of records successfully republished

        Raises:
            StorageError: If the batch could not be selected or committed
        """
        batch_size = max_batch_size if max_batch_size is not None else self._batch_size
        retries = max_retries if max_retries is not None else self._max_retries
        if batch_size <= 0:
            return 0

        try:
            async with repository_transaction(
                self._session_factory, self._repository_factory
            ) as repository:
                records = await repository.lock_replayable(batch_size, retries)
                self._probe.replay_batch_selected(
                    selected=len(records), batch_size=batch_size
                )
                if not records:
                    succeeded: list[str] = []
                    failures: list[ReplayFailure] = []
                else:
                    succeeded, failures = await self._publish_all(records)

                if succeeded:
                    await repository.mark_replayed(succeeded, datetime.now(UTC))
                if failures:
                    await repository.record_replay_failures(failures)
        except Exception as e:
            self._probe.replay_batch_failed(error=str(e))
            raise

        self._probe.replay_batch_completed(
            selected=len(records),
            succeeded=len(succeeded),
            failed=len(failures),
        )
        return len(succeeded)

    async def _publish_all(
        self, records: list[EventRecord]
    ) -> tuple[list[str], list[ReplayFailure]]:
        """Publish records concurrently and partition the outcomes."""
        results = await asyncio.gather(
            *(self._publish(record) for record in records),
            return_exceptions=True,
        )

        succeeded: list[str] = []
        failures: list[ReplayFailure] = []
        for record, result in zip(records, results):
            if isinstance(result, BaseException):
                message = _error_message(result)
                self._probe.replay_publish_failed(
                    event_id=record.event_id, error=message
                )
                failures.append(
                    ReplayFailure(event_id=record.event_id, error_message=message)
                )
            else:
                succeeded.append(record.event_id)

        return succeeded, failures

    async def _publish(self, record: EventRecord) -> None:
        """Publish one record, raising PublishError on any failure."""
        try:
            async with asyncio.timeout(self._publish_timeout_seconds):
                outcome = await self._publisher.publish_inter_app_event(
                    record.to_outbound_event()
                )
        except TimeoutError as e:
            raise PublishTimeoutError(
                record.event_id, self._publish_timeout_seconds
            ) from e

        if not outcome.success:
            raise PublishError(record.event_id, outcome.error or "Broker rejected event")


def _error_message(error: BaseException) -> str:
    if isinstance(error, PublishError):
        return error.reason
    return str(error) or type(error).__name__
