"""Retention sweeper for the outbox.

Deletes records past their retention window with a single DELETE.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from messaging.application.observability import (
    DefaultRetentionSweeperProbe,
    RetentionSweeperProbe,
)
from messaging.application.transactions import (
    RepositoryFactory,
    repository_transaction,
)
from messaging.domain.value_objects import RetentionPolicy

DEFAULT_RETENTION_DAYS = 7
DEFAULT_PARKED_RETENTION_DAYS = 30
DEFAULT_MAX_RETRIES = 10


class RetentionSweeper:
    """Removes delivered and parked records once they are old enough.

    Published and acknowledged records are deleted after retention_days.
    Parked records (undelivered, retry budget exhausted) are deleted after
    parked_retention_days under TERMINAL_ONLY, or after retention_days
    under ALL. Records that are still replayable are never deleted.

    Parked is judged against this sweeper's max_retries, which must match
    the budget the replay worker runs with.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        repository_factory: RepositoryFactory,
        retention_days: int = DEFAULT_RETENTION_DAYS,
        parked_retention_days: int = DEFAULT_PARKED_RETENTION_DAYS,
        policy: RetentionPolicy = RetentionPolicy.TERMINAL_ONLY,
        max_retries: int = DEFAULT_MAX_RETRIES,
        probe: RetentionSweeperProbe | None = None,
    ):
        self._session_factory = session_factory
        self._repository_factory = repository_factory
        self._retention_days = retention_days
        self._parked_retention_days = parked_retention_days
        self._policy = policy
        self._max_retries = max_retries
        self._probe = probe or DefaultRetentionSweeperProbe()

    async def cleanup_old_events(self, days_old: int | None = None) -> int:
        """Delete records older than days_old according to the policy.

        Args:
            days_old: Retention window in days (defaults to the configured window)

        Returns:
            Number of records deleted

        Raises:
            StorageError: If the delete could not be committed
        """
        retention_days = self._retention_days if days_old is None else days_old
        now = datetime.now(UTC)
        terminal_cutoff = now - timedelta(days=retention_days)
        if self._policy is RetentionPolicy.ALL:
            parked_cutoff = terminal_cutoff
        else:
            parked_cutoff = now - timedelta(
                days=max(retention_days, self._parked_retention_days)
            )

        try:
            async with repository_transaction(
                self._session_factory, self._repository_factory
            ) as repository:
                deleted = await repository.delete_expired(
                    terminal_cutoff=terminal_cutoff,
                    parked_cutoff=parked_cutoff,
                    max_retries=self._max_retries,
                )
        except Exception as e:
            self._probe.cleanup_failed(error=str(e))
            raise

        self._probe.events_cleaned_up(
            deleted=deleted,
            policy=self._policy.value,
            terminal_cutoff=terminal_cutoff,
            parked_cutoff=parked_cutoff,
        )
        return deleted
