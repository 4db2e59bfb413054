"""Repository protocol (port) for the event outbox.

A repository instance is bound to one AsyncSession. The calling service
owns the transaction, so several repository calls (select, then bulk
updates) can share the row locks taken by the first one.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from typing import Any, Protocol, runtime_checkable

from messaging.domain.value_objects import (
    ChannelCounts,
    EventRecord,
    ReplayFailure,
    StatusCounts,
    TrackEventParams,
)


@runtime_checkable
class IEventTrackingRepository(Protocol):
    """Durable storage for outbox records.

    Every mutation is a single statement computed relative to the stored
    row (column arithmetic, JSONB merge), never a read-modify-write.
    All methods raise StorageError when the database fails.
    """

    async def add(self, params: TrackEventParams) -> EventRecord:
        """Insert a new record with status pending.

        Args:
            params: Identity, routing, payload and initial metadata

        Returns:
            The stored record

        Raises:
            DuplicateEventError: If event_id already exists
            StorageError: If the insert fails for any other reason
        """
        ...

    async def get(self, event_id: str) -> EventRecord | None:
        """Retrieve a record by id, or None if it does not exist."""
        ...

    async def mark_published(
        self, event_id: str, metadata: dict[str, Any] | None = None
    ) -> bool:
        """Move a pending, failed or published record to published.

        Acknowledged records are left untouched. Metadata is merged into
        the stored bag.

        Returns:
            True if a row was updated
        """
        ...

    async def mark_failed(
        self, event_id: str, error_message: str, increment_retry: bool = True
    ) -> bool:
        """Move an undelivered or published record to failed.

        When increment_retry is set, retry_count is incremented and
        last_retry_at stamped in the same statement.

        Returns:
            True if a row was updated
        """
        ...

    async def acknowledge(
        self, event_id: str, ack_data: dict[str, Any] | None = None
    ) -> bool:
        """Mark a record acknowledged by its consumer.

        The first acknowledged_at is kept on repeated calls. A record that
        was pending or failed gets an ``ackOverride`` audit entry recording
        its previous status.

        Returns:
            True if a row was updated
        """
        ...

    async def list_unacknowledged(
        self, tenant_id: str, published_before: datetime, limit: int
    ) -> list[EventRecord]:
        """List unacknowledged records older than a cutoff, oldest first."""
        ...

    async def lock_replayable(self, limit: int, max_retries: int) -> list[EventRecord]:
        """Select and row-lock records eligible for replay.

        Picks pending or failed records below max_retries, oldest first.
        Rows locked by another transaction are skipped.
        """
        ...

    async def mark_replayed(
        self, event_ids: Sequence[str], replayed_at: datetime
    ) -> int:
        """Publish a batch of records with one UPDATE.

        Clears error_message and merges ``replayedAt`` into metadata.

        Returns:
            Number of rows updated
        """
        ...

    async def record_replay_failures(self, failures: Sequence[ReplayFailure]) -> int:
        """Fail a batch of records with one UPDATE.

        Each row gets its own error message, and its retry_count is
        incremented.

        Returns:
            Number of rows updated
        """
        ...

    async def count_by_status(self, tenant_id: str, max_retries: int) -> StatusCounts:
        """Count a tenant's records per status in a single grouped query."""
        ...

    async def count_by_channel(
        self, tenant_id: str, max_retries: int
    ) -> list[ChannelCounts]:
        """Count a tenant's records per status for every channel."""
        ...

    async def delete_expired(
        self,
        terminal_cutoff: datetime,
        parked_cutoff: datetime,
        max_retries: int,
    ) -> int:
        """Delete records past their retention window in one statement.

        Published or acknowledged records older than terminal_cutoff are
        deleted. Parked records older than parked_cutoff are deleted.
        Records that are still replayable are never deleted.

        Returns:
            Number of rows deleted
        """
        ...
