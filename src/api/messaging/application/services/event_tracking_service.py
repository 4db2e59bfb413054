"""Event tracking application service.

Write-ahead recording of outbox events and their status transitions.
"""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from messaging.application.observability import (
    DefaultEventTrackingProbe,
    EventTrackingProbe,
)
from messaging.application.transactions import (
    RepositoryFactory,
    repository_transaction,
)
from messaging.domain.value_objects import (
    EventRecord,
    TrackEventParams,
    TrackResult,
    channel_label,
)

DEFAULT_UNACKNOWLEDGED_QUERY_CAP = 500


class EventTrackingService:
    """Application service for the outbox record lifecycle.

    Callers track an event before handing it to the broker, then report
    the broker outcome. Transitions are idempotent and safe to race: each
    one is a single statement against the stored row.

    Unmatched transitions never raise. They return False, and the probe
    records ``event_not_found`` for unknown ids or
    ``event_transition_ignored`` when the stored row is already final.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        repository_factory: RepositoryFactory,
        unacknowledged_query_cap: int = DEFAULT_UNACKNOWLEDGED_QUERY_CAP,
        probe: EventTrackingProbe | None = None,
    ):
        """Initialize EventTrackingService with dependencies.

        Args:
            session_factory: Factory for per-operation database sessions
            repository_factory: Builds a repository bound to a session
            unacknowledged_query_cap: Upper bound on reconciliation query rows
            probe: Optional domain probe for observability
        """
        self._session_factory = session_factory
        self._repository_factory = repository_factory
        self._unacknowledged_query_cap = unacknowledged_query_cap
        self._probe = probe or DefaultEventTrackingProbe()

    async def track_published_event(self, params: TrackEventParams) -> TrackResult:
        """Durably record an event with status pending.

        Must complete before the broker publish is attempted. The record is
        committed when this returns.

        Args:
            params: Identity, routing, payload and initial metadata

        Returns:
            TrackResult with tracked=True

        Raises:
            DuplicateEventError: If event_id is already tracked
            StorageError: If the record could not be committed
        """
        try:
            async with repository_transaction(
                self._session_factory, self._repository_factory
            ) as repository:
                await repository.add(params)
        except Exception as e:
            self._probe.event_tracking_failed(event_id=params.event_id, error=str(e))
            raise

        self._probe.event_tracked(
            event_id=params.event_id,
            event_type=params.event_type,
            tenant_id=params.tenant_id,
            channel=channel_label(
                params.source_application, params.target_application
            ),
        )
        return TrackResult(event_id=params.event_id, tracked=True)

    async def mark_event_published(
        self, event_id: str, metadata: dict[str, Any] | None = None
    ) -> bool:
        """Record that the broker accepted an event.

        Moves pending or failed records to published and merges metadata.
        Re-marking a published record only merges metadata. Acknowledged
        records are not touched.

        Returns:
            True if a record was updated
        """
        try:
            async with repository_transaction(
                self._session_factory, self._repository_factory
            ) as repository:
                updated = await repository.mark_published(event_id, metadata)
                current = None if updated else await repository.get(event_id)
        except Exception as e:
            self._probe.event_status_transition_failed(
                event_id=event_id, operation="mark_published", error=str(e)
            )
            raise

        if not updated:
            self._report_unmatched(event_id, "mark_published", current)
            return False

        self._probe.event_marked_published(event_id=event_id)
        return True

    async def mark_event_failed(
        self,
        event_id: str,
        error_message: str,
        increment_retry: bool = True,
    ) -> bool:
        """Record that a delivery attempt failed.

        The status, error message and retry counter are written in one
        atomic statement, so N concurrent calls add exactly N retries.

        Args:
            event_id: The record to fail
            error_message: Why the delivery failed
            increment_retry: Whether this attempt counts toward max retries

        Returns:
            True if a record was updated
        """
        try:
            async with repository_transaction(
                self._session_factory, self._repository_factory
            ) as repository:
                updated = await repository.mark_failed(
                    event_id, error_message, increment_retry
                )
                current = None if updated else await repository.get(event_id)
        except Exception as e:
            self._probe.event_status_transition_failed(
                event_id=event_id, operation="mark_failed", error=str(e)
            )
            raise

        if not updated:
            self._report_unmatched(event_id, "mark_failed", current)
            return False

        self._probe.event_marked_failed(
            event_id=event_id,
            error_message=error_message,
            retry_incremented=increment_retry,
        )
        return True

    async def acknowledge_event(
        self, event_id: str, ack_data: dict[str, Any] | None = None
    ) -> bool:
        """Record that the downstream consumer confirmed an event.

        Repeated acknowledgments keep the first acknowledged_at. A record
        still pending or failed is acknowledged anyway, since consumption
        proves delivery, and its metadata gets an ``ackOverride`` note.

        Returns:
            True if a record was updated
        """
        try:
            async with repository_transaction(
                self._session_factory, self._repository_factory
            ) as repository:
                updated = await repository.acknowledge(event_id, ack_data)
                current = None if updated else await repository.get(event_id)
        except Exception as e:
            self._probe.event_status_transition_failed(
                event_id=event_id, operation="acknowledge", error=str(e)
            )
            raise

        if not updated:
            self._report_unmatched(event_id, "acknowledge", current)
            return False

        self._probe.event_acknowledged(event_id=event_id)
        return True

    async def get_event_status(self, event_id: str) -> EventRecord | None:
        """Get the stored record for an event, or None if unknown."""
        async with repository_transaction(
            self._session_factory, self._repository_factory
        ) as repository:
            return await repository.get(event_id)

    async def get_unacknowledged_events(
        self,
        tenant_id: str,
        hours_old: int = 24,
        limit: int | None = None,
    ) -> list[EventRecord]:
        """List a tenant's unacknowledged events older than hours_old.

        Results are ordered oldest first and never exceed the configured
        query cap, whatever limit is requested.

        Args:
            tenant_id: Tenant to reconcile
            hours_old: Minimum age in hours
            limit: Maximum rows to return

        Returns:
            List of EventRecord, oldest first
        """
        cap = self._unacknowledged_query_cap
        effective_limit = cap if limit is None else max(0, min(limit, cap))
        if effective_limit == 0:
            return []

        published_before = datetime.now(UTC) - timedelta(hours=hours_old)
        async with repository_transaction(
            self._session_factory, self._repository_factory
        ) as repository:
            records = await repository.list_unacknowledged(
                tenant_id, published_before, effective_limit
            )

        self._probe.unacknowledged_events_listed(
            tenant_id=tenant_id, hours_old=hours_old, count=len(records)
        )
        return records


    def _report_unmatched(
        self, event_id: str, operation: str, current: EventRecord | None
    ) -> None:
        if current is None:
            self._probe.event_not_found(event_id=event_id, operation=operation)
            return

        self._probe.event_transition_ignored(
            event_id=event_id,
            operation=operation,
            status=current.status.value,
        )
