"""Protocol for event tracking observability.

Defines the interface for domain probes that capture lifecycle transitions
of individual outbox records.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol

import structlog

if TYPE_CHECKING:
    from shared_kernel.observability_context import ObservationContext


class EventTrackingProbe(Protocol):
    """Domain probe for write-ahead tracking and status transitions."""

    def event_tracked(
        self,
        event_id: str,
        event_type: str,
        tenant_id: str,
        channel: str,
    ) -> None:
        """Record that an event was written ahead of publish."""
        ...

    def event_tracking_failed(self, event_id: str, error: str) -> None:
        """Record that the write-ahead insert failed."""
        ...

    def event_marked_published(self, event_id: str) -> None:
        """Record that an event was confirmed by the broker."""
        ...

    def event_marked_failed(
        self, event_id: str, error_message: str, retry_incremented: bool
    ) -> None:
        """Record that an event delivery failed."""
        ...

    def event_acknowledged(self, event_id: str) -> None:
        """Record that a consumer acknowledged an event."""
        ...

    def event_not_found(self, event_id: str, operation: str) -> None:
        """Record that a transition targeted an unknown event."""
        ...

    def event_transition_ignored(
        self, event_id: str, operation: str, status: str
    ) -> None:
        """Record that a transition did not apply to the stored status."""
        ...

    def event_status_transition_failed(
        self, event_id: str, operation: str, error: str
    ) -> None:
        """Record that a status transition could not be stored."""
        ...

    def unacknowledged_events_listed(
        self, tenant_id: str, hours_old: int, count: int
    ) -> None:
        """Record a reconciliation query."""
        ...

    def with_context(self, context: ObservationContext) -> EventTrackingProbe:
        """Create a new probe with observation context bound."""
        ...


class DefaultEventTrackingProbe:
    """Default implementation of EventTrackingProbe using structlog."""

    def __init__(
        self,
        logger: structlog.stdlib.BoundLogger | None = None,
        context: ObservationContext | None = None,
    ):
        self._logger = logger or structlog.get_logger()
        self._context = context

    def _get_context_kwargs(self) -> dict[str, Any]:
        """Get context metadata as kwargs for logging."""
        if self._context is None:
            return {}
        return self._context.as_dict()

    def with_context(self, context: ObservationContext) -> DefaultEventTrackingProbe:
        """Create a new probe with observation context bound."""
        return DefaultEventTrackingProbe(logger=self._logger, context=context)

    def event_tracked(
        self,
        event_id: str,
        event_type: str,
        tenant_id: str,
        channel: str,
    ) -> None:
        """Record that an event was written ahead of publish."""
        self._logger.info(
            "event_tracked",
            event_id=event_id,
            event_type=event_type,
            tenant_id=tenant_id,
            channel=channel,
            **self._get_context_kwargs(),
        )

    def event_tracking_failed(self, event_id: str, error: str) -> None:
        """Record that the write-ahead insert failed."""
        self._logger.error(
            "event_tracking_failed",
            event_id=event_id,
            error=error,
            **self._get_context_kwargs(),
        )

    def event_marked_published(self, event_id: str) -> None:
        self._logger.debug(
            "event_marked_published",
            event_id=event_id,
            **self._get_context_kwargs(),
        )

    def event_marked_failed(
        self, event_id: str, error_message: str, retry_incremented: bool
    ) -> None:
        self._logger.warning(
            "event_marked_failed",
            event_id=event_id,
            error_message=error_message,
            retry_incremented=retry_incremented,
            **self._get_context_kwargs(),
        )

    def event_acknowledged(self, event_id: str) -> None:
        self._logger.debug(
            "event_acknowledged",
            event_id=event_id,
            **self._get_context_kwargs(),
        )

    def event_not_found(self, event_id: str, operation: str) -> None:
        """Record that a transition targeted an unknown event."""
        self._logger.warning(
            "event_not_found",
            event_id=event_id,
            operation=operation,
            **self._get_context_kwargs(),
        )

    def event_transition_ignored(
        self, event_id: str, operation: str, status: str
    ) -> None:
        self._logger.info(
            "event_transition_ignored",
            event_id=event_id,
            operation=operation,
            status=status,
            **self._get_context_kwargs(),
        )

    def event_status_transition_failed(
        self, event_id: str, operation: str, error: str
    ) -> None:
        self._logger.error(
            "event_status_transition_failed",
            event_id=event_id,
            operation=operation,
            error=error,
            **self._get_context_kwargs(),
        )

    def unacknowledged_events_listed(
        self, tenant_id: str, hours_old: int, count: int
    ) -> None:
        self._logger.info(
            "unacknowledged_events_listed",
            tenant_id=tenant_id,
            hours_old=hours_old,
            count=count,
            **self._get_context_kwargs(),
        )
