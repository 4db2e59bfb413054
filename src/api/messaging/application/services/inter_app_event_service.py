"""Outbox-first publish path for inter-application events.

The event is tracked before the broker sees it, so a crash between the
two leaves a pending record that the replay worker will pick up.
"""

from __future__ import annotations

import asyncio
from typing import Any

from ulid import ULID

from messaging.application.services.event_tracking_service import (
    EventTrackingService,
)
from messaging.domain.value_objects import (
    DEFAULT_PUBLISHED_BY,
    DEFAULT_STREAM_KEY,
    OutboundEvent,
    PublishEventResult,
    TrackEventParams,
)
from messaging.ports.publisher import EventPublisher

DEFAULT_PUBLISH_TIMEOUT_SECONDS = 10.0


class InterAppEventService:
    """Publishes events from one application to another through the outbox."""

    def __init__(
        self,
        tracking_service: EventTrackingService,
        publisher: EventPublisher,
        publish_timeout_seconds: float = DEFAULT_PUBLISH_TIMEOUT_SECONDS,
    ):
        self._tracking = tracking_service
        self._publisher = publisher
        self._publish_timeout_seconds = publish_timeout_seconds

    async def publish_event(
        self,
        event_type: str,
        source_application: str,
        target_application: str,
        tenant_id: str,
        event_data: dict[str, Any] | None = None,
        entity_id: str | None = None,
        published_by: str = DEFAULT_PUBLISHED_BY,
        event_id: str | None = None,
    ) -> PublishEventResult:
        """Track an event, hand it to the broker and record the outcome.

        A broker rejection or timeout is stored on the record and reported
        in the result; the replay worker retries it later.

        Args:
            event_type: Business event type
            source_application: Emitting application
            target_application: Receiving application
            tenant_id: Tenant the event belongs to
            event_data: Opaque payload
            entity_id: Optional entity the event concerns
            published_by: Actor responsible for the publish
            event_id: Caller-supplied id; a ULID is generated when omitted

        Returns:
            PublishEventResult describing whether the broker accepted the event

        Raises:
            DuplicateEventError: If event_id is already tracked
            StorageError: If the event could not be tracked; no publish is attempted
        """
        params = TrackEventParams(
            event_id=event_id or str(ULID()),
            event_type=event_type,
            tenant_id=tenant_id,
            entity_id=entity_id,
            stream_key=DEFAULT_STREAM_KEY,
            source_application=source_application,
            target_application=target_application,
            event_data=dict(event_data or {}),
            published_by=published_by,
            metadata={
                "interApp": True,
                "direction": f"{source_application}_to_{target_application}",
            },
        )
        await self._tracking.track_published_event(params)

        error = await self._publish(OutboundEvent.from_params(params))
        if error is None:
            await self._tracking.mark_event_published(params.event_id)
            return PublishEventResult(event_id=params.event_id, published=True)

        await self._tracking.mark_event_failed(params.event_id, error)
        return PublishEventResult(event_id=params.event_id, published=False, error=error)

    async def _publish(self, event: OutboundEvent) -> str | None:
        """Publish one event and return the failure reason, if any."""
        try:
            async with asyncio.timeout(self._publish_timeout_seconds):
                outcome = await self._publisher.publish_inter_app_event(event)
        except TimeoutError:
            return f"Broker publish timed out after {self._publish_timeout_seconds:g}s"
        except Exception as e:
            return str(e) or type(e).__name__

        if outcome.success:
            return None
        return outcome.error or "Broker rejected event"
