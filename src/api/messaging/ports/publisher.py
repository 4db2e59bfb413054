"""Broker-publish collaborator port.

The outbox supplies the outer retry loop; whatever retry behaviour the
broker client implements internally is invisible here.
"""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from messaging.domain.value_objects import OutboundEvent, PublishOutcome


@runtime_checkable
class EventPublisher(Protocol):
    """Hands a single event to the message broker."""

    async def publish_inter_app_event(self, event: OutboundEvent) -> PublishOutcome:
        """Publish an event and wait for the broker to accept it.

        Args:
            event: The event to publish

        Returns:
            PublishOutcome with success=True once the broker accepted the
            event, or success=False with an error on rejection

        Raises:
            Exception: Any exception is treated as a failed publish
        """
        ...
