"""Infrastructure layer for the messaging bounded context.

PostgreSQL storage for outbox records.
"""

from messaging.infrastructure.event_tracking_repository import (
    EventTrackingRepository,
)
from messaging.infrastructure.models import EventTrackingModel

__all__ = [
    "EventTrackingModel",
    "EventTrackingRepository",
]
