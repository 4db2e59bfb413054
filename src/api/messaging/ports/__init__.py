"""Ports (interfaces) for the messaging bounded context.

Ports define the contracts for outbox storage and the broker collaborator
without specifying implementation details.
"""

from messaging.ports.exceptions import (
    DuplicateEventError,
    PublishError,
    PublishTimeoutError,
    StorageError,
)
from messaging.ports.publisher import EventPublisher
from messaging.ports.repositories import IEventTrackingRepository

__all__ = [
    "DuplicateEventError",
    "EventPublisher",
    "IEventTrackingRepository",
    "PublishError",
    "PublishTimeoutError",
    "StorageError",
]
