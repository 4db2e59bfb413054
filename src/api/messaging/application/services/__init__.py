"""Application services for the messaging bounded context.

Application services orchestrate the outbox repository and the broker
collaborator to fulfil tracking, replay, retention and reporting use cases.
"""

from messaging.application.services.event_tracking_service import (
    EventTrackingService,
)
from messaging.application.services.health_reporter import HealthReporter
from messaging.application.services.inter_app_event_service import (
    InterAppEventService,
)
from messaging.application.services.replay_worker import ReplayWorker
from messaging.application.services.retention_sweeper import RetentionSweeper

__all__ = [
    "EventTrackingService",
    "HealthReporter",
    "InterAppEventService",
    "ReplayWorker",
    "RetentionSweeper",
]
