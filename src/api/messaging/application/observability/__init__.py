"""Domain-Oriented Observability for the messaging application layer.

Probes for outbox service operations following Domain-Oriented Observability patterns.
"""

from messaging.application.observability.event_tracking_probe import (
    DefaultEventTrackingProbe,
    EventTrackingProbe,
)
from messaging.application.observability.health_reporter_probe import (
    DefaultHealthReporterProbe,
    HealthReporterProbe,
)
from messaging.application.observability.replay_worker_probe import (
    DefaultReplayWorkerProbe,
    ReplayWorkerProbe,
)
from messaging.application.observability.retention_sweeper_probe import (
    DefaultRetentionSweeperProbe,
    RetentionSweeperProbe,
)
from messaging.application.observability.scheduler_probe import (
    DefaultSchedulerProbe,
    SchedulerProbe,
)

__all__ = [
    "EventTrackingProbe",
    "DefaultEventTrackingProbe",
    "ReplayWorkerProbe",
    "DefaultReplayWorkerProbe",
    "HealthReporterProbe",
    "DefaultHealthReporterProbe",
    "RetentionSweeperProbe",
    "DefaultRetentionSweeperProbe",
    "SchedulerProbe",
    "DefaultSchedulerProbe",
]
