"""Domain layer for the messaging bounded context.

Pure value objects describing outbox records and health read models.
No infrastructure imports are allowed here.
"""

from messaging.domain.value_objects import (
    ChannelCounts,
    ChannelHealth,
    ChannelTraffic,
    CommunicationMatrix,
    EventRecord,
    EventStatus,
    HealthStatus,
    InterAppSyncHealth,
    OutboundEvent,
    PublishEventResult,
    PublishOutcome,
    ReplayFailure,
    RetentionPolicy,
    StatusCounts,
    SyncHealthMetrics,
    TrackEventParams,
    TrackResult,
)

__all__ = [
    "ChannelCounts",
    "ChannelHealth",
    "ChannelTraffic",
    "CommunicationMatrix",
    "EventRecord",
    "EventStatus",
    "HealthStatus",
    "InterAppSyncHealth",
    "OutboundEvent",
    "PublishEventResult",
    "PublishOutcome",
    "ReplayFailure",
    "RetentionPolicy",
    "StatusCounts",
    "SyncHealthMetrics",
    "TrackEventParams",
    "TrackResult",
]
