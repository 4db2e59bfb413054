"""Value objects for the event outbox.

Value objects are immutable descriptors for outbox records, the parameters
used to create them, and the read models produced by health reporting.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any

DEFAULT_STREAM_KEY = "inter-app-events"
DEFAULT_SOURCE_APPLICATION = "wrapper"
DEFAULT_PUBLISHED_BY = "system"


class EventStatus(StrEnum):
    """Delivery lifecycle state of an outbox record."""

    PENDING = "pending"
    PUBLISHED = "published"
    FAILED = "failed"
    ACKNOWLEDGED = "acknowledged"


REPLAYABLE_STATUSES = (EventStatus.PENDING, EventStatus.FAILED)
TERMINAL_STATUSES = (EventStatus.PUBLISHED, EventStatus.ACKNOWLEDGED)


class RetentionPolicy(StrEnum):
    """Which records the retention sweeper may delete.

    Records that are still replayable are never deleted under either
    policy. TERMINAL_ONLY keeps parked records for a longer window so they
    remain available for manual intervention; ALL deletes them at the
    regular cutoff.

    Parked means pending or failed with retry_count at or above the
    sweeper's configured max_retries. A replay run given a larger
    max_retries would still select some of those rows, so both must be
    configured with the same budget.
    """

    TERMINAL_ONLY = "terminal_only"
    ALL = "all"


class HealthStatus(StrEnum):
    """Coarse health classification derived from a failure rate."""

    HEALTHY = "healthy"
    WARNING = "warning"
    DEGRADED = "degraded"


@dataclass(frozen=True)
class TrackEventParams:
    """Everything needed to write a new record ahead of a broker publish.

    Attributes:
        event_id: Caller-supplied unique identifier
        event_type: Business event type (opaque to the outbox)
        tenant_id: Tenant the event belongs to
        target_application: Application the event is routed to
        event_data: Opaque payload handed to the broker
        entity_id: Optional identifier of the entity the event concerns
        stream_key: Broker stream the event is published to
        source_application: Application that emitted the event
        published_by: Actor responsible for the publish
        metadata: Initial metadata, stored as given
    """

    event_id: str
    event_type: str
    tenant_id: str
    target_application: str
    event_data: dict[str, Any] = field(default_factory=dict)
    entity_id: str | None = None
    stream_key: str = DEFAULT_STREAM_KEY
    source_application: str = DEFAULT_SOURCE_APPLICATION
    published_by: str = DEFAULT_PUBLISHED_BY
    metadata: dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class TrackResult:
    """Outcome of writing a record ahead of publish."""

    event_id: str
    tracked: bool = True


@dataclass(frozen=True)
class EventRecord:
    """A single outbox record as it exists in storage.

    Identity, routing and payload fields never change after creation.
    retry_count only grows, and acknowledged is true exactly when the
    status is acknowledged and acknowledged_at is set.
    """

    event_id: str
    event_type: str
    tenant_id: str
    entity_id: str | None
    stream_key: str
    source_application: str
    target_application: str
    event_data: dict[str, Any]
    published_by: str
    status: EventStatus
    acknowledged: bool
    acknowledged_at: datetime | None
    error_message: str | None
    retry_count: int
    last_retry_at: datetime | None
    metadata: dict[str, Any]
    published_at: datetime
    updated_at: datetime

    @property
    def channel(self) -> str:
        """The source → target channel label used in health reports."""
        return channel_label(self.source_application, self.target_application)

    def is_parked(self, max_retries: int) -> bool:
        """Check if this record has exhausted its retry budget.

        Returns:
            True if the record is still undelivered and retry_count has
            reached max_retries, False otherwise
        """
        return self.status in REPLAYABLE_STATUSES and self.retry_count >= max_retries

    def to_outbound_event(self) -> OutboundEvent:
        """Build the broker-facing view of this record."""
        return OutboundEvent(
            event_id=self.event_id,
            event_type=self.event_type,
            tenant_id=self.tenant_id,
            entity_id=self.entity_id,
            stream_key=self.stream_key,
            source_application=self.source_application,
            target_application=self.target_application,
            event_data=self.event_data,
            published_by=self.published_by,
        )


@dataclass(frozen=True)
class OutboundEvent:
    """The subset of a record handed to the broker collaborator."""

    event_id: str
    event_type: str
    tenant_id: str
    entity_id: str | None
    stream_key: str
    source_application: str
    target_application: str
    event_data: dict[str, Any]
    published_by: str

    @classmethod
    def from_params(cls, params: TrackEventParams) -> OutboundEvent:
        return cls(
            event_id=params.event_id,
            event_type=params.event_type,
            tenant_id=params.tenant_id,
            entity_id=params.entity_id,
            stream_key=params.stream_key,
            source_application=params.source_application,
            target_application=params.target_application,
            event_data=params.event_data,
            published_by=params.published_by,
        )


@dataclass(frozen=True)
class PublishOutcome:
    """Result reported by the broker collaborator for one publish call."""

    success: bool
    error: str | None = None
    message_id: str | None = None


@dataclass(frozen=True)
class PublishEventResult:
    """Result of the outbox-first publish path."""

    event_id: str
    published: bool
    error: str | None = None


@dataclass(frozen=True)
class ReplayFailure:
    """A record whose replay attempt failed, with the reason to store."""

    event_id: str
    error_message: str


@dataclass(frozen=True)
class StatusCounts:
    """Per-status record counts produced by a single grouped query.

    retrying counts failed records that have been retried at least once.
    parked counts undelivered records that reached the retry budget.
    """

    pending: int = 0
    published: int = 0
    failed: int = 0
    acknowledged: int = 0
    retrying: int = 0
    parked: int = 0

    @property
    def delivery_total(self) -> int:
        """Records that count toward the failure rate denominator."""
        return self.pending + self.published + self.failed

    @property
    def total(self) -> int:
        return self.pending + self.published + self.failed + self.acknowledged

    def __add__(self, other: StatusCounts) -> StatusCounts:
        return StatusCounts(
            pending=self.pending + other.pending,
            published=self.published + other.published,
            failed=self.failed + other.failed,
            acknowledged=self.acknowledged + other.acknowledged,
            retrying=self.retrying + other.retrying,
            parked=self.parked + other.parked,
        )


@dataclass(frozen=True)
class ChannelCounts:
    """Status counts for one source → target channel."""

    source_application: str
    target_application: str
    counts: StatusCounts

    @property
    def channel(self) -> str:
        return channel_label(self.source_application, self.target_application)


@dataclass(frozen=True)
class SyncHealthMetrics:
    """Delivery health for one tenant."""

    tenant_id: str
    counts: StatusCounts
    failure_rate: str
    status: HealthStatus
    message: str
    recommendations: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ChannelHealth:
    """Delivery health for one source → target channel."""

    channel: str
    source_application: str
    target_application: str
    counts: StatusCounts
    failure_rate: str
    health: HealthStatus


@dataclass(frozen=True)
class InterAppSyncHealth:
    """Delivery health for a tenant broken down by channel."""

    tenant_id: str
    totals: StatusCounts
    overall_failure_rate: str
    channels: dict[str, ChannelHealth]
    message: str
    recommendations: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ChannelTraffic:
    """Acknowledged traffic for one source → target channel."""

    channel: str
    events: int
    acknowledged: int
    success_rate: str


@dataclass(frozen=True)
class CommunicationMatrix:
    """Who talks to whom within a tenant, and how reliably."""

    tenant_id: str
    channels: dict[str, ChannelTraffic]
    total_events: int
    total_acknowledged: int
    overall_success_rate: str


def channel_label(source_application: str, target_application: str) -> str:
    """Format a channel key, e.g. ``crm → hr``."""
    return f"{source_application} → {target_application}"


def format_rate(numerator: int, denominator: int) -> str:
    """Format a ratio as a percentage with two decimals.

    A zero denominator yields "0.00%".
    """
    if denominator <= 0:
        return "0.00%"
    return f"{numerator / denominator * 100:.2f}%"
