"""Delivery health reporting for the outbox.

Read-only aggregation of record counts per tenant and per source → target
channel, for dashboards and alerting. A failed query degrades to a zeroed
report rather than an error.
"""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from messaging.application.observability import (
    DefaultHealthReporterProbe,
    HealthReporterProbe,
)
from messaging.application.transactions import (
    RepositoryFactory,
    repository_transaction,
)
from messaging.domain.value_objects import (
    ChannelCounts,
    ChannelHealth,
    ChannelTraffic,
    CommunicationMatrix,
    HealthStatus,
    InterAppSyncHealth,
    StatusCounts,
    SyncHealthMetrics,
    format_rate,
)
from messaging.ports.exceptions import StorageError

DEFAULT_MAX_RETRIES = 10

WARNING_FAILURE_RATE = 0.05
DEGRADED_FAILURE_RATE = 0.20
CHANNEL_DEGRADED_FAILURE_RATE = 0.10
INTER_APP_FAILURE_ALERT_THRESHOLD = 3

DEGRADED_RECOMMENDATIONS = [
    "Check consumer processes",
    "Review message broker connectivity",
    "Check application logs",
]
INTER_APP_RECOMMENDATIONS = [
    "Check inter-app consumer processes",
    "Review message broker streams",
    "Check application connectivity",
]


def classify_failure_rate(failed: int, delivery_total: int) -> HealthStatus:
    """Classify a tenant failure ratio.

    Below 5% is healthy, 5% up to and including 20% is a warning, and
    anything above 20% is degraded.
    """
    if delivery_total <= 0:
        return HealthStatus.HEALTHY
    rate = failed / delivery_total
    if rate > DEGRADED_FAILURE_RATE:
        return HealthStatus.DEGRADED
    if rate >= WARNING_FAILURE_RATE:
        return HealthStatus.WARNING
    return HealthStatus.HEALTHY


def classify_channel(failed: int, delivery_total: int) -> HealthStatus:
    """A channel is degraded when more than 10% of its deliveries failed."""
    if delivery_total > 0 and failed / delivery_total > CHANNEL_DEGRADED_FAILURE_RATE:
        return HealthStatus.DEGRADED
    return HealthStatus.HEALTHY


class HealthReporter:
    """Read-only delivery health views over the outbox."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        repository_factory: RepositoryFactory,
        max_retries: int = DEFAULT_MAX_RETRIES,
        probe: HealthReporterProbe | None = None,
    ):
        """Initialize the reporter.

        Args:
            session_factory: Factory for per-report database sessions
            repository_factory: Builds a repository bound to a session
            max_retries: Retry budget used to count parked records
            probe: Optional domain probe for observability
        """
        self._session_factory = session_factory
        self._repository_factory = repository_factory
        self._max_retries = max_retries
        self._probe = probe or DefaultHealthReporterProbe()

    async def get_sync_health_metrics(self, tenant_id: str) -> SyncHealthMetrics:
        """Summarize delivery health for one tenant.

        The failure rate is failed / (pending + published + failed).
        A tenant without records reports "0.00%" and healthy.
        """
        try:
            async with repository_transaction(
                self._session_factory, self._repository_factory
            ) as repository:
                counts = await repository.count_by_status(tenant_id, self._max_retries)
        except (StorageError, TypeError, ValueError) as e:
            self._probe.health_query_failed(
                tenant_id=tenant_id, report="sync_health", error=str(e)
            )
            counts = StatusCounts()

        metrics = self._build_sync_health(tenant_id, counts)
        self._probe.health_reported(
            tenant_id=tenant_id,
            report="sync_health",
            status=metrics.status.value,
            failure_rate=metrics.failure_rate,
        )
        return metrics

    async def get_inter_app_sync_health(self, tenant_id: str) -> InterAppSyncHealth:
        """Summarize delivery health per source → target channel."""
        channels = await self._load_channels(tenant_id, report="inter_app_health")

        totals = StatusCounts()
        by_channel: dict[str, ChannelHealth] = {}
        for channel in channels:
            counts = channel.counts
            totals = totals + counts
            by_channel[channel.channel] = ChannelHealth(
                channel=channel.channel,
                source_application=channel.source_application,
                target_application=channel.target_application,
                counts=counts,
                failure_rate=format_rate(counts.failed, counts.delivery_total),
                health=classify_channel(counts.failed, counts.delivery_total),
            )

        awaiting = totals.pending + totals.published
        if awaiting == 0 and totals.failed == 0:
            message = "All inter-app communication healthy"
        elif awaiting > 0:
            message = f"{awaiting} events pending between apps"
        else:
            message = f"{totals.failed} failed inter-app communications"

        recommendations = (
            list(INTER_APP_RECOMMENDATIONS)
            if totals.failed > INTER_APP_FAILURE_ALERT_THRESHOLD
            else []
        )
        overall_failure_rate = format_rate(totals.failed, totals.delivery_total)

        self._probe.health_reported(
            tenant_id=tenant_id,
            report="inter_app_health",
            status=classify_failure_rate(totals.failed, totals.delivery_total).value,
            failure_rate=overall_failure_rate,
        )
        return InterAppSyncHealth(
            tenant_id=tenant_id,
            totals=totals,
            overall_failure_rate=overall_failure_rate,
            channels=by_channel,
            message=message,
            recommendations=recommendations,
        )

    async def get_communication_matrix(self, tenant_id: str) -> CommunicationMatrix:
        """Report acknowledged traffic per channel.

        The success rate of a channel is acknowledged / total records.
        """
        channels = await self._load_channels(tenant_id, report="communication_matrix")

        traffic: dict[str, ChannelTraffic] = {}
        total_events = 0
        total_acknowledged = 0
        for channel in channels:
            events = channel.counts.total
            acknowledged = channel.counts.acknowledged
            total_events += events
            total_acknowledged += acknowledged
            traffic[channel.channel] = ChannelTraffic(
                channel=channel.channel,
                events=events,
                acknowledged=acknowledged,
                success_rate=format_rate(acknowledged, events),
            )

        return CommunicationMatrix(
            tenant_id=tenant_id,
            channels=traffic,
            total_events=total_events,
            total_acknowledged=total_acknowledged,
            overall_success_rate=format_rate(total_acknowledged, total_events),
        )

    async def _load_channels(self, tenant_id: str, report: str) -> list[ChannelCounts]:
        try:
            async with repository_transaction(
                self._session_factory, self._repository_factory
            ) as repository:
                return await repository.count_by_channel(tenant_id, self._max_retries)
        except (StorageError, TypeError, ValueError) as e:
            self._probe.health_query_failed(
                tenant_id=tenant_id, report=report, error=str(e)
            )
            return []

    @staticmethod
    def _build_sync_health(tenant_id: str, counts: StatusCounts) -> SyncHealthMetrics:
        status = classify_failure_rate(counts.failed, counts.delivery_total)
        awaiting = counts.pending + counts.published

        if awaiting == 0 and counts.failed == 0:
            message = "All systems healthy - zero pending events"
        elif awaiting > 0 and status is HealthStatus.HEALTHY:
            message = f"{awaiting} events pending acknowledgment"
        else:
            message = f"{counts.failed} failed events need attention"

        recommendations: list[str] = []
        if status is HealthStatus.DEGRADED:
            recommendations.extend(DEGRADED_RECOMMENDATIONS)
        if counts.parked:
            recommendations.append(
                f"{counts.parked} events exhausted their retries and need manual replay"
            )

        return SyncHealthMetrics(
            tenant_id=tenant_id,
            counts=counts,
            failure_rate=format_rate(counts.failed, counts.delivery_total),
            status=status,
            message=message,
            recommendations=recommendations,
        )
