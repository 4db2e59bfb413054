"""Integration tests for replay, retention and health against PostgreSQL.

Run with: pytest -m integration tests/integration/messaging
"""

import asyncio

import pytest

from messaging.application.services import (
    HealthReporter,
    ReplayWorker,
    RetentionSweeper,
)
from messaging.domain.value_objects import (
    EventStatus,
    HealthStatus,
    PublishOutcome,
    RetentionPolicy,
    TrackEventParams,
)
from messaging.infrastructure.event_tracking_repository import (
    EventTrackingRepository,
)

pytestmark = pytest.mark.integration


class RecordingPublisher:
    """Broker stand-in that rejects a fixed set of event ids."""

    def __init__(self, failing: set[str] | None = None, delay: float = 0.0):
        self.failing = failing or set()
        self.delay = delay
        self.published: list[str] = []

    async def publish_inter_app_event(self, event):
        if self.delay:
            await asyncio.sleep(self.delay)
        self.published.append(event.event_id)
        if event.event_id in self.failing:
            return PublishOutcome(success=False, error="rejected by broker")
        return PublishOutcome(success=True)


async def _track(tracking_service, event_id: str, target: str = "crm") -> None:
    await tracking_service.track_published_event(
        TrackEventParams(
            event_id=event_id,
            event_type="employee_updated",
            tenant_id="tenant-1",
            target_application=target,
        )
    )


async def _fail(tracking_service, event_id: str, times: int = 1) -> None:
    for _ in range(times):
        await tracking_service.mark_event_failed(event_id, "broker down")


class TestReplay:
    """Tests for batch replay."""

    @pytest.mark.asyncio
    async def test_mixed_batch_updates_each_partition(
        self, session_factory, tracking_service
    ):
        for event_id in ("a", "b", "c"):
            await _track(tracking_service, event_id)
            await _fail(tracking_service, event_id)
        worker = ReplayWorker(
            session_factory=session_factory,
            repository_factory=EventTrackingRepository,
            publisher=RecordingPublisher(failing={"c"}),
        )

        assert await worker.replay_pending_events(10, 10) == 2

        a = await tracking_service.get_event_status("a")
        c = await tracking_service.get_event_status("c")
        assert a.status is EventStatus.PUBLISHED
        assert a.error_message is None
        assert "replayedAt" in a.metadata
        assert c.status is EventStatus.FAILED
        assert c.retry_count == 2
        assert c.error_message == "rejected by broker"

    @pytest.mark.asyncio
    async def test_parked_and_acknowledged_records_are_skipped(
        self, session_factory, tracking_service
    ):
        await _track(tracking_service, "parked")
        await _fail(tracking_service, "parked", times=3)
        await _track(tracking_service, "done")
        await tracking_service.acknowledge_event("done")
        publisher = RecordingPublisher()
        worker = ReplayWorker(
            session_factory=session_factory,
            repository_factory=EventTrackingRepository,
            publisher=publisher,
            max_retries=3,
        )

        assert await worker.replay_pending_events() == 0
        assert publisher.published == []

    @pytest.mark.asyncio
    async def test_concurrent_workers_never_share_a_record(
        self, session_factory, tracking_service
    ):
        for i in range(20):
            await _track(tracking_service, f"evt-{i}")
        publisher = RecordingPublisher(delay=0.05)
        workers = [
            ReplayWorker(
                session_factory=session_factory,
                repository_factory=EventTrackingRepository,
                publisher=publisher,
                batch_size=10,
            )
            for _ in range(2)
        ]

        results = await asyncio.gather(
            *(worker.replay_pending_events() for worker in workers)
        )

        assert len(publisher.published) == len(set(publisher.published))
        assert sum(results) == len(publisher.published)


class TestRetention:
    """Tests for the retention sweep."""

    @pytest.mark.asyncio
    async def test_terminal_only_policy(self, session_factory, tracking_service, backdate):
        await _track(tracking_service, "old-published")
        await tracking_service.mark_event_published("old-published")
        await backdate("old-published", 8 * 24)

        await _track(tracking_service, "new-published")
        await tracking_service.mark_event_published("new-published")
        await backdate("new-published", 24)

        await _track(tracking_service, "old-retrying")
        await _fail(tracking_service, "old-retrying")
        await backdate("old-retrying", 40 * 24)

        await _track(tracking_service, "old-parked")
        await _fail(tracking_service, "old-parked", times=3)
        await backdate("old-parked", 40 * 24)

        await _track(tracking_service, "young-parked")
        await _fail(tracking_service, "young-parked", times=3)
        await backdate("young-parked", 10 * 24)

        sweeper = RetentionSweeper(
            session_factory=session_factory,
            repository_factory=EventTrackingRepository,
            retention_days=7,
            parked_retention_days=30,
            policy=RetentionPolicy.TERMINAL_ONLY,
            max_retries=3,
        )

        assert await sweeper.cleanup_old_events() == 2

        remaining = {
            event_id
            for event_id in (
                "old-published",
                "new-published",
                "old-retrying",
                "old-parked",
                "young-parked",
            )
            if await tracking_service.get_event_status(event_id) is not None
        }
        assert remaining == {"new-published", "old-retrying", "young-parked"}

    @pytest.mark.asyncio
    async def test_all_policy_removes_parked_at_regular_cutoff(
        self, session_factory, tracking_service, backdate
    ):
        await _track(tracking_service, "young-parked")
        await _fail(tracking_service, "young-parked", times=3)
        await backdate("young-parked", 10 * 24)

        sweeper = RetentionSweeper(
            session_factory=session_factory,
            repository_factory=EventTrackingRepository,
            retention_days=7,
            policy=RetentionPolicy.ALL,
            max_retries=3,
        )

        assert await sweeper.cleanup_old_events() == 1


class TestHealth:
    """Tests for health aggregation over real rows."""

    @pytest.mark.asyncio
    async def test_counts_and_channels(self, session_factory, tracking_service):
        await _track(tracking_service, "ok-1", target="crm")
        await tracking_service.acknowledge_event("ok-1")
        await _track(tracking_service, "ok-2", target="crm")
        await tracking_service.mark_event_published("ok-2")
        await _track(tracking_service, "bad-1", target="hr")
        await _fail(tracking_service, "bad-1")
        reporter = HealthReporter(
            session_factory=session_factory,
            repository_factory=EventTrackingRepository,
        )

        metrics = await reporter.get_sync_health_metrics("tenant-1")
        inter_app = await reporter.get_inter_app_sync_health("tenant-1")
        matrix = await reporter.get_communication_matrix("tenant-1")

        assert metrics.counts.acknowledged == 1
        assert metrics.counts.published == 1
        assert metrics.counts.failed == 1
        assert metrics.counts.retrying == 1
        assert metrics.failure_rate == "50.00%"
        assert metrics.status is HealthStatus.DEGRADED
        assert inter_app.channels["wrapper → hr"].health is HealthStatus.DEGRADED
        assert inter_app.channels["wrapper → crm"].health is HealthStatus.HEALTHY
        assert matrix.channels["wrapper → crm"].success_rate == "50.00%"

    @pytest.mark.asyncio
    async def test_unknown_tenant_is_healthy(self, session_factory):
        reporter = HealthReporter(
            session_factory=session_factory,
            repository_factory=EventTrackingRepository,
        )

        metrics = await reporter.get_sync_health_metrics("nobody")

        assert metrics.failure_rate == "0.00%"
        assert metrics.status is HealthStatus.HEALTHY
