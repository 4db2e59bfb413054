"""Integration tests for the outbox tracking path against PostgreSQL.

Run with: pytest -m integration tests/integration/messaging
"""

import asyncio

import pytest

from messaging.domain.value_objects import EventStatus, TrackEventParams
from messaging.ports.exceptions import DuplicateEventError

pytestmark = pytest.mark.integration


def _params(event_id: str, tenant_id: str = "tenant-1", **overrides) -> TrackEventParams:
    fields = {
        "event_id": event_id,
        "event_type": "credit_config_changed",
        "tenant_id": tenant_id,
        "target_application": "crm",
        "event_data": {"credits": 10},
        "metadata": {"origin": "test"},
    }
    fields.update(overrides)
    return TrackEventParams(**fields)


class TestTracking:
    """Tests for write-ahead tracking."""

    @pytest.mark.asyncio
    async def test_tracked_event_round_trips(self, tracking_service):
        await tracking_service.track_published_event(_params("evt-1"))

        record = await tracking_service.get_event_status("evt-1")

        assert record is not None
        assert record.status is EventStatus.PENDING
        assert record.retry_count == 0
        assert record.acknowledged is False
        assert record.event_data == {"credits": 10}
        assert record.metadata == {"origin": "test"}
        assert record.source_application == "wrapper"
        assert record.published_at.tzinfo is not None

    @pytest.mark.asyncio
    async def test_duplicate_event_id_is_rejected(self, tracking_service):
        await tracking_service.track_published_event(_params("evt-1"))

        with pytest.raises(DuplicateEventError):
            await tracking_service.track_published_event(_params("evt-1"))

    @pytest.mark.asyncio
    async def test_unknown_event_returns_none(self, tracking_service):
        assert await tracking_service.get_event_status("missing") is None


class TestTransitions:
    """Tests for state transitions computed in SQL."""

    @pytest.mark.asyncio
    async def test_metadata_is_merged_not_replaced(self, tracking_service):
        await tracking_service.track_published_event(_params("evt-1"))

        await tracking_service.mark_event_published("evt-1", {"messageId": "1-0"})
        await tracking_service.mark_event_published("evt-1", {"messageId": "1-0"})

        record = await tracking_service.get_event_status("evt-1")
        assert record.status is EventStatus.PUBLISHED
        assert record.metadata == {"origin": "test", "messageId": "1-0"}

    @pytest.mark.asyncio
    async def test_concurrent_failures_each_increment_retry(self, tracking_service):
        """N racing failure reports leave retry_count at exactly N."""
        await tracking_service.track_published_event(_params("evt-1"))

        await asyncio.gather(
            *(
                tracking_service.mark_event_failed("evt-1", f"attempt {i}")
                for i in range(8)
            )
        )

        record = await tracking_service.get_event_status("evt-1")
        assert record.status is EventStatus.FAILED
        assert record.retry_count == 8
        assert record.last_retry_at is not None

    @pytest.mark.asyncio
    async def test_failure_without_increment_keeps_retry_count(
        self, tracking_service
    ):
        await tracking_service.track_published_event(_params("evt-1"))

        await tracking_service.mark_event_failed(
            "evt-1", "rejected", increment_retry=False
        )

        record = await tracking_service.get_event_status("evt-1")
        assert record.status is EventStatus.FAILED
        assert record.error_message == "rejected"
        assert record.retry_count == 0
        assert record.last_retry_at is None

    @pytest.mark.asyncio
    async def test_second_acknowledgment_keeps_first_timestamp(
        self, tracking_service
    ):
        await tracking_service.track_published_event(_params("evt-1"))
        await tracking_service.mark_event_published("evt-1")

        await tracking_service.acknowledge_event("evt-1", {"consumer": "crm"})
        first = await tracking_service.get_event_status("evt-1")
        await asyncio.sleep(0.01)
        await tracking_service.acknowledge_event("evt-1", {"attempt": 2})
        second = await tracking_service.get_event_status("evt-1")

        assert second.status is EventStatus.ACKNOWLEDGED
        assert second.acknowledged is True
        assert second.acknowledged_at == first.acknowledged_at
        assert second.metadata["consumer"] == "crm"
        assert second.metadata["attempt"] == 2
        assert "ackOverride" not in second.metadata

    @pytest.mark.asyncio
    async def test_acknowledging_failed_event_records_override(
        self, tracking_service
    ):
        await tracking_service.track_published_event(_params("evt-1"))
        await tracking_service.mark_event_failed("evt-1", "broker down")

        assert await tracking_service.acknowledge_event("evt-1") is True

        record = await tracking_service.get_event_status("evt-1")
        assert record.status is EventStatus.ACKNOWLEDGED
        assert record.metadata["ackOverride"]["previousStatus"] == "failed"

    @pytest.mark.asyncio
    async def test_acknowledged_event_is_never_regressed(self, tracking_service):
        await tracking_service.track_published_event(_params("evt-1"))
        await tracking_service.acknowledge_event("evt-1")

        assert await tracking_service.mark_event_failed("evt-1", "late") is False
        assert await tracking_service.mark_event_published("evt-1") is False

        record = await tracking_service.get_event_status("evt-1")
        assert record.status is EventStatus.ACKNOWLEDGED
        assert record.retry_count == 0

    @pytest.mark.asyncio
    async def test_unknown_event_transitions_return_false(self, tracking_service):
        assert await tracking_service.mark_event_published("missing") is False
        assert await tracking_service.mark_event_failed("missing", "x") is False
        assert await tracking_service.acknowledge_event("missing") is False


class TestUnacknowledged:
    """Tests for the reconciliation query."""

    @pytest.mark.asyncio
    async def test_oldest_first_with_limit(self, tracking_service, backdate):
        for event_id, hours in [("old", 72), ("older", 96), ("recent", 1)]:
            await tracking_service.track_published_event(_params(event_id))
            await backdate(event_id, hours)
        await tracking_service.track_published_event(
            _params("other-tenant", tenant_id="tenant-2")
        )
        await backdate("other-tenant", 100)

        events = await tracking_service.get_unacknowledged_events(
            "tenant-1", hours_old=24
        )
        limited = await tracking_service.get_unacknowledged_events(
            "tenant-1", hours_old=24, limit=1
        )

        assert [e.event_id for e in events] == ["older", "old"]
        assert [e.event_id for e in limited] == ["older"]

    @pytest.mark.asyncio
    async def test_acknowledged_events_are_excluded(self, tracking_service, backdate):
        await tracking_service.track_published_event(_params("evt-1"))
        await tracking_service.acknowledge_event("evt-1")
        await backdate("evt-1", 48)

        assert await tracking_service.get_unacknowledged_events("tenant-1") == []
