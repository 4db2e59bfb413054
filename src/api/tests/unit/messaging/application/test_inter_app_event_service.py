"""Unit tests for InterAppEventService."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from ulid import ULID

from messaging.application.services import EventTrackingService, InterAppEventService
from messaging.domain.value_objects import PublishOutcome
from messaging.ports.exceptions import StorageError


@pytest.fixture
def tracking_service():
    return AsyncMock(spec=EventTrackingService)


@pytest.fixture
def publisher():
    mock = MagicMock()
    mock.publish_inter_app_event = AsyncMock(
        return_value=PublishOutcome(success=True, message_id="1-0")
    )
    return mock


@pytest.fixture
def service(tracking_service, publisher):
    return InterAppEventService(
        tracking_service=tracking_service,
        publisher=publisher,
        publish_timeout_seconds=0.05,
    )


class TestPublishEvent:
    """Tests for the track-then-publish flow."""

    @pytest.mark.asyncio
    async def test_tracks_before_publishing_and_marks_published(
        self, service, tracking_service, publisher
    ):
        calls = []
        tracking_service.track_published_event.side_effect = (
            lambda params: calls.append("track")
        )
        publisher.publish_inter_app_event.side_effect = lambda event: (
            calls.append("publish") or PublishOutcome(success=True)
        )

        result = await service.publish_event(
            event_type="employee_updated",
            source_application="hr",
            target_application="crm",
            tenant_id="tenant-1",
            event_data={"id": 7},
            event_id="evt-1",
        )

        assert calls == ["track", "publish"]
        assert result.published is True
        assert result.event_id == "evt-1"
        assert result.error is None
        tracking_service.mark_event_published.assert_awaited_once_with("evt-1")
        tracking_service.mark_event_failed.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_tracked_params_carry_direction_metadata(
        self, service, tracking_service
    ):
        await service.publish_event(
            event_type="employee_updated",
            source_application="hr",
            target_application="crm",
            tenant_id="tenant-1",
        )

        params = tracking_service.track_published_event.await_args.args[0]
        assert params.metadata == {"interApp": True, "direction": "hr_to_crm"}
        assert params.stream_key == "inter-app-events"
        assert params.published_by == "system"
        assert params.event_data == {}

    @pytest.mark.asyncio
    async def test_generates_ulid_when_no_id_given(self, service, tracking_service):
        result = await service.publish_event(
            event_type="employee_updated",
            source_application="hr",
            target_application="crm",
            tenant_id="tenant-1",
        )

        ULID.from_str(result.event_id)
        params = tracking_service.track_published_event.await_args.args[0]
        assert params.event_id == result.event_id

    @pytest.mark.asyncio
    async def test_broker_rejection_marks_failed(
        self, service, tracking_service, publisher
    ):
        publisher.publish_inter_app_event.return_value = PublishOutcome(
            success=False, error="stream full"
        )

        result = await service.publish_event(
            event_type="employee_updated",
            source_application="hr",
            target_application="crm",
            tenant_id="tenant-1",
            event_id="evt-1",
        )

        assert result.published is False
        assert result.error == "stream full"
        tracking_service.mark_event_failed.assert_awaited_once_with(
            "evt-1", "stream full"
        )
        tracking_service.mark_event_published.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_publish_timeout_marks_failed(
        self, service, tracking_service, publisher
    ):
        async def hang(event):
            await asyncio.sleep(5)

        publisher.publish_inter_app_event.side_effect = hang

        result = await service.publish_event(
            event_type="employee_updated",
            source_application="hr",
            target_application="crm",
            tenant_id="tenant-1",
            event_id="evt-1",
        )

        assert result.published is False
        assert "timed out" in result.error
        tracking_service.mark_event_failed.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_publisher_exception_marks_failed(
        self, service, tracking_service, publisher
    ):
        publisher.publish_inter_app_event.side_effect = ConnectionError("refused")

        result = await service.publish_event(
            event_type="employee_updated",
            source_application="hr",
            target_application="crm",
            tenant_id="tenant-1",
            event_id="evt-1",
        )

        assert result.error == "refused"
        tracking_service.mark_event_failed.assert_awaited_once_with("evt-1", "refused")

    @pytest.mark.asyncio
    async def test_tracking_failure_skips_publish(
        self, service, tracking_service, publisher
    ):
        """An event that could not be tracked must never reach the broker."""
        tracking_service.track_published_event.side_effect = StorageError("db down")

        with pytest.raises(StorageError):
            await service.publish_event(
                event_type="employee_updated",
                source_application="hr",
                target_application="crm",
                tenant_id="tenant-1",
            )

        publisher.publish_inter_app_event.assert_not_awaited()
