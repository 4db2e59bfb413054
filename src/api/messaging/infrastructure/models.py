"""SQLAlchemy ORM model for the event outbox.

This module provides the database model for the event_tracking table,
the durable record of every cross-application event.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from infrastructure.database.models import Base, utc_now
from messaging.domain.value_objects import (
    DEFAULT_PUBLISHED_BY,
    DEFAULT_SOURCE_APPLICATION,
    DEFAULT_STREAM_KEY,
    EventRecord,
    EventStatus,
)


class EventTrackingModel(Base):
    """ORM model for the event_tracking table.

    Indexes:
    - idx_event_tracking_tenant_published: tenant-scoped reconciliation and health queries
    - idx_event_tracking_status_retry: replay selection
    - idx_event_tracking_channel: per-channel health breakdown
    """

    __tablename__ = "event_tracking"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'published', 'failed', 'acknowledged')",
            name="ck_event_tracking_status",
        ),
        CheckConstraint("retry_count >= 0", name="ck_event_tracking_retry_count"),
        Index("idx_event_tracking_tenant_published", "tenant_id", "published_at"),
        Index("idx_event_tracking_status_retry", "status", "retry_count"),
        Index(
            "idx_event_tracking_channel", "source_application", "target_application"
        ),
    )

    event_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    event_type: Mapped[str] = mapped_column(String(255), nullable=False)
    tenant_id: Mapped[str] = mapped_column(String(255), nullable=False)
    entity_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    stream_key: Mapped[str] = mapped_column(
        String(255), nullable=False, default=DEFAULT_STREAM_KEY
    )
    source_application: Mapped[str] = mapped_column(
        String(100), nullable=False, default=DEFAULT_SOURCE_APPLICATION
    )
    target_application: Mapped[str] = mapped_column(String(100), nullable=False)
    event_data: Mapped[dict[str, Any]] = mapped_column(
        JSONB, nullable=False, default=dict
    )
    published_by: Mapped[str] = mapped_column(
        String(255), nullable=False, default=DEFAULT_PUBLISHED_BY
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=EventStatus.PENDING.value,
        server_default=text("'pending'"),
    )
    acknowledged: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=text("false"),
    )
    acknowledged_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    retry_count: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
    )
    last_retry_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    # "metadata" is reserved on declarative classes
    metadata_: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        JSONB,
        nullable=False,
        default=dict,
        server_default=text("'{}'::jsonb"),
    )
    published_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        insert_default=utc_now,
        server_default=text("NOW()"),
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        insert_default=utc_now,
        server_default=text("NOW()"),
    )

    def to_value_object(self) -> EventRecord:
        """Convert this ORM model to an EventRecord value object.

        Returns:
            An immutable EventRecord with all fields copied from this model.
        """
        return EventRecord(
            event_id=self.event_id,
            event_type=self.event_type,
            tenant_id=self.tenant_id,
            entity_id=self.entity_id,
            stream_key=self.stream_key,
            source_application=self.source_application,
            target_application=self.target_application,
            event_data=dict(self.event_data or {}),
            published_by=self.published_by,
            status=EventStatus(self.status),
            acknowledged=self.acknowledged,
            acknowledged_at=self.acknowledged_at,
            error_message=self.error_message,
            retry_count=self.retry_count,
            last_retry_at=self.last_retry_at,
            metadata=dict(self.metadata_ or {}),
            published_at=self.published_at,
            updated_at=self.updated_at,
        )

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"<EventTrackingModel("
            f"event_id={self.event_id}, "
            f"event_type={self.event_type}, "
            f"status={self.status}, "
            f"retry_count={self.retry_count}"
            f")>"
        )
