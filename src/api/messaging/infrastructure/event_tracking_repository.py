"""PostgreSQL implementation of IEventTrackingRepository.

Every state transition is a single UPDATE computed against the stored
row: retry counters are incremented with column arithmetic and metadata
is merged with the JSONB ``||`` operator. Two writers racing on the same
record therefore never lose each other's changes.

The repository only calls session.add(), session.flush() and
session.execute(). It never commits; the calling service owns the
transaction boundary.
"""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from sqlalchemy import (
    DateTime,
    Text,
    and_,
    bindparam,
    case,
    column,
    delete,
    func,
    literal,
    or_,
    select,
    update,
)
from sqlalchemy.dialects.postgresql import ARRAY, JSONB
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from infrastructure.database.models import utc_now
from messaging.domain.value_objects import (
    REPLAYABLE_STATUSES,
    TERMINAL_STATUSES,
    ChannelCounts,
    EventRecord,
    EventStatus,
    ReplayFailure,
    StatusCounts,
    TrackEventParams,
)
from messaging.infrastructure.models import EventTrackingModel
from messaging.ports.exceptions import DuplicateEventError, StorageError
from messaging.ports.repositories import IEventTrackingRepository

_PRIMARY_KEY_CONSTRAINT = "event_tracking_pkey"

# Statuses a publish or failure report may overwrite. Acknowledged is final.
_UNACKNOWLEDGED_STATUSES = (
    EventStatus.PENDING,
    EventStatus.FAILED,
    EventStatus.PUBLISHED,
)


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    """Re-raise driver failures as StorageError."""
    try:
        yield
    except StorageError:
        raise
    except (SQLAlchemyError, OSError) as e:
        raise StorageError(f"Event store {operation} failed: {e}") from e


def _merge_metadata(patch: Any) -> Any:
    """Build ``metadata || patch`` against the stored value."""
    return EventTrackingModel.metadata_.op("||", return_type=JSONB)(patch)


def _jsonb(value: dict[str, Any]) -> Any:
    return literal(value, JSONB)


def _status_values(statuses: Sequence[EventStatus]) -> list[str]:
    return [status.value for status in statuses]


class EventTrackingRepository(IEventTrackingRepository):
    """Repository for outbox records backed by the event_tracking table."""

    def __init__(self, session: AsyncSession) -> None:
        """Initialize repository with a database session.

        Args:
            session: AsyncSession whose transaction is owned by the caller
        """
        self._session = session

    async def add(self, params: TrackEventParams) -> EventRecord:
        now = utc_now()
        model = EventTrackingModel(
            event_id=params.event_id,
            event_type=params.event_type,
            tenant_id=params.tenant_id,
            entity_id=params.entity_id,
            stream_key=params.stream_key,
            source_application=params.source_application,
            target_application=params.target_application,
            event_data=dict(params.event_data),
            published_by=params.published_by,
            status=EventStatus.PENDING.value,
            acknowledged=False,
            acknowledged_at=None,
            error_message=None,
            retry_count=0,
            last_retry_at=None,
            metadata_=dict(params.metadata),
            published_at=now,
            updated_at=now,
        )
        self._session.add(model)

        try:
            with _translate_errors("insert"):
                await self._session.flush()
        except StorageError as e:
            if isinstance(e.__cause__, IntegrityError) and (
                _PRIMARY_KEY_CONSTRAINT in str(e.__cause__)
            ):
                raise DuplicateEventError(params.event_id) from e.__cause__
            raise

        return model.to_value_object()

    async def get(self, event_id: str) -> EventRecord | None:
        stmt = select(EventTrackingModel).where(
            EventTrackingModel.event_id == event_id
        )
        with _translate_errors("read"):
            result = await self._session.execute(stmt)
            model = result.scalar_one_or_none()

        if model is None:
            return None
        return model.to_value_object()

    async def mark_published(
        self, event_id: str, metadata: dict[str, Any] | None = None
    ) -> bool:
        stmt = (
            update(EventTrackingModel)
            .where(
                EventTrackingModel.event_id == event_id,
                EventTrackingModel.status.in_(
                    _status_values(_UNACKNOWLEDGED_STATUSES)
                ),
            )
            .values(
                {
                    EventTrackingModel.status: EventStatus.PUBLISHED.value,
                    EventTrackingModel.metadata_: _merge_metadata(
                        _jsonb(metadata or {})
                    ),
                    EventTrackingModel.updated_at: utc_now(),
                }
            )
            .execution_options(synchronize_session=False)
        )
        return await self._execute_update(stmt, "publish") > 0

    async def mark_failed(
        self, event_id: str, error_message: str, increment_retry: bool = True
    ) -> bool:
        now = utc_now()
        values: dict[Any, Any] = {
            EventTrackingModel.status: EventStatus.FAILED.value,
            EventTrackingModel.error_message: error_message,
            EventTrackingModel.updated_at: now,
        }
        if increment_retry:
            values[EventTrackingModel.retry_count] = EventTrackingModel.retry_count + 1
            values[EventTrackingModel.last_retry_at] = now

        stmt = (
            update(EventTrackingModel)
            .where(
                EventTrackingModel.event_id == event_id,
                EventTrackingModel.status.in_(
                    _status_values(_UNACKNOWLEDGED_STATUSES)
                ),
            )
            .values(values)
            .execution_options(synchronize_session=False)
        )
        return await self._execute_update(stmt, "failure update") > 0

    async def acknowledge(
        self, event_id: str, ack_data: dict[str, Any] | None = None
    ) -> bool:
        now = utc_now()
        # SET expressions see the pre-update row, so status here is the previous one
        override_note = case(
            (
                EventTrackingModel.status.in_(_status_values(REPLAYABLE_STATUSES)),
                func.jsonb_build_object(
                    "ackOverride",
                    func.jsonb_build_object(
                        "previousStatus",
                        EventTrackingModel.status,
                        "acknowledgedAt",
                        now.isoformat(),
                    ),
                    type_=JSONB,
                ),
            ),
            else_=_jsonb({}),
        )
        stmt = (
            update(EventTrackingModel)
            .where(EventTrackingModel.event_id == event_id)
            .values(
                {
                    EventTrackingModel.status: EventStatus.ACKNOWLEDGED.value,
                    EventTrackingModel.acknowledged: True,
                    EventTrackingModel.acknowledged_at: func.coalesce(
                        EventTrackingModel.acknowledged_at,
                        literal(now, DateTime(timezone=True)),
                    ),
                    EventTrackingModel.metadata_: _merge_metadata(
                        _jsonb(ack_data or {})
                    ).op("||", return_type=JSONB)(override_note),
                    EventTrackingModel.updated_at: now,
                }
            )
            .execution_options(synchronize_session=False)
        )
        return await self._execute_update(stmt, "acknowledge") > 0

    async def list_unacknowledged(
        self, tenant_id: str, published_before: datetime, limit: int
    ) -> list[EventRecord]:
        stmt = (
            select(EventTrackingModel)
            .where(
                EventTrackingModel.tenant_id == tenant_id,
                EventTrackingModel.acknowledged.is_(False),
                EventTrackingModel.published_at < published_before,
            )
            .order_by(EventTrackingModel.published_at.asc())
            .limit(limit)
        )
        with _translate_errors("read"):
            result = await self._session.execute(stmt)
            models = result.scalars().all()

        return [model.to_value_object() for model in models]

    async def lock_replayable(self, limit: int, max_retries: int) -> list[EventRecord]:
        """Select replayable records using FOR UPDATE SKIP LOCKED.

        Concurrent replay workers each lock a disjoint set of rows. The
        locks are held until the caller's transaction ends.
        """
        stmt = (
            select(EventTrackingModel)
            .where(
                EventTrackingModel.status.in_(_status_values(REPLAYABLE_STATUSES)),
                EventTrackingModel.retry_count < max_retries,
            )
            .order_by(EventTrackingModel.published_at.asc())
            .limit(limit)
            .with_for_update(skip_locked=True)
        )
        with _translate_errors("replay selection"):
            result = await self._session.execute(stmt)
            models = result.scalars().all()

        return [model.to_value_object() for model in models]

    async def mark_replayed(
        self, event_ids: Sequence[str], replayed_at: datetime
    ) -> int:
        if not event_ids:
            return 0

        stmt = (
            update(EventTrackingModel)
            .where(EventTrackingModel.event_id.in_(list(event_ids)))
            .values(
                {
                    EventTrackingModel.status: EventStatus.PUBLISHED.value,
                    EventTrackingModel.error_message: None,
                    EventTrackingModel.metadata_: _merge_metadata(
                        _jsonb({"replayedAt": replayed_at.isoformat()})
                    ),
                    EventTrackingModel.updated_at: replayed_at,
                }
            )
            .execution_options(synchronize_session=False)
        )
        return await self._execute_update(stmt, "replay success update")

    async def record_replay_failures(self, failures: Sequence[ReplayFailure]) -> int:
        """Fail a batch with one UPDATE ... FROM unnest(ids, errors).

        Ids and messages travel as two bound text arrays joined row by row,
        so no message text is ever spliced into the SQL.
        """
        if not failures:
            return 0

        now = utc_now()
        failed_rows = (
            func.unnest(
                bindparam(
                    "failure_event_ids",
                    value=[failure.event_id for failure in failures],
                    type_=ARRAY(Text),
                ),
                bindparam(
                    "failure_messages",
                    value=[failure.error_message for failure in failures],
                    type_=ARRAY(Text),
                ),
            )
            .table_valued(column("event_id", Text), column("error_message", Text))
            .render_derived(name="failures")
        )
        stmt = (
            update(EventTrackingModel)
            .where(EventTrackingModel.event_id == failed_rows.c.event_id)
            .values(
                {
                    EventTrackingModel.status: EventStatus.FAILED.value,
                    EventTrackingModel.error_message: failed_rows.c.error_message,
                    EventTrackingModel.retry_count: EventTrackingModel.retry_count + 1,
                    EventTrackingModel.last_retry_at: now,
                    EventTrackingModel.updated_at: now,
                }
            )
            .execution_options(synchronize_session=False)
        )
        return await self._execute_update(stmt, "replay failure update")

    async def count_by_status(self, tenant_id: str, max_retries: int) -> StatusCounts:
        stmt = select(*self._count_columns(max_retries)).where(
            EventTrackingModel.tenant_id == tenant_id
        )
        with _translate_errors("status count"):
            result = await self._session.execute(stmt)
            row = result.one()

        return self._to_counts(row)

    async def count_by_channel(
        self, tenant_id: str, max_retries: int
    ) -> list[ChannelCounts]:
        stmt = (
            select(
                EventTrackingModel.source_application,
                EventTrackingModel.target_application,
                *self._count_columns(max_retries),
            )
            .where(EventTrackingModel.tenant_id == tenant_id)
            .group_by(
                EventTrackingModel.source_application,
                EventTrackingModel.target_application,
            )
            .order_by(
                EventTrackingModel.source_application,
                EventTrackingModel.target_application,
            )
        )
        with _translate_errors("channel count"):
            result = await self._session.execute(stmt)
            rows = result.all()

        return [
            ChannelCounts(
                source_application=row.source_application,
                target_application=row.target_application,
                counts=self._to_counts(row),
            )
            for row in rows
        ]

    async def delete_expired(
        self,
        terminal_cutoff: datetime,
        parked_cutoff: datetime,
        max_retries: int,
    ) -> int:
        stmt = (
            delete(EventTrackingModel)
            .where(
                or_(
                    and_(
                        EventTrackingModel.status.in_(
                            _status_values(TERMINAL_STATUSES)
                        ),
                        EventTrackingModel.published_at < terminal_cutoff,
                    ),
                    and_(
                        EventTrackingModel.status.in_(
                            _status_values(REPLAYABLE_STATUSES)
                        ),
                        EventTrackingModel.retry_count >= max_retries,
                        EventTrackingModel.published_at < parked_cutoff,
                    ),
                )
            )
            .execution_options(synchronize_session=False)
        )
        return await self._execute_update(stmt, "retention delete")

    async def _execute_update(self, stmt: Any, operation: str) -> int:
        with _translate_errors(operation):
            result = await self._session.execute(stmt)
        return result.rowcount or 0

    @staticmethod
    def _count_columns(max_retries: int) -> list[Any]:
        status = EventTrackingModel.status
        return [
            func.count().filter(status == EventStatus.PENDING.value).label("pending"),
            func.count()
            .filter(status == EventStatus.PUBLISHED.value)
            .label("published"),
            func.count().filter(status == EventStatus.FAILED.value).label("failed"),
            func.count()
            .filter(status == EventStatus.ACKNOWLEDGED.value)
            .label("acknowledged"),
            # Delivered rows keep their retry_count but are no longer retrying
            func.count()
            .filter(
                and_(
                    status == EventStatus.FAILED.value,
                    EventTrackingModel.retry_count > 0,
                )
            )
            .label("retrying"),
            func.count()
            .filter(
                and_(
                    status.in_(_status_values(REPLAYABLE_STATUSES)),
                    EventTrackingModel.retry_count >= max_retries,
                )
            )
            .label("parked"),
        ]

    @staticmethod
    def _to_counts(row: Any) -> StatusCounts:
        return StatusCounts(
            pending=int(row.pending or 0),
            published=int(row.published or 0),
            failed=int(row.failed or 0),
            acknowledged=int(row.acknowledged or 0),
            retrying=int(row.retrying or 0),
            parked=int(row.parked or 0),
        )
