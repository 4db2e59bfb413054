"""create_event_tracking_table

Create the event_tracking table: the durable outbox of inter-application
events. Each row is written before its broker publish and tracks the
delivery and acknowledgment lifecycle of one event.

Revision ID: 3f9a2c7d1e84
Revises:
Create Date: 2026-10-19 09:12:44.104522

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "3f9a2c7d1e84"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "event_tracking",
        sa.Column("event_id", sa.String(length=255), nullable=False),
        sa.Column("event_type", sa.String(length=255), nullable=False),
        sa.Column("tenant_id", sa.String(length=255), nullable=False),
        sa.Column("entity_id", sa.String(length=255), nullable=True),
        sa.Column(
            "stream_key",
            sa.String(length=255),
            nullable=False,
            server_default=sa.text("'inter-app-events'"),
        ),
        sa.Column(
            "source_application",
            sa.String(length=100),
            nullable=False,
            server_default=sa.text("'wrapper'"),
        ),
        sa.Column("target_application", sa.String(length=100), nullable=False),
        sa.Column(
            "event_data",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),  # Opaque business payload
        sa.Column(
            "published_by",
            sa.String(length=255),
            nullable=False,
            server_default=sa.text("'system'"),
        ),
        sa.Column(
            "status",
            sa.String(length=20),
            nullable=False,
            server_default=sa.text("'pending'"),
        ),
        sa.Column(
            "acknowledged",
            sa.Boolean(),
            nullable=False,
            server_default=sa.text("false"),
        ),
        sa.Column("acknowledged_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column(
            "retry_count",
            sa.Integer(),
            nullable=False,
            server_default="0",
        ),
        sa.Column("last_retry_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "metadata",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'{}'::jsonb"),
        ),  # Append-only merge bag
        sa.Column(
            "published_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("NOW()"),
        ),
        sa.PrimaryKeyConstraint("event_id", name="event_tracking_pkey"),
        sa.CheckConstraint(
            "status IN ('pending', 'published', 'failed', 'acknowledged')",
            name="ck_event_tracking_status",
        ),
        sa.CheckConstraint("retry_count >= 0", name="ck_event_tracking_retry_count"),
    )
    # Tenant-scoped reconciliation and health queries
    op.create_index(
        "idx_event_tracking_tenant_published",
        "event_tracking",
        ["tenant_id", "published_at"],
        unique=False,
    )
    # Replay selection
    op.create_index(
        "idx_event_tracking_status_retry",
        "event_tracking",
        ["status", "retry_count"],
        unique=False,
    )
    # Per-channel health breakdown
    op.create_index(
        "idx_event_tracking_channel",
        "event_tracking",
        ["source_application", "target_application"],
        unique=False,
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("idx_event_tracking_channel", table_name="event_tracking")
    op.drop_index("idx_event_tracking_status_retry", table_name="event_tracking")
    op.drop_index("idx_event_tracking_tenant_published", table_name="event_tracking")
    op.drop_table("event_tracking")
