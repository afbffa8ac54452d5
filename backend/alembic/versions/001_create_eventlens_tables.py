"""Create events, stalls and user_activity tables

Revision ID: 001
Revises: None
Create Date: 2024-03-01 00:00:00.000000+00:00

What:  Initial schema: the two collections the scan flow reads (events,
       stalls) and the append-only activity log it writes.
How:   String document ids, JSON payload columns, timezone-aware timestamps.

Rollback: downgrade() drops all three tables (destructive).
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "events",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("category", sa.String(100), nullable=False, server_default=sa.text("''")),
        sa.Column("organizer", sa.String(200), nullable=False, server_default=sa.text("''")),
        sa.Column("image_url", sa.String(500), nullable=False, server_default=sa.text("''")),
        sa.Column("location", sa.JSON(), nullable=False),
        sa.Column(
            "status",
            sa.String(20),
            nullable=False,
            server_default=sa.text("'upcoming'"),
            comment="upcoming, ongoing, ended, cancelled",
        ),
        sa.Column("deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("start_time", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("end_time", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    # Browse list: newest start first.
    op.create_index("idx_events_start_time", "events", [sa.text("start_time DESC")])
    op.create_index("idx_events_status", "events", ["status"])

    op.create_table(
        "stalls",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("event_id", sa.String(64), nullable=False),
        sa.Column(
            "marker_id",
            sa.String(100),
            nullable=False,
            comment="Printed AR marker value; unique within an event only",
        ),
        sa.Column("name", sa.String(200), nullable=False),
        sa.Column("description", sa.Text(), nullable=False, server_default=sa.text("''")),
        sa.Column("category", sa.String(100), nullable=False, server_default=sa.text("''")),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'active'")),
        sa.Column("deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("location", sa.JSON(), nullable=False),
        sa.Column("contact_info", sa.JSON(), nullable=False),
        sa.Column("images", sa.JSON(), nullable=False),
        sa.Column("offers", sa.JSON(), nullable=False),
        sa.Column("ar_model_url", sa.String(500), nullable=False, server_default=sa.text("''")),
        sa.Column("view_count", sa.Integer(), nullable=False, server_default=sa.text("0")),
        sa.Column("rating", sa.Float(), nullable=False, server_default=sa.text("0")),
        sa.Column(
            "created_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.Column(
            "updated_at",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.ForeignKeyConstraint(["event_id"], ["events.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    # Every scan looks a stall up by marker id.
    op.create_index("idx_stalls_marker_id", "stalls", ["marker_id"])
    op.create_index("idx_stalls_event_id_name", "stalls", ["event_id", "name"])

    op.create_table(
        "user_activity",
        sa.Column("id", sa.String(64), nullable=False),
        sa.Column("user_id", sa.String(128), nullable=True),
        sa.Column("activity_type", sa.String(50), nullable=False),
        sa.Column("event_id", sa.String(64), nullable=True),
        sa.Column("stall_id", sa.String(64), nullable=True),
        sa.Column("marker_id", sa.String(100), nullable=True),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column(
            "timestamp",
            sa.TIMESTAMP(timezone=True),
            nullable=False,
            server_default=sa.text("CURRENT_TIMESTAMP"),
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_user_activity_user_ts",
        "user_activity",
        ["user_id", sa.text("timestamp DESC")],
    )
    op.create_index("idx_user_activity_stall", "user_activity", ["stall_id"])


def downgrade() -> None:
    op.drop_index("idx_user_activity_stall", table_name="user_activity")
    op.drop_index("idx_user_activity_user_ts", table_name="user_activity")
    op.drop_table("user_activity")
    op.drop_index("idx_stalls_event_id_name", table_name="stalls")
    op.drop_index("idx_stalls_marker_id", table_name="stalls")
    op.drop_table("stalls")
    op.drop_index("idx_events_status", table_name="events")
    op.drop_index("idx_events_start_time", table_name="events")
    op.drop_table("events")
