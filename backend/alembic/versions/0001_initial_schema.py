"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19

Creates the events and guest_list tables. guest_list carries the
(event_id, user_id) unique constraint that arbitrates duplicate invitations.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

EVENT_STATUS = sa.Enum("DRAFT", "PUBLISHED", "CANCELLED", "COMPLETED", name="eventstatus")
EVENT_TYPE = sa.Enum("PRIVATE", "PUBLIC", name="eventtype")
GUEST_ROLE = sa.Enum("ATTENDEE", "SPEAKER", "VIP", "STAFF", name="guestrole")
RSVP_STATUS = sa.Enum("PENDING", "ACCEPTED", "DECLINED", "MAYBE", name="rsvpstatus")


def upgrade() -> None:
    # --- events ---
    op.create_table(
        "events",
        sa.Column("event_id", sa.Uuid, primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.String(1000), nullable=True),
        sa.Column("start_time_utc", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_time_utc", sa.DateTime(timezone=True), nullable=True),
        sa.Column("venue_id", sa.Uuid, nullable=True),
        sa.Column("venue_name", sa.String(255), nullable=True),
        sa.Column("organization_id", sa.Uuid, nullable=False),
        sa.Column("organizer_id", sa.Uuid, nullable=False),
        sa.Column("max_attendees", sa.Integer, nullable=True),
        sa.Column("current_attendees", sa.Integer, nullable=False, server_default="0"),
        sa.Column("event_type", EVENT_TYPE, nullable=False, server_default="PRIVATE"),
        sa.Column("status", EVENT_STATUS, nullable=False, server_default="DRAFT"),
        sa.Column("booking_id", sa.String(64), nullable=True),
        sa.Column("booking_status", sa.String(50), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.CheckConstraint("current_attendees >= 0", name="ck_events_current_attendees_non_negative"),
    )
    op.create_index("ix_events_organization_id", "events", ["organization_id"])
    op.create_index("ix_events_venue_id", "events", ["venue_id"])
    op.create_index("ix_events_status", "events", ["status"])

    # --- guest_list ---
    op.create_table(
        "guest_list",
        sa.Column("guest_id", sa.Uuid, primary_key=True),
        sa.Column(
            "event_id",
            sa.Uuid,
            sa.ForeignKey("events.event_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.Uuid, nullable=False),
        sa.Column("invited_by", sa.Uuid, nullable=True),
        sa.Column("role", GUEST_ROLE, nullable=False, server_default="ATTENDEE"),
        sa.Column("rsvp_status", RSVP_STATUS, nullable=True),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("checked_in", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("checked_in_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.String(1000), nullable=True),
        sa.Column("invited_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("event_id", "user_id", name="uq_guest_list_event_user"),
    )
    op.create_index("ix_guest_list_event_id", "guest_list", ["event_id"])
    op.create_index("ix_guest_list_user_id", "guest_list", ["user_id"])


def downgrade() -> None:
    op.drop_index("ix_guest_list_user_id", table_name="guest_list")
    op.drop_index("ix_guest_list_event_id", table_name="guest_list")
    op.drop_table("guest_list")
    op.drop_index("ix_events_status", table_name="events")
    op.drop_index("ix_events_venue_id", table_name="events")
    op.drop_index("ix_events_organization_id", table_name="events")
    op.drop_table("events")
    RSVP_STATUS.drop(op.get_bind(), checkfirst=True)
    GUEST_ROLE.drop(op.get_bind(), checkfirst=True)
    EVENT_TYPE.drop(op.get_bind(), checkfirst=True)
    EVENT_STATUS.drop(op.get_bind(), checkfirst=True)
