"""GuestEntry ORM model: one user's invitation to one event."""
import uuid
import enum
from sqlalchemy import (
    Column, String, Boolean, DateTime, ForeignKey, UniqueConstraint, Uuid, Enum as SAEnum,
)
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from event_manager.database import Base


class GuestRole(str, enum.Enum):
    ATTENDEE = "ATTENDEE"
    SPEAKER = "SPEAKER"
    VIP = "VIP"
    STAFF = "STAFF"


class RsvpStatus(str, enum.Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    MAYBE = "MAYBE"


class GuestEntry(Base):
    __tablename__ = "guest_list"
    __table_args__ = (
        # Arbiter of invitation uniqueness; the pre-insert existence check is only a fast path.
        UniqueConstraint("event_id", "user_id", name="uq_guest_list_event_user"),
    )

    guest_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    event_id = Column(
        Uuid,
        ForeignKey("events.event_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    user_id = Column(Uuid, nullable=False, index=True)
    invited_by = Column(Uuid, nullable=True)
    role = Column(SAEnum(GuestRole), nullable=False, default=GuestRole.ATTENDEE)
    # NULL when RSVPs are owned by the external guest service.
    rsvp_status = Column(SAEnum(RsvpStatus), nullable=True)
    responded_at = Column(DateTime(timezone=True), nullable=True)
    checked_in = Column(Boolean, nullable=False, default=False)
    checked_in_at = Column(DateTime(timezone=True), nullable=True)
    notes = Column(String(1000), nullable=True)
    invited_at = Column(DateTime(timezone=True), server_default=func.now())

    event = relationship("Event", back_populates="guests")
