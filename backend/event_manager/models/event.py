"""Event ORM model."""
import uuid
import enum
from sqlalchemy import Column, String, DateTime, Integer, CheckConstraint, Uuid, Enum as SAEnum
from sqlalchemy.sql import func
from sqlalchemy.orm import relationship
from event_manager.database import Base


class EventStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PUBLISHED = "PUBLISHED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class EventType(str, enum.Enum):
    PRIVATE = "PRIVATE"
    PUBLIC = "PUBLIC"


class Event(Base):
    __tablename__ = "events"
    __table_args__ = (
        CheckConstraint("current_attendees >= 0", name="ck_events_current_attendees_non_negative"),
    )

    event_id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    title = Column(String(255), nullable=False)
    description = Column(String(1000), nullable=True)
    start_time_utc = Column(DateTime(timezone=True), nullable=False)
    end_time_utc = Column(DateTime(timezone=True), nullable=True)
    venue_id = Column(Uuid, nullable=True, index=True)
    venue_name = Column(String(255), nullable=True)
    organization_id = Column(Uuid, nullable=False, index=True)
    organizer_id = Column(Uuid, nullable=False)
    max_attendees = Column(Integer, nullable=True)
    current_attendees = Column(Integer, nullable=False, default=0)
    event_type = Column(SAEnum(EventType), nullable=False, default=EventType.PRIVATE)
    status = Column(SAEnum(EventStatus), nullable=False, default=EventStatus.DRAFT, index=True)
    # Owned by the booking service; we only echo its id and status.
    booking_id = Column(String(64), nullable=True)
    booking_status = Column(String(50), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    guests = relationship(
        "GuestEntry",
        back_populates="event",
        cascade="all, delete-orphan",
    )
