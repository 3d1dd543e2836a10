"""Pydantic schemas for Events."""
from __future__ import annotations
from datetime import datetime
from uuid import UUID
from typing import Optional
from pydantic import BaseModel, Field

from event_manager.models.event import EventStatus, EventType


class EventCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    start_time_utc: datetime
    end_time_utc: Optional[datetime] = None
    venue_id: Optional[UUID] = None
    venue_name: Optional[str] = None
    organization_id: UUID
    organizer_id: UUID
    max_attendees: Optional[int] = Field(None, ge=0)
    event_type: EventType = EventType.PRIVATE
    status: Optional[EventStatus] = None  # forced to DRAFT when absent


class EventUpdate(BaseModel):
    """Full replacement of the mutable fields (PUT semantics)."""

    title: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = Field(None, max_length=1000)
    start_time_utc: datetime
    end_time_utc: Optional[datetime] = None
    venue_id: Optional[UUID] = None
    venue_name: Optional[str] = None
    max_attendees: Optional[int] = Field(None, ge=0)
    # Left out → the event keeps its current type / status.
    event_type: Optional[EventType] = None
    status: Optional[EventStatus] = None


class EventOut(BaseModel):
    event_id: UUID
    title: str
    description: Optional[str] = None
    start_time_utc: datetime
    end_time_utc: Optional[datetime] = None
    venue_id: Optional[UUID] = None
    venue_name: Optional[str] = None
    organization_id: UUID
    organizer_id: UUID
    max_attendees: Optional[int] = None
    current_attendees: int
    event_type: EventType
    status: EventStatus
    booking_id: Optional[str] = None
    booking_status: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = {"from_attributes": True}
