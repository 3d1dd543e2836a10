"""Pydantic schemas for guest list entries."""
from datetime import datetime
from uuid import UUID
from typing import Optional
from pydantic import BaseModel, Field

from event_manager.models.guest import GuestRole, RsvpStatus


class GuestInvite(BaseModel):
    user_id: UUID
    invited_by: Optional[UUID] = None
    role: Optional[GuestRole] = None
    notes: Optional[str] = Field(None, max_length=1000)


class GuestRoleUpdate(BaseModel):
    role: GuestRole


class GuestNotesUpdate(BaseModel):
    notes: Optional[str] = Field(None, max_length=1000)


class RsvpUpdate(BaseModel):
    status: RsvpStatus


class GuestOut(BaseModel):
    guest_id: UUID
    event_id: UUID
    user_id: UUID
    invited_by: Optional[UUID] = None
    role: GuestRole
    rsvp_status: Optional[RsvpStatus] = None
    responded_at: Optional[datetime] = None
    checked_in: bool
    checked_in_at: Optional[datetime] = None
    notes: Optional[str] = None
    invited_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class CountOut(BaseModel):
    event_id: UUID
    count: int
