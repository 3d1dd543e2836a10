"""Guest list / RSVP API routes."""
import logging
from typing import Optional
from uuid import UUID
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from event_manager.database import get_db
from event_manager.dependencies import get_event_bus
from event_manager.messaging.bus import EventBus
from event_manager.models.guest import GuestRole, RsvpStatus
from event_manager.schemas.guest import (
    CountOut, GuestInvite, GuestNotesUpdate, GuestOut, GuestRoleUpdate, RsvpUpdate,
)
from event_manager.services import guest_service

logger = logging.getLogger(__name__)
router = APIRouter()
user_router = APIRouter()


@router.get("/", response_model=list[GuestOut])
def list_guests(event_id: UUID, db: Session = Depends(get_db)):
    return guest_service.get_guests_for_event(db, event_id)


@router.post("/", response_model=GuestOut, status_code=status.HTTP_201_CREATED)
def invite_guest(
    event_id: UUID,
    payload: GuestInvite,
    db: Session = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
):
    """Invite a user. 404 if the event does not exist, 409 if already invited."""
    return guest_service.invite_guest(
        db,
        bus,
        event_id=event_id,
        user_id=payload.user_id,
        invited_by=payload.invited_by,
        role=payload.role,
        notes=payload.notes,
    )


@router.get("/count", response_model=CountOut)
def count_guests(event_id: UUID, db: Session = Depends(get_db)):
    return CountOut(event_id=event_id, count=guest_service.count_total_guests(db, event_id))


@router.get("/count/checked-in", response_model=CountOut)
def count_checked_in(event_id: UUID, db: Session = Depends(get_db)):
    return CountOut(event_id=event_id, count=guest_service.count_checked_in_guests(db, event_id))


@router.get("/count/status/{rsvp_status}", response_model=CountOut)
def count_by_status(event_id: UUID, rsvp_status: RsvpStatus, db: Session = Depends(get_db)):
    return CountOut(event_id=event_id, count=guest_service.count_guests_by_status(db, event_id, rsvp_status))


@router.get("/checked-in", response_model=list[GuestOut])
def list_checked_in(event_id: UUID, db: Session = Depends(get_db)):
    return guest_service.get_checked_in_guests(db, event_id)


@router.get("/role/{role}", response_model=list[GuestOut])
def list_by_role(event_id: UUID, role: GuestRole, db: Session = Depends(get_db)):
    return guest_service.get_guests_by_role(db, event_id, role)


@router.get("/status/{rsvp_status}", response_model=list[GuestOut])
def list_by_status(event_id: UUID, rsvp_status: RsvpStatus, db: Session = Depends(get_db)):
    return guest_service.get_guests_by_status(db, event_id, rsvp_status)


@router.get("/{user_id}", response_model=GuestOut)
def get_guest(event_id: UUID, user_id: UUID, db: Session = Depends(get_db)):
    return guest_service.get_guest_entry(db, event_id, user_id)


@router.get("/{user_id}/invited")
def is_invited(event_id: UUID, user_id: UUID, db: Session = Depends(get_db)):
    return {"invited": guest_service.is_user_invited(db, event_id, user_id)}


@router.delete("/{user_id}", status_code=status.HTTP_204_NO_CONTENT)
def remove_guest(
    event_id: UUID,
    user_id: UUID,
    removed_by: Optional[UUID] = Query(None),
    db: Session = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
):
    guest_service.remove_guest(db, bus, event_id, user_id, removed_by=removed_by)


@router.put("/{user_id}/role", response_model=GuestOut)
def update_role(event_id: UUID, user_id: UUID, payload: GuestRoleUpdate, db: Session = Depends(get_db)):
    return guest_service.update_guest_role(db, event_id, user_id, payload.role)


@router.put("/{user_id}/notes", response_model=GuestOut)
def update_notes(event_id: UUID, user_id: UUID, payload: GuestNotesUpdate, db: Session = Depends(get_db)):
    return guest_service.update_guest_notes(db, event_id, user_id, payload.notes)


@router.put("/{user_id}/rsvp", response_model=GuestOut)
def update_rsvp(
    event_id: UUID,
    user_id: UUID,
    payload: RsvpUpdate,
    db: Session = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
):
    return guest_service.update_rsvp(db, bus, event_id, user_id, payload.status)


@router.post("/{user_id}/accept", response_model=GuestOut)
def accept(event_id: UUID, user_id: UUID, db: Session = Depends(get_db), bus: EventBus = Depends(get_event_bus)):
    return guest_service.accept_invitation(db, bus, event_id, user_id)


@router.post("/{user_id}/decline", response_model=GuestOut)
def decline(event_id: UUID, user_id: UUID, db: Session = Depends(get_db), bus: EventBus = Depends(get_event_bus)):
    return guest_service.decline_invitation(db, bus, event_id, user_id)


@router.post("/{user_id}/check-in", response_model=GuestOut)
def check_in(event_id: UUID, user_id: UUID, db: Session = Depends(get_db), bus: EventBus = Depends(get_event_bus)):
    """412 unless the guest has accepted."""
    return guest_service.check_in_guest(db, bus, event_id, user_id)


@user_router.get("/{user_id}/invitations", response_model=list[GuestOut])
def list_user_invitations(user_id: UUID, db: Session = Depends(get_db)):
    """Every guest list entry for one user, across events."""
    return guest_service.get_invitations_for_user(db, user_id)
