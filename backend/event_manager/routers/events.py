"""Event API routes: delegates to event_service for lifecycle and booking rules."""
import logging
from uuid import UUID
from datetime import datetime
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from event_manager.booking.client import BookingService
from event_manager.database import get_db
from event_manager.dependencies import get_booking_client, get_event_bus
from event_manager.messaging.bus import EventBus
from event_manager.models.event import EventStatus
from event_manager.schemas.event import EventCreate, EventUpdate, EventOut
from event_manager.services import event_service

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/", response_model=list[EventOut])
def list_events(db: Session = Depends(get_db)):
    return event_service.get_all_events(db)


@router.post("/", response_model=EventOut, status_code=status.HTTP_201_CREATED)
def create_event(payload: EventCreate, db: Session = Depends(get_db), bus: EventBus = Depends(get_event_bus)):
    """Create a new event in DRAFT (no venue booking is made)."""
    return event_service.create_event(db, bus, payload.model_dump())


# Static paths first so they are not captured by /{event_id}.
@router.get("/organization/{organization_id}", response_model=list[EventOut])
def list_events_by_organization(organization_id: UUID, db: Session = Depends(get_db)):
    return event_service.get_events_by_organization(db, organization_id)


@router.get("/status/{event_status}", response_model=list[EventOut])
def list_events_by_status(event_status: EventStatus, db: Session = Depends(get_db)):
    return event_service.get_events_by_status(db, event_status)


@router.get("/public", response_model=list[EventOut])
def list_public_events(db: Session = Depends(get_db)):
    """Public events ordered by start time."""
    return event_service.get_public_events(db)


@router.get("/upcoming", response_model=list[EventOut])
def list_upcoming_events(db: Session = Depends(get_db)):
    """Published events that have not started yet."""
    return event_service.get_upcoming_events(db)


@router.get("/past", response_model=list[EventOut])
def list_past_events(db: Session = Depends(get_db)):
    return event_service.get_past_events(db)


@router.get("/range", response_model=list[EventOut])
def list_events_in_range(
    start: datetime = Query(...),
    end: datetime = Query(...),
    db: Session = Depends(get_db),
):
    return event_service.get_events_by_date_range(db, start, end)


@router.get("/venue/{venue_id}", response_model=list[EventOut])
def list_events_by_venue(venue_id: UUID, db: Session = Depends(get_db)):
    return event_service.get_events_by_venue(db, venue_id)


@router.get("/{event_id}", response_model=EventOut)
def get_event(event_id: UUID, db: Session = Depends(get_db)):
    return event_service.get_event(db, event_id)


@router.put("/{event_id}", response_model=EventOut)
def update_event(
    event_id: UUID,
    payload: EventUpdate,
    db: Session = Depends(get_db),
    bus: EventBus = Depends(get_event_bus),
):
    return event_service.update_event(db, bus, event_id, payload.model_dump())


@router.delete("/{event_id}", status_code=status.HTTP_204_NO_CONTENT)
def delete_event(
    event_id: UUID,
    db: Session = Depends(get_db),
    booking: BookingService = Depends(get_booking_client),
    bus: EventBus = Depends(get_event_bus),
):
    """Delete an event; its booking is released if the booking service is reachable."""
    event_service.delete_event(db, booking, bus, event_id)


@router.post("/{event_id}/reserve-venue", response_model=EventOut)
def reserve_venue(
    event_id: UUID,
    db: Session = Depends(get_db),
    booking: BookingService = Depends(get_booking_client),
):
    """Book the event's venue. 409 if taken, 503 if the booking service is down."""
    return event_service.reserve_venue(db, booking, event_id)


@router.put("/{event_id}/publish", response_model=EventOut)
def publish_event(event_id: UUID, db: Session = Depends(get_db), bus: EventBus = Depends(get_event_bus)):
    return event_service.publish_event(db, bus, event_id)


@router.put("/{event_id}/cancel", response_model=EventOut)
def cancel_event(
    event_id: UUID,
    db: Session = Depends(get_db),
    booking: BookingService = Depends(get_booking_client),
    bus: EventBus = Depends(get_event_bus),
):
    return event_service.cancel_event(db, booking, bus, event_id)


@router.put("/{event_id}/complete", response_model=EventOut)
def complete_event(event_id: UUID, db: Session = Depends(get_db)):
    return event_service.complete_event(db, event_id)
