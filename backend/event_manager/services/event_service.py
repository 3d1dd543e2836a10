"""Event lifecycle service: event CRUD, status transitions and venue booking.

Three collaborators are involved in every write: the event store (``db``), the
venue booking service and the event bus. They cannot be committed together, so
the order of operations is what keeps them consistent:

- The store is the source of truth. Bus notifications are sent after the
  commit and a failed publish is logged, never rolled back.
- Releasing a booking on delete / cancel is try, log, proceed: an unreachable
  booking service must not leave an organizer unable to cancel or delete. The
  price is a booking that may outlive its event and has to be reconciled on
  the booking side.
- Reserving a venue is not best-effort. The caller is told if it did not happen.

Status transitions are not guarded: any status may move to any other.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from sqlalchemy.orm import Session

from event_manager.booking.client import BookingService
from event_manager.config import settings
from event_manager.errors import ConflictError, NotFoundError
from event_manager.messaging import topics
from event_manager.messaging.bus import EventBus, publish_quietly
from event_manager.models.event import Event, EventStatus, EventType

logger = logging.getLogger(__name__)

MUTABLE_FIELDS = (
    "title",
    "description",
    "start_time_utc",
    "end_time_utc",
    "venue_id",
    "venue_name",
    "max_attendees",
    "event_type",
    "status",
)
# Not nullable; a missing value on update keeps what is stored.
KEEP_IF_MISSING = ("title", "start_time_utc", "event_type", "status")


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _to_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Normalise to UTC; naive datetimes (e.g. read back from SQLite) are taken as UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _epoch_millis(value: datetime) -> int:
    return int(_to_utc(value).timestamp() * 1000)


def _summary(verb: str, event: Event) -> dict[str, Any]:
    return {
        "eventId": str(event.event_id),
        "title": event.title,
        "summary": f"Event {verb}: {event.title} (ID: {event.event_id})",
    }


def _release_booking(booking: BookingService, event: Event) -> bool:
    """Best-effort cancellation of the event's booking. Failures are logged, never raised."""
    if not event.booking_id:
        return True
    try:
        logger.info("Cancelling booking %s for event %s", event.booking_id, event.event_id)
        result = booking.cancel_booking(event.booking_id)
    except Exception as e:
        logger.error("Failed to cancel booking %s for event %s: %s", event.booking_id, event.event_id, e)
        return False
    event.booking_status = result.status
    return True


# ---------------------------------------------------------------------------
# CRUD
# ---------------------------------------------------------------------------
def get_all_events(db: Session) -> list[Event]:
    return db.query(Event).all()


def get_event(db: Session, event_id: uuid.UUID) -> Event:
    event = db.query(Event).filter(Event.event_id == event_id).first()
    if not event:
        raise NotFoundError(f"Event not found with id: {event_id}")
    return event


def create_event(db: Session, bus: EventBus, fields: dict[str, Any]) -> Event:
    """Persist a new event (DRAFT unless a status is given) and announce it.

    No booking is made here; callers reserve the venue explicitly.
    """
    data = dict(fields)
    data["status"] = data.get("status") or EventStatus.DRAFT
    data["event_type"] = data.get("event_type") or EventType.PRIVATE
    data["start_time_utc"] = _to_utc(data.get("start_time_utc"))
    data["end_time_utc"] = _to_utc(data.get("end_time_utc"))

    event = Event(**data)
    event.current_attendees = 0
    db.add(event)
    db.commit()
    db.refresh(event)
    logger.info("Created new event: %s", event.event_id)

    publish_quietly(bus, topics.EVENT_CREATED, _summary("created", event), key=str(event.event_id))
    return event


def update_event(db: Session, bus: EventBus, event_id: uuid.UUID, changes: dict[str, Any]) -> Event:
    """Overwrite the mutable fields of an existing event and announce the change."""
    event = get_event(db, event_id)

    for field in MUTABLE_FIELDS:
        if field in changes:
            value = changes[field]
            if value is None and field in KEEP_IF_MISSING:
                continue
            if field in ("start_time_utc", "end_time_utc"):
                value = _to_utc(value)
            setattr(event, field, value)

    db.commit()
    db.refresh(event)
    logger.info("Updated event: %s", event_id)

    publish_quietly(bus, topics.EVENT_UPDATED, _summary("updated", event), key=str(event_id))
    return event


def delete_event(db: Session, booking: BookingService, bus: EventBus, event_id: uuid.UUID) -> None:
    """Release the booking (best-effort), delete the event and its guest list."""
    event = get_event(db, event_id)

    # Best-effort; a failed release is logged and deletion goes ahead.
    _release_booking(booking, event)

    db.delete(event)
    db.commit()
    logger.info("Deleted event: %s", event_id)

    publish_quietly(
        bus,
        topics.EVENT_DELETED,
        {"eventId": str(event_id), "deletedAt": _now().isoformat()},
        key=str(event_id),
    )


# ---------------------------------------------------------------------------
# Venue booking
# ---------------------------------------------------------------------------
def reserve_venue(
    db: Session,
    booking: BookingService,
    event_id: uuid.UUID,
    addon_quantities: Optional[dict[int, int]] = None,
) -> Event:
    """Book the event's venue for its time window, replacing any previous booking.

    An existing booking is released first on a best-effort basis. The sequence
    is not atomic: a crash between release and create leaves the event without
    a booking. Fails with ConflictError when the venue is taken and propagates
    UpstreamUnavailableError when availability or creation cannot be confirmed.
    """
    event = get_event(db, event_id)

    if event.booking_id:
        if _release_booking(booking, event):
            event.booking_id = None
            event.booking_status = None
            db.commit()
        else:
            logger.warning("Superseding booking %s for event %s without release", event.booking_id, event_id)

    if not (event.venue_id and event.start_time_utc and event.end_time_utc):
        logger.info("Event %s has no venue or time window; nothing to reserve", event_id)
        return event

    start_ms = _epoch_millis(event.start_time_utc)
    end_ms = _epoch_millis(event.end_time_utc)

    availability = booking.check_availability(event.venue_id, start_ms, end_ms)
    if not availability.available:
        logger.warning("Venue %s is not available for event %s", event.venue_id, event_id)
        raise ConflictError("Location is not available for the selected time interval")

    created = booking.create_booking(
        event.venue_id,
        event.event_id,
        event.organization_id,
        start_ms,
        end_ms,
        settings.BOOKING_CURRENCY,
        addon_quantities,
    )

    event.booking_id = created.booking_id
    event.booking_status = created.status
    db.commit()
    db.refresh(event)
    logger.info("Created booking %s (%s) for event %s", created.booking_id, created.status, event_id)
    return event


# ---------------------------------------------------------------------------
# Status transitions
# ---------------------------------------------------------------------------
def publish_event(db: Session, bus: EventBus, event_id: uuid.UUID) -> Event:
    event = get_event(db, event_id)
    event.status = EventStatus.PUBLISHED
    db.commit()
    db.refresh(event)
    logger.info("Published event: %s", event_id)

    publish_quietly(bus, topics.EVENT_PUBLISHED, _summary("published", event), key=str(event_id))
    return event


def cancel_event(db: Session, booking: BookingService, bus: EventBus, event_id: uuid.UUID) -> Event:
    """Cancel locally, always. The booking is released if the booking service allows."""
    event = get_event(db, event_id)

    # Best-effort, as in delete_event.
    _release_booking(booking, event)

    event.status = EventStatus.CANCELLED
    db.commit()
    db.refresh(event)
    logger.info("Cancelled event: %s", event_id)

    publish_quietly(
        bus,
        topics.EVENT_CANCELLED,
        {"eventId": str(event_id), "cancelledAt": _now().isoformat()},
        key=str(event_id),
    )
    return event


def complete_event(db: Session, event_id: uuid.UUID) -> Event:
    # No notification, unlike publish/cancel.
    event = get_event(db, event_id)
    event.status = EventStatus.COMPLETED
    db.commit()
    db.refresh(event)
    logger.info("Completed event: %s", event_id)
    return event


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------
def get_events_by_organization(db: Session, organization_id: uuid.UUID) -> list[Event]:
    return db.query(Event).filter(Event.organization_id == organization_id).all()


def get_events_by_status(db: Session, event_status: EventStatus) -> list[Event]:
    return db.query(Event).filter(Event.status == event_status).all()


def get_public_events(db: Session) -> list[Event]:
    return (
        db.query(Event)
        .filter(Event.event_type == EventType.PUBLIC)
        .order_by(Event.start_time_utc.asc())
        .all()
    )


def get_upcoming_events(db: Session, now: Optional[datetime] = None) -> list[Event]:
    """Published events that have not started yet, soonest first."""
    now = _to_utc(now) or _now()
    return (
        db.query(Event)
        .filter(Event.status == EventStatus.PUBLISHED, Event.start_time_utc > now)
        .order_by(Event.start_time_utc.asc())
        .all()
    )


def get_past_events(db: Session, now: Optional[datetime] = None) -> list[Event]:
    """Events that have started, most recent first, whatever their status."""
    now = _to_utc(now) or _now()
    return (
        db.query(Event)
        .filter(Event.start_time_utc < now)
        .order_by(Event.start_time_utc.desc())
        .all()
    )


def get_events_by_date_range(db: Session, start: datetime, end: datetime) -> list[Event]:
    return (
        db.query(Event)
        .filter(Event.start_time_utc >= _to_utc(start), Event.start_time_utc <= _to_utc(end))
        .order_by(Event.start_time_utc.asc())
        .all()
    )


def get_events_by_venue(db: Session, venue_id: uuid.UUID) -> list[Event]:
    return db.query(Event).filter(Event.venue_id == venue_id).all()
