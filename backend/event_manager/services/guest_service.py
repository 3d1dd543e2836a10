"""Guest list service: invitations, roles, RSVPs and check-in.

Invitation uniqueness per (event, user) is decided by the store's
``uq_guest_list_event_user`` constraint. The existence check before insert only
gives a friendlier error in the common case; two concurrent invites can both
pass it, and the loser's IntegrityError is turned into the same ConflictError.

RSVP tracking is optional (``TRACK_RSVP_LOCALLY``). When RSVPs are owned by the
external guest service, entries carry no RSVP status and the RSVP and check-in
operations are refused.
"""
import logging
import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from event_manager.config import settings
from event_manager.errors import ConflictError, NotFoundError, PreconditionFailedError
from event_manager.messaging import topics
from event_manager.messaging.bus import EventBus, publish_quietly
from event_manager.models.event import Event
from event_manager.models.guest import GuestEntry, GuestRole, RsvpStatus
from event_manager.services import attendee_count
from event_manager.services.attendee_count import CountStrategy

logger = logging.getLogger(__name__)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _require_rsvp_tracking() -> None:
    if not settings.TRACK_RSVP_LOCALLY:
        raise PreconditionFailedError("RSVPs are managed by the guest service in this deployment")


# ---------------------------------------------------------------------------
# Lookups
# ---------------------------------------------------------------------------
def get_guests_for_event(db: Session, event_id: uuid.UUID) -> list[GuestEntry]:
    return db.query(GuestEntry).filter(GuestEntry.event_id == event_id).all()


def get_invitations_for_user(db: Session, user_id: uuid.UUID) -> list[GuestEntry]:
    return db.query(GuestEntry).filter(GuestEntry.user_id == user_id).all()


def get_guest_entry(db: Session, event_id: uuid.UUID, user_id: uuid.UUID) -> GuestEntry:
    guest = (
        db.query(GuestEntry)
        .filter(GuestEntry.event_id == event_id, GuestEntry.user_id == user_id)
        .first()
    )
    if not guest:
        raise NotFoundError(f"Guest not found for event: {event_id} and user: {user_id}")
    return guest


def is_user_invited(db: Session, event_id: uuid.UUID, user_id: uuid.UUID) -> bool:
    return (
        db.query(GuestEntry.guest_id)
        .filter(GuestEntry.event_id == event_id, GuestEntry.user_id == user_id)
        .first()
        is not None
    )


# ---------------------------------------------------------------------------
# Invitations
# ---------------------------------------------------------------------------
def invite_guest(
    db: Session,
    bus: EventBus,
    event_id: uuid.UUID,
    user_id: uuid.UUID,
    invited_by: Optional[uuid.UUID] = None,
    role: Optional[GuestRole] = None,
    notes: Optional[str] = None,
) -> GuestEntry:
    """Invite a user to an existing event. A second invite for the same pair is a ConflictError."""
    event = db.query(Event).filter(Event.event_id == event_id).first()
    if not event:
        raise NotFoundError(f"Event not found: {event_id}")

    if is_user_invited(db, event_id, user_id):
        raise ConflictError("User already invited to this event")

    guest = GuestEntry(
        event_id=event_id,
        user_id=user_id,
        invited_by=invited_by,
        role=role or GuestRole.ATTENDEE,
        rsvp_status=RsvpStatus.PENDING if settings.TRACK_RSVP_LOCALLY else None,
        checked_in=False,
        notes=notes,
    )
    db.add(guest)
    try:
        db.commit()
    except IntegrityError as e:
        db.rollback()
        logger.info("Concurrent invite for user %s to event %s lost the race", user_id, event_id)
        raise ConflictError("User already invited to this event") from e
    db.refresh(guest)
    logger.info("Invited user %s to event %s", user_id, event_id)

    publish_quietly(
        bus,
        topics.GUEST_INVITED,
        {
            "eventId": str(event_id),
            "userId": str(user_id),
            "invitedBy": str(invited_by) if invited_by else None,
            "organizationId": str(event.organization_id),
            "invitedAt": _now().isoformat(),
        },
        key=str(event_id),
    )
    return guest


def remove_guest(
    db: Session,
    bus: EventBus,
    event_id: uuid.UUID,
    user_id: uuid.UUID,
    removed_by: Optional[uuid.UUID] = None,
) -> None:
    guest = get_guest_entry(db, event_id, user_id)
    was_accepted = guest.rsvp_status == RsvpStatus.ACCEPTED
    db.delete(guest)
    db.commit()
    logger.info("Removed user %s from event %s", user_id, event_id)

    publish_quietly(
        bus,
        topics.GUEST_REMOVED,
        {
            "eventId": str(event_id),
            "userId": str(user_id),
            "removedBy": str(removed_by) if removed_by else None,
            "removedAt": _now().isoformat(),
        },
        key=str(event_id),
    )

    if was_accepted:
        _reconcile(db, bus, event_id, user_id, RsvpStatus.ACCEPTED, RsvpStatus.DECLINED)


def update_guest_role(db: Session, event_id: uuid.UUID, user_id: uuid.UUID, role: GuestRole) -> GuestEntry:
    guest = get_guest_entry(db, event_id, user_id)
    guest.role = role
    db.commit()
    db.refresh(guest)
    logger.info("User %s is now %s at event %s", user_id, role.value, event_id)
    return guest


def update_guest_notes(db: Session, event_id: uuid.UUID, user_id: uuid.UUID, notes: Optional[str]) -> GuestEntry:
    guest = get_guest_entry(db, event_id, user_id)
    guest.notes = notes
    db.commit()
    db.refresh(guest)
    return guest


# ---------------------------------------------------------------------------
# RSVP management
# ---------------------------------------------------------------------------
def update_rsvp(
    db: Session, bus: EventBus, event_id: uuid.UUID, user_id: uuid.UUID, rsvp_status: RsvpStatus
) -> GuestEntry:
    """Record a guest's answer, announce it and bring the attendee count up to date."""
    _require_rsvp_tracking()
    guest = get_guest_entry(db, event_id, user_id)

    previous = guest.rsvp_status
    guest.rsvp_status = rsvp_status
    guest.responded_at = _now()
    db.commit()
    db.refresh(guest)
    logger.info("User %s RSVP %s for event %s", user_id, rsvp_status.value, event_id)

    publish_quietly(
        bus,
        topics.RSVP_UPDATED,
        {
            "eventId": str(event_id),
            "userId": str(user_id),
            "status": rsvp_status.value,
            "previousStatus": previous.value if previous else None,
            "respondedAt": guest.responded_at.isoformat(),
        },
        key=str(event_id),
    )

    _reconcile(db, bus, event_id, user_id, previous, rsvp_status)
    return guest


def accept_invitation(db: Session, bus: EventBus, event_id: uuid.UUID, user_id: uuid.UUID) -> GuestEntry:
    return update_rsvp(db, bus, event_id, user_id, RsvpStatus.ACCEPTED)


def decline_invitation(db: Session, bus: EventBus, event_id: uuid.UUID, user_id: uuid.UUID) -> GuestEntry:
    return update_rsvp(db, bus, event_id, user_id, RsvpStatus.DECLINED)


def _reconcile(
    db: Session,
    bus: EventBus,
    event_id: uuid.UUID,
    user_id: uuid.UUID,
    previous: Optional[RsvpStatus],
    current: RsvpStatus,
) -> None:
    """Hand the attendee count to whichever path owns it in this deployment."""
    if attendee_count.current_strategy() == CountStrategy.RECOMPUTE:
        attendee_count.recompute_attendee_count(db, event_id)
        return

    # Delta deployments: the bus consumer is the only writer of the count.
    was_accepted = previous == RsvpStatus.ACCEPTED
    if current == RsvpStatus.ACCEPTED and not was_accepted:
        publish_quietly(bus, topics.RSVP_ACCEPTED, {"eventId": str(event_id), "userId": str(user_id)},
                        key=str(event_id))
    elif current != RsvpStatus.ACCEPTED and was_accepted:
        publish_quietly(
            bus,
            topics.RSVP_DECLINED,
            {"eventId": str(event_id), "userId": str(user_id), "wasAccepted": True},
            key=str(event_id),
        )


# ---------------------------------------------------------------------------
# Check-in
# ---------------------------------------------------------------------------
def check_in_guest(db: Session, bus: EventBus, event_id: uuid.UUID, user_id: uuid.UUID) -> GuestEntry:
    """Mark an accepted guest as arrived. Checking in twice is harmless."""
    _require_rsvp_tracking()
    guest = get_guest_entry(db, event_id, user_id)

    if guest.rsvp_status != RsvpStatus.ACCEPTED:
        raise PreconditionFailedError("Guest has not accepted invitation")

    guest.checked_in = True
    guest.checked_in_at = _now()
    db.commit()
    db.refresh(guest)
    logger.info("User %s checked in to event %s", user_id, event_id)

    publish_quietly(
        bus,
        topics.GUEST_CHECKED_IN,
        {"eventId": str(event_id), "userId": str(user_id), "checkedInAt": guest.checked_in_at.isoformat()},
        key=str(event_id),
    )
    return guest


def get_checked_in_guests(db: Session, event_id: uuid.UUID) -> list[GuestEntry]:
    return (
        db.query(GuestEntry)
        .filter(GuestEntry.event_id == event_id, GuestEntry.checked_in.is_(True))
        .all()
    )


def count_checked_in_guests(db: Session, event_id: uuid.UUID) -> int:
    return (
        db.query(GuestEntry)
        .filter(GuestEntry.event_id == event_id, GuestEntry.checked_in.is_(True))
        .count()
    )


# ---------------------------------------------------------------------------
# Queries / statistics
# ---------------------------------------------------------------------------
def get_guests_by_status(db: Session, event_id: uuid.UUID, rsvp_status: RsvpStatus) -> list[GuestEntry]:
    return (
        db.query(GuestEntry)
        .filter(GuestEntry.event_id == event_id, GuestEntry.rsvp_status == rsvp_status)
        .all()
    )


def get_guests_by_role(db: Session, event_id: uuid.UUID, role: GuestRole) -> list[GuestEntry]:
    return (
        db.query(GuestEntry)
        .filter(GuestEntry.event_id == event_id, GuestEntry.role == role)
        .all()
    )


def count_total_guests(db: Session, event_id: uuid.UUID) -> int:
    return db.query(GuestEntry).filter(GuestEntry.event_id == event_id).count()


def count_guests_by_status(db: Session, event_id: uuid.UUID, rsvp_status: RsvpStatus) -> int:
    return (
        db.query(GuestEntry)
        .filter(GuestEntry.event_id == event_id, GuestEntry.rsvp_status == rsvp_status)
        .count()
    )
