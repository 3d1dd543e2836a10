"""Attendee count reconciliation.

``Event.current_attendees`` is a cache of "how many guests accepted". Two ways
of keeping it current are supported, chosen per deployment by
``ATTENDEE_COUNT_STRATEGY``:

- ``recompute``: after a local RSVP change, count ACCEPTED guest entries and
  overwrite the cache. Idempotent, safe under replays.
- ``delta``: apply +1 / -1 from ``rsvp-accepted`` / ``rsvp-declined`` bus
  messages. Not idempotent: a redelivered message is applied twice and the
  count can drift until the next recompute.

Only one of the two paths writes the count in a given deployment. Neither takes
a lock, so concurrent writers on the same event can lose an update.
"""
import enum
import logging
import uuid
from typing import Optional

from sqlalchemy.orm import Session

from event_manager.config import settings
from event_manager.models.event import Event
from event_manager.models.guest import GuestEntry, RsvpStatus

logger = logging.getLogger(__name__)


class CountStrategy(str, enum.Enum):
    RECOMPUTE = "recompute"
    DELTA = "delta"


def current_strategy() -> CountStrategy:
    return CountStrategy(settings.ATTENDEE_COUNT_STRATEGY.lower())


def count_accepted(db: Session, event_id: uuid.UUID) -> int:
    return (
        db.query(GuestEntry)
        .filter(GuestEntry.event_id == event_id, GuestEntry.rsvp_status == RsvpStatus.ACCEPTED)
        .count()
    )


def recompute_attendee_count(db: Session, event_id: uuid.UUID) -> Optional[int]:
    """Overwrite the cached count with the number of accepted guests.

    Returns the new count, or None when the event no longer exists.
    """
    event = db.query(Event).filter(Event.event_id == event_id).first()
    if event is None:
        logger.info("Skipping attendee recount: event %s no longer exists", event_id)
        return None

    accepted = count_accepted(db, event_id)
    if event.current_attendees != accepted:
        logger.info("Attendee count for event %s: %s -> %d", event_id, event.current_attendees, accepted)
    event.current_attendees = accepted
    db.commit()
    _warn_if_over_capacity(event)
    return accepted


def apply_attendee_delta(db: Session, event_id: uuid.UUID, delta: int) -> Optional[int]:
    """Add ``delta`` to the cached count, never going below zero.

    Returns the new count, or None when the event no longer exists (a late
    RSVP message for a deleted event is not an error).
    """
    event = db.query(Event).filter(Event.event_id == event_id).first()
    if event is None:
        logger.info("Ignoring attendee delta %+d: event %s no longer exists", delta, event_id)
        return None

    previous = event.current_attendees or 0
    event.current_attendees = max(0, previous + delta)
    db.commit()
    logger.info("Attendee count for event %s: %d -> %d", event_id, previous, event.current_attendees)
    _warn_if_over_capacity(event)
    return event.current_attendees


def _warn_if_over_capacity(event: Event) -> None:
    # Capacity is a soft target; over-subscription is reported, not refused.
    if event.max_attendees is not None and event.current_attendees > event.max_attendees:
        logger.warning(
            "Event %s is over capacity: %d attendees for %d places",
            event.event_id, event.current_attendees, event.max_attendees,
        )
