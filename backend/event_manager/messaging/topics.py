"""Kafka topic names shared with the guest/RSVP service."""

EVENT_CREATED = "event-created"
EVENT_UPDATED = "event-updated"
EVENT_DELETED = "event-deleted"
EVENT_PUBLISHED = "event-published"
EVENT_CANCELLED = "event-cancelled"

GUEST_INVITED = "guest-invited"
GUEST_REMOVED = "guest-removed"
GUEST_CHECKED_IN = "guest-checked-in"

RSVP_UPDATED = "rsvp-updated"
RSVP_ACCEPTED = "rsvp-accepted"
RSVP_DECLINED = "rsvp-declined"

LIFECYCLE_TOPICS = [EVENT_CREATED, EVENT_UPDATED, EVENT_DELETED, EVENT_PUBLISHED, EVENT_CANCELLED]
RSVP_COUNT_TOPICS = [RSVP_ACCEPTED, RSVP_DECLINED]
