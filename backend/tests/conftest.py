"""Pytest fixtures: SQLite database, fake booking service and recording bus."""
import os
import uuid
from datetime import datetime, timezone, timedelta

# Must be set before event_manager.config is imported.
SQLITE_URL = "sqlite:///./test.db"
os.environ["DATABASE_URL"] = SQLITE_URL
os.environ["KAFKA_ENABLED"] = "false"

import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient

from event_manager.booking.client import AvailabilityResult, BookingResult, CancellationResult
from event_manager.config import settings
from event_manager.database import Base, get_db
from event_manager.dependencies import get_booking_client, get_event_bus
from event_manager.errors import UpstreamUnavailableError
from event_manager.main import app

# Import all models so they register with Base.metadata
from event_manager.models.event import Event                 # noqa: F401
from event_manager.models.guest import GuestEntry            # noqa: F401


class FakeBookingService:
    """In-memory booking service. Flip the flags to simulate an unhealthy upstream."""

    def __init__(self):
        self.available = True
        self.fail_check = False
        self.fail_create = False
        self.fail_cancel = False
        self.booking_status = "CONFIRMED"
        self.calls: list[tuple] = []
        self.cancelled: list[str] = []
        self._counter = 0

    def check_availability(self, venue_id, start_epoch_millis, end_epoch_millis):
        self.calls.append(("check_availability", venue_id, start_epoch_millis, end_epoch_millis))
        if self.fail_check:
            raise UpstreamUnavailableError("Booking service timed out")
        return AvailabilityResult(available=self.available)

    def create_booking(self, venue_id, event_id, organization_id, start_epoch_millis, end_epoch_millis,
                       currency, addon_quantities=None):
        self.calls.append(("create_booking", venue_id, event_id, organization_id,
                           start_epoch_millis, end_epoch_millis, currency))
        if self.fail_create:
            raise UpstreamUnavailableError("Booking service unreachable")
        self._counter += 1
        return BookingResult(bookingId=f"booking-{self._counter}", status=self.booking_status)

    def cancel_booking(self, booking_id):
        self.calls.append(("cancel_booking", booking_id))
        if self.fail_cancel:
            raise UpstreamUnavailableError("Booking service unreachable")
        self.cancelled.append(booking_id)
        return CancellationResult(status="CANCELLED")

    def call_names(self) -> list[str]:
        return [c[0] for c in self.calls]


class RecordingEventBus:
    """Keeps every published message; ``fail`` makes publishing raise like a broker outage."""

    def __init__(self):
        self.messages: list[tuple[str, dict, str]] = []
        self.fail = False

    def publish(self, topic, payload, key=None):
        if self.fail:
            raise UpstreamUnavailableError(f"Could not publish to {topic}")
        self.messages.append((topic, payload, key))

    def close(self):
        pass

    def topics(self) -> list[str]:
        return [m[0] for m in self.messages]

    def payloads(self, topic: str) -> list[dict]:
        return [m[1] for m in self.messages if m[0] == topic]


@pytest.fixture(scope="function")
def db_engine():
    """Create a fresh SQLite engine for each test."""
    engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=db_engine)


@pytest.fixture(scope="function")
def db(session_factory):
    """Yield a database session, closed after the test."""
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def booking():
    return FakeBookingService()


@pytest.fixture
def bus():
    return RecordingEventBus()


@pytest.fixture(autouse=True)
def default_settings(monkeypatch):
    """Every test starts from the default deployment variant."""
    monkeypatch.setattr(settings, "ATTENDEE_COUNT_STRATEGY", "recompute")
    monkeypatch.setattr(settings, "TRACK_RSVP_LOCALLY", True)
    monkeypatch.setattr(settings, "BOOKING_CURRENCY", "EUR")


@pytest.fixture(scope="function")
def client(session_factory, booking, bus):
    """FastAPI TestClient with the database, booking service and bus overridden."""

    def _override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = _override_get_db
    app.dependency_overrides[get_booking_client] = lambda: booking
    app.dependency_overrides[get_event_bus] = lambda: bus
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
ORGANIZATION_ID = uuid.UUID("aaaaaaaa-1111-4111-8111-111111111111")
ORGANIZER_ID = uuid.UUID("bbbbbbbb-2222-4222-8222-222222222222")
VENUE_ID = uuid.UUID("cccccccc-3333-4333-8333-333333333333")


def event_payload(title: str = "Test Conference", start_offset_hours: int = 24 * 7,
                  duration_hours: int = 2, **overrides) -> dict:
    """JSON body for POST /api/events."""
    start = datetime.now(timezone.utc) + timedelta(hours=start_offset_hours)
    payload = {
        "title": title,
        "description": "A test conference event",
        "start_time_utc": start.isoformat(),
        "end_time_utc": (start + timedelta(hours=duration_hours)).isoformat(),
        "venue_id": str(VENUE_ID),
        "venue_name": "Conference Hall A",
        "organization_id": str(ORGANIZATION_ID),
        "organizer_id": str(ORGANIZER_ID),
        "max_attendees": 100,
        "event_type": "PUBLIC",
    }
    payload.update(overrides)
    return payload


def create_test_event(client: TestClient, **overrides) -> dict:
    """Helper: POST /api/events and return response JSON."""
    resp = client.post("/api/events/", json=event_payload(**overrides))
    assert resp.status_code == 201, resp.text
    return resp.json()


def invite(client: TestClient, event_id: str, user_id=None, **extra):
    """Helper: POST a guest invitation, returns the raw response."""
    body = {"user_id": str(user_id or uuid.uuid4())}
    body.update(extra)
    return client.post(f"/api/events/{event_id}/guests/", json=body)
