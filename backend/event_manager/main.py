"""FastAPI application entry point."""
import logging

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from event_manager.config import settings
from event_manager.database import Base, engine
from event_manager.booking.client import BookingClient
from event_manager.messaging.bus import create_event_bus

# Import routers
from event_manager.routers import events, guests

# Import all models so Base.metadata knows about them
from event_manager.models.event import Event          # noqa: F401
from event_manager.models.guest import GuestEntry     # noqa: F401

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Event Manager",
    description="Events, guest lists and venue bookings for the event-planning platform",
    version="0.1.0",
)

# CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS.split(","),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Register routers
app.include_router(events.router, prefix="/api/events", tags=["Events"])
app.include_router(guests.router, prefix="/api/events/{event_id}/guests", tags=["Guests"])
app.include_router(guests.user_router, prefix="/api/users", tags=["Guests"])


@app.on_event("startup")
def on_startup():
    """Create collaborators; create tables on startup (for SQLite dev mode)."""
    if settings.DATABASE_URL.startswith("sqlite"):
        Base.metadata.create_all(bind=engine)
    app.state.booking_client = BookingClient.from_settings()
    app.state.event_bus = create_event_bus()
    logger.info("Event manager started (rsvp tracking=%s, count strategy=%s)",
                settings.TRACK_RSVP_LOCALLY, settings.ATTENDEE_COUNT_STRATEGY)


@app.on_event("shutdown")
def on_shutdown():
    app.state.event_bus.close()
    app.state.booking_client.close()


@app.get("/api/health")
def health_check():
    return {"status": "ok"}
