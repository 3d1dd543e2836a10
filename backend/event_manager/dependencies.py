"""FastAPI dependencies for the out-of-process collaborators.

Both are created once at startup (see ``main.on_startup``) and overridden in tests
through ``app.dependency_overrides``.
"""
from fastapi import Request

from event_manager.booking.client import BookingService
from event_manager.messaging.bus import EventBus


def get_booking_client(request: Request) -> BookingService:
    return request.app.state.booking_client


def get_event_bus(request: Request) -> EventBus:
    return request.app.state.event_bus
