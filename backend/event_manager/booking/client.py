"""Client for the venue booking service.

The booking service is the system of record for venue reservations. We only
ever ask three things of it: is the venue free, book it, release it. Every call
is bounded by ``BOOKING_TIMEOUT_SECONDS``; any transport, timeout or non-2xx
failure surfaces as ``UpstreamUnavailableError`` and the caller decides whether
that is fatal.
"""
import logging
import uuid
from typing import Optional, Protocol

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from event_manager.config import settings
from event_manager.errors import UpstreamUnavailableError

logger = logging.getLogger(__name__)


class AvailabilityResult(BaseModel):
    available: bool


class BookingResult(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    booking_id: str = Field(alias="bookingId")
    status: str


class CancellationResult(BaseModel):
    status: str


class BookingService(Protocol):
    """What the orchestrator needs from the booking service."""

    def check_availability(
        self, venue_id: uuid.UUID, start_epoch_millis: int, end_epoch_millis: int
    ) -> AvailabilityResult:
        ...

    def create_booking(
        self,
        venue_id: uuid.UUID,
        event_id: uuid.UUID,
        organization_id: uuid.UUID,
        start_epoch_millis: int,
        end_epoch_millis: int,
        currency: str,
        addon_quantities: Optional[dict[int, int]] = None,
    ) -> BookingResult:
        ...

    def cancel_booking(self, booking_id: str) -> CancellationResult:
        ...


class BookingClient:
    """Synchronous JSON-over-HTTP client for the booking service."""

    def __init__(
        self,
        base_url: str,
        timeout: float = 5.0,
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client = httpx.Client(
            base_url=self.base_url,
            timeout=httpx.Timeout(timeout),
            headers={"Content-Type": "application/json"},
            transport=transport,
        )

    @classmethod
    def from_settings(cls) -> "BookingClient":
        return cls(settings.BOOKING_SERVICE_URL, timeout=settings.BOOKING_TIMEOUT_SECONDS)

    def close(self) -> None:
        self.client.close()

    def _post(self, path: str, body: dict) -> dict:
        try:
            response = self.client.post(path, json=body)
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as e:
            logger.error("Booking service timed out on %s: %s", path, e)
            raise UpstreamUnavailableError(f"Booking service timed out: {path}") from e
        except httpx.HTTPStatusError as e:
            logger.error("Booking service returned %d on %s", e.response.status_code, path)
            raise UpstreamUnavailableError(
                f"Booking service error {e.response.status_code}: {path}"
            ) from e
        except httpx.HTTPError as e:
            logger.error("Booking service unreachable on %s: %s", path, e)
            raise UpstreamUnavailableError(f"Booking service unreachable: {path}") from e
        except ValueError as e:
            logger.error("Booking service sent a non-JSON body on %s", path)
            raise UpstreamUnavailableError(f"Booking service sent an invalid response: {path}") from e

    def check_availability(
        self, venue_id: uuid.UUID, start_epoch_millis: int, end_epoch_millis: int
    ) -> AvailabilityResult:
        data = self._post("/api/v1/availability/check", {
            "venueId": str(venue_id),
            "startEpochMillis": start_epoch_millis,
            "endEpochMillis": end_epoch_millis,
        })
        return _parse(AvailabilityResult, data)

    def create_booking(
        self,
        venue_id: uuid.UUID,
        event_id: uuid.UUID,
        organization_id: uuid.UUID,
        start_epoch_millis: int,
        end_epoch_millis: int,
        currency: str,
        addon_quantities: Optional[dict[int, int]] = None,
    ) -> BookingResult:
        body = {
            "venueId": str(venue_id),
            "eventId": str(event_id),
            "organizationId": str(organization_id),
            "startEpochMillis": start_epoch_millis,
            "endEpochMillis": end_epoch_millis,
            "currency": currency,
        }
        if addon_quantities:
            body["addonQuantities"] = {str(k): v for k, v in addon_quantities.items()}
        data = self._post("/api/v1/bookings", body)
        return _parse(BookingResult, data)

    def cancel_booking(self, booking_id: str) -> CancellationResult:
        data = self._post(f"/api/v1/bookings/{booking_id}/cancel", {"bookingId": booking_id})
        return _parse(CancellationResult, data)


def _parse(model, data):
    try:
        return model.model_validate(data)
    except ValidationError as e:
        logger.error("Unexpected booking service response %s: %s", data, e)
        raise UpstreamUnavailableError("Booking service sent an invalid response") from e
