"""Bus consumer for the attendee-count worker.

Messages arrive at least once and in no particular order across topics, so a
handler may see an RSVP for an event that has since been deleted (a no-op) or
see the same RSVP twice (the delta strategy will count it twice; see
``services.attendee_count``). A message that cannot be decoded or lacks an
``eventId`` is logged and skipped; its offset is still committed so one bad
message cannot stall the partition.
"""
import json
import logging
import uuid
from typing import Any, Callable, Optional

from confluent_kafka import Consumer, KafkaError, KafkaException

from event_manager.config import settings
from event_manager.database import SessionLocal
from event_manager.errors import EventManagerError
from event_manager.messaging import topics
from event_manager.services import attendee_count
from event_manager.services.attendee_count import CountStrategy

logger = logging.getLogger(__name__)


class MalformedMessage(ValueError):
    """Payload is not a JSON object with a usable eventId."""


def decode_payload(raw: Optional[bytes]) -> dict[str, Any]:
    if raw is None:
        raise MalformedMessage("empty message")
    try:
        payload = json.loads(raw)
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise MalformedMessage(f"not JSON: {e}") from e
    if not isinstance(payload, dict):
        raise MalformedMessage("payload is not an object")
    return payload


def event_id_of(payload: dict[str, Any]) -> uuid.UUID:
    value = payload.get("eventId")
    if value is None:
        raise MalformedMessage("missing eventId")
    try:
        return uuid.UUID(str(value))
    except ValueError as e:
        raise MalformedMessage(f"invalid eventId {value!r}") from e


def _truthy(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() in ("true", "1", "yes")
    return bool(value)


class RsvpConsumer:
    """Dispatches bus messages to handlers, one DB session per message."""

    def __init__(
        self,
        consumer: Optional[Consumer] = None,
        session_factory: Callable = SessionLocal,
        strategy: Optional[CountStrategy] = None,
    ):
        self.strategy = strategy or attendee_count.current_strategy()
        self.session_factory = session_factory
        self.consumer = consumer or Consumer({
            "bootstrap.servers": settings.KAFKA_BOOTSTRAP_SERVERS,
            "group.id": settings.KAFKA_GROUP_ID,
            "client.id": settings.KAFKA_CLIENT_ID,
            "auto.offset.reset": "earliest",
            "enable.auto.commit": False,
        })
        self._running = False
        self.handlers: dict[str, Callable[[Any, dict[str, Any]], None]] = {
            topic: self.handle_lifecycle for topic in topics.LIFECYCLE_TOPICS
        }
        if self.strategy == CountStrategy.DELTA:
            self.handlers[topics.RSVP_ACCEPTED] = self.handle_rsvp_accepted
            self.handlers[topics.RSVP_DECLINED] = self.handle_rsvp_declined

    @property
    def subscriptions(self) -> list[str]:
        return list(self.handlers)

    # -- handlers -----------------------------------------------------------
    def handle_lifecycle(self, db, payload: dict[str, Any]) -> None:
        logger.info("Consumed lifecycle notification: %s", payload)

    def handle_rsvp_accepted(self, db, payload: dict[str, Any]) -> None:
        event_id = event_id_of(payload)
        attendee_count.apply_attendee_delta(db, event_id, +1)

    def handle_rsvp_declined(self, db, payload: dict[str, Any]) -> None:
        event_id = event_id_of(payload)
        # Declining from PENDING/MAYBE never counted, so nothing to take back.
        if _truthy(payload.get("wasAccepted")):
            attendee_count.apply_attendee_delta(db, event_id, -1)
        else:
            logger.info("RSVP declined (was not accepted) - no change for event %s", event_id)

    # -- dispatch -----------------------------------------------------------
    def dispatch(self, topic: str, raw: Optional[bytes]) -> bool:
        """Handle one message. Returns False when it was skipped."""
        handler = self.handlers.get(topic)
        if handler is None:
            logger.debug("No handler for topic %s", topic)
            return False

        try:
            if topic in topics.LIFECYCLE_TOPICS:
                # Lifecycle payloads may be free text; log whatever arrived.
                payload = {"raw": raw.decode("utf-8", "replace") if raw else None}
            else:
                payload = decode_payload(raw)
        except MalformedMessage as e:
            logger.error("Skipping malformed %s message: %s", topic, e)
            return False

        db = self.session_factory()
        try:
            handler(db, payload)
            return True
        except MalformedMessage as e:
            db.rollback()
            logger.error("Skipping malformed %s message: %s", topic, e)
            return False
        except EventManagerError as e:
            db.rollback()
            logger.error("Failed to process %s message %s: %s", topic, payload, e)
            return False
        finally:
            db.close()

    def run(self, poll_timeout: float = 1.0) -> None:
        self.consumer.subscribe(self.subscriptions)
        self._running = True
        logger.info("Consuming %s (strategy=%s)", ", ".join(self.subscriptions), self.strategy.value)
        try:
            while self._running:
                msg = self.consumer.poll(poll_timeout)
                if msg is None:
                    continue
                if msg.error():
                    if msg.error().code() == KafkaError._PARTITION_EOF:
                        continue
                    raise KafkaException(msg.error())
                self.dispatch(msg.topic(), msg.value())
                self.consumer.commit(message=msg, asynchronous=False)
        finally:
            self.consumer.close()
            logger.info("Consumer closed")

    def stop(self) -> None:
        self._running = False
