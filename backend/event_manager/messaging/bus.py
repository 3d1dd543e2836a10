"""Event bus publishers.

Publishing is fire-and-forget from the service's point of view: local state is
the source of truth and a notification that cannot be handed to the broker is
logged, never rolled back into the store. ``publish_quietly`` is the one place
that policy lives.
"""
import json
import logging
from typing import Any, Optional, Protocol

from confluent_kafka import KafkaException, Producer

from event_manager.config import settings
from event_manager.errors import UpstreamUnavailableError

logger = logging.getLogger(__name__)


class EventBus(Protocol):
    def publish(self, topic: str, payload: dict[str, Any], key: Optional[str] = None) -> None:
        ...

    def close(self) -> None:
        ...


class KafkaEventBus:
    """JSON messages on Kafka, keyed by event id so one event stays on one partition."""

    def __init__(self, bootstrap_servers: str, client_id: str = "event-manager"):
        self.bootstrap_servers = bootstrap_servers
        self.producer = Producer({
            "bootstrap.servers": bootstrap_servers,
            "client.id": client_id,
            "acks": "all",
            "enable.idempotence": True,
        })
        logger.info("Kafka producer configured for %s", bootstrap_servers)

    def publish(self, topic: str, payload: dict[str, Any], key: Optional[str] = None) -> None:
        try:
            self.producer.produce(
                topic,
                key=key.encode("utf-8") if key else None,
                value=json.dumps(payload, default=str).encode("utf-8"),
                on_delivery=_on_delivery,
            )
            # Serve delivery callbacks from earlier produce() calls.
            self.producer.poll(0)
        except (KafkaException, BufferError) as e:
            raise UpstreamUnavailableError(f"Could not publish to {topic}: {e}") from e
        logger.debug("Queued %s message key=%s", topic, key)

    def close(self) -> None:
        remaining = self.producer.flush(10)
        if remaining:
            logger.warning("%d Kafka messages still undelivered at shutdown", remaining)


class LoggingEventBus:
    """Stand-in used when Kafka is disabled (local development)."""

    def publish(self, topic: str, payload: dict[str, Any], key: Optional[str] = None) -> None:
        logger.info("[bus disabled] %s key=%s payload=%s", topic, key, payload)

    def close(self) -> None:
        pass


def _on_delivery(err, msg) -> None:
    if err is not None:
        logger.error("Delivery to %s failed: %s", msg.topic(), err)


def create_event_bus() -> EventBus:
    if not settings.KAFKA_ENABLED:
        return LoggingEventBus()
    return KafkaEventBus(settings.KAFKA_BOOTSTRAP_SERVERS, client_id=settings.KAFKA_CLIENT_ID)


def publish_quietly(bus: EventBus, topic: str, payload: dict[str, Any], key: Optional[str] = None) -> bool:
    """Publish after a committed write; failures are logged and reported as False."""
    try:
        bus.publish(topic, payload, key=key)
        return True
    except UpstreamUnavailableError as e:
        logger.error("Notification %s for %s not published: %s", topic, key, e)
        return False
