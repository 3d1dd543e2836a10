"""Tests for the event bus publisher and the attendee-count consumer.

Kafka itself is not started: the producer and consumer clients are replaced
with small in-memory stand-ins.
"""
import json
import uuid
from datetime import datetime, timezone

import pytest
from confluent_kafka import KafkaError, KafkaException

from event_manager.errors import UpstreamUnavailableError
from event_manager.messaging import bus as bus_module
from event_manager.messaging import topics
from event_manager.messaging.bus import KafkaEventBus, LoggingEventBus, publish_quietly
from event_manager.messaging.consumer import MalformedMessage, RsvpConsumer, decode_payload, event_id_of
from event_manager.models.event import Event
from event_manager.services.attendee_count import CountStrategy
from tests.conftest import ORGANIZATION_ID, ORGANIZER_ID, RecordingEventBus


class StubProducer:
    def __init__(self, config):
        self.config = config
        self.produced = []
        self.fail_with = None

    def produce(self, topic, key=None, value=None, on_delivery=None):
        if self.fail_with:
            raise self.fail_with
        self.produced.append((topic, key, value))

    def poll(self, timeout):
        return 0

    def flush(self, timeout):
        return 0


class StubError:
    def __init__(self, code):
        self._code = code

    def code(self):
        return self._code


class StubMessage:
    def __init__(self, topic, value, error=None):
        self._topic = topic
        self._value = value
        self._error = error

    def topic(self):
        return self._topic

    def value(self):
        return self._value

    def error(self):
        return self._error


class StubConsumer:
    """Hands out queued messages, then calls ``on_empty`` (used to stop the loop)."""

    def __init__(self, messages):
        self.messages = list(messages)
        self.subscribed = None
        self.committed = []
        self.closed = False
        self.on_empty = None

    def subscribe(self, topic_list):
        self.subscribed = topic_list

    def poll(self, timeout):
        if self.messages:
            return self.messages.pop(0)
        if self.on_empty:
            self.on_empty()
        return None

    def commit(self, message=None, asynchronous=True):
        self.committed.append(message)

    def close(self):
        self.closed = True


def _encode(payload) -> bytes:
    return json.dumps(payload).encode("utf-8")


@pytest.fixture
def event(db):
    e = Event(
        title="Consumed",
        start_time_utc=datetime(2030, 9, 1, 9, tzinfo=timezone.utc),
        organization_id=ORGANIZATION_ID,
        organizer_id=ORGANIZER_ID,
    )
    db.add(e)
    db.commit()
    db.refresh(e)
    return e


def _attendees(db, event) -> int:
    db.expire_all()
    return db.query(Event).filter(Event.event_id == event.event_id).one().current_attendees


class TestKafkaEventBus:

    @pytest.fixture
    def kafka_bus(self, monkeypatch):
        monkeypatch.setattr(bus_module, "Producer", StubProducer)
        return KafkaEventBus("kafka:9092", client_id="test-client")

    def test_producer_config(self, kafka_bus):
        config = kafka_bus.producer.config
        assert config["bootstrap.servers"] == "kafka:9092"
        assert config["client.id"] == "test-client"
        assert config["acks"] == "all"

    def test_publish_json_keyed_by_event(self, kafka_bus):
        event_id = str(uuid.uuid4())
        kafka_bus.publish(topics.EVENT_CREATED, {"eventId": event_id}, key=event_id)
        topic, key, value = kafka_bus.producer.produced[0]
        assert topic == topics.EVENT_CREATED
        assert key == event_id.encode("utf-8")
        assert json.loads(value) == {"eventId": event_id}

    def test_publish_without_key(self, kafka_bus):
        kafka_bus.publish(topics.EVENT_UPDATED, {"eventId": "x"})
        assert kafka_bus.producer.produced[0][1] is None

    def test_full_queue_maps_to_upstream_unavailable(self, kafka_bus):
        kafka_bus.producer.fail_with = BufferError("queue full")
        with pytest.raises(UpstreamUnavailableError):
            kafka_bus.publish(topics.EVENT_CREATED, {"eventId": "x"})

    def test_kafka_error_maps_to_upstream_unavailable(self, kafka_bus):
        kafka_bus.producer.fail_with = KafkaException(KafkaError(KafkaError._TRANSPORT))
        with pytest.raises(UpstreamUnavailableError):
            kafka_bus.publish(topics.EVENT_CREATED, {"eventId": "x"})


class TestPublishQuietly:

    def test_success(self):
        recording = RecordingEventBus()
        assert publish_quietly(recording, topics.EVENT_CREATED, {"eventId": "1"}, key="1") is True
        assert recording.messages == [(topics.EVENT_CREATED, {"eventId": "1"}, "1")]

    def test_failure_is_logged_not_raised(self, caplog):
        recording = RecordingEventBus()
        recording.fail = True
        with caplog.at_level("ERROR"):
            assert publish_quietly(recording, topics.EVENT_CREATED, {"eventId": "1"}, key="1") is False
        assert "not published" in caplog.text

    def test_logging_bus(self, caplog):
        with caplog.at_level("INFO"):
            LoggingEventBus().publish(topics.GUEST_INVITED, {"eventId": "1"}, key="1")
        assert topics.GUEST_INVITED in caplog.text


class TestDecoding:

    def test_decode_payload(self):
        assert decode_payload(b'{"eventId": "a"}') == {"eventId": "a"}

    @pytest.mark.parametrize("raw", [None, b"not json", b"[1, 2]", b"\xff\xfe"])
    def test_decode_rejects_malformed(self, raw):
        with pytest.raises(MalformedMessage):
            decode_payload(raw)

    def test_event_id_of(self):
        event_id = uuid.uuid4()
        assert event_id_of({"eventId": str(event_id)}) == event_id

    @pytest.mark.parametrize("payload", [{}, {"eventId": None}, {"eventId": "not-a-uuid"}])
    def test_event_id_of_rejects(self, payload):
        with pytest.raises(MalformedMessage):
            event_id_of(payload)


class TestRsvpConsumerDispatch:

    def _consumer(self, session_factory, strategy=CountStrategy.DELTA) -> RsvpConsumer:
        return RsvpConsumer(consumer=StubConsumer([]), session_factory=session_factory, strategy=strategy)

    def test_subscriptions_depend_on_strategy(self, session_factory):
        delta = self._consumer(session_factory)
        recompute = self._consumer(session_factory, CountStrategy.RECOMPUTE)
        assert set(delta.subscriptions) == set(topics.LIFECYCLE_TOPICS) | set(topics.RSVP_COUNT_TOPICS)
        assert set(recompute.subscriptions) == set(topics.LIFECYCLE_TOPICS)

    def test_accept_increments(self, session_factory, db, event):
        consumer = self._consumer(session_factory)
        assert consumer.dispatch(topics.RSVP_ACCEPTED, _encode({"eventId": str(event.event_id)}))
        assert _attendees(db, event) == 1

    def test_decline_of_accepted_decrements(self, session_factory, db, event):
        consumer = self._consumer(session_factory)
        consumer.dispatch(topics.RSVP_ACCEPTED, _encode({"eventId": str(event.event_id)}))
        consumer.dispatch(topics.RSVP_DECLINED, _encode({"eventId": str(event.event_id), "wasAccepted": True}))
        assert _attendees(db, event) == 0

    def test_was_accepted_as_string(self, session_factory, db, event):
        consumer = self._consumer(session_factory)
        consumer.dispatch(topics.RSVP_ACCEPTED, _encode({"eventId": str(event.event_id)}))
        consumer.dispatch(topics.RSVP_DECLINED, _encode({"eventId": str(event.event_id), "wasAccepted": "true"}))
        assert _attendees(db, event) == 0

    def test_decline_not_previously_accepted_is_noop(self, session_factory, db, event):
        consumer = self._consumer(session_factory)
        consumer.dispatch(topics.RSVP_ACCEPTED, _encode({"eventId": str(event.event_id)}))
        consumer.dispatch(topics.RSVP_DECLINED, _encode({"eventId": str(event.event_id), "wasAccepted": False}))
        consumer.dispatch(topics.RSVP_DECLINED, _encode({"eventId": str(event.event_id)}))
        assert _attendees(db, event) == 1

    def test_count_never_negative(self, session_factory, db, event):
        consumer = self._consumer(session_factory)
        consumer.dispatch(topics.RSVP_DECLINED, _encode({"eventId": str(event.event_id), "wasAccepted": True}))
        assert _attendees(db, event) == 0

    def test_redelivery_is_counted_twice(self, session_factory, db, event):
        """At-least-once delivery: the delta strategy does not deduplicate."""
        consumer = self._consumer(session_factory)
        raw = _encode({"eventId": str(event.event_id)})
        consumer.dispatch(topics.RSVP_ACCEPTED, raw)
        consumer.dispatch(topics.RSVP_ACCEPTED, raw)
        assert _attendees(db, event) == 2

    def test_unknown_event_is_noop(self, session_factory):
        consumer = self._consumer(session_factory)
        assert consumer.dispatch(topics.RSVP_ACCEPTED, _encode({"eventId": str(uuid.uuid4())})) is True

    @pytest.mark.parametrize("raw", [b"garbage", _encode({"userId": "u"}), _encode({"eventId": "nope"})])
    def test_malformed_messages_skipped(self, session_factory, db, event, raw):
        consumer = self._consumer(session_factory)
        assert consumer.dispatch(topics.RSVP_ACCEPTED, raw) is False
        assert _attendees(db, event) == 0

    def test_lifecycle_message_accepts_free_text(self, session_factory):
        consumer = self._consumer(session_factory)
        assert consumer.dispatch(topics.EVENT_CREATED, b"Event created: Dinner") is True

    def test_recompute_deployment_ignores_rsvp_topics(self, session_factory, db, event):
        consumer = self._consumer(session_factory, CountStrategy.RECOMPUTE)
        assert consumer.dispatch(topics.RSVP_ACCEPTED, _encode({"eventId": str(event.event_id)})) is False
        assert _attendees(db, event) == 0


class TestRsvpConsumerLoop:

    def test_run_processes_and_commits_each_message(self, session_factory, db, event):
        eof = StubMessage(topics.RSVP_ACCEPTED, None, error=StubError(KafkaError._PARTITION_EOF))
        messages = [
            StubMessage(topics.RSVP_ACCEPTED, _encode({"eventId": str(event.event_id)})),
            eof,
            StubMessage(topics.RSVP_ACCEPTED, b"garbage"),
            StubMessage(topics.EVENT_PUBLISHED, b"Event published"),
        ]
        stub = StubConsumer(messages)
        consumer = RsvpConsumer(consumer=stub, session_factory=session_factory, strategy=CountStrategy.DELTA)
        stub.on_empty = consumer.stop

        consumer.run(poll_timeout=0)

        assert stub.subscribed == consumer.subscriptions
        # Malformed messages are committed too; EOF markers are not messages.
        assert len(stub.committed) == 3
        assert eof not in stub.committed
        assert stub.closed is True
        assert _attendees(db, event) == 1

    def test_broker_error_stops_loop(self, session_factory):
        stub = StubConsumer([StubMessage(None, None, error=StubError(KafkaError._TRANSPORT))])
        consumer = RsvpConsumer(consumer=stub, session_factory=session_factory, strategy=CountStrategy.DELTA)

        with pytest.raises(KafkaException):
            consumer.run(poll_timeout=0)
        assert stub.closed is True
        assert stub.committed == []
