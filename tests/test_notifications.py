"""Tests for the outbound notification ports."""

import logging

from domain import AdvisoryNotification, AuditEventRecorder, EventBus, get_event_bus
from notifications import (
    EventBusNotificationPort,
    LoggingNotificationPort,
    OutboxNotificationPort,
)


PAYLOAD = {
    "title": "Parecer Contábil Disponível",
    "advisory_id": "req-1",
    "analysis_id": "analysis-1",
}


class TestOutboxNotificationPort:
    """Tests for the in-process outbox."""

    def test_queue_and_drain(self):
        outbox = OutboxNotificationPort()
        outbox.notify("owner-1", "CONTADOR_MESSAGE", PAYLOAD)
        outbox.notify("owner-2", "CONTADOR_MESSAGE", PAYLOAD)

        assert len(outbox) == 2
        drained = outbox.drain()

        assert [m.user_id for m in drained] == ["owner-1", "owner-2"]
        assert len(outbox) == 0
        assert outbox.drain() == []

    def test_pending_does_not_drain(self):
        outbox = OutboxNotificationPort()
        outbox.notify("owner-1", "CONTADOR_MESSAGE", PAYLOAD)

        assert len(outbox.pending) == 1
        assert len(outbox) == 1

    def test_payload_is_copied(self):
        outbox = OutboxNotificationPort()
        payload = dict(PAYLOAD)
        outbox.notify("owner-1", "CONTADOR_MESSAGE", payload)
        payload["title"] = "changed"

        assert outbox.pending[0].payload["title"] == "Parecer Contábil Disponível"

    def test_drops_oldest_when_full(self):
        outbox = OutboxNotificationPort(max_pending=2)
        for user in ("u1", "u2", "u3"):
            outbox.notify(user, "CONTADOR_MESSAGE", PAYLOAD)

        assert [m.user_id for m in outbox.drain()] == ["u2", "u3"]

    def test_to_dict(self):
        outbox = OutboxNotificationPort()
        outbox.notify("owner-1", "CONTADOR_MESSAGE", PAYLOAD)

        data = outbox.drain()[0].to_dict()
        assert data["user_id"] == "owner-1"
        assert data["notification_type"] == "CONTADOR_MESSAGE"
        assert data["payload"] == PAYLOAD
        assert "T" in data["queued_at"]


class TestEventBusNotificationPort:
    """Notifications published as domain events."""

    def test_publishes_notification_event(self):
        bus = EventBus()
        recorder = AuditEventRecorder()
        bus.subscribe_all(recorder)

        EventBusNotificationPort(bus).notify("owner-1", "CONTADOR_MESSAGE", PAYLOAD)

        event = recorder.events("req-1")[0]
        assert isinstance(event, AdvisoryNotification)
        assert event.user_id == "owner-1"
        assert event.notification_type == "CONTADOR_MESSAGE"
        assert event.payload == PAYLOAD

    def test_defaults_to_global_bus(self):
        recorder = AuditEventRecorder()
        get_event_bus().subscribe_all(recorder)

        EventBusNotificationPort().notify("owner-1", "CONTADOR_MESSAGE", PAYLOAD)

        assert len(recorder.events()) == 1


class TestLoggingNotificationPort:
    def test_logs_message(self, caplog):
        with caplog.at_level(logging.INFO, logger="notifications.notification_integration"):
            LoggingNotificationPort().notify("owner-1", "CONTADOR_MESSAGE", PAYLOAD)

        assert "CONTADOR_MESSAGE" in caplog.text
        assert caplog.records[-1].extra_data["user_id"] == "owner-1"
