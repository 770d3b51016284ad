"""
Notification Port Adapters

Connects the advisory workflow's NotificationPort to delivery channels.
Actual delivery (e-mail, in-app inbox) lives outside this core; these
adapters hand messages over in the shape the outer layer consumes.

- OutboxNotificationPort: in-process outbox, drained by a delivery worker
- EventBusNotificationPort: republishes each message as an
  AdvisoryNotification domain event
- LoggingNotificationPort: logs only, for local development

Usage:
    from notifications.notification_integration import OutboxNotificationPort

    outbox = OutboxNotificationPort()
    workflow = AdvisoryWorkflow(..., notifier=outbox)
    for message in outbox.drain():
        deliver(message)
"""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from domain import AdvisoryNotification, EventBus, NotificationPort, get_event_bus
from domain.aggregates import utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OutboundNotification:
    """One queued message."""
    user_id: str
    notification_type: str
    payload: Dict[str, Any]
    queued_at: datetime = field(default_factory=utcnow)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "user_id": self.user_id,
            "notification_type": self.notification_type,
            "payload": dict(self.payload),
            "queued_at": self.queued_at.isoformat(),
        }


class OutboxNotificationPort(NotificationPort):
    """
    Thread-safe outbox.

    Messages accumulate until drain() hands them to whatever performs
    delivery. The outbox keeps at most max_pending messages and drops the
    oldest beyond that.
    """

    def __init__(self, max_pending: int = 1000):
        self._pending: List[OutboundNotification] = []
        self._max_pending = max_pending
        self._lock = threading.Lock()

    def notify(self, user_id: str, event_type: str, payload: Dict[str, Any]) -> None:
        message = OutboundNotification(
            user_id=user_id,
            notification_type=event_type,
            payload=dict(payload),
        )
        with self._lock:
            self._pending.append(message)
            if len(self._pending) > self._max_pending:
                dropped = len(self._pending) - self._max_pending
                self._pending = self._pending[dropped:]
                logger.warning(f"Notification outbox full, dropped {dropped} oldest message(s)")
        logger.info(f"Queued {event_type} notification for user {user_id}")

    def drain(self) -> List[OutboundNotification]:
        """Remove and return all pending messages, oldest first."""
        with self._lock:
            drained, self._pending = self._pending, []
        return drained

    @property
    def pending(self) -> List[OutboundNotification]:
        with self._lock:
            return list(self._pending)

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)


class EventBusNotificationPort(NotificationPort):
    """Publishes every message as an AdvisoryNotification event."""

    def __init__(self, event_bus: Optional[EventBus] = None):
        self._event_bus = event_bus

    @property
    def event_bus(self) -> EventBus:
        return self._event_bus or get_event_bus()

    def notify(self, user_id: str, event_type: str, payload: Dict[str, Any]) -> None:
        self.event_bus.publish(AdvisoryNotification(
            aggregate_id=payload.get("advisory_id"),
            user_id=user_id,
            notification_type=event_type,
            payload=dict(payload),
            metadata={"user_id": user_id},
        ))


class LoggingNotificationPort(NotificationPort):
    """Writes messages to the log and nothing else."""

    def notify(self, user_id: str, event_type: str, payload: Dict[str, Any]) -> None:
        logger.info(
            f"Notification {event_type} for user {user_id}: {payload.get('title', '')}",
            extra={"extra_data": {"user_id": user_id, "payload": payload}},
        )
