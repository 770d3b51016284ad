"""
Event Bus and audit recorder.

The event bus provides in-process event publication and subscription.
Handlers run synchronously in publish order; a failing handler is logged
and never interrupts the publisher or the remaining handlers.
"""

import logging
import threading
from typing import Callable, Dict, List, Optional, Type

from .events import DomainEvent


logger = logging.getLogger(__name__)


# =============================================================================
# EVENT BUS
# =============================================================================

class EventBus:
    """
    Simple in-process event bus for publishing domain events.

    Events are delivered to all handlers registered for their exact type,
    then to global handlers.
    """

    def __init__(self):
        """Initialize event bus."""
        self._handlers: Dict[Type[DomainEvent], List[Callable]] = {}
        self._global_handlers: List[Callable] = []

    def subscribe(
        self,
        event_type: Type[DomainEvent],
        handler: Callable[[DomainEvent], None]
    ) -> None:
        """
        Subscribe to events of a specific type.

        Args:
            event_type: Type of event to subscribe to
            handler: Callback function to invoke
        """
        self._handlers.setdefault(event_type, []).append(handler)
        logger.debug(f"Subscribed handler to {event_type.__name__}")

    def subscribe_all(self, handler: Callable[[DomainEvent], None]) -> None:
        """
        Subscribe to all events.

        Args:
            handler: Callback function to invoke for all events
        """
        self._global_handlers.append(handler)
        logger.debug("Subscribed global handler")

    def unsubscribe(
        self,
        event_type: Type[DomainEvent],
        handler: Callable
    ) -> bool:
        """
        Unsubscribe a handler from an event type.

        Returns:
            True if handler was removed
        """
        try:
            self._handlers.get(event_type, []).remove(handler)
            return True
        except ValueError:
            return False

    def publish(self, event: DomainEvent) -> None:
        """
        Publish an event synchronously.

        Args:
            event: Event to publish
        """
        handlers = self._handlers.get(type(event), []) + self._global_handlers

        for handler in handlers:
            try:
                handler(event)
            except Exception as e:
                logger.error(f"Error in event handler: {e}", exc_info=True)

    def clear(self) -> None:
        """Clear all subscriptions."""
        self._handlers.clear()
        self._global_handlers.clear()


# =============================================================================
# HANDLERS
# =============================================================================

class AuditEventRecorder:
    """
    Event handler that keeps every event it sees, in order.

    Thread-safe but not persistent; plug a durable store behind the
    same handler signature in production.
    """

    def __init__(self):
        self._events: List[DomainEvent] = []
        self._lock = threading.Lock()

    def handle(self, event: DomainEvent) -> None:
        with self._lock:
            self._events.append(event)

    __call__ = handle

    def events(self, aggregate_id: Optional[str] = None) -> List[DomainEvent]:
        """Recorded events, optionally for one aggregate."""
        with self._lock:
            if aggregate_id is None:
                return list(self._events)
            return [e for e in self._events if e.aggregate_id == aggregate_id]

    def clear(self) -> None:
        with self._lock:
            self._events.clear()


class LoggingEventHandler:
    """
    Event handler that logs all events.

    Provides observability for domain events.
    """

    def __init__(self, logger_name: str = "domain.events"):
        self._logger = logging.getLogger(logger_name)

    def handle(self, event: DomainEvent) -> None:
        self._logger.info(
            f"Event: {event.event_type.value}",
            extra={
                "extra_data": {
                    "event_id": str(event.event_id),
                    "event_type": event.event_type.value,
                    "aggregate_type": event.aggregate_type,
                    "aggregate_id": event.aggregate_id,
                    "occurred_at": event.occurred_at.isoformat(),
                }
            }
        )

    __call__ = handle


# =============================================================================
# GLOBAL EVENT BUS INSTANCE
# =============================================================================

_event_bus: Optional[EventBus] = None


def get_event_bus() -> EventBus:
    """Get the global event bus instance."""
    global _event_bus
    if _event_bus is None:
        _event_bus = EventBus()
    return _event_bus


def publish_event(event: DomainEvent) -> None:
    """Publish an event to the global event bus."""
    get_event_bus().publish(event)


def reset_event_bus() -> None:
    """Drop the global event bus (tests)."""
    global _event_bus
    _event_bus = None
