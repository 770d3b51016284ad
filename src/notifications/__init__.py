"""
Notification adapters.

Implementations of the domain NotificationPort used by the advisory
workflow to tell a company owner their parecer is ready.

Usage:
    from notifications import OutboxNotificationPort

    outbox = OutboxNotificationPort()
    ...
    for message in outbox.drain():
        deliver(message.user_id, message.payload)
"""

from .notification_integration import (
    EventBusNotificationPort,
    LoggingNotificationPort,
    OutboundNotification,
    OutboxNotificationPort,
)

__all__ = [
    "EventBusNotificationPort",
    "LoggingNotificationPort",
    "OutboundNotification",
    "OutboxNotificationPort",
]
