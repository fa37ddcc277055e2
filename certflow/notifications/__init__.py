"""Workflow notifications.

Provides:
- Event types emitted by the workflow (enrollment, certificate)
- Publishers (Redis pub/sub, logging fallback)
- A fire-and-forget dispatcher with per-publish timeouts
"""

from certflow.notifications.dispatcher import NotificationDispatcher
from certflow.notifications.models import EventType, NotificationEvent
from certflow.notifications.publisher import (
    LoggingPublisher,
    NotificationPublisher,
    RedisPublisher,
)


__all__ = [
    "EventType",
    "LoggingPublisher",
    "NotificationDispatcher",
    "NotificationEvent",
    "NotificationPublisher",
    "RedisPublisher",
]
