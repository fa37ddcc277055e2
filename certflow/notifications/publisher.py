"""Notification publishers.

A publisher delivers one event and raises ``NotificationFailure`` when it
cannot. Retries and timeouts are the dispatcher's concern.
"""

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

import orjson
import structlog

from certflow.core.errors import NotificationFailure
from certflow.core.redis import events_channel, user_channel

from .models import NotificationEvent


if TYPE_CHECKING:
    from redis.asyncio import Redis

logger = structlog.get_logger(__name__)


class NotificationPublisher(ABC):
    @abstractmethod
    async def publish(self, event: NotificationEvent) -> None:
        """Deliver an event.

        Raises:
            NotificationFailure: If the event could not be delivered
        """


class RedisPublisher(NotificationPublisher):
    """Publishes events on the recipient's channel and the events channel."""

    def __init__(self, redis: "Redis", channel_prefix: str = "notifications"):
        self.redis = redis
        self.channel_prefix = channel_prefix

    async def publish(self, event: NotificationEvent) -> None:
        message = orjson.dumps(event.to_message()).decode()
        try:
            await self.redis.publish(
                user_channel(str(event.recipient_id), self.channel_prefix), message
            )
            await self.redis.publish(events_channel(self.channel_prefix), message)
        except Exception as e:
            raise NotificationFailure(str(e), event_type=event.type.value) from e


class LoggingPublisher(NotificationPublisher):
    """Fallback when Redis is unavailable: events only reach the logs."""

    async def publish(self, event: NotificationEvent) -> None:
        logger.info(
            "notification_event",
            event_type=event.type.value,
            event_id=str(event.event_id),
            recipient_id=str(event.recipient_id),
            **event.payload,
        )
