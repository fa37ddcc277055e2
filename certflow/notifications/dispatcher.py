"""Fire-and-forget notification dispatch.

``emit`` schedules the publish on the running loop and returns at once.
Each publish is bounded by a timeout; failures are logged and dropped so
the operation that triggered the event never fails because of them.
"""

import asyncio

import structlog

from .models import NotificationEvent
from .publisher import NotificationPublisher


logger = structlog.get_logger(__name__)


class NotificationDispatcher:
    """Dispatches events to a publisher in background tasks."""

    def __init__(self, publisher: NotificationPublisher, timeout_seconds: float = 5.0):
        self.publisher = publisher
        self.timeout_seconds = timeout_seconds
        self._pending: set[asyncio.Task] = set()

        # Counters for monitoring
        self.events_emitted = 0
        self.events_failed = 0

    @property
    def pending(self) -> int:
        return len(self._pending)

    def emit(self, event: NotificationEvent) -> None:
        """Schedule delivery of an event without waiting for it."""
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                "notification_dropped",
                event_type=event.type.value,
                reason="no_running_loop",
            )
            return

        # The task inherits the caller's contextvars, so its log lines keep
        # the originating request_id.
        task = loop.create_task(self._publish(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        self.events_emitted += 1

    async def _publish(self, event: NotificationEvent) -> None:
        try:
            await asyncio.wait_for(
                self.publisher.publish(event), timeout=self.timeout_seconds
            )
        except TimeoutError:
            self.events_failed += 1
            logger.warning(
                "notification_failed",
                event_type=event.type.value,
                recipient_id=str(event.recipient_id),
                reason="timeout",
                timeout_seconds=self.timeout_seconds,
            )
        except Exception as e:
            self.events_failed += 1
            logger.warning(
                "notification_failed",
                event_type=event.type.value,
                recipient_id=str(event.recipient_id),
                error=str(e),
                error_type=type(e).__name__,
            )
        else:
            logger.debug(
                "notification_published",
                event_type=event.type.value,
                event_id=str(event.event_id),
            )

    async def drain(self) -> None:
        """Wait for every scheduled publish to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
