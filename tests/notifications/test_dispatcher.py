"""Tests for notification publishing and dispatch."""

import asyncio
from unittest.mock import AsyncMock
from uuid import uuid4

import orjson
import pytest

from certflow.core.errors import NotificationFailure
from certflow.notifications import (
    EventType,
    LoggingPublisher,
    NotificationDispatcher,
    NotificationEvent,
    NotificationPublisher,
    RedisPublisher,
)


def make_event() -> NotificationEvent:
    return NotificationEvent(
        type=EventType.ENROLLMENT_CREATED,
        recipient_id=uuid4(),
        payload={"enrollment_id": str(uuid4())},
    )


class SlowPublisher(NotificationPublisher):
    async def publish(self, event: NotificationEvent) -> None:
        await asyncio.sleep(10)


class TestNotificationDispatcher:
    @pytest.mark.asyncio
    async def test_emit_returns_before_delivery(self, publisher) -> None:
        dispatcher = NotificationDispatcher(publisher)
        event = make_event()

        dispatcher.emit(event)
        assert publisher.events == []
        assert dispatcher.pending == 1

        await dispatcher.drain()
        assert publisher.events == [event]
        assert dispatcher.pending == 0

    @pytest.mark.asyncio
    async def test_publisher_failure_is_swallowed(self, publisher) -> None:
        publisher.fail = True
        dispatcher = NotificationDispatcher(publisher)

        dispatcher.emit(make_event())
        await dispatcher.drain()

        assert dispatcher.events_emitted == 1
        assert dispatcher.events_failed == 1

    @pytest.mark.asyncio
    async def test_slow_publisher_times_out(self) -> None:
        dispatcher = NotificationDispatcher(SlowPublisher(), timeout_seconds=0.01)

        dispatcher.emit(make_event())
        await asyncio.wait_for(dispatcher.drain(), timeout=1)

        assert dispatcher.events_failed == 1

    def test_emit_without_loop_drops_event(self, publisher) -> None:
        dispatcher = NotificationDispatcher(publisher)

        dispatcher.emit(make_event())

        assert dispatcher.pending == 0
        assert dispatcher.events_emitted == 0


class TestWorkflowIgnoresNotificationFailures:
    @pytest.mark.asyncio
    async def test_enroll_succeeds_when_publisher_fails(
        self, services, course, student, publisher
    ) -> None:
        publisher.fail = True
        enrollment = await services.enrollment_service.enroll(student, course.id)
        await services.dispatcher.drain()

        assert enrollment.user_id == student.user_id
        assert services.dispatcher.events_failed == 1


class TestPublishers:
    @pytest.mark.asyncio
    async def test_redis_publisher_channels(self) -> None:
        redis = AsyncMock()
        event = make_event()

        await RedisPublisher(redis, channel_prefix="workflow").publish(event)

        channels = [call.args[0] for call in redis.publish.await_args_list]
        assert channels == [
            f"workflow:user:{event.recipient_id}",
            "workflow:events",
        ]
        message = orjson.loads(redis.publish.await_args_list[0].args[1])
        assert message["type"] == "enrollment_created"
        assert message["recipient_id"] == str(event.recipient_id)
        assert message["data"] == event.payload

    @pytest.mark.asyncio
    async def test_redis_errors_become_notification_failures(self) -> None:
        redis = AsyncMock()
        redis.publish.side_effect = ConnectionError("redis down")

        with pytest.raises(NotificationFailure):
            await RedisPublisher(redis).publish(make_event())

    @pytest.mark.asyncio
    async def test_logging_publisher_never_fails(self) -> None:
        await LoggingPublisher().publish(make_event())
