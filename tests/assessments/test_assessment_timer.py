"""Tests for the server-side attempt countdown."""

import asyncio
from uuid import uuid4

import pytest

from certflow.assessments.timer import AssessmentTimer, TimerRegistry


class TestAssessmentTimer:
    @pytest.mark.asyncio
    async def test_fires_after_delay(self) -> None:
        fired = asyncio.Event()
        seen = []

        async def callback(attempt_id):
            seen.append(attempt_id)
            fired.set()

        attempt_id = uuid4()
        timer = AssessmentTimer(attempt_id, 0.01, callback)

        await asyncio.wait_for(fired.wait(), timeout=1)
        await timer.wait()

        assert seen == [attempt_id]
        assert timer.fired is True
        assert timer.cancel() is False

    @pytest.mark.asyncio
    async def test_cancel_before_firing(self) -> None:
        calls = []

        async def callback(attempt_id):
            calls.append(attempt_id)

        timer = AssessmentTimer(uuid4(), 0.05, callback)

        assert timer.cancel() is True
        assert timer.cancel() is False
        await asyncio.sleep(0.1)
        assert calls == []
        assert timer.cancelled is True

    @pytest.mark.asyncio
    async def test_negative_delay_fires_immediately(self) -> None:
        fired = asyncio.Event()

        async def callback(attempt_id):
            fired.set()

        timer = AssessmentTimer(uuid4(), -30, callback)

        assert timer.delay_seconds == 0
        await asyncio.wait_for(fired.wait(), timeout=1)

    @pytest.mark.asyncio
    async def test_callback_error_is_contained(self) -> None:
        done = asyncio.Event()

        async def callback(attempt_id):
            raise RuntimeError("boom")

        timer = AssessmentTimer(
            uuid4(), 0, callback, on_done=lambda _: done.set()
        )

        await asyncio.wait_for(done.wait(), timeout=1)
        await timer.wait()


class TestTimerRegistry:
    @pytest.mark.asyncio
    async def test_fired_timer_is_forgotten(self) -> None:
        registry = TimerRegistry()
        fired = asyncio.Event()

        async def callback(attempt_id):
            fired.set()

        attempt_id = uuid4()
        registry.arm(attempt_id, 0.01, callback)
        assert attempt_id in registry

        await asyncio.wait_for(fired.wait(), timeout=1)
        await registry.drain()
        await asyncio.sleep(0)

        assert attempt_id not in registry
        assert len(registry) == 0

    @pytest.mark.asyncio
    async def test_rearm_replaces_timer(self) -> None:
        registry = TimerRegistry()
        calls = []

        async def callback(attempt_id):
            calls.append(attempt_id)

        attempt_id = uuid4()
        first = registry.arm(attempt_id, 0.05, callback)
        registry.arm(attempt_id, 10, callback)

        assert first.cancelled is True
        assert len(registry) == 1
        await asyncio.sleep(0.1)
        assert calls == []
        assert registry.cancel_all() == 1

    @pytest.mark.asyncio
    async def test_cancel_unknown_attempt(self) -> None:
        assert TimerRegistry().cancel(uuid4()) is False


@pytest.fixture
def settings(settings):
    """Settings with the server-side auto-submit enabled."""
    return settings.model_copy(update={"assessment_server_auto_submit": True})


class TestServerAutoSubmit:
    async def _start(self, services, course, student):
        enrollment = await services.enrollment_service.enroll(student, course.id)
        for lesson_id in course.lesson_ids:
            await services.progress_service.mark_lesson_complete(
                student, enrollment.id, lesson_id
            )
        return await services.assessment_service.start_assessment(
            student, enrollment.id
        )

    @pytest.mark.asyncio
    async def test_start_arms_and_submit_cancels(
        self, services, course, quiz, student
    ) -> None:
        session = await self._start(services, course, student)
        attempt_id = session.attempt.id
        assert attempt_id in services.timers

        await services.assessment_service.submit_assessment(
            student, attempt_id, 30
        )

        assert attempt_id not in services.timers

    @pytest.mark.asyncio
    async def test_timer_submits_expired_attempt(
        self, services, course, quiz, student, clock
    ) -> None:
        session = await self._start(services, course, student)
        attempt_id = session.attempt.id

        # Pretend the limit elapsed and fire the countdown right away
        clock.advance(session.attempt.time_limit_seconds)
        timer = services.timers.arm(
            attempt_id, 0, services.assessment_service.auto_submit
        )
        while not timer.fired:
            await asyncio.sleep(0)
        await timer.wait()

        stored = await services.repositories.attempts.get(attempt_id)
        assert stored.is_submitted
        assert stored.auto_submitted is True
        assert stored.time_spent_seconds == session.attempt.time_limit_seconds
        assert attempt_id not in services.timers

    @pytest.mark.asyncio
    async def test_shutdown_cancels_pending_timers(
        self, services, course, quiz, student
    ) -> None:
        await self._start(services, course, student)
        assert len(services.timers) == 1

        await services.shutdown()

        assert len(services.timers) == 0
