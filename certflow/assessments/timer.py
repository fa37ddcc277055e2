"""Server-side countdown for in-progress attempts.

Each started attempt gets one ``AssessmentTimer`` that fires the
auto-submit when the time limit elapses. Submitting cancels the timer, so
a late auto-submit never runs after grading. When it does race with a
manual submit, the status compare-and-set in the repository decides.
"""

import asyncio
from collections.abc import Awaitable, Callable
from uuid import UUID

import structlog

from certflow.core.context import RequestContext, get_request_id


logger = structlog.get_logger(__name__)

ExpiryCallback = Callable[[UUID], Awaitable[object]]


class AssessmentTimer:
    """Cancellable one-shot timer for a single attempt."""

    def __init__(
        self,
        attempt_id: UUID,
        delay_seconds: float,
        callback: ExpiryCallback,
        on_done: Callable[["AssessmentTimer"], None] | None = None,
    ):
        self.attempt_id = attempt_id
        self.delay_seconds = max(0.0, delay_seconds)
        self._callback = callback
        self._on_done = on_done
        self._request_id = get_request_id() or None
        self._task: asyncio.Task | None = None
        self._cancelled = False

        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay_seconds, self._fire)

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    @property
    def fired(self) -> bool:
        return self._task is not None

    def cancel(self) -> bool:
        """Stop the timer if it has not fired yet. True if it was stopped."""
        if self._cancelled or self.fired:
            return False
        self._handle.cancel()
        self._cancelled = True
        if self._on_done:
            self._on_done(self)
        return True

    def _fire(self) -> None:
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def _run(self) -> None:
        with RequestContext(
            request_id=self._request_id, correlation_id=str(self.attempt_id)
        ):
            logger.info(
                "assessment_timer_fired",
                attempt_id=str(self.attempt_id),
                delay_seconds=self.delay_seconds,
            )
            try:
                await self._callback(self.attempt_id)
            except Exception as e:
                logger.exception(
                    "assessment_timer_callback_failed",
                    attempt_id=str(self.attempt_id),
                    error=str(e),
                )
            finally:
                if self._on_done:
                    self._on_done(self)

    async def wait(self) -> None:
        """Wait for a fired callback to finish."""
        if self._task is not None:
            await asyncio.gather(self._task, return_exceptions=True)


class TimerRegistry:
    """Timers of all in-progress attempts of this process."""

    def __init__(self) -> None:
        self._timers: dict[UUID, AssessmentTimer] = {}
        self._running: set[AssessmentTimer] = set()

    def __contains__(self, attempt_id: UUID) -> bool:
        return attempt_id in self._timers

    def __len__(self) -> int:
        return len(self._timers)

    def arm(
        self, attempt_id: UUID, delay_seconds: float, callback: ExpiryCallback
    ) -> AssessmentTimer:
        """Start the countdown of an attempt, replacing any previous timer."""
        self.cancel(attempt_id)
        timer = AssessmentTimer(
            attempt_id, delay_seconds, self._wrap(callback), on_done=self._forget
        )
        self._timers[attempt_id] = timer
        logger.debug(
            "assessment_timer_armed",
            attempt_id=str(attempt_id),
            delay_seconds=timer.delay_seconds,
        )
        return timer

    def _wrap(self, callback: ExpiryCallback) -> ExpiryCallback:
        async def tracked(attempt_id: UUID) -> object:
            timer = self._timers.get(attempt_id)
            if timer is not None:
                self._running.add(timer)
            try:
                return await callback(attempt_id)
            finally:
                if timer is not None:
                    self._running.discard(timer)

        return tracked

    def _forget(self, timer: AssessmentTimer) -> None:
        if self._timers.get(timer.attempt_id) is timer:
            del self._timers[timer.attempt_id]

    def cancel(self, attempt_id: UUID) -> bool:
        timer = self._timers.get(attempt_id)
        return timer.cancel() if timer else False

    def cancel_all(self) -> int:
        """Cancel every pending timer (shutdown). Returns how many."""
        return sum(1 for attempt_id in list(self._timers) if self.cancel(attempt_id))

    async def drain(self) -> None:
        """Wait for auto-submits that already started."""
        while self._running:
            await asyncio.gather(
                *(t.wait() for t in list(self._running)), return_exceptions=True
            )
