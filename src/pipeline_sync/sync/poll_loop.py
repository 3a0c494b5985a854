# src/pipeline_sync/sync/poll_loop.py

from __future__ import annotations

"""
Poll loop.

A small bounded repeating-call primitive that:
- sleeps `interval` seconds on an injected Clock, then awaits `action()`,
- stops when the action returns a stop outcome,
- stops when `max_duration` has elapsed since start (absolute deadline, not since the last tick),
- stops when the handle is cancelled.

Ticks are strictly sequential: the next sleep starts only after the previous action returned.
Once a loop has terminated its action is never invoked again.

Used by the QR login handshake (3s / 300s) and by the task refresh cadence (30s / unbounded).
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from ..core.ports import Clock

logger = logging.getLogger(__name__)


class StopReason(str, Enum):
    STOPPED = "stopped"
    TIMED_OUT = "timed_out"
    CANCELLED = "cancelled"


@dataclass(slots=True, frozen=True)
class PollOutcome:
    stop_requested: bool = False
    reason: str | None = None

    @classmethod
    def stop(cls, reason: str | None = None) -> PollOutcome:
        return cls(stop_requested=True, reason=reason)


CONTINUE = PollOutcome()


@dataclass(slots=True, frozen=True)
class PollTermination:
    reason: StopReason
    detail: str | None = None


PollAction = Callable[[], Awaitable[PollOutcome]]
FinishCallback = Callable[[PollTermination], None]


class PollHandle:
    """Returned by PollLoop.start(); the only way to observe or cancel a running loop."""

    def __init__(self, name: str, on_finish: FinishCallback | None) -> None:
        self.name = name
        self.ticks = 0
        self._on_finish = on_finish
        self._termination: PollTermination | None = None
        self._task: asyncio.Task[None] | None = None

    @property
    def done(self) -> bool:
        return self._termination is not None

    @property
    def termination(self) -> PollTermination | None:
        return self._termination

    def cancel(self) -> None:
        """
        Stop the loop. Synchronous: once this returns, the action will not be invoked again,
        even if a wake-up was already queued on the event loop.
        """
        if not self._finish(PollTermination(StopReason.CANCELLED)):
            return
        if self._task is not None and not self._task.done():
            self._task.cancel()

    async def wait(self) -> PollTermination | None:
        if self._task is not None:
            await asyncio.wait({self._task})
        return self._termination

    def _finish(self, termination: PollTermination) -> bool:
        if self._termination is not None:
            return False
        self._termination = termination
        logger.debug("Poll loop %s finished: %s", self.name, termination.reason.value)
        if self._on_finish is not None:
            try:
                self._on_finish(termination)
            except Exception:
                logger.exception("on_finish callback failed loop=%s", self.name)
        return True


class PollLoop:
    def __init__(self, clock: Clock) -> None:
        self._clock = clock

    @property
    def clock(self) -> Clock:
        return self._clock

    def start(
            self,
            action: PollAction,
            interval: float,
            max_duration: float | None = None,
            *,
            on_finish: FinishCallback | None = None,
            run_immediately: bool = False,
            name: str = "poll",
    ) -> PollHandle:
        """
        Schedule `action` every `interval` seconds. Must be called from a running event loop.

        max_duration=None means unbounded (only a stop outcome or cancel() ends the loop).
        run_immediately=True invokes the action once before the first sleep.
        """
        if interval <= 0:
            raise ValueError("interval must be positive")

        handle = PollHandle(name, on_finish)
        started = self._clock.now()
        deadline = None if max_duration is None else started + max(0.0, float(max_duration))

        handle._task = asyncio.get_running_loop().create_task(
            self._run(handle, action, float(interval), deadline, run_immediately),
            name=f"poll-loop:{name}",
        )
        return handle

    async def _run(
            self,
            handle: PollHandle,
            action: PollAction,
            interval: float,
            deadline: float | None,
            run_immediately: bool,
    ) -> None:
        skip_sleep = run_immediately
        try:
            while not handle.done:
                if not skip_sleep:
                    delay = interval
                    if deadline is not None:
                        delay = min(delay, deadline - self._clock.now())
                    if delay > 0:
                        await self._clock.sleep(delay)

                    if handle.done:
                        return
                    if deadline is not None and self._clock.now() >= deadline:
                        handle._finish(PollTermination(StopReason.TIMED_OUT))
                        return
                skip_sleep = False

                handle.ticks += 1
                try:
                    outcome = await action()
                except Exception:
                    logger.exception("Poll action failed loop=%s tick=%s", handle.name, handle.ticks)
                    outcome = CONTINUE

                if handle.done:
                    return
                if outcome.stop_requested:
                    handle._finish(PollTermination(StopReason.STOPPED, outcome.reason))
                    return
        finally:
            # Covers cancellation from outside the handle (e.g. event loop shutdown).
            handle._finish(PollTermination(StopReason.CANCELLED))
