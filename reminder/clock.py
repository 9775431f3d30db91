"""Wall clock and deferred triggers."""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone, tzinfo
from typing import Awaitable, Callable, Protocol

LOGGER = logging.getLogger(__name__)

TriggerCallback = Callable[[], Awaitable[None]]


class Trigger(Protocol):
    """A single-shot deferred call that can be cancelled before it fires."""

    @property
    def cancelled(self) -> bool: ...

    def cancel(self) -> None: ...


class Clock(ABC):
    """Source of the current time and of deferred triggers."""

    @abstractmethod
    def now(self) -> datetime:
        """Current timezone-aware wall-clock time."""

    @abstractmethod
    def call_at(self, when: datetime, callback: TriggerCallback) -> Trigger:
        """Arm ``callback`` to run once at ``when``."""


class AsyncioClock(Clock):
    """Clock backed by the running event loop's timer queue."""

    def __init__(self, zone: tzinfo) -> None:
        self._zone = zone

    def now(self) -> datetime:
        return datetime.now(self._zone)

    def call_at(self, when: datetime, callback: TriggerCallback) -> Trigger:
        return _LoopTrigger(self, asyncio.get_running_loop(), when, callback)


class _LoopTrigger:
    def __init__(
        self,
        clock: Clock,
        loop: asyncio.AbstractEventLoop,
        when: datetime,
        callback: TriggerCallback,
    ) -> None:
        self._clock = clock
        self._loop = loop
        self._when = when
        self._callback = callback
        self._cancelled = False
        self._started = False
        self._task: asyncio.Task[None] | None = None
        self._timer = self._schedule()

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def _schedule(self) -> asyncio.TimerHandle:
        delay = max(0.0, seconds_until(self._when, self._clock.now()))
        return self._loop.call_later(delay, self._fire)

    def _fire(self) -> None:
        if self._cancelled:
            return
        # The loop timer is monotonic; wait again if the wall clock lags behind it.
        if seconds_until(self._when, self._clock.now()) > 0:
            LOGGER.debug("Timer elapsed before %s; waiting again", self._when.isoformat())
            self._timer = self._schedule()
            return
        self._task = self._loop.create_task(self._run())

    async def _run(self) -> None:
        self._started = True
        await self._callback()

    def cancel(self) -> None:
        # A callback that already started is left to finish.
        self._cancelled = True
        self._timer.cancel()
        if self._task is not None and not self._started:
            self._task.cancel()


def seconds_until(when: datetime, now: datetime) -> float:
    """Elapsed real time between two aware datetimes, whatever their zones."""
    return (when.astimezone(timezone.utc) - now.astimezone(timezone.utc)).total_seconds()
