from __future__ import annotations
import asyncio
import logging
from typing import Callable, Optional


logger = logging.getLogger(__name__)


class Handle:
    def cancel(self) -> None:
        raise NotImplementedError


class Scheduler:
    """Runs ``callback`` every ``interval`` seconds until the returned handle is cancelled."""

    def every(self, interval: float, callback: Callable[[], None]) -> Handle:
        raise NotImplementedError


class _LoopHandle(Handle):
    def __init__(self, loop: asyncio.AbstractEventLoop, interval: float, callback: Callable[[], None]) -> None:
        self._loop = loop
        self._interval = interval
        self._callback = callback
        self._cancelled = False
        self._timer: Optional[asyncio.TimerHandle] = loop.call_later(interval, self._fire)

    def _fire(self) -> None:
        if self._cancelled:
            return
        # re-arm first so the callback may cancel us
        self._timer = self._loop.call_later(self._interval, self._fire)
        try:
            self._callback()
        except Exception:
            logger.exception("Scheduled callback failed")
            self.cancel()

    def cancel(self) -> None:
        self._cancelled = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None


class AsyncioScheduler(Scheduler):
    def every(self, interval: float, callback: Callable[[], None]) -> Handle:
        return _LoopHandle(asyncio.get_running_loop(), interval, callback)


class Countdown:
    """Per-question countdown. Fires ``on_expire`` once when it reaches zero."""

    def __init__(self, scheduler: Scheduler, on_expire: Callable[[], None]) -> None:
        self._scheduler = scheduler
        self._on_expire = on_expire
        self._handle: Optional[Handle] = None
        self._generation = 0
        self.remaining = 0

    @property
    def running(self) -> bool:
        return self._handle is not None

    def start(self, seconds: int) -> None:
        self.cancel()
        self._generation += 1
        generation = self._generation
        self.remaining = seconds
        self._handle = self._scheduler.every(1.0, lambda: self._tick(generation))

    def _tick(self, generation: int) -> None:
        # a tick from a cancelled or restarted countdown must not count
        if generation != self._generation or self._handle is None:
            return
        self.remaining -= 1
        if self.remaining <= 0:
            self.remaining = 0
            self.cancel()
            self._on_expire()

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
