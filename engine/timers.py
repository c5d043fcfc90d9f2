"""Fire-once inactivity timer on top of a pluggable scheduler."""

from __future__ import annotations

import asyncio
import logging
from typing import Callable, Protocol

logger = logging.getLogger(__name__)


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    """Runs a callback once after a delay."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class AsyncioScheduler:
    """Schedules callbacks on the running asyncio event loop."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return asyncio.get_running_loop().call_later(delay, callback)


class InactivityTimer:
    """Calls ``callback`` once if nobody re-arms or cancels it within ``timeout``.

    Each ``arm()`` starts a new generation. A callback that was already
    dispatched for an older generation does nothing, so cancellation holds
    even when the underlying handle has fired but not yet run.
    """

    def __init__(self, scheduler: Scheduler, timeout: float, callback: Callable[[], None]):
        self.scheduler = scheduler
        self.timeout = timeout
        self.callback = callback
        self._handle: TimerHandle | None = None
        self._generation = 0

    @property
    def is_armed(self) -> bool:
        return self._handle is not None

    def arm(self) -> None:
        """Start (or restart) the countdown."""
        self.cancel()
        generation = self._generation
        self._handle = self.scheduler.call_later(self.timeout, lambda: self._fire(generation))

    def cancel(self) -> None:
        """Stop the countdown. Safe to call when not armed."""
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._generation += 1

    def _fire(self, generation: int) -> None:
        if generation != self._generation:
            logger.debug("Ignoring stale inactivity timeout (generation %d)", generation)
            return
        self._handle = None
        self.callback()
