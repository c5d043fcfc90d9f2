"""Tests for the inactivity timer."""

import asyncio

from engine.timers import AsyncioScheduler, InactivityTimer


class TestInactivityTimer:
    """Arm, re-arm and cancel."""

    def test_fires_once(self, scheduler):
        calls = []
        timer = InactivityTimer(scheduler, 15, lambda: calls.append("fired"))
        timer.arm()

        assert timer.is_armed
        assert scheduler.fire_pending() == 1
        assert calls == ["fired"]
        assert not timer.is_armed
        assert scheduler.fire_pending() == 0

    def test_rearm_replaces_countdown(self, scheduler):
        calls = []
        timer = InactivityTimer(scheduler, 15, lambda: calls.append("fired"))
        timer.arm()
        timer.arm()

        assert len(scheduler.pending) == 1
        assert scheduler.handles[0].cancelled
        scheduler.fire_pending()
        assert calls == ["fired"]

    def test_cancel(self, scheduler):
        calls = []
        timer = InactivityTimer(scheduler, 15, lambda: calls.append("fired"))
        timer.arm()
        timer.cancel()

        assert not timer.is_armed
        assert scheduler.fire_pending() == 0
        assert calls == []

    def test_cancel_when_idle(self, scheduler):
        timer = InactivityTimer(scheduler, 15, lambda: None)
        timer.cancel()
        assert scheduler.handles == []

    def test_dispatched_callback_after_cancel_is_ignored(self, scheduler):
        """A callback already handed off before cancel() must not run the action."""
        calls = []
        timer = InactivityTimer(scheduler, 15, lambda: calls.append("fired"))
        timer.arm()
        handle = scheduler.handles[0]
        timer.cancel()

        handle.callback()

        assert calls == []

    def test_delay(self, scheduler):
        InactivityTimer(scheduler, 2.5, lambda: None).arm()
        assert scheduler.handles[0].delay == 2.5


class TestAsyncioScheduler:
    """Timer driven by a real event loop."""

    def test_fires_on_loop(self):
        calls = []

        async def scenario():
            timer = InactivityTimer(AsyncioScheduler(), 0.01, lambda: calls.append("fired"))
            timer.arm()
            await asyncio.sleep(0.05)

        asyncio.run(scenario())
        assert calls == ["fired"]

    def test_cancelled_on_loop(self):
        calls = []

        async def scenario():
            timer = InactivityTimer(AsyncioScheduler(), 0.01, lambda: calls.append("fired"))
            timer.arm()
            timer.cancel()
            await asyncio.sleep(0.05)

        asyncio.run(scenario())
        assert calls == []
