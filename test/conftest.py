"""Shared fixtures: a manual scheduler and a fake millisecond clock."""

import asyncio
from collections.abc import Callable

import pytest


class ManualTimer:
    def __init__(self, when: float, callback: Callable[[], None]) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False
        self.fired = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualScheduler:
    """Scheduler whose time only moves when the test advances it."""

    def __init__(self) -> None:
        self.now = 0.0
        self.timers: list[ManualTimer] = []

    def call_later(self, delay: float, callback: Callable[[], None]) -> ManualTimer:
        timer = ManualTimer(self.now + delay, callback)
        self.timers.append(timer)
        return timer

    @property
    def pending(self) -> list[ManualTimer]:
        return [t for t in self.timers if not t.cancelled and not t.fired]

    async def advance(self, seconds: float) -> None:
        """Fire every timer due within `seconds`, letting tasks run in between."""
        target = self.now + seconds
        while True:
            due = sorted((t for t in self.pending if t.when <= target), key=lambda t: t.when)
            if not due:
                break
            timer = due[0]
            self.now = timer.when
            timer.fired = True
            timer.callback()
            await settle()
        self.now = target
        await settle()


class FakeClock:
    """Millisecond clock with a sleep that jumps time forward without yielding."""

    def __init__(self, start: float = 1_700_000_000_000.0) -> None:
        self.now = start
        self.sleeps: list[float] = []

    def __call__(self) -> float:
        return self.now

    def advance(self, ms: float) -> None:
        self.now += ms

    async def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds * 1000


async def settle(rounds: int = 10) -> None:
    """Let pending tasks run to completion when they only await ready futures."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def scheduler() -> ManualScheduler:
    return ManualScheduler()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()
