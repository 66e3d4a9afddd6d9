"""Virtual clock for driving throttler timing deterministically.

FakeClock never sleeps. Timers are kept in a heap and fire, in deadline
order, only when a test calls advance():

    clock = FakeClock()
    throttler = AsyncThrottler(op, wait=100, clock=clock)
    pending = throttler.request("b")   # throttled, timer at +100
    clock.advance(100)                 # timer fires, trailing call starts
    await pending
"""

import asyncio
import heapq
from collections.abc import Callable
from dataclasses import dataclass, field
from itertools import count


@dataclass
class FakeTimer:
    when: float
    callback: Callable[[], None]
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass
class FakeClock:
    time: float = 1000.0
    _timers: list[tuple[float, int, FakeTimer]] = field(default_factory=list)
    _seq: count = field(default_factory=count)

    def now(self) -> float:
        return self.time

    def schedule_after(
        self, delay: float, callback: Callable[[], None]
    ) -> FakeTimer:
        timer = FakeTimer(self.time + max(delay, 0.0), callback)
        heapq.heappush(self._timers, (timer.when, next(self._seq), timer))
        return timer

    def advance(self, ms: float) -> None:
        """Move time forward, firing every timer that falls due on the way."""
        target = self.time + ms
        while self._timers and self._timers[0][0] <= target:
            when, _, timer = heapq.heappop(self._timers)
            self.time = max(self.time, when)
            if not timer.cancelled:
                timer.callback()
        self.time = target

    @property
    def pending_timers(self) -> int:
        return sum(1 for _, _, timer in self._timers if not timer.cancelled)


async def drain(ticks: int = 10) -> None:
    """Let queued tasks run for a few event loop iterations."""
    for _ in range(ticks):
        await asyncio.sleep(0)


@dataclass
class EarlyFiringClock(FakeClock):
    """FakeClock whose first timer fires `early_by` ms before its deadline."""

    early_by: float = 5.0
    _fired_early: bool = False

    def schedule_after(
        self, delay: float, callback: Callable[[], None]
    ) -> FakeTimer:
        if not self._fired_early:
            self._fired_early = True
            delay -= self.early_by
        return super().schedule_after(delay, callback)
