"""Time source and timer scheduling used by throttlers and rate limiters."""

import asyncio
from collections.abc import Callable
from typing import Protocol


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Clock(Protocol):
    """Abstract time source. All durations are in milliseconds."""

    def now(self) -> float:
        """Current monotonic timestamp in milliseconds"""
        ...

    def schedule_after(
        self, delay: float, callback: Callable[[], None]
    ) -> TimerHandle:
        """Run callback once, no earlier than delay milliseconds from now"""
        ...


class LoopClock:
    """Clock backed by the running asyncio event loop."""

    def now(self) -> float:
        return asyncio.get_running_loop().time() * 1000

    def schedule_after(
        self, delay: float, callback: Callable[[], None]
    ) -> asyncio.TimerHandle:
        return asyncio.get_running_loop().call_later(
            max(delay, 0.0) / 1000, callback
        )
