"""Async throttler: bounded execution rate with a guaranteed trailing call.

Each request either:
- runs the wrapped operation immediately, when nothing is in flight and the
  wait window since the previous start has elapsed, or
- joins the single pending call, overwriting its arguments (last write wins).

The pending call fires once its deadline passes and no execution is in
flight. Its deadline is fixed when the pending call is created.

Callers' futures never fail: operation errors go to the on_error observer.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from functools import wraps
from typing import Any, Generic, TypeVar

from .clock import Clock, LoopClock, TimerHandle
from .config import Settings, ThrottlerOptions, get_settings, validate_options
from .errors import ErrorObserver, describe_operation, report_failure

logger = logging.getLogger(__name__)

_T = TypeVar("_T")


@dataclass
class _PendingCall(Generic[_T]):
    """Latest throttled arguments plus every caller waiting on them."""

    args: tuple[Any, ...]
    kwargs: dict[str, Any]
    waiters: list["asyncio.Future[_T | None]"] = field(default_factory=list)


class AsyncThrottler(Generic[_T]):
    """Single-process throttler around one async operation.

    Not thread-safe: all requests must come from the same event loop.
    """

    def __init__(
        self,
        operation: Callable[..., Awaitable[_T]],
        *,
        wait: float,
        on_error: ErrorObserver | None = None,
        clock: Clock | None = None,
    ) -> None:
        options = validate_options(
            ThrottlerOptions, operation=operation, wait=wait, on_error=on_error
        )
        self._operation = operation
        self._wait = options.wait
        self._on_error = on_error
        self._clock: Clock = clock or LoopClock()

        self._execution_count = 0
        self._next_execution_time: float | None = None
        self._is_executing = False
        self._idle = asyncio.Event()
        self._idle.set()

        self._pending: _PendingCall[_T] | None = None
        self._pending_timer: TimerHandle | None = None
        self._trailing_task: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[None]] = set()

    @classmethod
    def from_settings(
        cls,
        operation: Callable[..., Awaitable[_T]],
        *,
        settings: Settings | None = None,
        on_error: ErrorObserver | None = None,
        clock: Clock | None = None,
    ) -> "AsyncThrottler[_T]":
        """Create a throttler using the configured default wait."""
        settings = settings or get_settings()
        return cls(
            operation,
            wait=settings.throttle_wait_ms,
            on_error=on_error,
            clock=clock,
        )

    @property
    def wait(self) -> float:
        return self._wait

    @property
    def is_executing(self) -> bool:
        return self._is_executing

    def get_execution_count(self) -> int:
        return self._execution_count

    def get_next_execution_time(self) -> float | None:
        return self._next_execution_time

    def request(self, *args: Any, **kwargs: Any) -> "asyncio.Future[_T | None]":
        """Ask for the operation to run with these arguments.

        Must be called from a running event loop. An immediate execution
        invokes the operation before this method returns.

        Returns a future resolved once the execution owning this call has
        completed: with the operation's result, or None if it failed.
        """
        waiter: asyncio.Future[_T | None] = (
            asyncio.get_running_loop().create_future()
        )
        now = self._clock.now()

        if (
            not self._is_executing
            and self._pending is None
            and (
                self._next_execution_time is None
                or now >= self._next_execution_time
            )
        ):
            self._start(args, kwargs, [waiter], now)
            return waiter

        if self._pending is None:
            self._pending = _PendingCall(args, kwargs, [waiter])
            deadline = self._next_execution_time
            delay = 0.0 if deadline is None else max(deadline - now, 0.0)
            self._pending_timer = self._clock.schedule_after(
                delay, self._on_timer
            )
            logger.debug("Throttled call scheduled in %.1f ms", delay)
        else:
            self._pending.args = args
            self._pending.kwargs = kwargs
            self._pending.waiters.append(waiter)
            logger.debug(
                "Throttled call superseded pending arguments (%d waiting)",
                len(self._pending.waiters),
            )

        return waiter

    __call__ = request

    def _start(
        self,
        args: tuple[Any, ...],
        kwargs: dict[str, Any],
        waiters: list["asyncio.Future[_T | None]"],
        now: float,
    ) -> None:
        self._is_executing = True
        self._idle.clear()
        self._next_execution_time = now + self._wait

        try:
            awaitable: Awaitable[_T] | None = self._operation(*args, **kwargs)
            failure: Exception | None = None
        except Exception as e:
            awaitable, failure = None, e

        task = asyncio.get_running_loop().create_task(
            self._complete(awaitable, failure, waiters)
        )
        # The loop only keeps weak references to tasks.
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _complete(
        self,
        awaitable: Awaitable[_T] | None,
        failure: Exception | None,
        waiters: list["asyncio.Future[_T | None]"],
    ) -> None:
        result: _T | None = None
        try:
            if awaitable is not None:
                try:
                    result = await awaitable
                except Exception as e:
                    failure = e
            if failure is not None:
                report_failure(
                    failure,
                    self._on_error,
                    source=describe_operation(self._operation),
                )
        finally:
            self._is_executing = False
            self._execution_count += 1
            self._idle.set()
            for waiter in waiters:
                if not waiter.done():
                    waiter.set_result(result)

    def _on_timer(self) -> None:
        now = self._clock.now()
        if (
            self._next_execution_time is not None
            and now < self._next_execution_time
        ):
            # Timer fired early; re-arm for the remainder.
            self._pending_timer = self._clock.schedule_after(
                self._next_execution_time - now, self._on_timer
            )
            return

        if self._is_executing:
            logger.debug("Trailing call waiting for in-flight execution")
            self._trailing_task = asyncio.get_running_loop().create_task(
                self._fire_when_idle()
            )
            return

        self._fire_trailing()

    async def _fire_when_idle(self) -> None:
        while self._is_executing:
            await self._idle.wait()
        self._trailing_task = None
        self._fire_trailing()

    def _fire_trailing(self) -> None:
        pending = self._pending
        self._pending = None
        self._pending_timer = None
        if pending is None:
            return

        logger.debug(
            "Running trailing call for %d waiter(s)", len(pending.waiters)
        )
        self._start(
            pending.args, pending.kwargs, pending.waiters, self._clock.now()
        )


def async_throttle(
    operation: Callable[..., Awaitable[_T]],
    *,
    wait: float,
    on_error: ErrorObserver | None = None,
    clock: Clock | None = None,
) -> Callable[..., "asyncio.Future[_T | None]"]:
    """Wrap operation so that calling the wrapper goes through a throttler.

    The backing AsyncThrottler is available as `wrapper.throttler`.
    """
    throttler = AsyncThrottler(
        operation, wait=wait, on_error=on_error, clock=clock
    )

    @wraps(operation)
    def wrapper(*args: Any, **kwargs: Any) -> "asyncio.Future[_T | None]":
        return throttler.request(*args, **kwargs)

    wrapper.throttler = throttler  # type: ignore[attr-defined]
    return wrapper
