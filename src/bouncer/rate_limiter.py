"""Sliding-window rate limiter: at most `limit` executions per `window` ms.

Calls over the limit are rejected and dropped, unlike AsyncThrottler which
keeps the latest one for a trailing execution.
"""

import logging
from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any

from .clock import Clock, LoopClock
from .config import RateLimiterOptions, Settings, get_settings, validate_options
from .errors import ErrorObserver, describe_operation, report_failure

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RejectionInfo:
    """Passed to on_reject when a call is dropped."""

    execution_count: int
    rejection_count: int
    retry_after: float


class AsyncRateLimiter:
    def __init__(
        self,
        operation: Callable[..., Awaitable[Any]],
        *,
        limit: int,
        window: float,
        on_reject: Callable[[RejectionInfo], object] | None = None,
        on_error: ErrorObserver | None = None,
        clock: Clock | None = None,
    ) -> None:
        options = validate_options(
            RateLimiterOptions,
            operation=operation,
            limit=limit,
            window=window,
            on_reject=on_reject,
            on_error=on_error,
        )
        self._operation = operation
        self._limit = options.limit
        self._window = options.window
        self._on_reject = on_reject
        self._on_error = on_error
        self._clock: Clock = clock or LoopClock()

        self._execution_times: deque[float] = deque()
        self._execution_count = 0
        self._rejection_count = 0

    @classmethod
    def from_settings(
        cls,
        operation: Callable[..., Awaitable[Any]],
        *,
        settings: Settings | None = None,
        on_reject: Callable[[RejectionInfo], object] | None = None,
        on_error: ErrorObserver | None = None,
        clock: Clock | None = None,
    ) -> "AsyncRateLimiter":
        settings = settings or get_settings()
        return cls(
            operation,
            limit=settings.rate_limit,
            window=settings.rate_limit_window_ms,
            on_reject=on_reject,
            on_error=on_error,
            clock=clock,
        )

    def get_execution_count(self) -> int:
        return self._execution_count

    def get_rejection_count(self) -> int:
        return self._rejection_count

    def get_remaining_in_window(self) -> int:
        self._prune(self._clock.now())
        return max(self._limit - len(self._execution_times), 0)

    def reset(self) -> None:
        self._execution_times.clear()
        self._execution_count = 0
        self._rejection_count = 0

    async def maybe_execute(self, *args: Any, **kwargs: Any) -> bool:
        """Run the operation if the window has room.

        Returns True if the operation ran (whether it succeeded or failed),
        False if the call was rejected.
        """
        now = self._clock.now()
        self._prune(now)

        if len(self._execution_times) >= self._limit:
            self._reject(now)
            return False

        self._execution_times.append(now)
        try:
            await self._operation(*args, **kwargs)
        except Exception as e:
            report_failure(
                e, self._on_error, source=describe_operation(self._operation)
            )
        finally:
            self._execution_count += 1
        return True

    def _prune(self, now: float) -> None:
        while (
            self._execution_times
            and self._execution_times[0] <= now - self._window
        ):
            self._execution_times.popleft()

    def _reject(self, now: float) -> None:
        self._rejection_count += 1
        info = RejectionInfo(
            execution_count=self._execution_count,
            rejection_count=self._rejection_count,
            retry_after=self._execution_times[0] + self._window - now,
        )
        logger.debug(
            "Rate limit reached (%d per %.0f ms), retry after %.1f ms",
            self._limit,
            self._window,
            info.retry_after,
        )
        if self._on_reject is None:
            return
        try:
            self._on_reject(info)
        except Exception as e:
            logger.exception("on_reject observer raised: %s", e)
