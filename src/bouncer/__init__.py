"""Throttling and rate limiting for async operations"""

from .clock import Clock, LoopClock, TimerHandle
from .config import Settings, get_settings
from .errors import ConfigurationError
from .rate_limiter import AsyncRateLimiter, RejectionInfo
from .throttler import AsyncThrottler, async_throttle

__all__ = [
    "AsyncRateLimiter",
    "AsyncThrottler",
    "Clock",
    "ConfigurationError",
    "LoopClock",
    "RejectionInfo",
    "Settings",
    "TimerHandle",
    "async_throttle",
    "get_settings",
]
