"""Error types and the failure containment boundary."""

import logging
from collections.abc import Callable

logger = logging.getLogger(__name__)

ErrorObserver = Callable[[Exception], object]


class ConfigurationError(ValueError):
    """Raised when a throttler or rate limiter is constructed with invalid options."""

    pass


def report_failure(
    error: Exception,
    on_error: ErrorObserver | None,
    *,
    source: str,
) -> None:
    """Hand an operation failure to its observer. Never raises.

    Without an observer the failure is only logged. An observer that raises
    is logged too and its error discarded.
    """
    if on_error is None:
        logger.exception("%s failed: %s", source, error, exc_info=error)
        return

    try:
        on_error(error)
    except Exception as e:
        logger.exception("Error observer for %s raised: %s", source, e)


def describe_operation(operation: Callable[..., object]) -> str:
    return getattr(operation, "__qualname__", None) or repr(operation)
