from collections.abc import Callable
from functools import lru_cache
from typing import Any, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    PositiveFloat,
    PositiveInt,
    ValidationError,
)
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError

_M = TypeVar("_M", bound=BaseModel)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="BOUNCER_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    throttle_wait_ms: PositiveFloat = 100.0
    rate_limit: PositiveInt = 3
    rate_limit_window_ms: PositiveFloat = 5000.0


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide defaults read from BOUNCER_* env variables"""
    return Settings()


class ThrottlerOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    operation: Callable[..., Any]
    wait: PositiveFloat
    on_error: Callable[[Exception], object] | None = None


class RateLimiterOptions(BaseModel):
    model_config = ConfigDict(frozen=True)

    operation: Callable[..., Any]
    limit: PositiveInt
    window: PositiveFloat
    on_reject: Callable[..., object] | None = None
    on_error: Callable[[Exception], object] | None = None


def validate_options(model: type[_M], **values: Any) -> _M:
    """
    Build an options model, translating pydantic errors.

    Raises:
        ConfigurationError: If any option is invalid
    """
    try:
        return model(**values)
    except ValidationError as e:
        raise ConfigurationError(
            f"Invalid {model.__name__}: {e.error_count()} error(s)\n{e}"
        ) from e
