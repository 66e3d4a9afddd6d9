"""Pytest fixtures for testing."""

from collections.abc import Generator

import pytest

from bouncer.config import get_settings

from .helpers import FakeClock


@pytest.fixture
def clock() -> FakeClock:
    """Virtual clock starting at t=1000 ms."""
    return FakeClock()


@pytest.fixture(autouse=True)
def fresh_settings() -> Generator[None, None, None]:
    """Drop the cached Settings so env changes in one test don't leak."""
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
