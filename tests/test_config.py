"""Test Settings loading and options validation."""

import pytest
from pydantic import ValidationError

from bouncer.config import Settings, ThrottlerOptions, get_settings, validate_options
from bouncer.errors import ConfigurationError


def test_defaults():
    settings = Settings(_env_file=None)  # type: ignore[call-arg]
    assert settings.throttle_wait_ms == 100
    assert settings.rate_limit == 3
    assert settings.rate_limit_window_ms == 5000


def test_reads_prefixed_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("BOUNCER_THROTTLE_WAIT_MS", "250")
    monkeypatch.setenv("bouncer_rate_limit", "10")

    settings = Settings(_env_file=None)  # type: ignore[call-arg]
    assert settings.throttle_wait_ms == 250
    assert settings.rate_limit == 10


def test_rejects_non_positive_env(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("BOUNCER_THROTTLE_WAIT_MS", "0")
    with pytest.raises(ValidationError):
        Settings(_env_file=None)  # type: ignore[call-arg]


def test_get_settings_is_cached():
    assert get_settings() is get_settings()


def test_validate_options_chains_pydantic_error():
    with pytest.raises(ConfigurationError) as exc_info:
        validate_options(ThrottlerOptions, operation=print, wait=-5)

    assert isinstance(exc_info.value, ValueError)
    assert isinstance(exc_info.value.__cause__, ValidationError)
