"""Tests for settings loading."""

import pytest
from pydantic import ValidationError

from tripsync.config import Settings, get_settings


def test_defaults() -> None:
    """Test the default reconciliation and channel settings."""
    settings = Settings()

    assert settings.failure_policy == "keep"
    assert settings.reorder_failure_policy == "refetch"
    assert settings.renumber_days_on_remove is True
    assert settings.trip_updated_event == "trip:update"
    assert settings.socket_transports == ["websocket"]


def test_environment_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that TRIPSYNC_ variables override defaults."""
    monkeypatch.setenv("TRIPSYNC_FAILURE_POLICY", "rollback")
    monkeypatch.setenv("TRIPSYNC_RENUMBER_DAYS_ON_REMOVE", "false")
    monkeypatch.setenv("TRIPSYNC_SOCKET_TRANSPORTS", '["websocket", "polling"]')

    settings = Settings()

    assert settings.failure_policy == "rollback"
    assert settings.renumber_days_on_remove is False
    assert settings.socket_transports == ["websocket", "polling"]


def test_unknown_policy_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    """Test that only known failure policies are accepted."""
    monkeypatch.setenv("TRIPSYNC_FAILURE_POLICY", "merge")

    with pytest.raises(ValidationError):
        Settings()


@pytest.mark.parametrize(
    "api_base_url,expected",
    [
        ("http://localhost:5000/api", "http://localhost:5000"),
        ("https://trips.example.com/api/", "https://trips.example.com"),
        ("https://trips.example.com", "https://trips.example.com"),
    ],
)
def test_socket_url_derived_from_api_url(api_base_url: str, expected: str) -> None:
    """Test that the socket server origin drops the /api suffix."""
    assert Settings(api_base_url=api_base_url).resolved_socket_url() == expected


def test_explicit_socket_url_wins() -> None:
    """Test that an explicit socket URL is used as-is."""
    settings = Settings(api_base_url="http://localhost:5000/api", socket_url="ws://push.example.com")

    assert settings.resolved_socket_url() == "ws://push.example.com"


def test_get_settings_is_cached() -> None:
    """Test that settings are read once per process."""
    assert get_settings() is get_settings()
    assert get_settings().api_base_url == "http://testserver/api"
