"""Typed settings configuration - single source of truth."""

import re
from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

FailurePolicy = Literal["keep", "rollback", "refetch"]
ReorderFailurePolicy = Literal["ignore", "refetch"]


class Settings(BaseSettings):
    """Sync core settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_prefix="TRIPSYNC_", env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Persistence API
    api_base_url: str = "http://localhost:5000/api"
    api_token: str | None = None
    request_timeout_s: float = 30.0

    # Notification channel
    socket_url: str | None = None
    socket_transports: list[str] = ["websocket"]
    trip_updated_event: str = "trip:update"

    # Day management
    renumber_days_on_remove: bool = True

    # Reconciliation
    failure_policy: FailurePolicy = "keep"
    reorder_failure_policy: ReorderFailurePolicy = "refetch"

    def resolved_socket_url(self) -> str:
        """Socket server origin; the API path suffix is not part of it."""
        if self.socket_url:
            return self.socket_url
        return re.sub(r"/?api/?$", "", self.api_base_url, flags=re.IGNORECASE)


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
