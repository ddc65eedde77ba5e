"""Exception types for the sync core."""


class TripSyncError(Exception):
    """Base class for all sync core errors."""

    pass


class PersistenceError(TripSyncError):
    """Persistence API call failed (transport, HTTP status or payload)."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ChannelError(TripSyncError):
    """Notification channel is unavailable or rejected an emit."""

    pass
