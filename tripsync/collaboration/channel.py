"""Notification channel contract and its socket.io implementation."""

import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any, Protocol

import socketio
from socketio.exceptions import ConnectionError as SocketConnectionError
from socketio.exceptions import SocketIOError

from tripsync.config import Settings
from tripsync.errors import ChannelError

logger = logging.getLogger(__name__)

EventHandler = Callable[..., Awaitable[None]]

JOIN_EVENT = "trip:join"
LEAVE_EVENT = "trip:leave"
CONNECT_EVENT = "connect"
DISCONNECT_EVENT = "disconnect"


class NotificationChannel(Protocol):
    """Publish/subscribe channel shared by every view of one session."""

    @property
    def connected(self) -> bool:
        """Whether the channel currently has a live connection."""
        ...

    async def emit(self, event: str, data: Any) -> None:
        """Send an event to the server.

        Raises:
            ChannelError: If the channel is not connected or the send fails
        """
        ...

    def on(self, event: str, handler: EventHandler) -> None:
        """Subscribe a coroutine handler to a server event."""
        ...

    def off(self, event: str, handler: EventHandler) -> None:
        """Remove a handler previously passed to on()."""
        ...


class SocketIOChannel:
    """socket.io client connection with per-event handler fan-out.

    The socket.io client keeps one handler per event, so handlers from several
    subscribers are multiplexed through a single dispatcher per event.
    """

    def __init__(
        self,
        url: str,
        token: str,
        transports: list[str] | None = None,
        client: socketio.AsyncClient | None = None,
    ) -> None:
        """Initialize channel (does not connect).

        Args:
            url: Server origin (without the /api path)
            token: Bearer token sent as socket.io auth
            transports: Engine.IO transports to allow
            client: Optional socket.io client (for testing)
        """
        self._url = url
        self._token = token
        self._transports = transports or ["websocket"]
        self._client = client or socketio.AsyncClient(reconnection=True)
        self._handlers: dict[str, list[EventHandler]] = defaultdict(list)

    @classmethod
    def from_settings(
        cls, settings: Settings, token: str | None = None
    ) -> "SocketIOChannel | None":
        """Build a channel for the session, or None when nobody is signed in."""
        token = token or settings.api_token
        if not token:
            return None
        return cls(
            url=settings.resolved_socket_url(),
            token=token,
            transports=settings.socket_transports,
        )

    @property
    def connected(self) -> bool:
        return bool(self._client.connected)

    async def connect(self) -> None:
        """Open the connection.

        Raises:
            ChannelError: If the server cannot be reached or rejects the token
        """
        try:
            await self._client.connect(
                self._url, auth={"token": self._token}, transports=self._transports
            )
        except SocketConnectionError as e:
            logger.error(f"Socket connection error: {e}")
            raise ChannelError(str(e)) from e
        logger.info(f"Connected to notification channel at {self._url}")

    async def disconnect(self) -> None:
        await self._client.disconnect()

    async def emit(self, event: str, data: Any) -> None:
        if not self.connected:
            raise ChannelError(f"Cannot emit {event}: channel not connected")
        try:
            await self._client.emit(event, data)
        except SocketIOError as e:
            raise ChannelError(f"Emit {event} failed: {e}") from e

    def on(self, event: str, handler: EventHandler) -> None:
        if event not in self._handlers:
            self._client.on(event, self._dispatcher(event))
        if handler not in self._handlers[event]:
            self._handlers[event].append(handler)

    def off(self, event: str, handler: EventHandler) -> None:
        handlers = self._handlers.get(event)
        if handlers and handler in handlers:
            handlers.remove(handler)

    def _dispatcher(self, event: str) -> EventHandler:
        async def dispatch(*args: Any) -> None:
            # Copy: handlers may unsubscribe while being called
            for handler in list(self._handlers.get(event, [])):
                try:
                    await handler(*args)
                except Exception as e:
                    logger.error(f"Handler for {event} failed: {type(e).__name__}: {e}")

        return dispatch
