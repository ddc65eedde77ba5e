"""Collaboration bridge: keeps an open trip fresh while others edit it.

State machine::

    DISCONNECTED -> CONNECTED -> (JOINED <-> LEFT) -> DISCONNECTED

A remote "trip updated" event for the mounted trip triggers a full refetch
that replaces local state; nothing is merged. Without a channel (no signed-in
session) every operation is a no-op and the view works non-collaboratively.
"""

import logging
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any

from pydantic import ValidationError

from tripsync.collaboration.channel import (
    CONNECT_EVENT,
    DISCONNECT_EVENT,
    JOIN_EVENT,
    LEAVE_EVENT,
    NotificationChannel,
)
from tripsync.errors import ChannelError
from tripsync.models.events import TripUpdatedEvent

logger = logging.getLogger(__name__)


class BridgeState(str, Enum):
    """Room membership state."""

    DISCONNECTED = "disconnected"
    CONNECTED = "connected"
    JOINED = "joined"
    LEFT = "left"


class CollaborationBridge:
    """Room membership and remote-update handling for one trip view."""

    def __init__(
        self,
        channel: NotificationChannel | None,
        refetch: Callable[[str], Awaitable[Any]],
        *,
        updated_event: str = "trip:update",
    ) -> None:
        """Initialize bridge.

        Args:
            channel: Session-wide channel, or None when not signed in
            refetch: Coroutine reloading the trip with the given id into the store
            updated_event: Server event announcing a trip change
        """
        self._channel = channel
        self._refetch = refetch
        self._updated_event = updated_event
        self._trip_id: str | None = None
        self._state = (
            BridgeState.CONNECTED
            if channel is not None and channel.connected
            else BridgeState.DISCONNECTED
        )

    @property
    def state(self) -> BridgeState:
        return self._state

    @property
    def trip_id(self) -> str | None:
        return self._trip_id

    async def mount(self, trip_id: str) -> None:
        """Start following a trip: subscribe and join its room if connected."""
        if self._channel is None:
            return

        if self._trip_id is not None and self._trip_id != str(trip_id):
            await self.unmount()

        self._trip_id = str(trip_id)
        self._channel.on(self._updated_event, self.handle_remote_update)
        self._channel.on(CONNECT_EVENT, self.handle_connected)
        self._channel.on(DISCONNECT_EVENT, self.handle_disconnected)

        if self._channel.connected:
            self._state = BridgeState.CONNECTED
            await self._join()

    async def unmount(self) -> None:
        """Stop following the trip; leaving the room is best-effort."""
        if self._channel is None or self._trip_id is None:
            return

        trip_id = self._trip_id
        self._trip_id = None
        self._channel.off(self._updated_event, self.handle_remote_update)
        self._channel.off(CONNECT_EVENT, self.handle_connected)
        self._channel.off(DISCONNECT_EVENT, self.handle_disconnected)

        if not self._channel.connected:
            self._state = BridgeState.DISCONNECTED
            return

        try:
            await self._channel.emit(LEAVE_EVENT, trip_id)
        except ChannelError as e:
            logger.debug(f"Leave room {trip_id} ignored: {e}")
        self._state = BridgeState.LEFT

    async def handle_remote_update(self, payload: Any = None, *_: Any) -> None:
        """Refetch when a collaborator changed the mounted trip."""
        try:
            event = TripUpdatedEvent.model_validate(payload)
        except ValidationError:
            logger.debug(f"Ignoring malformed trip update payload: {payload!r}")
            return

        if self._state != BridgeState.JOINED or event.trip_id != self._trip_id:
            return

        logger.info(f"Trip {event.trip_id} updated remotely, refetching")
        await self._refetch(event.trip_id)

    async def handle_connected(self, *_: Any) -> None:
        """(Re)connection: rooms do not survive reconnects, so join again."""
        self._state = BridgeState.CONNECTED
        if self._trip_id is not None:
            await self._join()

    async def handle_disconnected(self, *_: Any) -> None:
        logger.info("Notification channel disconnected, collaboration paused")
        self._state = BridgeState.DISCONNECTED

    async def _join(self) -> None:
        assert self._channel is not None and self._trip_id is not None
        try:
            await self._channel.emit(JOIN_EVENT, self._trip_id)
        except ChannelError as e:
            logger.warning(f"Join room {self._trip_id} failed, continuing without updates: {e}")
            self._state = (
                BridgeState.CONNECTED if self._channel.connected else BridgeState.DISCONNECTED
            )
            return
        self._state = BridgeState.JOINED
