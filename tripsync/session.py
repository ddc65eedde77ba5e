"""Planner session: everything one open trip view owns.

The view creates a session when a trip is opened and closes it when the view
goes away. The session owns the store (no process-wide state), persists edits
through the reconciler, routes drag gestures, and follows remote changes
through the collaboration bridge.
"""

import asyncio
import logging
from collections.abc import Coroutine, Mapping
from typing import Any

from tripsync.adapters.trips_api import TripsAPI
from tripsync.collaboration.bridge import CollaborationBridge
from tripsync.collaboration.channel import NotificationChannel
from tripsync.config import Settings, get_settings
from tripsync.interaction.drag import (
    DragInteractionController,
    DropAction,
    DropDecision,
    DropTarget,
)
from tripsync.models.drag import ItemDragData
from tripsync.models.itinerary import PlaceCandidate, Trip
from tripsync.store.itinerary_store import ItineraryStore
from tripsync.sync.reconciler import ItineraryReconciler, SyncLogger, SyncMetrics, SyncResult
from tripsync.utils.logging import StructuredSyncLogger
from tripsync.utils.metrics import PrometheusSyncMetrics

logger = logging.getLogger(__name__)


class PlannerSession:
    """Store, reconciler, drag controller and bridge for one open trip."""

    def __init__(
        self,
        trip_id: str,
        api: TripsAPI,
        *,
        channel: NotificationChannel | None = None,
        settings: Settings | None = None,
        metrics: SyncMetrics | None = None,
        sync_logger: SyncLogger | None = None,
    ) -> None:
        """Initialize session (does no I/O until open()).

        Args:
            trip_id: Trip to open
            api: Persistence client
            channel: Session-wide notification channel (None = not collaborative)
            settings: Settings (defaults to cached environment settings)
            metrics: Metrics recorder (defaults to Prometheus)
            sync_logger: Structured logger (defaults to StructuredSyncLogger)
        """
        settings = settings or get_settings()
        self.store = ItineraryStore(
            Trip(id=str(trip_id)),
            renumber_days_on_remove=settings.renumber_days_on_remove,
        )
        self.reconciler = ItineraryReconciler.from_settings(
            self.store,
            api,
            settings,
            metrics=metrics or PrometheusSyncMetrics(),
            sync_logger=sync_logger or StructuredSyncLogger(),
        )
        self.drag = DragInteractionController(self.store)
        self.bridge = CollaborationBridge(
            channel, self._refetch_remote, updated_event=settings.trip_updated_event
        )
        self._message: str | None = None
        self._tasks: set[asyncio.Task[Any]] = set()

    @property
    def trip(self) -> Trip:
        return self.store.trip

    @property
    def message(self) -> str | None:
        """Last user-facing error message (error banner)."""
        return self._message

    @property
    def loading(self) -> bool:
        return self.reconciler.loading

    def clear_message(self) -> None:
        self._message = None

    # Lifecycle

    async def open(self) -> SyncResult:
        """Load the trip and start following remote changes."""
        result = self._record(await self.reconciler.load())
        await self.bridge.mount(self.store.trip_id)
        return result

    async def close(self) -> None:
        """Leave the room and drop any response still in flight."""
        await self.bridge.unmount()
        self.store.close()
        await self.drain()

    async def drain(self) -> None:
        """Wait for background (fire-and-forget) persistence calls."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks))

    # Items

    async def add_place(self, place: PlaceCandidate, day_number: int) -> SyncResult:
        return self._record(await self.reconciler.add_item(place, day_number))

    async def remove_item(self, item_id: str, day_number: int) -> SyncResult:
        return self._record(await self.reconciler.remove_item(item_id, day_number))

    async def update_item(self, item_id: str, changes: Mapping[str, Any]) -> SyncResult:
        return self._record(await self.reconciler.update_item(item_id, changes))

    async def move_item(self, item_id: str, from_day: int, to_day: int) -> SyncResult:
        return self._record(
            await self.reconciler.move_item_between_days(item_id, from_day, to_day)
        )

    def reorder_items(self, day_number: int, from_index: int, to_index: int) -> Trip:
        """Reorder locally now; persistence runs in the background."""
        before = self.store.trip
        trip = self.store.reorder_within_day(day_number, from_index, to_index)
        if trip is not before:
            self._spawn(self.reconciler.persist_day_order(day_number))
        return trip

    # Days

    def add_day(self) -> Trip:
        return self.reconciler.add_day()

    async def remove_day(self, day_number: int, renumber: bool | None = None) -> SyncResult:
        return self._record(await self.reconciler.remove_day(day_number, renumber=renumber))

    async def duplicate_day(self, source_day: int, dest_day: int) -> SyncResult:
        return self._record(await self.reconciler.duplicate_day(source_day, dest_day))

    # Drag and drop

    def start_drag(self, source: ItemDragData | dict[str, Any]) -> None:
        self.drag.drag_start(source)

    def drag_over(self, target: DropTarget | dict[str, Any] | None) -> DropDecision:
        return self.drag.drag_over(target)

    def cancel_drag(self) -> DropDecision:
        return self.drag.drag_cancel()

    async def end_drag(self, target: DropTarget | dict[str, Any] | None = None) -> DropDecision:
        """Apply the drop locally, then persist it.

        Reorders are persisted in the background; moves are awaited because
        the server response replaces local state.
        """
        decision = self.drag.drag_end(target)
        if not decision.applied:
            return decision

        if decision.action == DropAction.REORDER and decision.from_day is not None:
            self._spawn(self.reconciler.persist_day_order(decision.from_day))
        elif decision.action == DropAction.MOVE and decision.item_id is not None:
            self._record(await self.reconciler.persist_move(decision.item_id))
        return decision

    # Internals

    def _record(self, result: SyncResult) -> SyncResult:
        if result.error is not None:
            self._message = result.error
        return result

    def _spawn(self, coro: Coroutine[Any, Any, Any]) -> None:
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _refetch_remote(self, trip_id: str) -> None:
        if self.store.closed or trip_id != self.store.trip_id:
            return
        result = await self.reconciler.refresh(reason="remote_update")
        if not result.ok:
            logger.warning(f"Refetch after remote update failed: {result.error}")
