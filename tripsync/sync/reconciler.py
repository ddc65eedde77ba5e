"""Reconciliation between the optimistic itinerary store and persistence.

Every mutation is applied to the store first (the UI sees it immediately),
then persisted. Server-authoritative operations (add, delete, duplicate, day
removal, moves and edits) replace the local snapshot wholesale with the
server's trip on success. Reorders are fire-and-forget: their response is not
needed and their failures are never shown to the user.

Failure policy for non-reorder operations is configurable:
- keep: local optimistic state stays as-is (the failure is only reported)
- rollback: restore the last server-confirmed snapshot
- refetch: reload the trip from the server

Reorder failures either do nothing (ignore) or trigger a silent refetch.
"""

import logging
import time
import uuid
from collections.abc import Awaitable, Callable, Mapping
from dataclasses import dataclass
from typing import Any

from tripsync.adapters.mapping import move_item_body, update_item_body
from tripsync.adapters.trips_api import TripsAPI
from tripsync.config import FailurePolicy, ReorderFailurePolicy, Settings
from tripsync.errors import PersistenceError
from tripsync.models.itinerary import (
    PROVISIONAL_ID_PREFIX,
    Day,
    PlaceCandidate,
    Trip,
    day_label,
)
from tripsync.store.itinerary_store import ItineraryStore, renumber_items
from tripsync.utils.logging import MutationContext

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SyncResult:
    """Outcome of a reconciled operation.

    Attributes:
        trip: Store snapshot after the operation settled
        operation: Operation name (add_item, reorder, ...)
        mutation_id: Correlation id shared with the structured logs
        error: User-facing failure message, None on success
    """

    trip: Trip
    operation: str
    mutation_id: str
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


# Metrics interface (to be implemented by actual metrics system)
class SyncMetrics:
    """Interface for sync metrics."""

    def record_latency(self, operation: str, outcome: str, latency_ms: float) -> None:
        """Record persistence call latency."""
        pass

    def inc_error(self, operation: str, reason: str) -> None:
        """Increment error counter."""
        pass

    def inc_refetch(self, reason: str) -> None:
        """Increment refetch counter."""
        pass

    def change_pending(self, delta: int) -> None:
        """Adjust the number of awaited calls in flight."""
        pass


# Logging interface
class SyncLogger:
    """Interface for structured logging."""

    def log_sync(
        self,
        ctx: MutationContext,
        outcome: str,
        latency_ms: float,
        error_reason: str | None = None,
    ) -> None:
        """Log persistence call outcome."""
        pass


class ItineraryReconciler:
    """Sole writer to persistence for one open trip."""

    def __init__(
        self,
        store: ItineraryStore,
        api: TripsAPI,
        *,
        failure_policy: FailurePolicy = "keep",
        reorder_failure_policy: ReorderFailurePolicy = "refetch",
        metrics: SyncMetrics | None = None,
        sync_logger: SyncLogger | None = None,
    ) -> None:
        """Initialize reconciler.

        Args:
            store: Store holding the open trip
            api: Persistence client
            failure_policy: What to do with local state when a
                server-authoritative call fails
            reorder_failure_policy: What to do when a reorder call fails
            metrics: Metrics recorder (optional, defaults to no-op)
            sync_logger: Structured logger (optional, defaults to no-op)
        """
        self._store = store
        self._api = api
        self._failure_policy = failure_policy
        self._reorder_failure_policy = reorder_failure_policy
        self._metrics = metrics or SyncMetrics()
        self._logger = sync_logger or SyncLogger()
        self._confirmed: Trip | None = None
        self._pending = 0

    @classmethod
    def from_settings(
        cls,
        store: ItineraryStore,
        api: TripsAPI,
        settings: Settings,
        **kwargs: Any,
    ) -> "ItineraryReconciler":
        return cls(
            store,
            api,
            failure_policy=settings.failure_policy,
            reorder_failure_policy=settings.reorder_failure_policy,
            **kwargs,
        )

    @property
    def store(self) -> ItineraryStore:
        return self._store

    @property
    def confirmed(self) -> Trip | None:
        """Last snapshot received from the server."""
        return self._confirmed

    @property
    def pending(self) -> int:
        """Number of awaited persistence calls in flight."""
        return self._pending

    @property
    def loading(self) -> bool:
        return self._pending > 0

    # Loading

    async def load(self) -> SyncResult:
        """Fetch the trip and replace local state with it."""
        return await self._confirm("load", lambda: self._api.get_trip(self._store.trip_id))

    async def refresh(self, reason: str = "remote_update") -> SyncResult:
        """Full refetch; the server snapshot replaces local state (no merge)."""
        self._metrics.inc_refetch(reason)
        return await self._confirm(
            "refresh",
            lambda: self._api.get_trip(self._store.trip_id),
            apply_failure_policy=False,
        )

    # Items

    async def add_item(self, place: PlaceCandidate, day_number: int) -> SyncResult:
        """Append a place to a day; the server assigns the final id and order."""
        before = self._store.trip
        if self._store.add_item_to_day(place, day_number) is before:
            return self._noop("add_item")
        return await self._confirm(
            "add_item",
            lambda: self._api.add_item(self._store.trip_id, place, day_number),
            day_number=day_number,
        )

    async def remove_item(self, item_id: str, day_number: int) -> SyncResult:
        before = self._store.trip
        if self._store.remove_item_from_day(item_id, day_number) is before:
            return self._noop("remove_item")
        if self._is_local_only(item_id):
            return self._noop("remove_item")
        return await self._confirm(
            "remove_item",
            lambda: self._api.delete_item(self._store.trip_id, item_id),
            day_number=day_number,
        )

    async def update_item(self, item_id: str, changes: Mapping[str, Any]) -> SyncResult:
        """Edit an item's descriptive fields (notes, cost, times, ...)."""
        before = self._store.trip
        if self._store.update_item(item_id, changes) is before:
            return self._noop("update_item")
        if self._is_local_only(item_id):
            return self._noop("update_item")
        return await self._confirm(
            "update_item",
            lambda: self._api.update_item(
                self._store.trip_id, item_id, update_item_body(changes)
            ),
        )

    async def reorder_within_day(
        self, day_number: int, from_index: int, to_index: int
    ) -> SyncResult:
        before = self._store.trip
        if self._store.reorder_within_day(day_number, from_index, to_index) is before:
            return self._noop("reorder")
        return await self.persist_day_order(day_number)

    async def persist_day_order(self, day_number: int) -> SyncResult:
        """Send a day's current item order to the server.

        Used after a reorder already applied to the store (e.g. by a drop).
        Failures are never reported to the caller.
        """
        day = self._store.trip.day(day_number)
        if day is None:
            return self._noop("reorder")

        # Items still waiting for their server id cannot be ordered server-side
        item_ids = [item.id for item in day.items if not item.provisional]
        ctx = self._context("reorder", day_number)
        start = time.monotonic()
        try:
            await self._api.reorder_items(self._store.trip_id, day_number, item_ids)
        except PersistenceError as e:
            elapsed_ms = (time.monotonic() - start) * 1000
            self._metrics.record_latency(ctx.operation, "error", elapsed_ms)
            self._metrics.inc_error(ctx.operation, "persistence")
            self._logger.log_sync(ctx, "error", elapsed_ms, error_reason=e.message)
            if self._reorder_failure_policy == "refetch":
                await self.refresh(reason="reorder_failure")
            return SyncResult(
                trip=self._store.trip, operation=ctx.operation, mutation_id=ctx.mutation_id
            )

        elapsed_ms = (time.monotonic() - start) * 1000
        self._metrics.record_latency(ctx.operation, "success", elapsed_ms)
        self._logger.log_sync(ctx, "success", elapsed_ms)
        self._confirm_day_order(day_number, item_ids)
        return SyncResult(
            trip=self._store.trip, operation=ctx.operation, mutation_id=ctx.mutation_id
        )

    async def move_item_between_days(
        self, item_id: str, from_day: int, to_day: int
    ) -> SyncResult:
        before = self._store.trip
        if self._store.move_item_between_days(item_id, from_day, to_day) is before:
            return self._noop("move_item")
        return await self.persist_move(item_id)

    async def persist_move(self, item_id: str) -> SyncResult:
        """Send an item's current day and order after a local cross-day move."""
        found = self._store.trip.find_item(item_id)
        if found is None or self._is_local_only(item_id):
            return self._noop("move_item")

        day, index = found
        body = move_item_body(day.items[index])
        return await self._confirm(
            "move_item",
            lambda: self._api.update_item(self._store.trip_id, item_id, body),
            day_number=day.number,
        )

    # Days

    def add_day(self) -> Trip:
        """Append an empty day locally.

        The backend derives days from its items and trip dates, so an empty
        day has nothing to persist until an item is added to it. Trailing
        empty days survive server replacements and rollbacks.
        """
        return self._store.add_day()

    async def remove_day(self, day_number: int, renumber: bool | None = None) -> SyncResult:
        if renumber is None:
            renumber = self._store.renumber_days_on_remove
        before = self._store.trip
        if self._store.remove_day(day_number, renumber=renumber) is before:
            return self._noop("remove_day")
        return await self._confirm(
            "remove_day",
            lambda: self._api.delete_day(self._store.trip_id, day_number, renumber),
            day_number=day_number,
        )

    async def duplicate_day(self, source_day: int, dest_day: int) -> SyncResult:
        before = self._store.trip
        if self._store.duplicate_day(source_day, dest_day) is before:
            return self._noop("duplicate_day")
        return await self._confirm(
            "duplicate_day",
            lambda: self._api.duplicate_day(self._store.trip_id, source_day, dest_day),
            day_number=dest_day,
        )

    # Internals

    def _context(self, operation: str, day_number: int | None = None) -> MutationContext:
        return MutationContext(
            trip_id=self._store.trip_id,
            mutation_id=uuid.uuid4().hex,
            operation=operation,
            day_number=day_number,
        )

    def _noop(self, operation: str) -> SyncResult:
        ctx = self._context(operation)
        logger.debug(f"{operation}: nothing to persist for trip {ctx.trip_id}")
        return SyncResult(
            trip=self._store.trip, operation=operation, mutation_id=ctx.mutation_id
        )

    def _is_local_only(self, item_id: str) -> bool:
        """Items with provisional ids are unknown to the server until their add lands."""
        found = self._store.trip.find_item(item_id)
        if found is None:
            return item_id.startswith(PROVISIONAL_ID_PREFIX)
        day, index = found
        return day.items[index].provisional

    def _accepts(self, trip: Trip) -> bool:
        """A response may only land on the store of the trip that is still open."""
        return not self._store.closed and trip.id == self._store.trip_id

    def _confirm_day_order(self, day_number: int, item_ids: list[str]) -> None:
        """Record an acknowledged reorder in the confirmed snapshot.

        Confirmed items missing from the sent order keep their relative
        position after the ordered ones.
        """
        confirmed = self._confirmed
        if confirmed is None:
            return
        day = confirmed.day(day_number)
        if day is None:
            return

        rank = {item_id: position for position, item_id in enumerate(item_ids)}
        items = sorted(day.items, key=lambda item: rank.get(item.id, len(rank)))
        new_day = day.model_copy(update={"items": renumber_items(items, day_number)})
        days = tuple(new_day if d.number == day_number else d for d in confirmed.days)
        self._confirmed = confirmed.model_copy(update={"days": days})

    def _with_local_days(self, trip: Trip) -> Trip:
        """Carry trailing empty days the server cannot know about onto a server trip."""
        local = self._store.trip
        if local.id != trip.id:
            return trip

        extra = []
        number = max(trip.day_numbers, default=0) + 1
        while (day := local.day(number)) is not None and not day.items:
            extra.append(_empty_day(trip, number))
            number += 1
        if not extra:
            return trip
        return trip.model_copy(update={"days": trip.days + tuple(extra)})

    def _track_pending(self, delta: int) -> None:
        self._pending += delta
        self._metrics.change_pending(delta)

    async def _confirm(
        self,
        operation: str,
        call: Callable[[], Awaitable[Trip]],
        *,
        day_number: int | None = None,
        apply_failure_policy: bool = True,
    ) -> SyncResult:
        ctx = self._context(operation, day_number)
        start = time.monotonic()
        self._track_pending(1)
        try:
            trip = await call()
        except PersistenceError as e:
            elapsed_ms = (time.monotonic() - start) * 1000
            self._metrics.record_latency(operation, "error", elapsed_ms)
            self._metrics.inc_error(operation, "persistence")
            self._logger.log_sync(ctx, "error", elapsed_ms, error_reason=e.message)
            if apply_failure_policy:
                await self._recover(ctx)
            return SyncResult(
                trip=self._store.trip,
                operation=operation,
                mutation_id=ctx.mutation_id,
                error=e.message,
            )
        finally:
            self._track_pending(-1)

        elapsed_ms = (time.monotonic() - start) * 1000
        if not self._accepts(trip):
            self._metrics.record_latency(operation, "stale", elapsed_ms)
            self._logger.log_sync(ctx, "stale", elapsed_ms)
            return SyncResult(
                trip=self._store.trip, operation=operation, mutation_id=ctx.mutation_id
            )

        self._confirmed = trip
        current = self._store.replace(self._with_local_days(trip))
        self._metrics.record_latency(operation, "success", elapsed_ms)
        self._logger.log_sync(ctx, "success", elapsed_ms)
        return SyncResult(trip=current, operation=operation, mutation_id=ctx.mutation_id)

    async def _recover(self, ctx: MutationContext) -> None:
        if self._store.closed:
            return
        if self._failure_policy == "rollback" and self._confirmed is not None:
            logger.info(f"Rolling back {ctx.operation} ({ctx.mutation_id}) to confirmed trip")
            self._store.replace(self._with_local_days(self._confirmed))
        elif self._failure_policy == "refetch":
            await self.refresh(reason="failure")


def _empty_day(trip: Trip, number: int) -> Day:
    return Day(number=number, label=day_label(trip.start_date, number))
