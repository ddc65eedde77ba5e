"""Drag-and-drop interaction: gesture events to a single store mutation.

State machine: IDLE -> DRAGGING(active item) -> IDLE. Pointer movement while
dragging is visual only; the store is touched exactly once, at drag end.

Drop resolution, in priority order:
1. item in the same day at a different index -> reorder within the day
2. day container of a different day -> move to that day
3. item in a different day -> move to that item's day, appended at the end
   (not inserted before the target item)
4. anything else (no target, drop on itself) -> no-op
"""

import logging
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from pydantic import ValidationError

from tripsync.models.drag import DayDropData, ItemDragData, parse_drag_data
from tripsync.models.itinerary import Trip
from tripsync.store.itinerary_store import ItineraryStore

logger = logging.getLogger(__name__)

DropTarget = ItemDragData | DayDropData


class DropAction(str, Enum):
    """Store mutation chosen for a drop."""

    REORDER = "reorder"
    MOVE = "move"
    NONE = "none"


@dataclass(frozen=True)
class DropDecision:
    """Resolved drop: which mutation, on what."""

    action: DropAction
    item_id: str | None = None
    from_day: int | None = None
    to_day: int | None = None
    from_index: int | None = None
    to_index: int | None = None
    applied: bool = False

    @classmethod
    def none(cls) -> "DropDecision":
        return cls(action=DropAction.NONE)


def resolve_drop(source: ItemDragData, target: DropTarget | None) -> DropDecision:
    """Decide the single mutation a drop stands for."""
    if target is None:
        return DropDecision.none()

    if isinstance(target, ItemDragData):
        if target.item_id == source.item_id:
            return DropDecision.none()
        if target.day_number == source.day_number:
            if target.index == source.index:
                return DropDecision.none()
            return DropDecision(
                action=DropAction.REORDER,
                item_id=source.item_id,
                from_day=source.day_number,
                to_day=source.day_number,
                from_index=source.index,
                to_index=target.index,
            )

    if target.day_number == source.day_number:
        return DropDecision.none()

    return DropDecision(
        action=DropAction.MOVE,
        item_id=source.item_id,
        from_day=source.day_number,
        to_day=target.day_number,
        from_index=source.index,
    )


class DragPhase(str, Enum):
    """Controller state."""

    IDLE = "idle"
    DRAGGING = "dragging"


def _coerce(data: DropTarget | dict[str, Any] | None) -> DropTarget | None:
    """Normalise a payload; one that cannot be resolved counts as no target."""
    if data is None or isinstance(data, (ItemDragData, DayDropData)):
        return data
    try:
        return parse_drag_data(data)
    except ValidationError:
        logger.debug(f"Unresolvable drag payload treated as no target: {data!r}")
        return None


class DragInteractionController:
    """Turns one drag gesture into at most one store call."""

    def __init__(self, store: ItineraryStore) -> None:
        self._store = store
        self._active: ItemDragData | None = None
        self._over: DropTarget | None = None

    @property
    def phase(self) -> DragPhase:
        return DragPhase.DRAGGING if self._active is not None else DragPhase.IDLE

    @property
    def active(self) -> ItemDragData | None:
        return self._active

    @property
    def over(self) -> DropTarget | None:
        return self._over

    def drag_start(self, source: ItemDragData | dict[str, Any]) -> None:
        """Capture the dragged item and its origin day."""
        parsed = _coerce(source)
        if not isinstance(parsed, ItemDragData):
            logger.debug(f"Ignoring drag start on non-item: {parsed!r}")
            return
        if self._active is not None:
            logger.debug(f"Drag of {self._active.item_id} abandoned by a new drag start")
        self._active = parsed
        self._over = None

    def drag_over(self, target: DropTarget | dict[str, Any] | None) -> DropDecision:
        """Track the hovered target; returns the decision a drop here would make."""
        if self._active is None:
            return DropDecision.none()
        self._over = _coerce(target)
        return resolve_drop(self._active, self._over)

    def drag_end(self, target: DropTarget | dict[str, Any] | None = None) -> DropDecision:
        """Finish the gesture and apply its mutation to the store."""
        source = self._active
        self._active = None
        self._over = None
        if source is None:
            return DropDecision.none()

        decision = resolve_drop(source, _coerce(target))
        before = self._store.trip
        if self._apply(decision) is before:
            return decision
        return replace(decision, applied=True)

    def drag_cancel(self) -> DropDecision:
        """Abort the gesture; nothing is mutated."""
        self._active = None
        self._over = None
        return DropDecision.none()

    def _apply(self, decision: DropDecision) -> Trip:
        if decision.action == DropAction.REORDER:
            assert decision.from_day is not None
            assert decision.from_index is not None and decision.to_index is not None
            return self._store.reorder_within_day(
                decision.from_day, decision.from_index, decision.to_index
            )
        if decision.action == DropAction.MOVE:
            assert decision.item_id is not None
            assert decision.from_day is not None and decision.to_day is not None
            return self._store.move_item_between_days(
                decision.item_id, decision.from_day, decision.to_day
            )
        return self._store.trip
