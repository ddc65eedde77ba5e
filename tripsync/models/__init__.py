"""Models package - re-exports for convenience."""

from tripsync.models.common import Geo
from tripsync.models.drag import DayDropData, DragData, ItemDragData, parse_drag_data
from tripsync.models.events import TripUpdatedEvent
from tripsync.models.itinerary import (
    EDITABLE_ITEM_FIELDS,
    PROVISIONAL_ID_PREFIX,
    Day,
    Item,
    PlaceCandidate,
    Trip,
    day_label,
)

__all__ = [
    # Common
    "Geo",
    # Itinerary
    "Trip",
    "Day",
    "Item",
    "PlaceCandidate",
    "day_label",
    "EDITABLE_ITEM_FIELDS",
    "PROVISIONAL_ID_PREFIX",
    # Drag
    "ItemDragData",
    "DayDropData",
    "DragData",
    "parse_drag_data",
    # Events
    "TripUpdatedEvent",
]
