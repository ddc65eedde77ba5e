"""Drag-and-drop payload models.

Drag libraries hand over loosely shaped dicts. They are normalised into a
discriminated union on ``kind`` so drop resolution never has to guess.
"""

from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter


class ItemDragData(BaseModel):
    """An item being dragged, or an item under the pointer."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["item"] = "item"
    item_id: str
    day_number: int = Field(..., ge=1)
    index: int = Field(..., ge=0)


class DayDropData(BaseModel):
    """A day container drop zone (used for empty days)."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["day"] = "day"
    day_number: int = Field(..., ge=1)


DragData = Annotated[ItemDragData | DayDropData, Field(discriminator="kind")]

_drag_data_adapter: TypeAdapter[ItemDragData | DayDropData] = TypeAdapter(DragData)


def parse_drag_data(raw: dict[str, Any]) -> ItemDragData | DayDropData:
    """Normalise a raw drag library payload.

    Accepts the typed shape (``{"kind": "item", "item_id", "day_number", "index"}``)
    as well as the sortable-list shape emitted by the UI:
    ``{"type": "place", "place": {"_id": ...}, "dayNumber": 2, "index": 0}`` and
    ``{"type": "day", "dayNumber": 2}``.

    Raises:
        pydantic.ValidationError: If the payload matches neither kind
    """
    if "kind" in raw:
        return _drag_data_adapter.validate_python(raw)

    kind = raw.get("type")
    if kind in ("place", "item"):
        place = raw.get("place") or {}
        return ItemDragData(
            item_id=str(place.get("_id") or place.get("id") or raw.get("id")),
            day_number=raw.get("dayNumber"),
            index=raw.get("index"),
        )
    return _drag_data_adapter.validate_python(
        {"kind": kind, "day_number": raw.get("dayNumber")}
    )
