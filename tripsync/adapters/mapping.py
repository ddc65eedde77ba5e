"""Wire mapping between the itinerary API's JSON and Trip snapshots.

The server stores a trip's itinerary as one flat list of items, each tagged
with its day number and order. Snapshots group them into contiguous days.
"""

from collections import defaultdict
from collections.abc import Mapping
from datetime import date
from typing import Any

from pydantic import ValidationError

from tripsync.models.common import Geo
from tripsync.models.itinerary import Day, Item, PlaceCandidate, Trip, day_label

# Item field name -> API field name
_API_FIELD_NAMES = {
    "name": "title",
    "address": "location",
    "category": "type",
    "description": "description",
    "notes": "notes",
    "cost": "cost",
    "lat": "lat",
    "lng": "lng",
    "start_time": "startTime",
    "end_time": "endTime",
}


def unwrap_envelope(payload: Any) -> Any:
    """Strip the optional ``{"success": ..., "data": ...}`` response envelope."""
    if isinstance(payload, dict) and isinstance(payload.get("data"), dict):
        return payload["data"]
    return payload


def _parse_date(value: Any) -> date | None:
    if not value:
        return None
    try:
        # Accepts plain dates and ISO timestamps ("2024-03-07T00:00:00.000Z")
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _day_count(raw_items: list[dict[str, Any]], start: date | None, end: date | None) -> int:
    """Number of days: highest item day, inclusive date span, or 1."""
    max_item_day = max((int(raw.get("day") or 1) for raw in raw_items), default=1)
    span = (end - start).days + 1 if start and end and end >= start else 0
    return max(max_item_day, span, 1)


def _geo(raw: Mapping[str, Any]) -> Geo | None:
    """Location of an entry; incomplete or out-of-range pairs count as none."""
    lat, lng = raw.get("lat"), raw.get("lng")
    if lat is None or lng is None:
        return None
    try:
        return Geo(lat=lat, lng=lng)
    except ValidationError:
        return None


def item_from_payload(raw: Mapping[str, Any], day_number: int, order: int) -> Item:
    """Build an Item from one server itinerary entry."""
    geo = _geo(raw)

    return Item(
        id=str(raw.get("_id") or raw.get("id")),
        name=raw.get("title") or raw.get("name") or "",
        day=day_number,
        order=order,
        lat=geo.lat if geo else None,
        lng=geo.lng if geo else None,
        address=raw.get("location") or raw.get("address"),
        category=raw.get("type") or raw.get("category"),
        description=raw.get("description"),
        notes=raw.get("notes"),
        cost=raw.get("cost"),
        start_time=raw.get("startTime"),
        end_time=raw.get("endTime"),
    )


def trip_from_payload(payload: Any) -> Trip:
    """Build a Trip snapshot from a (possibly enveloped) trip response.

    Items are grouped by day and sorted by their server order; equal orders
    keep server list order. Orders are re-derived densely.

    Raises:
        ValueError: If the payload is not a trip object
        pydantic.ValidationError: If an entry is invalid
    """
    data = unwrap_envelope(payload)
    if not isinstance(data, dict) or not (data.get("_id") or data.get("id")):
        raise ValueError("Response is not a trip object")

    start = _parse_date(data.get("startDate"))
    end = _parse_date(data.get("endDate"))
    raw_items = [raw for raw in data.get("itinerary") or [] if isinstance(raw, dict)]

    grouped: dict[int, list[dict[str, Any]]] = defaultdict(list)
    for raw in raw_items:
        grouped[int(raw.get("day") or 1)].append(raw)

    days = []
    for number in range(1, _day_count(raw_items, start, end) + 1):
        entries = sorted(grouped.get(number, []), key=lambda raw: raw.get("order") or 0)
        items = tuple(item_from_payload(raw, number, order) for order, raw in enumerate(entries))
        days.append(Day(number=number, label=day_label(start, number), items=items))

    return Trip(
        id=str(data.get("_id") or data.get("id")),
        title=data.get("title") or "",
        start_date=start,
        end_date=end,
        days=tuple(days),
    )


def _api_fields(values: Mapping[str, Any], keep_none: bool = False) -> dict[str, Any]:
    return {
        _API_FIELD_NAMES[name]: value
        for name, value in values.items()
        if name in _API_FIELD_NAMES and (keep_none or value is not None)
    }


def create_item_body(place: PlaceCandidate, day_number: int) -> dict[str, Any]:
    """Request body for POST /trips/{id}/itinerary."""
    body = _api_fields(place.model_dump(exclude={"provider_id", "description", "category"}))
    body["day"] = day_number
    return body


def update_item_body(changes: Mapping[str, Any]) -> dict[str, Any]:
    """Request body for PUT /trips/{id}/itinerary/{itemId} (field edits).

    None values are sent as null so a field can be cleared.
    """
    return _api_fields(changes, keep_none=True)


def move_item_body(item: Item) -> dict[str, Any]:
    """Request body for PUT /trips/{id}/itinerary/{itemId} after a cross-day move."""
    return {"day": item.day, "order": item.order}
