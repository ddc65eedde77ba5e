"""Tests for itinerary, drag and event models."""

from datetime import date

import pytest
from pydantic import ValidationError

from tripsync.models import (
    DayDropData,
    Geo,
    Item,
    ItemDragData,
    PlaceCandidate,
    TripUpdatedEvent,
    day_label,
    parse_drag_data,
)


def test_coordinates_must_come_in_pairs() -> None:
    """Test that a lone lat or lng is rejected."""
    with pytest.raises(ValidationError, match="both be present"):
        PlaceCandidate(name="Diamond Head", lat=21.26)

    with pytest.raises(ValidationError):
        Item(id="x", name="Diamond Head", day=1, order=0, lng=-157.8)


def test_coordinates_are_bounded() -> None:
    """Test that out-of-range coordinates are rejected."""
    with pytest.raises(ValidationError):
        PlaceCandidate(name="Nowhere", lat=91, lng=0)


def test_geo_is_bounded() -> None:
    """Test that Geo rejects impossible coordinates."""
    assert Geo(lat=21.27, lng=-157.69).lng == -157.69
    with pytest.raises(ValidationError):
        Geo(lat=21.27, lng=181)


def test_place_requires_name() -> None:
    """Test that an empty place name is rejected."""
    with pytest.raises(ValidationError):
        PlaceCandidate(name="")


def test_item_is_frozen() -> None:
    """Test that items cannot be mutated in place."""
    item = Item(id="a", name="A", day=1, order=0)
    with pytest.raises(ValidationError):
        item.order = 3


def test_item_provisional_flag() -> None:
    """Test that locally issued ids are reported as provisional."""
    assert Item(id="temp-123", name="A", day=1, order=0).provisional is True
    assert Item(id="65f0c0ffee", name="A", day=1, order=0).provisional is False


def test_day_label_formats_calendar_date() -> None:
    """Test that day labels come from the trip start date."""
    start = date(2024, 3, 7)
    assert day_label(start, 1) == "Thursday, March 7, 2024"
    assert day_label(start, 26) == "Monday, April 1, 2024"


def test_day_label_placeholder_without_start_date() -> None:
    """Test that days of undated trips get a numbered placeholder."""
    assert day_label(None, 3) == "Day 3"


def test_parse_typed_item_drag_data() -> None:
    """Test that the typed drag payload is parsed into ItemDragData."""
    data = parse_drag_data({"kind": "item", "item_id": "a", "day_number": 2, "index": 1})

    assert isinstance(data, ItemDragData)
    assert data.item_id == "a"
    assert data.day_number == 2
    assert data.index == 1


def test_parse_sortable_place_payload() -> None:
    """Test that the UI's sortable-list place payload is normalised."""
    data = parse_drag_data(
        {"type": "place", "place": {"_id": "65f0", "title": "Waikiki"}, "dayNumber": 1, "index": 3}
    )

    assert data == ItemDragData(item_id="65f0", day_number=1, index=3)


def test_parse_day_container_payload() -> None:
    """Test that day drop zones are parsed into DayDropData."""
    assert parse_drag_data({"type": "day", "dayNumber": 4}) == DayDropData(day_number=4)
    assert parse_drag_data({"kind": "day", "day_number": 2}) == DayDropData(day_number=2)


@pytest.mark.parametrize(
    "raw",
    [
        {"type": "column", "dayNumber": 1},
        {"type": "day"},
        {"type": "place", "place": {"_id": "a"}, "dayNumber": 0, "index": 0},
        {"kind": "item", "item_id": "a", "day_number": 1},
    ],
)
def test_parse_rejects_malformed_payloads(raw: dict) -> None:
    """Test that payloads matching neither kind raise ValidationError."""
    with pytest.raises(ValidationError):
        parse_drag_data(raw)


def test_trip_updated_event_accepts_wire_alias() -> None:
    """Test that the event is read from the server's camelCase payload."""
    event = TripUpdatedEvent.model_validate({"tripId": "trip-1", "by": "someone"})
    assert event.trip_id == "trip-1"


def test_trip_updated_event_coerces_numeric_id() -> None:
    """Test that numeric trip ids compare as strings."""
    assert TripUpdatedEvent.model_validate({"tripId": 42}).trip_id == "42"


def test_trip_updated_event_requires_trip_id() -> None:
    """Test that payloads without a trip id are rejected."""
    with pytest.raises(ValidationError):
        TripUpdatedEvent.model_validate({"something": "else"})
    with pytest.raises(ValidationError):
        TripUpdatedEvent.model_validate(None)
