"""In-memory itinerary store: pure, synchronous trip mutations.

Every operation returns the full updated Trip snapshot and installs it as the
current one. Snapshots are immutable: an operation builds new Day/Item records
only for the day(s) it touches, so untouched days (and unchanged items) keep
their identity, and a no-op returns the very same snapshot object.

Invalid references (unknown day, unknown item, out-of-range index) are silent
no-ops rather than errors; the caller is responsible for passing references
taken from the current snapshot.
"""

import logging
import uuid
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from tripsync.models.itinerary import (
    EDITABLE_ITEM_FIELDS,
    PROVISIONAL_ID_PREFIX,
    Day,
    Item,
    PlaceCandidate,
    Trip,
    day_label,
)

logger = logging.getLogger(__name__)


def provisional_id() -> str:
    """Issue a placeholder id for an item the server has not confirmed yet."""
    return f"{PROVISIONAL_ID_PREFIX}{uuid.uuid4().hex}"


def renumber_items(items: Iterable[Item], day_number: int) -> tuple[Item, ...]:
    """Re-derive dense 0..n-1 order (and owning day) for a day's items.

    Items already carrying the right order and day are reused as-is.
    """
    result = []
    for index, item in enumerate(items):
        if item.order == index and item.day == day_number:
            result.append(item)
        else:
            result.append(item.model_copy(update={"order": index, "day": day_number}))
    return tuple(result)


class ItineraryStore:
    """Authoritative in-memory copy of one trip while its view is open."""

    def __init__(
        self,
        trip: Trip,
        *,
        renumber_days_on_remove: bool = True,
        id_factory: Callable[[], str] | None = None,
    ) -> None:
        """Initialize store.

        Args:
            trip: Initial snapshot (usually the server-loaded trip)
            renumber_days_on_remove: Default for remove_day when the caller
                does not choose explicitly
            id_factory: Provisional id generator (injectable for tests)
        """
        self._trip = trip
        self._renumber_default = renumber_days_on_remove
        self._new_id = id_factory or provisional_id
        self._closed = False

    @property
    def trip(self) -> Trip:
        return self._trip

    @property
    def trip_id(self) -> str:
        return self._trip.id

    @property
    def renumber_days_on_remove(self) -> bool:
        return self._renumber_default

    @property
    def closed(self) -> bool:
        return self._closed

    def close(self) -> None:
        """Mark the owning view as gone; late server responses must be dropped."""
        self._closed = True

    def replace(self, trip: Trip) -> Trip:
        """Replace the whole snapshot (server confirmation or remote refetch)."""
        return self._commit(trip)

    # Item operations

    def add_item_to_day(self, place: PlaceCandidate, day_number: int) -> Trip:
        """Append a new item built from a place to the end of a day."""
        trip = self._trip
        day = trip.day(day_number)
        if day is None:
            logger.debug(f"add_item_to_day: day {day_number} not found, skipping")
            return trip

        item_id = place.provider_id
        if not item_id or item_id in trip.item_ids():
            item_id = self._new_id()

        item = Item(
            id=item_id,
            name=place.name,
            day=day_number,
            order=len(day.items),
            lat=place.lat,
            lng=place.lng,
            address=place.address,
            category=place.category,
            description=place.description,
            notes=place.notes,
            cost=place.cost,
            start_time=place.start_time,
            end_time=place.end_time,
        )
        new_day = day.model_copy(update={"items": day.items + (item,)})
        return self._commit(self._with_days(trip, {day_number: new_day}))

    def remove_item_from_day(self, item_id: str, day_number: int) -> Trip:
        """Delete an item from a day and close the gap in its order."""
        trip = self._trip
        day = trip.day(day_number)
        if day is None or day.index_of(item_id) is None:
            logger.debug(f"remove_item_from_day: {item_id} not in day {day_number}, skipping")
            return trip

        remaining = [item for item in day.items if item.id != item_id]
        new_day = day.model_copy(update={"items": renumber_items(remaining, day_number)})
        return self._commit(self._with_days(trip, {day_number: new_day}))

    def reorder_within_day(self, day_number: int, from_index: int, to_index: int) -> Trip:
        """Move the item at from_index to to_index (extract, then insert)."""
        trip = self._trip
        day = trip.day(day_number)
        if day is None:
            return trip

        count = len(day.items)
        if from_index == to_index or not (0 <= from_index < count and 0 <= to_index < count):
            return trip

        items = list(day.items)
        moved = items.pop(from_index)
        items.insert(to_index, moved)
        new_day = day.model_copy(update={"items": renumber_items(items, day_number)})
        return self._commit(self._with_days(trip, {day_number: new_day}))

    def move_item_between_days(self, item_id: str, from_day: int, to_day: int) -> Trip:
        """Move an item from one day to the end of another, as one step."""
        trip = self._trip
        if from_day == to_day:
            return trip

        source = trip.day(from_day)
        dest = trip.day(to_day)
        if source is None or dest is None:
            logger.debug(f"move_item_between_days: day {from_day} or {to_day} not found")
            return trip

        index = source.index_of(item_id)
        if index is None:
            return trip

        moved = source.items[index]
        remaining = source.items[:index] + source.items[index + 1 :]
        new_source = source.model_copy(update={"items": renumber_items(remaining, from_day)})
        new_dest = dest.model_copy(
            update={"items": renumber_items(dest.items + (moved,), to_day)}
        )
        return self._commit(self._with_days(trip, {from_day: new_source, to_day: new_dest}))

    def update_item(self, item_id: str, changes: Mapping[str, Any]) -> Trip:
        """Edit descriptive fields of an item in place of its old record.

        Raises:
            ValueError: If changes name a field that is not editable
            pydantic.ValidationError: If the edited item is invalid
        """
        unknown = set(changes) - EDITABLE_ITEM_FIELDS
        if unknown:
            raise ValueError(f"Fields not editable: {sorted(unknown)}")

        trip = self._trip
        found = trip.find_item(item_id)
        if found is None or not changes:
            return trip

        day, index = found
        edited = Item.model_validate({**day.items[index].model_dump(), **changes})
        items = day.items[:index] + (edited,) + day.items[index + 1 :]
        new_day = day.model_copy(update={"items": items})
        return self._commit(self._with_days(trip, {day.number: new_day}))

    # Day operations

    def add_day(self) -> Trip:
        """Append an empty day numbered one past the current maximum."""
        trip = self._trip
        number = max(trip.day_numbers, default=0) + 1
        new_day = Day(number=number, label=day_label(trip.start_date, number))
        return self._commit(trip.model_copy(update={"days": trip.days + (new_day,)}))

    def remove_day(self, day_number: int, renumber: bool | None = None) -> Trip:
        """Delete a day and its items; never removes the last remaining day.

        Args:
            day_number: Day to delete
            renumber: Shift later days down by one to keep numbering
                contiguous (None = store default)
        """
        trip = self._trip
        if len(trip.days) <= 1 or trip.day(day_number) is None:
            logger.debug(f"remove_day: refusing to remove day {day_number}")
            return trip

        if renumber is None:
            renumber = self._renumber_default

        days = []
        for day in trip.days:
            if day.number == day_number:
                continue
            if renumber and day.number > day_number:
                number = day.number - 1
                day = Day(
                    number=number,
                    label=day_label(trip.start_date, number),
                    items=renumber_items(day.items, number),
                )
            days.append(day)
        return self._commit(trip.model_copy(update={"days": tuple(days)}))

    def duplicate_day(self, source_day: int, dest_day: int) -> Trip:
        """Copy a day's items (with fresh ids) onto the end of another day.

        Days missing up to dest_day are created first.
        """
        trip = self._trip
        source = trip.day(source_day)
        if source is None or dest_day < 1:
            return trip

        last = max(trip.day_numbers, default=0)
        if dest_day <= last and trip.day(dest_day) is None:
            # Gap left by a non-renumbering day removal
            logger.debug(f"duplicate_day: day {dest_day} not found, skipping")
            return trip

        days = list(trip.days)
        for number in range(last + 1, dest_day + 1):
            days.append(Day(number=number, label=day_label(trip.start_date, number)))

        copies = [item.model_copy(update={"id": self._new_id()}) for item in source.items]
        for position, day in enumerate(days):
            if day.number == dest_day:
                days[position] = day.model_copy(
                    update={"items": renumber_items(day.items + tuple(copies), dest_day)}
                )
                break
        return self._commit(trip.model_copy(update={"days": tuple(days)}))

    # Internals

    @staticmethod
    def _with_days(trip: Trip, replacements: dict[int, Day]) -> Trip:
        days = tuple(replacements.get(d.number, d) for d in trip.days)
        return trip.model_copy(update={"days": days})

    def _commit(self, trip: Trip) -> Trip:
        self._trip = trip
        return trip
