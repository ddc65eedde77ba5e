"""Itinerary models - trip, days and the items placed on them."""

from datetime import date, timedelta

from pydantic import BaseModel, ConfigDict, Field, model_validator

PROVISIONAL_ID_PREFIX = "temp-"


def day_label(start_date: date | None, day_number: int) -> str:
    """Display label for a day: its calendar date, or a placeholder."""
    if start_date is None:
        return f"Day {day_number}"
    d = start_date + timedelta(days=day_number - 1)
    return f"{d:%A}, {d:%B} {d.day}, {d.year}"


class _Coordinates(BaseModel):
    """Optional coordinate pair; both present or both absent."""

    lat: float | None = Field(None, ge=-90, le=90)
    lng: float | None = Field(None, ge=-180, le=180)

    @model_validator(mode="after")
    def validate_coordinate_pair(self) -> "_Coordinates":
        """Ensure lat and lng are given together."""
        if (self.lat is None) != (self.lng is None):
            raise ValueError("lat and lng must both be present or both absent")
        return self


class PlaceCandidate(_Coordinates):
    """A place picked from search results or recommendations, not yet on a day."""

    name: str = Field(..., min_length=1)
    provider_id: str | None = None
    address: str | None = None
    category: str | None = None
    description: str | None = None
    notes: str | None = None
    cost: float | None = Field(None, ge=0)
    start_time: str | None = None
    end_time: str | None = None


class Item(_Coordinates):
    """Single place/activity entry on a day."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(..., min_length=1)
    name: str
    day: int = Field(..., ge=1)
    order: int = Field(..., ge=0)
    address: str | None = None
    category: str | None = None
    description: str | None = None
    notes: str | None = None
    cost: float | None = Field(None, ge=0)
    start_time: str | None = None
    end_time: str | None = None

    @property
    def provisional(self) -> bool:
        """True while the id is a locally issued placeholder."""
        return self.id.startswith(PROVISIONAL_ID_PREFIX)


# Fields a caller may change through an item edit
EDITABLE_ITEM_FIELDS = frozenset(
    {
        "name",
        "lat",
        "lng",
        "address",
        "category",
        "description",
        "notes",
        "cost",
        "start_time",
        "end_time",
    }
)


class Day(BaseModel):
    """Numbered container of ordered items."""

    model_config = ConfigDict(frozen=True)

    number: int = Field(..., ge=1)
    label: str
    items: tuple[Item, ...] = ()

    def index_of(self, item_id: str) -> int | None:
        for index, item in enumerate(self.items):
            if item.id == item_id:
                return index
        return None


class Trip(BaseModel):
    """Trip aggregate: ordered days of ordered items."""

    model_config = ConfigDict(frozen=True)

    id: str
    title: str = ""
    start_date: date | None = None
    end_date: date | None = None
    days: tuple[Day, ...] = ()

    @property
    def day_numbers(self) -> list[int]:
        return [d.number for d in self.days]

    def day(self, number: int) -> Day | None:
        for d in self.days:
            if d.number == number:
                return d
        return None

    def find_item(self, item_id: str) -> tuple[Day, int] | None:
        """Locate an item anywhere in the trip.

        Returns:
            (owning day, index within day) or None if absent
        """
        for d in self.days:
            index = d.index_of(item_id)
            if index is not None:
                return d, index
        return None

    def item_ids(self) -> set[str]:
        return {item.id for d in self.days for item in d.items}
