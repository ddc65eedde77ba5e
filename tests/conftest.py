"""Shared pytest fixtures for all test suites."""

import json
from collections.abc import Callable
from datetime import date
from typing import Any

import httpx
import pytest

from tripsync.errors import ChannelError
from tripsync.models.itinerary import Day, Item, Trip, day_label

API_BASE = "http://testserver/api"


def build_trip(
    days: list[list[str]],
    *,
    trip_id: str = "trip-1",
    start_date: date | None = None,
) -> Trip:
    """Build a snapshot from item names per day; ids are lowercased names."""
    built = []
    for number, names in enumerate(days, start=1):
        items = tuple(
            Item(
                id=name.lower(),
                name=name,
                day=number,
                order=order,
                lat=10.0 + order,
                lng=20.0 + number,
                notes=f"notes for {name}",
                cost=12.5,
            )
            for order, name in enumerate(names)
        )
        built.append(Day(number=number, label=day_label(start_date, number), items=items))
    return Trip(id=trip_id, title="Oahu trip", start_date=start_date, days=tuple(built))


@pytest.fixture
def make_trip() -> Callable[..., Trip]:
    """Factory fixture: make_trip([["A", "B"], []]) -> Trip."""
    return build_trip


class FakeTripServer:
    """In-memory itinerary backend served through httpx.MockTransport.

    Stores a trip the way the real backend does: one flat itinerary list whose
    entries carry their day number and order.
    """

    def __init__(self, trip_id: str = "trip-1", start_date: str | None = "2024-03-07") -> None:
        self.trip: dict[str, Any] = {
            "_id": trip_id,
            "title": "Oahu trip with friends",
            "startDate": start_date,
            "endDate": None,
            "itinerary": [],
        }
        self.requests: list[httpx.Request] = []
        self._failures: list[tuple[str, str, int, str]] = []
        self._next_id = 1

    # Setup helpers

    def seed(self, day: int, *titles: str) -> list[str]:
        """Add items directly to server state; returns their ids."""
        ids = []
        for title in titles:
            ids.append(self._append(day, {"title": title, "lat": 21.3, "lng": -157.8}))
        return ids

    def fail(self, method: str, path_suffix: str, status: int = 500, message: str = "") -> None:
        """Make the next matching request fail with the given status."""
        self._failures.append((method, path_suffix, status, message))

    def items_for_day(self, day: int) -> list[dict[str, Any]]:
        entries = [e for e in self.trip["itinerary"] if e["day"] == day]
        return sorted(entries, key=lambda e: e["order"])

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    # Request handling

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        path = request.url.path.removeprefix("/api")

        for failure in list(self._failures):
            method, suffix, status, message = failure
            if request.method == method and path.endswith(suffix):
                self._failures.remove(failure)
                body = {"success": False, "message": message} if message else {}
                return httpx.Response(status, json=body)

        parts = path.strip("/").split("/")
        if len(parts) < 2 or parts[0] != "trips" or parts[1] != self.trip["_id"]:
            return httpx.Response(404, json={"success": False, "message": "Trip not found"})

        body = json.loads(request.content) if request.content else {}
        rest = parts[2:]

        if request.method == "GET" and not rest:
            return self._ok()
        if rest == ["itinerary"] and request.method == "POST":
            entry = {k: v for k, v in body.items() if k != "day"}
            self._append(int(body.get("day") or 1), entry)
            return self._ok()
        if rest == ["itinerary", "order"] and request.method == "PATCH":
            for order, item_id in enumerate(body["order"]):
                self._entry(item_id)["order"] = order
            return httpx.Response(204)
        if len(rest) == 2 and rest[0] == "itinerary" and request.method == "PUT":
            return self._update(rest[1], body)
        if len(rest) == 2 and rest[0] == "itinerary" and request.method == "DELETE":
            entry = self._entry(rest[1])
            self.trip["itinerary"].remove(entry)
            self._compact(entry["day"])
            return self._ok()
        if rest == ["duplicate-day"] and request.method == "POST":
            for entry in self.items_for_day(body["sourceDay"]):
                copy = {k: v for k, v in entry.items() if k not in ("_id", "day", "order")}
                self._append(body["destDay"], copy)
            return self._ok()
        if len(rest) == 2 and rest[0] == "day" and request.method == "DELETE":
            return self._delete_day(int(rest[1]), bool(body.get("renumber", True)))

        return httpx.Response(404, json={"success": False, "message": "Route not found"})

    def _ok(self) -> httpx.Response:
        return httpx.Response(200, json={"success": True, "data": self.trip})

    def _append(self, day: int, fields: dict[str, Any]) -> str:
        item_id = f"srv-{self._next_id}"
        self._next_id += 1
        entry = {"_id": item_id, **fields, "day": day, "order": len(self.items_for_day(day))}
        self.trip["itinerary"].append(entry)
        return item_id

    def _entry(self, item_id: str) -> dict[str, Any]:
        for entry in self.trip["itinerary"]:
            if entry["_id"] == item_id:
                return entry
        raise KeyError(item_id)

    def _compact(self, day: int) -> None:
        for order, entry in enumerate(self.items_for_day(day)):
            entry["order"] = order

    def _update(self, item_id: str, body: dict[str, Any]) -> httpx.Response:
        try:
            entry = self._entry(item_id)
        except KeyError:
            return httpx.Response(404, json={"success": False, "message": "Item not found"})
        old_day = entry["day"]
        entry.update({k: v for k, v in body.items() if k not in ("day", "order")})
        if "day" in body and body["day"] != old_day:
            new_order = len(self.items_for_day(body["day"]))
            entry["day"] = body["day"]
            entry["order"] = new_order
            self._compact(old_day)
            self._compact(body["day"])
        return self._ok()

    def _delete_day(self, day: int, renumber: bool) -> httpx.Response:
        self.trip["itinerary"] = [e for e in self.trip["itinerary"] if e["day"] != day]
        if renumber:
            for entry in self.trip["itinerary"]:
                if entry["day"] > day:
                    entry["day"] -= 1
        return self._ok()


@pytest.fixture
def fake_server() -> FakeTripServer:
    return FakeTripServer()


class FakeChannel:
    """In-memory NotificationChannel recording emits and delivering events."""

    def __init__(self, connected: bool = True) -> None:
        self._connected = connected
        self.emitted: list[tuple[str, Any]] = []
        self.handlers: dict[str, list[Callable[..., Any]]] = {}
        self.fail_emits = False

    @property
    def connected(self) -> bool:
        return self._connected

    async def emit(self, event: str, data: Any) -> None:
        if not self._connected or self.fail_emits:
            raise ChannelError(f"Cannot emit {event}")
        self.emitted.append((event, data))

    def on(self, event: str, handler: Callable[..., Any]) -> None:
        handlers = self.handlers.setdefault(event, [])
        if handler not in handlers:
            handlers.append(handler)

    def off(self, event: str, handler: Callable[..., Any]) -> None:
        if handler in self.handlers.get(event, []):
            self.handlers[event].remove(handler)

    async def deliver(self, event: str, *args: Any) -> None:
        """Simulate the server pushing an event."""
        for handler in list(self.handlers.get(event, [])):
            await handler(*args)

    async def drop(self) -> None:
        self._connected = False
        await self.deliver("disconnect")

    async def reconnect(self) -> None:
        self._connected = True
        await self.deliver("connect")


@pytest.fixture
def fake_channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def offline_channel() -> FakeChannel:
    return FakeChannel(connected=False)
