"""Persistence adapter for the trip itinerary REST API."""

import logging
from typing import Any
from urllib.parse import quote

import httpx

from tripsync.adapters.mapping import create_item_body, trip_from_payload
from tripsync.config import Settings
from tripsync.errors import PersistenceError
from tripsync.models.itinerary import PlaceCandidate, Trip

logger = logging.getLogger(__name__)


def _segment(value: object) -> str:
    return quote(str(value), safe="")


def _error_message(response: httpx.Response) -> str:
    """Prefer the server's own message over a generic status text."""
    try:
        body = response.json()
    except ValueError:
        body = None
    if isinstance(body, dict):
        message = body.get("message") or body.get("error")
        if isinstance(message, str) and message:
            return message
    return f"Request failed with status code {response.status_code}"


class TripsAPI:
    """Async client for trip itinerary persistence.

    Every trip-returning call yields a fresh Trip snapshot built from the
    server's authoritative state. All failures surface as PersistenceError.
    """

    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize client.

        Args:
            base_url: API root, e.g. http://localhost:5000/api
            token: Bearer token for the authenticated session
            timeout: Per-request timeout in seconds
            client: Optional httpx client (for testing with mocks)
        """
        self._base_url = base_url.rstrip("/")
        self._headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout)

    @classmethod
    def from_settings(
        cls, settings: Settings, client: httpx.AsyncClient | None = None
    ) -> "TripsAPI":
        return cls(
            base_url=settings.api_base_url,
            token=settings.api_token,
            timeout=settings.request_timeout_s,
            client=client,
        )

    async def aclose(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> "TripsAPI":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # Trip reads

    async def get_trip(self, trip_id: str) -> Trip:
        """GET /trips/{tripId}."""
        payload = await self._request("GET", f"/trips/{_segment(trip_id)}")
        return self._to_trip(payload)

    # Item writes

    async def add_item(self, trip_id: str, place: PlaceCandidate, day_number: int) -> Trip:
        """POST /trips/{tripId}/itinerary."""
        payload = await self._request(
            "POST",
            f"/trips/{_segment(trip_id)}/itinerary",
            json=create_item_body(place, day_number),
        )
        return self._to_trip(payload)

    async def update_item(self, trip_id: str, item_id: str, body: dict[str, Any]) -> Trip:
        """PUT /trips/{tripId}/itinerary/{itemId}."""
        payload = await self._request(
            "PUT",
            f"/trips/{_segment(trip_id)}/itinerary/{_segment(item_id)}",
            json=body,
        )
        return self._to_trip(payload)

    async def reorder_items(self, trip_id: str, day_number: int, item_ids: list[str]) -> None:
        """PATCH /trips/{tripId}/itinerary/order; the response body is ignored."""
        await self._request(
            "PATCH",
            f"/trips/{_segment(trip_id)}/itinerary/order",
            json={"day": day_number, "order": item_ids},
        )

    async def delete_item(self, trip_id: str, item_id: str) -> Trip:
        """DELETE /trips/{tripId}/itinerary/{itemId}."""
        payload = await self._request(
            "DELETE", f"/trips/{_segment(trip_id)}/itinerary/{_segment(item_id)}"
        )
        return self._to_trip(payload)

    # Day writes

    async def duplicate_day(self, trip_id: str, source_day: int, dest_day: int) -> Trip:
        """POST /trips/{tripId}/duplicate-day."""
        payload = await self._request(
            "POST",
            f"/trips/{_segment(trip_id)}/duplicate-day",
            json={"sourceDay": source_day, "destDay": dest_day},
        )
        return self._to_trip(payload)

    async def delete_day(self, trip_id: str, day_number: int, renumber: bool) -> Trip:
        """DELETE /trips/{tripId}/day/{dayNumber}."""
        payload = await self._request(
            "DELETE",
            f"/trips/{_segment(trip_id)}/day/{day_number}",
            json={"renumber": renumber},
        )
        return self._to_trip(payload)

    # Internals

    async def _request(
        self, method: str, path: str, json: dict[str, Any] | None = None
    ) -> Any:
        url = f"{self._base_url}{path}"
        try:
            response = await self._client.request(method, url, json=json, headers=self._headers)
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            message = _error_message(e.response)
            logger.warning(f"{method} {path} failed: {e.response.status_code} {message}")
            raise PersistenceError(message, status_code=e.response.status_code) from e
        except httpx.HTTPError as e:
            logger.warning(f"{method} {path} failed: {type(e).__name__}: {e}")
            raise PersistenceError(str(e) or type(e).__name__) from e

        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise PersistenceError("Malformed response from server", response.status_code) from e

    @staticmethod
    def _to_trip(payload: Any) -> Trip:
        try:
            return trip_from_payload(payload)
        except ValueError as e:
            raise PersistenceError(f"Malformed trip response: {e}") from e

