"""Notification channel event payloads."""

from pydantic import BaseModel, ConfigDict, Field, field_validator


class TripUpdatedEvent(BaseModel):
    """Server push: some collaborator changed a trip."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    trip_id: str = Field(..., alias="tripId")

    @field_validator("trip_id", mode="before")
    @classmethod
    def coerce_trip_id(cls, v: object) -> object:
        """Servers may send numeric or ObjectId-like ids; compare as strings."""
        if v is None:
            return v
        return str(v)
