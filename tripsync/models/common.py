"""Common types shared across all models."""

from pydantic import BaseModel, ConfigDict, Field


class Geo(BaseModel):
    """Geographic coordinates (WGS84)."""

    model_config = ConfigDict(frozen=True)

    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
