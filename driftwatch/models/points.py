"""Position points and reconstructed tracks."""

from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class Point(BaseModel):
    """Normalized position report taken from one hourly bucket of the feed."""

    lat: float = Field(..., ge=-90.0, le=90.0, description="Latitude in decimal degrees")
    lon: float = Field(..., ge=-180.0, le=180.0, description="Longitude in decimal degrees")
    timestamp_ms: int = Field(..., description="Observation time, milliseconds since epoch")
    hour_bucket: int = Field(
        ..., ge=0, le=23, description="Feed bucket, 0 = most recent hour, 23 = oldest"
    )
    source_id: Optional[str] = Field(
        default=None, description="Identifier reported by the feed, if any"
    )
    altitude_km: Optional[float] = Field(default=None, description="Altitude in kilometers")

    model_config = ConfigDict(frozen=True)


class TrailPoint(BaseModel):
    """Compact trail entry used for rendering a track."""

    lat: float
    lon: float
    timestamp_ms: int


class Track(BaseModel):
    """Reconstructed trajectory of one object across hourly buckets."""

    id: str = Field(..., description="Sequential track identifier, e.g. trk:1")
    points: list[Point] = Field(
        ..., min_length=2, description="Points ordered by ascending timestamp"
    )

    @property
    def last(self) -> Point:
        return self.points[-1]

    def trail(self) -> list[TrailPoint]:
        return [
            TrailPoint(lat=p.lat, lon=p.lon, timestamp_ms=p.timestamp_ms)
            for p in self.points
        ]


__all__ = ["Point", "Track", "TrailPoint"]
