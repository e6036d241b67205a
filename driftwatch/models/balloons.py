"""Per-track output records, wind data and ranked insights."""

from __future__ import annotations

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field

from driftwatch.models.diagnostics import PipelineDiagnostics
from driftwatch.models.points import Point, TrailPoint


class DriftVector(BaseModel):
    """Speed and heading estimated from a track's final two points."""

    speed_kmh: float = Field(..., ge=0.0, description="Ground speed in km/h")
    heading_deg: float = Field(
        ..., ge=0.0, lt=360.0, description="Direction of travel, degrees clockwise from north"
    )


class WindSample(BaseModel):
    """Hourly wind observation near a track's last position."""

    wind_speed_kmh: float = Field(..., description="Wind speed at 10 m in km/h")
    wind_direction_deg: float = Field(
        ..., description="Meteorological direction the wind blows from, in degrees"
    )
    source: Optional[Literal["archive", "forecast"]] = Field(
        default=None, description="Which upstream source produced the sample"
    )
    observed_at: Optional[datetime] = Field(
        default=None, description="Timestamp of the hourly sample that was selected (UTC)"
    )


class WindComponents(BaseModel):
    """Wind decomposed relative to the direction of travel."""

    tailwind_kmh: float = Field(..., description="Along-track component, negative for headwind")
    crosswind_kmh: float = Field(
        ..., description="Cross-track component, positive when pushing to the left of travel"
    )
    delta_deg: float = Field(
        ..., ge=0.0, le=180.0, description="Absolute angle between travel and wind motion"
    )


class BalloonRecord(BaseModel):
    """Rendered view of one track, optionally enriched with wind."""

    id: str
    last: Point
    drift: DriftVector
    meteo: Optional[WindSample] = None
    comp: Optional[WindComponents] = None
    trail: list[TrailPoint] = Field(default_factory=list)


class Insights(BaseModel):
    """Ranked subsets derived from the full record set."""

    fastest: list[BalloonRecord] = Field(default_factory=list)
    best_tailwind: list[BalloonRecord] = Field(default_factory=list)


class ConstellationResult(BaseModel):
    """Primary output of a pipeline run."""

    updated_at: datetime
    count: int
    balloons: list[BalloonRecord] = Field(default_factory=list)
    insights: Insights = Field(default_factory=Insights)
    diagnostics: Optional[PipelineDiagnostics] = None


__all__ = [
    "BalloonRecord",
    "ConstellationResult",
    "DriftVector",
    "Insights",
    "WindComponents",
    "WindSample",
]
