"""Pydantic models for the driftwatch service."""

from .balloons import (
    BalloonRecord,
    ConstellationResult,
    DriftVector,
    Insights,
    WindComponents,
    WindSample,
)
from .diagnostics import (
    EnrichmentReport,
    FetchReport,
    HourStatus,
    PipelineDiagnostics,
    StageTimings,
)
from .points import Point, Track, TrailPoint

__all__ = [
    "BalloonRecord",
    "ConstellationResult",
    "DriftVector",
    "EnrichmentReport",
    "FetchReport",
    "HourStatus",
    "Insights",
    "PipelineDiagnostics",
    "Point",
    "StageTimings",
    "Track",
    "TrailPoint",
    "WindComponents",
    "WindSample",
]
