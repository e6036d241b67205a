"""Diagnostic models reported alongside pipeline output."""

from __future__ import annotations

from typing import Any, Optional

from pydantic import BaseModel, Field


class HourStatus(BaseModel):
    """Outcome of fetching one hourly bucket of the position feed."""

    hour: int = Field(..., ge=0, le=23)
    ok: bool
    status_code: Optional[int] = Field(default=None, description="HTTP status, when one was received")
    rows: int = Field(default=0, description="Raw rows accepted before coercion")
    points: int = Field(default=0, description="Rows that coerced into valid points")
    bytes: Optional[int] = None
    error: Optional[str] = Field(default=None, description="Failure summary for bad hours")


class FetchReport(BaseModel):
    """Aggregate ingestion status across all hourly buckets."""

    attempted_hours: int = 0
    ok_hours: int = 0
    bad_hours: int = 0
    raw_points: int = 0
    kept_points: int = 0
    hour_statuses: list[HourStatus] = Field(default_factory=list)

    @classmethod
    def from_statuses(
        cls, statuses: list[HourStatus], *, raw_points: int, kept_points: int
    ) -> "FetchReport":
        ok_hours = sum(1 for status in statuses if status.ok)
        return cls(
            attempted_hours=len(statuses),
            ok_hours=ok_hours,
            bad_hours=len(statuses) - ok_hours,
            raw_points=raw_points,
            kept_points=kept_points,
            hour_statuses=sorted(statuses, key=lambda status: status.hour),
        )


class EnrichmentReport(BaseModel):
    """Counts and error samples from one wind enrichment pass."""

    attempted: int = 0
    succeeded: int = 0
    empty: int = 0
    failed: int = 0
    subset_strategy: str = "top_by_drift_speed"
    error_samples: list[str] = Field(default_factory=list)


class StageTimings(BaseModel):
    """Wall-clock duration of each pipeline stage in milliseconds."""

    fetch: int = 0
    tracks: int = 0
    enrich: int = 0
    rank: int = 0


class PipelineDiagnostics(BaseModel):
    """Optional diagnostics block; never affects primary output."""

    fetch: FetchReport = Field(default_factory=FetchReport)
    tracks_total: int = 0
    enrichment: EnrichmentReport = Field(default_factory=EnrichmentReport)
    timings_ms: StageTimings = Field(default_factory=StageTimings)
    params: dict[str, Any] = Field(default_factory=dict)
    insights_counts: dict[str, int] = Field(default_factory=dict)
    cache_hit: Optional[bool] = None


__all__ = [
    "EnrichmentReport",
    "FetchReport",
    "HourStatus",
    "PipelineDiagnostics",
    "StageTimings",
]
