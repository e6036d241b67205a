"""Sequence fetch, track assembly, drift, wind enrichment and ranking."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import random
import time
from typing import Any, Optional

from driftwatch.config import settings
from driftwatch.domain import DEFAULT_ORDER, ResultOrder
from driftwatch.ingestors.points import PointSource
from driftwatch.ingestors.wind import NullWindProvider, WindProvider
from driftwatch.models.balloons import BalloonRecord, ConstellationResult
from driftwatch.models.diagnostics import FetchReport, PipelineDiagnostics, StageTimings
from driftwatch.models.points import Point, Track
from driftwatch.services.geo import drift
from driftwatch.services.insights import rank_insights
from driftwatch.services.track_assembler import TrackAssembler
from driftwatch.services.wind_enricher import WindEnricher

logger = logging.getLogger("driftwatch.services.pipeline")


@dataclass
class PipelineOptions:
    """Per-run knobs for the constellation pipeline."""

    enable_wind_enrichment: bool = True
    meteo_cap: int = 40
    max_points_per_hour: Optional[int] = None
    result_cap: Optional[int] = None
    order: ResultOrder = DEFAULT_ORDER
    seed: Optional[int] = None
    include_diagnostics: bool = False

    def __post_init__(self) -> None:
        self.meteo_cap = max(0, int(self.meteo_cap))
        if self.max_points_per_hour is not None and self.max_points_per_hour <= 0:
            self.max_points_per_hour = None
        if self.result_cap is not None and self.result_cap <= 0:
            self.result_cap = None
        self.order = ResultOrder(self.order)

    def as_params(self) -> dict[str, Any]:
        return {
            "enable_wind_enrichment": self.enable_wind_enrichment,
            "meteo_cap": self.meteo_cap,
            "max_points_per_hour": self.max_points_per_hour,
            "result_cap": self.result_cap,
            "order": self.order.value,
            "seed": self.seed,
        }

    @classmethod
    def from_settings(cls, **overrides: Any) -> "PipelineOptions":
        values: dict[str, Any] = {
            "enable_wind_enrichment": settings.enable_wind_enrichment,
            "meteo_cap": settings.default_meteo_cap,
            "max_points_per_hour": settings.max_rows_per_hour,
        }
        values.update(overrides)
        return cls(**values)


def build_base_records(tracks: list[Track]) -> list[BalloonRecord]:
    """One record per track with drift filled in and wind left empty."""

    return [
        BalloonRecord(
            id=track.id,
            last=track.last,
            drift=drift(track.points),
            trail=track.trail(),
        )
        for track in tracks
    ]


def order_records(
    records: list[BalloonRecord], order: ResultOrder, seed: Optional[int] = None
) -> list[BalloonRecord]:
    if order is ResultOrder.FASTEST:
        return sorted(records, key=lambda record: -record.drift.speed_kmh)
    if order is ResultOrder.RECENT:
        return sorted(records, key=lambda record: -record.last.timestamp_ms)
    shuffled = list(records)
    random.Random(seed).shuffle(shuffled)
    return shuffled


def _elapsed_ms(started: float) -> int:
    return int((time.perf_counter() - started) * 1000)


class ConstellationPipeline:
    """Run the full constellation computation once per call.

    Each run is independent. The only state that outlives a run is whatever
    the wind provider caches.
    """

    def __init__(
        self,
        point_source: PointSource,
        wind_provider: WindProvider | None = None,
        *,
        assembler: TrackAssembler | None = None,
        wind_max_concurrency: int | None = None,
    ) -> None:
        self.point_source = point_source
        self.wind_provider = wind_provider or NullWindProvider()
        self.assembler = assembler or TrackAssembler()
        self.wind_max_concurrency = wind_max_concurrency

    async def run(self, options: PipelineOptions | None = None) -> ConstellationResult:
        options = options or PipelineOptions()
        timings = StageTimings()

        started = time.perf_counter()
        points, fetch_report = await self._fetch(options)
        timings.fetch = _elapsed_ms(started)

        started = time.perf_counter()
        tracks = self.assembler.assemble(points)
        base = build_base_records(tracks)
        timings.tracks = _elapsed_ms(started)

        started = time.perf_counter()
        if options.enable_wind_enrichment:
            provider, meteo_cap = self.wind_provider, options.meteo_cap
        else:
            provider, meteo_cap = NullWindProvider(), 0
        enricher = WindEnricher(provider, max_concurrency=self.wind_max_concurrency)
        outcome = await enricher.enrich(base, meteo_cap=meteo_cap)
        timings.enrich = _elapsed_ms(started)

        started = time.perf_counter()
        insights = rank_insights(outcome.records)
        balloons = order_records(outcome.records, options.order, options.seed)
        if options.result_cap is not None:
            balloons = balloons[: options.result_cap]
        timings.rank = _elapsed_ms(started)

        result = ConstellationResult(
            updated_at=datetime.now(tz=timezone.utc),
            count=len(balloons),
            balloons=balloons,
            insights=insights,
        )

        if options.include_diagnostics:
            result.diagnostics = PipelineDiagnostics(
                fetch=fetch_report,
                tracks_total=len(tracks),
                enrichment=outcome.report,
                timings_ms=timings,
                params=options.as_params(),
                insights_counts={
                    "fastest": len(insights.fastest),
                    "best_tailwind": len(insights.best_tailwind),
                },
            )

        logger.info(
            "Constellation run: points=%s tracks=%s enriched=%s returned=%s (%s ms)",
            len(points),
            len(tracks),
            outcome.report.succeeded,
            len(balloons),
            timings.fetch + timings.tracks + timings.enrich + timings.rank,
        )
        return result

    async def _fetch(self, options: PipelineOptions) -> tuple[list[Point], FetchReport]:
        try:
            return await self.point_source.fetch_recent(
                max_rows_per_hour=options.max_points_per_hour
            )
        except Exception as exc:
            # total feed failure yields an empty constellation
            logger.error("Position feed unavailable: %s", exc)
            return [], FetchReport()


__all__ = [
    "ConstellationPipeline",
    "PipelineOptions",
    "build_base_records",
    "order_records",
]
