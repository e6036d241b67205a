"""Service-layer helpers for driftwatch."""

from .geo import bearing_deg, drift, haversine_km, wind_components
from .insights import best_tailwind, fastest, rank_insights
from .pipeline import (
    ConstellationPipeline,
    PipelineOptions,
    build_base_records,
    order_records,
)
from .track_assembler import TrackAssembler, assemble_tracks
from .wind_enricher import EnrichmentOutcome, WindEnricher, select_subset

__all__ = [
    "ConstellationPipeline",
    "EnrichmentOutcome",
    "PipelineOptions",
    "TrackAssembler",
    "WindEnricher",
    "assemble_tracks",
    "bearing_deg",
    "best_tailwind",
    "build_base_records",
    "drift",
    "fastest",
    "haversine_km",
    "order_records",
    "rank_insights",
    "select_subset",
    "wind_components",
]
