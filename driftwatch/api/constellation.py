"""Constellation endpoint serving reconstructed tracks and insights."""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response

from driftwatch.cache import MISS, TTLCache
from driftwatch.config import settings
from driftwatch.domain import DEFAULT_ORDER, ResultOrder
from driftwatch.ingestors import OpenMeteoWindProvider, TreasureIngestor
from driftwatch.models import ConstellationResult
from driftwatch.services import ConstellationPipeline, PipelineOptions

router = APIRouter(prefix="/api/v1", tags=["constellation"])

logger = logging.getLogger("driftwatch.constellation")

DEBUG_MAX_ROWS_PER_HOUR = 200

_response_cache: TTLCache[ConstellationResult] = TTLCache(
    settings.result_cache_ttl_seconds, max_entries=64
)
_default_pipeline: ConstellationPipeline | None = None


def get_pipeline(request: Request) -> ConstellationPipeline:
    """Return the pipeline wired at startup, or a standalone one."""

    pipeline = getattr(request.app.state, "pipeline", None)
    if pipeline is not None:
        return pipeline

    global _default_pipeline
    if _default_pipeline is None:
        _default_pipeline = ConstellationPipeline(
            TreasureIngestor(),
            OpenMeteoWindProvider(cache=TTLCache(settings.wind_cache_ttl_seconds)),
        )
    return _default_pipeline


def get_response_cache() -> TTLCache[ConstellationResult]:
    return _response_cache


@router.get(
    "/constellation",
    response_model=ConstellationResult,
    summary="Reconstructed balloon tracks with drift, wind and insights",
)
async def get_constellation(
    response: Response,
    no_meteo: bool = Query(default=False, description="Skip wind enrichment entirely"),
    meteo_cap: Optional[int] = Query(
        default=None, ge=0, description="Maximum number of records to enrich with wind"
    ),
    max_rows_per_hour: Optional[int] = Query(
        default=None, ge=1, description="Truncate each hourly feed snapshot"
    ),
    result_cap: Optional[int] = Query(
        default=None, ge=1, description="Maximum number of balloons returned"
    ),
    order: ResultOrder = Query(default=DEFAULT_ORDER, description="Ordering of balloons"),
    seed: Optional[int] = Query(default=None, description="Seed for random ordering"),
    debug: bool = Query(default=False, description="Include pipeline diagnostics"),
    pipeline: ConstellationPipeline = Depends(get_pipeline),
    cache: TTLCache[ConstellationResult] = Depends(get_response_cache),
) -> ConstellationResult:
    """Run (or reuse) the constellation pipeline for the given parameters."""

    if max_rows_per_hour is None and debug:
        max_rows_per_hour = DEBUG_MAX_ROWS_PER_HOUR

    options = PipelineOptions.from_settings(
        meteo_cap=settings.default_meteo_cap if meteo_cap is None else meteo_cap,
        max_points_per_hour=max_rows_per_hour,
        result_cap=result_cap,
        order=order,
        seed=seed,
        include_diagnostics=debug,
    )
    if no_meteo:
        options.enable_wind_enrichment = False

    cache_key = (debug, *sorted(options.as_params().items()))
    cached = cache.get(cache_key)
    if cached is not MISS:
        logger.debug("Serving cached constellation for %s", cache_key)
        result = cached.model_copy()
        if result.diagnostics is not None:
            result.diagnostics = result.diagnostics.model_copy(update={"cache_hit": True})
    else:
        result = await pipeline.run(options)
        if result.diagnostics is not None:
            result.diagnostics.cache_hit = False
        cache.set(cache_key, result)

    response.headers["Cache-Control"] = f"public, max-age={settings.cache_control_max_age}"
    return result
