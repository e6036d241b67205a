from __future__ import annotations

import contextlib
import logging
import time

import httpx
from fastapi import FastAPI, Request

from driftwatch.api import api_router
from driftwatch.cache import TTLCache
from driftwatch.config import settings
from driftwatch.ingestors import OpenMeteoWindProvider, TreasureIngestor
from driftwatch.services import ConstellationPipeline

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s %(name)s - %(message)s",
)
logger = logging.getLogger("driftwatch")


@contextlib.asynccontextmanager
async def lifespan(app: FastAPI):
    """Create shared HTTP clients and the pipeline; close clients on shutdown."""

    app.state.feed_client = httpx.AsyncClient(
        timeout=httpx.Timeout(
            settings.treasure_read_timeout, connect=settings.treasure_connect_timeout
        ),
    )
    app.state.wind_client = httpx.AsyncClient(
        timeout=httpx.Timeout(
            settings.wind_read_timeout, connect=settings.wind_connect_timeout
        ),
        limits=httpx.Limits(max_connections=settings.wind_max_concurrency),
    )
    app.state.pipeline = ConstellationPipeline(
        TreasureIngestor(client=app.state.feed_client),
        OpenMeteoWindProvider(
            client=app.state.wind_client,
            cache=TTLCache(settings.wind_cache_ttl_seconds),
        ),
    )
    logger.info(
        "Constellation pipeline ready (wind enrichment %s)",
        "enabled" if settings.enable_wind_enrichment else "disabled",
    )

    try:
        yield
    finally:
        app.state.pipeline = None
        for name in ("feed_client", "wind_client"):
            client: httpx.AsyncClient | None = getattr(app.state, name, None)
            if client:
                await client.aclose()


app = FastAPI(title="Driftwatch", lifespan=lifespan)


@app.middleware("http")
async def log_requests(request: Request, call_next):
    """Log basic request information for observability."""

    start_time = time.time()
    response = await call_next(request)
    duration_ms = (time.time() - start_time) * 1000
    logger.info(
        "HTTP %s %s -> %s (%.2f ms)",
        request.method,
        request.url.path,
        response.status_code,
        duration_ms,
    )
    return response


app.include_router(api_router)


@app.get("/", summary="Root")
def read_root() -> dict[str, object]:
    """Service index listing the public endpoints."""

    return {
        "name": "Driftwatch",
        "endpoints": [
            "/api/v1/constellation?no_meteo=1",
            "/api/v1/constellation?meteo_cap=40",
            "/healthz",
        ],
        "status": "ok",
    }
