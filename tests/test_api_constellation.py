from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from driftwatch.api import constellation as constellation_module
from driftwatch.cache import TTLCache
from driftwatch.config import settings
from driftwatch.main import app
from driftwatch.models import (
    BalloonRecord,
    ConstellationResult,
    DriftVector,
    Insights,
    PipelineDiagnostics,
    Point,
)


def _result(options) -> ConstellationResult:
    record = BalloonRecord(
        id="trk:1",
        last=Point(lat=1.0, lon=2.0, timestamp_ms=1_714_765_200_000, hour_bucket=0),
        drift=DriftVector(speed_kmh=42.0, heading_deg=90.0),
    )
    return ConstellationResult(
        updated_at=datetime(2024, 5, 3, 19, 40, tzinfo=timezone.utc),
        count=1,
        balloons=[record],
        insights=Insights(fastest=[record]),
        diagnostics=(
            PipelineDiagnostics(params=options.as_params(), tracks_total=1)
            if options.include_diagnostics
            else None
        ),
    )


class FakePipeline:
    def __init__(self):
        self.calls = []

    async def run(self, options=None):
        self.calls.append(options)
        return _result(options)


@pytest.fixture
def api_context(monkeypatch):
    monkeypatch.setattr(settings, "enable_wind_enrichment", True)
    monkeypatch.setattr(settings, "default_meteo_cap", 40)
    pipeline = FakePipeline()
    cache = TTLCache(90)
    app.dependency_overrides[constellation_module.get_pipeline] = lambda: pipeline
    app.dependency_overrides[constellation_module.get_response_cache] = lambda: cache
    client = TestClient(app)
    try:
        yield {"client": client, "pipeline": pipeline, "cache": cache}
    finally:
        client.close()
        app.dependency_overrides.clear()


def test_health_check(api_context):
    response = api_context["client"].get("/healthz")

    assert response.status_code == 200
    assert response.json()["status"] == "ok"


def test_root_lists_endpoints(api_context):
    response = api_context["client"].get("/")

    assert response.status_code == 200
    assert "/api/v1/constellation?no_meteo=1" in response.json()["endpoints"]


def test_constellation_default_parameters(api_context):
    response = api_context["client"].get("/api/v1/constellation")

    assert response.status_code == 200
    assert response.headers["Cache-Control"] == "public, max-age=60"
    body = response.json()
    assert body["count"] == 1
    assert body["balloons"][0]["id"] == "trk:1"
    assert body["balloons"][0]["meteo"] is None
    assert body["insights"]["best_tailwind"] == []
    assert body["diagnostics"] is None

    options = api_context["pipeline"].calls[0]
    assert options.enable_wind_enrichment is True
    assert options.meteo_cap == 40
    assert options.max_points_per_hour is None
    assert options.include_diagnostics is False


def test_constellation_passes_query_parameters(api_context):
    response = api_context["client"].get(
        "/api/v1/constellation",
        params={
            "no_meteo": "1",
            "meteo_cap": 5,
            "max_rows_per_hour": 100,
            "result_cap": 3,
            "order": "recent",
            "seed": 11,
        },
    )

    assert response.status_code == 200
    options = api_context["pipeline"].calls[0]
    assert options.enable_wind_enrichment is False
    assert options.meteo_cap == 5
    assert options.max_points_per_hour == 100
    assert options.result_cap == 3
    assert options.order.value == "recent"
    assert options.seed == 11


def test_debug_defaults_row_cap_and_reports_cache_hits(api_context):
    client = api_context["client"]

    first = client.get("/api/v1/constellation", params={"debug": "true"})
    second = client.get("/api/v1/constellation", params={"debug": "true"})

    assert first.status_code == 200
    assert first.json()["diagnostics"]["cache_hit"] is False
    assert second.json()["diagnostics"]["cache_hit"] is True
    assert len(api_context["pipeline"].calls) == 1
    assert api_context["pipeline"].calls[0].max_points_per_hour == 200


def test_distinct_parameters_are_cached_separately(api_context):
    client = api_context["client"]

    client.get("/api/v1/constellation", params={"meteo_cap": 1})
    client.get("/api/v1/constellation", params={"meteo_cap": 2})
    client.get("/api/v1/constellation", params={"meteo_cap": 1})

    assert [o.meteo_cap for o in api_context["pipeline"].calls] == [1, 2]


@pytest.mark.parametrize(
    "params",
    [{"meteo_cap": -1}, {"result_cap": 0}, {"max_rows_per_hour": 0}, {"order": "slowest"}],
)
def test_invalid_parameters_are_rejected(api_context, params):
    response = api_context["client"].get("/api/v1/constellation", params=params)

    assert response.status_code == 422
    assert api_context["pipeline"].calls == []
