from datetime import datetime, timezone

import httpx
import pytest

from driftwatch.cache import TTLCache
from driftwatch.errors import ProviderExhausted
from driftwatch.ingestors.wind import NullWindProvider, OpenMeteoWindProvider, hour_start

ARCHIVE_URL = "https://archive.test/v1/era5"
FORECAST_URL = "https://forecast.test/v1/forecast"

TARGET = datetime(2024, 5, 3, 14, 37, 12, tzinfo=timezone.utc)
HOUR_EPOCH = int(datetime(2024, 5, 3, 14, tzinfo=timezone.utc).timestamp())


def _provider(handler, cache=None) -> OpenMeteoWindProvider:
    return OpenMeteoWindProvider(
        archive_url=ARCHIVE_URL,
        forecast_url=FORECAST_URL,
        transport=httpx.MockTransport(handler),
        cache=cache,
    )


def _archive_payload(speeds, directions):
    times = [HOUR_EPOCH + (i - 1) * 3600 for i in range(len(speeds))]
    return {"hourly": {"time": times, "wind_speed_10m": speeds, "wind_direction_10m": directions}}


def _forecast_payload(times, speeds, directions):
    return {"hourly": {"time": times, "wind_speed_10m": speeds, "wind_direction_10m": directions}}


def test_hour_start_truncates_and_assumes_utc():
    assert hour_start(TARGET) == datetime(2024, 5, 3, 14, tzinfo=timezone.utc)
    assert hour_start(datetime(2024, 5, 3, 14, 59)) == datetime(2024, 5, 3, 14, tzinfo=timezone.utc)


@pytest.mark.anyio
async def test_archive_sample_nearest_to_requested_hour():
    seen = []

    def handler(request: httpx.Request):
        seen.append(request)
        return httpx.Response(200, json=_archive_payload([10.0, 22.5, 30.0], [90, 180, 270]))

    sample = await _provider(handler).lookup(12.34567, -45.678912, TARGET)

    assert sample is not None
    assert sample.wind_speed_kmh == 22.5
    assert sample.wind_direction_deg == 180.0
    assert sample.source == "archive"
    assert sample.observed_at == datetime(2024, 5, 3, 14, tzinfo=timezone.utc)

    assert len(seen) == 1
    params = seen[0].url.params
    assert seen[0].url.host == "archive.test"
    assert params["start_date"] == "2024-05-03"
    assert params["end_date"] == "2024-05-03"
    assert params["latitude"] == "12.3457"
    assert params["longitude"] == "-45.6789"
    assert params["timeformat"] == "unixtime"
    assert params["windspeed_unit"] == "kmh"


@pytest.mark.anyio
async def test_falls_back_to_forecast_when_archive_has_null_values():
    def handler(request: httpx.Request):
        if request.url.host == "archive.test":
            return httpx.Response(200, json=_archive_payload([None, None, None], [None, None, None]))
        assert request.url.params["past_days"] == "2"
        return httpx.Response(
            200,
            json=_forecast_payload(
                ["2024-05-03T13:00", "2024-05-03T14:00", "2024-05-03T15:00"],
                [5.0, 6.0, 7.0],
                [10, 20, 30],
            ),
        )

    sample = await _provider(handler).lookup(1.0, 2.0, TARGET)

    assert sample is not None
    assert sample.source == "forecast"
    assert sample.wind_speed_kmh == 6.0
    assert sample.wind_direction_deg == 20.0


@pytest.mark.anyio
async def test_forecast_uses_nearest_hour_when_exact_missing():
    def handler(request: httpx.Request):
        if request.url.host == "archive.test":
            return httpx.Response(500, text="boom")
        return httpx.Response(
            200,
            json=_forecast_payload(
                ["2024-05-03T10:00", "2024-05-03T16:00", "2024-05-04T00:00"],
                [5.0, 6.0, 7.0],
                [10, 20, 30],
            ),
        )

    sample = await _provider(handler).lookup(1.0, 2.0, TARGET)

    assert sample is not None
    assert sample.wind_speed_kmh == 6.0
    assert sample.observed_at == datetime(2024, 5, 3, 16, tzinfo=timezone.utc)


@pytest.mark.anyio
async def test_returns_none_when_sources_answer_without_data():
    def handler(request: httpx.Request):
        return httpx.Response(200, json={"hourly": {}})

    assert await _provider(handler).lookup(1.0, 2.0, TARGET) is None


@pytest.mark.anyio
async def test_raises_provider_exhausted_when_both_sources_fail():
    def handler(request: httpx.Request):
        if request.url.host == "archive.test":
            raise httpx.ConnectTimeout("slow", request=request)
        return httpx.Response(503, text="unavailable")

    with pytest.raises(ProviderExhausted) as excinfo:
        await _provider(handler).lookup(1.0, 2.0, TARGET)

    assert "archive timeout" in str(excinfo.value)
    assert "forecast HTTP 503" in str(excinfo.value)


@pytest.mark.anyio
async def test_malformed_json_is_treated_as_unusable():
    def handler(request: httpx.Request):
        if request.url.host == "archive.test":
            return httpx.Response(200, text="not json")
        return httpx.Response(
            200,
            json=_forecast_payload(["2024-05-03T14:00"], [12.0], [45]),
        )

    sample = await _provider(handler).lookup(1.0, 2.0, TARGET)

    assert sample is not None
    assert sample.source == "forecast"


@pytest.mark.anyio
async def test_cache_serves_repeat_lookups_for_same_rounded_key():
    calls = {"count": 0}

    def handler(request: httpx.Request):
        calls["count"] += 1
        return httpx.Response(200, json=_archive_payload([10.0, 11.0, 12.0], [1, 2, 3]))

    provider = _provider(handler, cache=TTLCache(600))

    first = await provider.lookup(1.00001, 2.00001, TARGET)
    second = await provider.lookup(1.00002, 2.00002, TARGET.replace(minute=5))

    assert first == second
    assert calls["count"] == 1


@pytest.mark.anyio
async def test_transient_failures_are_not_cached():
    calls = {"count": 0}

    def handler(request: httpx.Request):
        calls["count"] += 1
        return httpx.Response(502, text="bad gateway")

    provider = _provider(handler, cache=TTLCache(600))

    for _ in range(2):
        with pytest.raises(ProviderExhausted):
            await provider.lookup(1.0, 2.0, TARGET)

    assert calls["count"] == 4


@pytest.mark.anyio
async def test_works_without_cache():
    def handler(request: httpx.Request):
        return httpx.Response(200, json=_archive_payload([3.0, 4.0, 5.0], [0, 0, 0]))

    provider = _provider(handler, cache=None)

    assert (await provider.lookup(1.0, 2.0, TARGET)).wind_speed_kmh == 4.0
    assert (await provider.lookup(1.0, 2.0, TARGET)).wind_speed_kmh == 4.0


@pytest.mark.anyio
async def test_null_provider_never_reports_wind():
    assert await NullWindProvider().lookup(1.0, 2.0, TARGET) is None
