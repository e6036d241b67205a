import asyncio
from datetime import datetime

import pytest

from driftwatch.errors import ProviderExhausted
from driftwatch.ingestors.wind import NullWindProvider
from driftwatch.models.balloons import BalloonRecord, DriftVector, WindSample
from driftwatch.models.points import Point
from driftwatch.services.wind_enricher import ErrorSampler, WindEnricher, select_subset


def _record(idx: int, speed: float, heading: float = 0.0, lat: float | None = None) -> BalloonRecord:
    last = Point(
        lat=float(idx) if lat is None else lat,
        lon=float(idx),
        timestamp_ms=1_714_765_200_000,
        hour_bucket=0,
    )
    return BalloonRecord(
        id=f"trk:{idx}",
        last=last,
        drift=DriftVector(speed_kmh=speed, heading_deg=heading),
    )


class FakeWindProvider:
    def __init__(self, sample: WindSample | None = None, fail_lats=(), empty_lats=(), delay: float = 0.0):
        self.sample = sample or WindSample(wind_speed_kmh=20.0, wind_direction_deg=180.0)
        self.fail_lats = set(fail_lats)
        self.empty_lats = set(empty_lats)
        self.delay = delay
        self.calls: list[tuple[float, float, datetime]] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def lookup(self, lat: float, lon: float, timestamp: datetime):
        self.calls.append((lat, lon, timestamp))
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if lat in self.fail_lats:
                raise ProviderExhausted("no wind source answered: archive timeout; forecast HTTP 503")
            if lat in self.empty_lats:
                return None
            return self.sample
        finally:
            self.in_flight -= 1


def test_select_subset_prefers_fastest_and_respects_cap():
    records = [_record(1, 10.0), _record(2, 50.0), _record(3, 30.0), _record(4, 50.0)]

    subset = select_subset(records, 3)

    assert [r.id for r in subset] == ["trk:2", "trk:4", "trk:3"]
    assert select_subset(records, 0) == []
    assert len(select_subset(records, 40)) == 4


def test_error_sampler_dedupes_and_caps():
    sampler = ErrorSampler(limit=2)
    for message in ["a", "a", "b", "c", "b"]:
        sampler.add(message)

    assert sampler.samples == ["a", "b"]


@pytest.mark.anyio
async def test_enriches_subset_and_keeps_record_count():
    records = [_record(i, speed=float(i)) for i in range(1, 11)]
    provider = FakeWindProvider()

    outcome = await WindEnricher(provider).enrich(records, meteo_cap=4)

    assert len(outcome.records) == 10
    assert [r.id for r in outcome.records] == [r.id for r in records]
    enriched = {r.id for r in outcome.records if r.meteo is not None}
    assert enriched == {"trk:10", "trk:9", "trk:8", "trk:7"}
    assert outcome.report.attempted == 4
    assert outcome.report.succeeded == 4
    assert len(provider.calls) == 4

    fastest = next(r for r in outcome.records if r.id == "trk:10")
    assert fastest.comp is not None
    assert fastest.comp.tailwind_kmh == pytest.approx(20.0)
    assert fastest.comp.delta_deg == pytest.approx(0.0)
    assert all(r.comp is None for r in outcome.records if r.meteo is None)


@pytest.mark.anyio
async def test_subset_size_is_min_of_cap_and_records():
    records = [_record(i, speed=float(i)) for i in range(1, 4)]
    provider = FakeWindProvider()

    outcome = await WindEnricher(provider).enrich(records, meteo_cap=40)

    assert outcome.report.attempted == 3
    assert len(provider.calls) == 3


@pytest.mark.anyio
async def test_zero_cap_skips_provider():
    records = [_record(i, speed=float(i)) for i in range(1, 4)]
    provider = FakeWindProvider()

    outcome = await WindEnricher(provider).enrich(records, meteo_cap=0)

    assert provider.calls == []
    assert outcome.report.attempted == 0
    assert all(r.meteo is None and r.comp is None for r in outcome.records)


@pytest.mark.anyio
async def test_null_provider_leaves_records_untouched():
    records = [_record(i, speed=float(i)) for i in range(1, 4)]

    outcome = await WindEnricher(NullWindProvider()).enrich(records, meteo_cap=40)

    assert outcome.report.empty == 3
    assert outcome.report.succeeded == 0
    assert all(r.meteo is None and r.comp is None for r in outcome.records)


@pytest.mark.anyio
async def test_failures_are_isolated_and_deduplicated():
    records = [_record(i, speed=float(i)) for i in range(1, 11)]
    provider = FakeWindProvider(fail_lats={2.0, 4.0, 6.0}, empty_lats={8.0})

    outcome = await WindEnricher(provider).enrich(records, meteo_cap=10)

    report = outcome.report
    assert report.attempted == 10
    assert report.failed == 3
    assert report.empty == 1
    assert report.succeeded == 6
    assert report.error_samples == [
        "no wind source answered: archive timeout; forecast HTTP 503"
    ]
    failed_ids = {"trk:2", "trk:4", "trk:6", "trk:8"}
    for record in outcome.records:
        if record.id in failed_ids:
            assert record.meteo is None and record.comp is None
        else:
            assert record.meteo is not None and record.comp is not None


@pytest.mark.anyio
async def test_unexpected_exceptions_are_recorded():
    class BrokenProvider:
        async def lookup(self, lat, lon, timestamp):
            raise KeyError(f"hourly-{int(lat) % 7}")

    records = [_record(i, speed=float(i)) for i in range(1, 21)]

    outcome = await WindEnricher(BrokenProvider()).enrich(records, meteo_cap=20)

    assert outcome.report.failed == 20
    assert len(outcome.report.error_samples) == 5
    assert all(message.startswith("KeyError") for message in outcome.report.error_samples)


@pytest.mark.anyio
async def test_slow_lookup_times_out_without_blocking_siblings():
    class SlowForOneProvider(FakeWindProvider):
        async def lookup(self, lat, lon, timestamp):
            if lat == 1.0:
                await asyncio.sleep(10)
            return await super().lookup(lat, lon, timestamp)

    records = [_record(i, speed=float(i)) for i in range(1, 5)]
    enricher = WindEnricher(SlowForOneProvider(), lookup_timeout=0.05)

    outcome = await enricher.enrich(records, meteo_cap=4)

    assert outcome.report.failed == 1
    assert outcome.report.succeeded == 3
    assert outcome.report.error_samples == ["wind lookup timed out"]


@pytest.mark.anyio
async def test_concurrency_is_bounded():
    records = [_record(i, speed=float(i)) for i in range(1, 13)]
    provider = FakeWindProvider(delay=0.01)

    await WindEnricher(provider, max_concurrency=3).enrich(records, meteo_cap=12)

    assert len(provider.calls) == 12
    assert 1 < provider.max_in_flight <= 3
