"""Attach wind samples and wind components to the fastest balloon records."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
import logging
from typing import Optional

from driftwatch.config import settings
from driftwatch.errors import EnrichmentError
from driftwatch.ingestors.wind import WindProvider
from driftwatch.models.balloons import BalloonRecord, WindSample
from driftwatch.models.diagnostics import EnrichmentReport
from driftwatch.services.geo import wind_components

logger = logging.getLogger("driftwatch.services.wind_enricher")

MAX_ERROR_SAMPLES = 5
SUBSET_STRATEGY = "top_by_drift_speed"


@dataclass
class _LookupResult:
    record_id: str
    sample: Optional[WindSample] = None
    error: Optional[str] = None


@dataclass
class EnrichmentOutcome:
    """Merged records plus counts describing the enrichment pass."""

    records: list[BalloonRecord]
    report: EnrichmentReport = field(default_factory=EnrichmentReport)


def select_subset(records: list[BalloonRecord], meteo_cap: int) -> list[BalloonRecord]:
    """Pick up to ``meteo_cap`` records, fastest drift first.

    ``sorted`` is stable, so records with equal speed keep their input order.
    """

    if meteo_cap <= 0:
        return []
    ranked = sorted(records, key=lambda record: -record.drift.speed_kmh)
    return ranked[:meteo_cap]


class ErrorSampler:
    """Keep the first few distinct error messages in arrival order."""

    def __init__(self, limit: int = MAX_ERROR_SAMPLES) -> None:
        self.limit = limit
        self.samples: list[str] = []

    def add(self, message: str) -> None:
        if message in self.samples or len(self.samples) >= self.limit:
            return
        self.samples.append(message)


class WindEnricher:
    """Look up wind for a bounded subset of records and merge it back in.

    Lookups run concurrently, at most ``max_concurrency`` at a time. A failing
    or slow lookup only affects its own record.
    """

    def __init__(
        self,
        provider: WindProvider,
        *,
        max_concurrency: int | None = None,
        lookup_timeout: float | None = None,
        max_error_samples: int = MAX_ERROR_SAMPLES,
    ) -> None:
        self.provider = provider
        self.max_concurrency = max(1, max_concurrency or settings.wind_max_concurrency)
        # archive then forecast, each bounded by connect + read
        self.lookup_timeout = lookup_timeout or 2 * (
            settings.wind_connect_timeout + settings.wind_read_timeout
        )
        self.max_error_samples = max_error_samples

    async def enrich(
        self, records: list[BalloonRecord], *, meteo_cap: int
    ) -> EnrichmentOutcome:
        subset = select_subset(records, meteo_cap)
        report = EnrichmentReport(subset_strategy=SUBSET_STRATEGY)
        if not subset:
            return EnrichmentOutcome(records=list(records), report=report)

        semaphore = asyncio.Semaphore(self.max_concurrency)
        results = await asyncio.gather(
            *(self._lookup(record, semaphore) for record in subset)
        )

        sampler = ErrorSampler(self.max_error_samples)
        found: dict[str, WindSample] = {}
        report.attempted = len(results)
        for result in results:
            if result.error is not None:
                report.failed += 1
                sampler.add(result.error)
            elif result.sample is None:
                report.empty += 1
            else:
                found[result.record_id] = result.sample
        report.succeeded = len(found)
        report.error_samples = sampler.samples

        merged = [self._merge(record, found.get(record.id)) for record in records]
        logger.info(
            "Wind enrichment: attempted=%s succeeded=%s empty=%s failed=%s",
            report.attempted,
            report.succeeded,
            report.empty,
            report.failed,
        )
        return EnrichmentOutcome(records=merged, report=report)

    async def _lookup(
        self, record: BalloonRecord, semaphore: asyncio.Semaphore
    ) -> _LookupResult:
        timestamp = datetime.fromtimestamp(record.last.timestamp_ms / 1000, tz=timezone.utc)
        async with semaphore:
            try:
                sample = await asyncio.wait_for(
                    self.provider.lookup(record.last.lat, record.last.lon, timestamp),
                    timeout=self.lookup_timeout,
                )
            except asyncio.TimeoutError:
                logger.warning("Wind lookup for %s timed out", record.id)
                return _LookupResult(record.id, error="wind lookup timed out")
            except EnrichmentError as exc:
                logger.warning("Wind lookup for %s failed: %s", record.id, exc)
                return _LookupResult(record.id, error=str(exc))
            except Exception as exc:
                logger.warning("Wind lookup for %s raised %s: %s", record.id, exc.__class__.__name__, exc)
                return _LookupResult(record.id, error=f"{exc.__class__.__name__}: {exc}")
        return _LookupResult(record.id, sample=sample)

    @staticmethod
    def _merge(record: BalloonRecord, sample: Optional[WindSample]) -> BalloonRecord:
        if sample is None:
            return record
        comp = wind_components(
            record.drift.heading_deg, sample.wind_direction_deg, sample.wind_speed_kmh
        )
        return record.model_copy(update={"meteo": sample, "comp": comp})


__all__ = ["EnrichmentOutcome", "ErrorSampler", "WindEnricher", "select_subset"]
