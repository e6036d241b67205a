#!/usr/bin/env python
"""
Run this to exercise the live position feed and Open-Meteo wind lookups end to end.

Usage (from repo root):
    python scripts/run_constellation_live.py [--no-meteo] [--meteo-cap 10] [--max-rows 200]
"""

import argparse
import asyncio

from driftwatch.cache import TTLCache
from driftwatch.config import settings
from driftwatch.ingestors import OpenMeteoWindProvider, TreasureIngestor
from driftwatch.services import ConstellationPipeline, PipelineOptions


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument("--no-meteo", action="store_true", help="skip wind enrichment")
    parser.add_argument("--meteo-cap", type=int, default=10)
    parser.add_argument("--max-rows", type=int, default=200, help="rows per hourly snapshot")
    return parser.parse_args()


async def main() -> None:
    args = parse_args()
    pipeline = ConstellationPipeline(
        TreasureIngestor(),
        OpenMeteoWindProvider(cache=TTLCache(settings.wind_cache_ttl_seconds)),
    )
    options = PipelineOptions(
        enable_wind_enrichment=not args.no_meteo,
        meteo_cap=args.meteo_cap,
        max_points_per_hour=args.max_rows,
        include_diagnostics=True,
    )

    print("=== Live constellation run ===\n")
    result = await pipeline.run(options)
    diagnostics = result.diagnostics

    if diagnostics is not None:
        fetch = diagnostics.fetch
        print(
            f"Feed: {fetch.ok_hours}/{fetch.attempted_hours} hours ok, "
            f"{fetch.kept_points}/{fetch.raw_points} points kept"
        )
        for status in fetch.hour_statuses:
            if not status.ok:
                print(f"  hour {status.hour:02d}: {status.error}")
        enrichment = diagnostics.enrichment
        print(
            f"Tracks: {diagnostics.tracks_total}; wind attempted={enrichment.attempted} "
            f"succeeded={enrichment.succeeded} failed={enrichment.failed}"
        )
        for message in enrichment.error_samples:
            print(f"  wind error: {message}")
        print(f"Timings (ms): {diagnostics.timings_ms.model_dump()}\n")

    print("Fastest:")
    for idx, record in enumerate(result.insights.fastest, start=1):
        print(
            f"{idx}. {record.id} lat={record.last.lat:.3f} lon={record.last.lon:.3f} "
            f"speed={record.drift.speed_kmh:.1f} km/h heading={record.drift.heading_deg:.0f}"
        )

    print("\nBest tailwind:")
    if not result.insights.best_tailwind:
        print("No wind-enriched tracks.")
    for idx, record in enumerate(result.insights.best_tailwind, start=1):
        print(
            f"{idx}. {record.id} tailwind={record.comp.tailwind_kmh:.1f} km/h "
            f"crosswind={record.comp.crosswind_kmh:.1f} km/h "
            f"source={record.meteo.source}"
        )


if __name__ == "__main__":
    asyncio.run(main())
