"""Ranked views over the merged balloon records."""

from __future__ import annotations

from driftwatch.models.balloons import BalloonRecord, Insights

TOP_N = 5


def fastest(records: list[BalloonRecord], limit: int = TOP_N) -> list[BalloonRecord]:
    return sorted(records, key=lambda record: -record.drift.speed_kmh)[:limit]


def best_tailwind(records: list[BalloonRecord], limit: int = TOP_N) -> list[BalloonRecord]:
    """Records with the strongest tailwind; records without wind data are skipped."""

    with_comp = [record for record in records if record.comp is not None]
    return sorted(with_comp, key=lambda record: -record.comp.tailwind_kmh)[:limit]


def rank_insights(records: list[BalloonRecord], limit: int = TOP_N) -> Insights:
    return Insights(
        fastest=fastest(records, limit),
        best_tailwind=best_tailwind(records, limit),
    )


__all__ = ["TOP_N", "best_tailwind", "fastest", "rank_insights"]
