"""Stitch hourly position reports into tracks using a coarse spatial grid.

Buckets are walked from the oldest hour (23) to the most recent (0). Each
point is attached to the nearest plausible track endpoint left by earlier
hours, or starts a new track. Endpoints are indexed by 1 degree grid cells so
each point only compares against the 3x3 block of cells around it.

The association is greedy and single-pass: there is no backtracking or
global assignment, so two objects crossing paths within the same hour may be
mis-linked. Hop limits keep that window small.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
import logging
import math
from typing import Iterable

from driftwatch.models.points import Point, Track
from driftwatch.services.geo import MS_PER_HOUR, haversine_km

logger = logging.getLogger("driftwatch.services.track_assembler")

HOURS = 24
CELL_DEG = 1.0
MAX_HOP_HOURS = 2.0
MAX_HOP_DIST_KM = 500.0

CellKey = tuple[int, int]


@dataclass(frozen=True)
class Endpoint:
    """Last point of a working track, as seen by the next hour."""

    lat: float
    lon: float
    timestamp_ms: int
    track_idx: int


def cell_key(lat: float, lon: float, cell_deg: float = CELL_DEG) -> CellKey:
    return (math.floor(lat / cell_deg), math.floor(lon / cell_deg))


def neighbor_keys(key: CellKey) -> list[CellKey]:
    """Return the cell itself and its eight neighbours."""

    i, j = key
    return [(i + di, j + dj) for di in (-1, 0, 1) for dj in (-1, 0, 1)]


class TrackAssembler:
    """Greedy nearest-endpoint tracker over 24 hourly buckets."""

    def __init__(
        self,
        *,
        max_hop_hours: float = MAX_HOP_HOURS,
        max_hop_dist_km: float = MAX_HOP_DIST_KM,
        cell_deg: float = CELL_DEG,
    ) -> None:
        self.max_hop_hours = max_hop_hours
        self.max_hop_dist_km = max_hop_dist_km
        self.cell_deg = cell_deg

    def assemble(self, points: Iterable[Point]) -> list[Track]:
        by_hour: dict[int, list[Point]] = defaultdict(list)
        for point in points:
            by_hour[point.hour_bucket].append(point)

        working: list[list[Point]] = []
        index: dict[CellKey, list[Endpoint]] = {}

        for hour in range(HOURS - 1, -1, -1):
            hour_points = by_hour.get(hour, [])
            claimed: set[int] = set()
            attached = 0

            for point in hour_points:
                track_idx = self._claim(self._candidates(point, index), claimed)
                if track_idx is None:
                    working.append([point])
                else:
                    working[track_idx].append(point)
                    attached += 1

            index = self._build_index(working)
            if hour_points:
                logger.debug(
                    "Hour %02d: %s points, %s attached, %s working tracks",
                    hour,
                    len(hour_points),
                    attached,
                    len(working),
                )

        tracks: list[Track] = []
        for track_points in working:
            if len(track_points) < 2:
                continue
            ordered = sorted(track_points, key=lambda p: p.timestamp_ms)
            tracks.append(Track(id=f"trk:{len(tracks) + 1}", points=ordered))

        logger.info(
            "Assembled %s tracks from %s working tracks (%s singletons dropped)",
            len(tracks),
            len(working),
            len(working) - len(tracks),
        )
        return tracks

    def _candidates(
        self, point: Point, index: dict[CellKey, list[Endpoint]]
    ) -> list[tuple[float, int]]:
        """Plausible endpoints for ``point`` as ``(distance_km, track_idx)``, nearest first.

        Reads the frozen index only; equal distances order by track index.
        """

        found: list[tuple[float, int]] = []
        for key in neighbor_keys(cell_key(point.lat, point.lon, self.cell_deg)):
            for endpoint in index.get(key, ()):
                dt_hours = abs(endpoint.timestamp_ms - point.timestamp_ms) / MS_PER_HOUR
                if dt_hours <= 0.0 or dt_hours > self.max_hop_hours:
                    continue
                distance = haversine_km(endpoint.lat, endpoint.lon, point.lat, point.lon)
                if distance > self.max_hop_dist_km:
                    continue
                found.append((distance, endpoint.track_idx))
        found.sort()
        return found

    @staticmethod
    def _claim(candidates: list[tuple[float, int]], claimed: set[int]) -> int | None:
        for _, track_idx in candidates:
            if track_idx not in claimed:
                claimed.add(track_idx)
                return track_idx
        return None

    def _build_index(self, working: list[list[Point]]) -> dict[CellKey, list[Endpoint]]:
        index: dict[CellKey, list[Endpoint]] = defaultdict(list)
        for track_idx, track_points in enumerate(working):
            last = track_points[-1]
            index[cell_key(last.lat, last.lon, self.cell_deg)].append(
                Endpoint(
                    lat=last.lat,
                    lon=last.lon,
                    timestamp_ms=last.timestamp_ms,
                    track_idx=track_idx,
                )
            )
        return index


def assemble_tracks(points: Iterable[Point]) -> list[Track]:
    """Convenience wrapper using the default hop limits."""

    return TrackAssembler().assemble(points)


__all__ = [
    "CELL_DEG",
    "Endpoint",
    "MAX_HOP_DIST_KM",
    "MAX_HOP_HOURS",
    "TrackAssembler",
    "assemble_tracks",
    "cell_key",
    "neighbor_keys",
]
