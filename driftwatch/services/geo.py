"""Great-circle math, drift estimation and wind decomposition."""

from __future__ import annotations

import math
from typing import Sequence

from driftwatch.models.balloons import DriftVector, WindComponents
from driftwatch.models.points import Point

EARTH_RADIUS_KM = 6371.0
MS_PER_HOUR = 3_600_000.0
MIN_ELAPSED_HOURS = 1e-6


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two coordinates in kilometers."""

    dlat = math.radians(lat2 - lat1)
    dlon = math.radians(lon2 - lon1)
    a = (
        math.sin(dlat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(dlon / 2) ** 2
    )
    a = min(max(a, 0.0), 1.0)
    return 2 * EARTH_RADIUS_KM * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def bearing_deg(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Initial forward azimuth from the first coordinate to the second.

    The result is normalized to ``[0, 360)`` with 0 meaning due north.
    """

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dlon = math.radians(lon2 - lon1)
    y = math.sin(dlon) * math.cos(phi2)
    x = math.cos(phi1) * math.sin(phi2) - math.sin(phi1) * math.cos(phi2) * math.cos(dlon)
    heading = (math.degrees(math.atan2(y, x)) + 360.0) % 360.0
    # 360.0 % 360.0 can still round up to 360.0 for tiny negative angles
    return 0.0 if heading >= 360.0 else heading


def drift(points: Sequence[Point]) -> DriftVector:
    """Estimate speed and heading from the final two points of a track."""

    if len(points) < 2:
        raise ValueError("drift requires at least two points")

    a, b = points[-2], points[-1]
    distance_km = haversine_km(a.lat, a.lon, b.lat, b.lon)
    elapsed_hours = max((b.timestamp_ms - a.timestamp_ms) / MS_PER_HOUR, MIN_ELAPSED_HOURS)
    return DriftVector(
        speed_kmh=distance_km / elapsed_hours,
        heading_deg=bearing_deg(a.lat, a.lon, b.lat, b.lon),
    )


def normalize_delta(angle_deg: float) -> float:
    """Wrap an angle difference into ``(-180, 180]``."""

    wrapped = ((angle_deg + 540.0) % 360.0) - 180.0
    return 180.0 if wrapped == -180.0 else wrapped


def wind_components(
    heading_deg: float, wind_from_deg: float, wind_speed_kmh: float
) -> WindComponents:
    """Split a wind vector into tail and cross components along ``heading_deg``.

    ``wind_from_deg`` uses the meteorological convention (where the wind blows
    from), so it is flipped by 180 degrees before comparing with the heading.
    """

    wind_travel_deg = (wind_from_deg + 180.0) % 360.0
    delta = normalize_delta(heading_deg - wind_travel_deg)
    delta_rad = math.radians(delta)
    return WindComponents(
        tailwind_kmh=wind_speed_kmh * math.cos(delta_rad),
        crosswind_kmh=wind_speed_kmh * math.sin(delta_rad),
        delta_deg=abs(delta),
    )


__all__ = [
    "EARTH_RADIUS_KM",
    "bearing_deg",
    "drift",
    "haversine_km",
    "normalize_delta",
    "wind_components",
]
