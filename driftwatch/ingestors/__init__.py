"""Data ingestors for driftwatch."""

from .points import PointSource, TreasureIngestor, coerce_point, parse_rows
from .wind import NullWindProvider, OpenMeteoWindProvider, WindProvider, hour_start

__all__ = [
    "NullWindProvider",
    "OpenMeteoWindProvider",
    "PointSource",
    "TreasureIngestor",
    "WindProvider",
    "coerce_point",
    "hour_start",
    "parse_rows",
]
