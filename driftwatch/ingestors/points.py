"""Position feed ingestor for the hourly treasure snapshots."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
import json
import logging
import math
import time
from typing import Any, Callable, Optional, Protocol

import httpx

from driftwatch.config import settings
from driftwatch.errors import IngestionError
from driftwatch.models.diagnostics import FetchReport, HourStatus
from driftwatch.models.points import Point

logger = logging.getLogger("driftwatch.ingestors.points")

HOURS = 24
MS_PER_HOUR = 3_600_000
WINDOW_MS = HOURS * MS_PER_HOUR

_LAT_KEYS = ("lat", "latitude", "y")
_LON_KEYS = ("lon", "lng", "longitude", "x")
_TIME_KEYS = ("t", "ts", "time", "timestamp", "epoch")
_ALT_KEYS = ("alt", "altitude", "h", "z")
_ID_KEYS = ("id", "name", "balloon_id", "flight", "guid")


class PointSource(Protocol):
    """Supplier of normalized points for the last 24 hourly buckets."""

    async def fetch_recent(
        self, max_rows_per_hour: Optional[int] = None
    ) -> tuple[list[Point], FetchReport]:
        """Return points inside the 24 hour window and a per-hour status report."""


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _epoch_to_ms(value: float) -> int | None:
    # values below 1e12 are unix seconds
    millis = value * 1000 if value < 1_000_000_000_000 else value
    if not math.isfinite(millis):
        return None
    return int(millis)


def _parse_time_ms(raw: Any) -> int | None:
    if _is_number(raw):
        return _epoch_to_ms(raw)
    if isinstance(raw, str):
        text = raw.strip()
        if not text:
            return None
        try:
            return _epoch_to_ms(float(text))
        except ValueError:
            pass
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            logger.debug("Failed to parse feed timestamp: %s", raw)
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return int(parsed.timestamp() * 1000)
    return None


def _to_float(value: Any) -> float | None:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    return number if math.isfinite(number) else None


def _in_bounds(lat: float | None, lon: float | None) -> bool:
    return lat is not None and lon is not None and -90 <= lat <= 90 and -180 <= lon <= 180


def parse_rows(text: str) -> list[Any]:
    """Extract the list of raw rows from a feed body.

    Accepts a JSON array, an object wrapping the rows under ``data`` or
    ``points``, or newline-delimited JSON.
    """

    try:
        payload = json.loads(text)
    except ValueError:
        payload = None

    if isinstance(payload, list):
        return payload
    if isinstance(payload, dict):
        for key in ("data", "points"):
            if isinstance(payload.get(key), list):
                return payload[key]

    rows: list[Any] = []
    for line in text.splitlines():
        line = line.strip()
        if not line:
            continue
        try:
            rows.append(json.loads(line))
        except ValueError:
            continue
    return rows


def coerce_point(raw: Any, *, hour: int, base_ts_ms: int) -> Point | None:
    """Normalize one feed row into a Point, or ``None`` if it is unusable.

    ``base_ts_ms`` is used when the row carries no timestamp of its own.
    """

    if isinstance(raw, (list, tuple)):
        if len(raw) < 2:
            return None
        lat, lon = _to_float(raw[0]), _to_float(raw[1])
        if not _in_bounds(lat, lon):
            return None
        third = raw[2] if len(raw) > 2 else None
        if _is_number(third) and not math.isfinite(third):
            return None
        timestamp_ms = base_ts_ms
        altitude_km = None
        if _is_number(third):
            if third > 1_000_000_000:
                timestamp_ms = _epoch_to_ms(third)
                if timestamp_ms is None:
                    return None
            elif third <= 120:
                altitude_km = float(third)
        return Point(
            lat=lat,
            lon=lon,
            timestamp_ms=timestamp_ms,
            hour_bucket=hour,
            altitude_km=altitude_km,
        )

    if isinstance(raw, dict):
        lowered = {str(key).lower(): value for key, value in raw.items()}

        def pick(keys: tuple[str, ...]) -> Any:
            for key in keys:
                if key in lowered:
                    return lowered[key]
            return None

        lat, lon = _to_float(pick(_LAT_KEYS)), _to_float(pick(_LON_KEYS))
        if not _in_bounds(lat, lon):
            return None
        raw_time = pick(_TIME_KEYS)
        if raw_time is None:
            timestamp_ms = base_ts_ms
        else:
            timestamp_ms = _parse_time_ms(raw_time)
            if timestamp_ms is None:
                return None
        source_id = pick(_ID_KEYS)
        return Point(
            lat=lat,
            lon=lon,
            timestamp_ms=timestamp_ms,
            hour_bucket=hour,
            altitude_km=_to_float(pick(_ALT_KEYS)),
            source_id=str(source_id) if source_id is not None else None,
        )

    return None


class TreasureIngestor:
    """Fetch the 24 hourly position snapshots and normalize them into points."""

    def __init__(
        self,
        *,
        base_url: str | None = None,
        connect_timeout: float | None = None,
        read_timeout: float | None = None,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.base_url = (base_url or settings.treasure_base_url).rstrip("/")
        self.timeout = httpx.Timeout(
            read_timeout or settings.treasure_read_timeout,
            connect=connect_timeout or settings.treasure_connect_timeout,
        )
        self.client = client
        self.transport = transport
        self.clock = clock

    def hour_url(self, hour: int) -> str:
        return f"{self.base_url}/{hour:02d}.json"

    async def fetch_recent(
        self, max_rows_per_hour: Optional[int] = None
    ) -> tuple[list[Point], FetchReport]:
        now_ms = int(self.clock() * 1000)

        if self.client is not None:
            results = await self._fetch_all(self.client, now_ms, max_rows_per_hour)
        else:
            async with httpx.AsyncClient(
                timeout=self.timeout, transport=self.transport
            ) as client:
                results = await self._fetch_all(client, now_ms, max_rows_per_hour)

        raw_points: list[Point] = []
        statuses: list[HourStatus] = []
        for points, status in results:
            raw_points.extend(points)
            statuses.append(status)

        horizon_ms = now_ms - WINDOW_MS
        kept = [p for p in raw_points if horizon_ms <= p.timestamp_ms <= now_ms]
        report = FetchReport.from_statuses(
            statuses, raw_points=len(raw_points), kept_points=len(kept)
        )
        logger.info(
            "Fetched %s points (%s kept) from %s/%s hours",
            report.raw_points,
            report.kept_points,
            report.ok_hours,
            report.attempted_hours,
        )
        return kept, report

    async def _fetch_all(
        self, client: httpx.AsyncClient, now_ms: int, max_rows: Optional[int]
    ) -> list[tuple[list[Point], HourStatus]]:
        return await asyncio.gather(
            *(self._fetch_hour_safe(client, hour, now_ms, max_rows) for hour in range(HOURS))
        )

    async def _fetch_hour_safe(
        self, client: httpx.AsyncClient, hour: int, now_ms: int, max_rows: Optional[int]
    ) -> tuple[list[Point], HourStatus]:
        try:
            return await self._fetch_hour(client, hour, now_ms, max_rows)
        except IngestionError as exc:
            logger.warning("Skipping feed %s", exc)
            return [], HourStatus(
                hour=hour, ok=False, status_code=exc.status_code, error=str(exc)
            )
        except Exception as exc:
            logger.warning("Skipping feed hour %02d: unexpected %s: %s", hour, exc.__class__.__name__, exc)
            return [], HourStatus(
                hour=hour, ok=False, error=f"hour {hour:02d}: unexpected {exc.__class__.__name__}"
            )

    async def _fetch_hour(
        self, client: httpx.AsyncClient, hour: int, now_ms: int, max_rows: Optional[int]
    ) -> tuple[list[Point], HourStatus]:
        headers = {
            "User-Agent": settings.user_agent,
            "Accept": "application/json,text/plain;q=0.9,*/*;q=0.8",
        }
        try:
            response = await client.get(self.hour_url(hour), headers=headers, timeout=self.timeout)
        except httpx.TimeoutException as exc:
            raise IngestionError(hour, f"request timed out: {exc}") from exc
        except httpx.RequestError as exc:
            raise IngestionError(hour, f"request failed: {exc.__class__.__name__}") from exc

        if response.status_code >= 400:
            raise IngestionError(
                hour, f"HTTP {response.status_code}", status_code=response.status_code
            )

        text = response.text
        rows = parse_rows(text)
        if max_rows:
            rows = rows[:max_rows]

        base_ts_ms = now_ms - hour * MS_PER_HOUR
        points = []
        for raw in rows:
            point = coerce_point(raw, hour=hour, base_ts_ms=base_ts_ms)
            if point is not None:
                points.append(point)

        logger.debug("Hour %02d: %s rows, %s points", hour, len(rows), len(points))
        return points, HourStatus(
            hour=hour,
            ok=True,
            status_code=response.status_code,
            rows=len(rows),
            points=len(points),
            bytes=len(response.content),
        )


__all__ = ["PointSource", "TreasureIngestor", "coerce_point", "parse_rows"]
