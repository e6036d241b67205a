"""Hourly wind lookups from Open-Meteo with archive-to-forecast fallback."""

from __future__ import annotations

from datetime import datetime, timezone
import logging
from typing import Any, Optional, Protocol

import httpx

from driftwatch.config import settings
from driftwatch.errors import ProviderExhausted
from driftwatch.models.balloons import WindSample
from driftwatch.cache import MISS, TTLCache

logger = logging.getLogger("driftwatch.ingestors.wind")

HOURLY_FIELDS = "wind_speed_10m,wind_direction_10m"
FORECAST_PAST_DAYS = 2


class WindProvider(Protocol):
    """Anything able to report the wind near a position at a given hour."""

    async def lookup(
        self, lat: float, lon: float, timestamp: datetime
    ) -> Optional[WindSample]:
        """Return the nearest hourly wind sample, or ``None`` if unavailable."""


class NullWindProvider:
    """Provider used when enrichment is disabled; never reports wind."""

    async def lookup(
        self, lat: float, lon: float, timestamp: datetime
    ) -> Optional[WindSample]:
        return None


def hour_start(timestamp: datetime) -> datetime:
    """Truncate ``timestamp`` to the start of its UTC hour."""

    if timestamp.tzinfo is None:
        timestamp = timestamp.replace(tzinfo=timezone.utc)
    return timestamp.astimezone(timezone.utc).replace(minute=0, second=0, microsecond=0)


def _parse_iso_hour(raw: Any) -> int | None:
    if not isinstance(raw, str):
        return None
    text = raw[:-1] + "+00:00" if raw.endswith("Z") else raw
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


def _parse_unix(raw: Any) -> int | None:
    if isinstance(raw, bool) or not isinstance(raw, (int, float)):
        return None
    return int(raw)


def _nearest_index(epochs: list[int | None], target: int) -> int | None:
    best_idx = None
    best_diff = None
    for idx, epoch in enumerate(epochs):
        if epoch is None:
            continue
        diff = abs(epoch - target)
        if best_diff is None or diff < best_diff:
            best_idx, best_diff = idx, diff
    return best_idx


def _sample_from_hourly(
    payload: Any, target: datetime, *, source: str, iso_times: bool
) -> Optional[WindSample]:
    """Select the hourly wind entry closest to ``target`` from an Open-Meteo body.

    Returns ``None`` when the body lacks hourly arrays or the chosen entry is
    null, which callers treat as "no usable value".
    """

    if not isinstance(payload, dict):
        return None
    hourly = payload.get("hourly")
    if not isinstance(hourly, dict):
        return None
    times = hourly.get("time")
    speeds = hourly.get("wind_speed_10m")
    directions = hourly.get("wind_direction_10m")
    if not isinstance(times, list) or not isinstance(speeds, list) or not isinstance(directions, list):
        return None

    target_epoch = int(target.timestamp())
    idx = None
    if iso_times:
        exact = target.strftime("%Y-%m-%dT%H:00")
        if exact in times:
            idx = times.index(exact)
        else:
            idx = _nearest_index([_parse_iso_hour(t) for t in times], target_epoch)
        observed_epoch = _parse_iso_hour(times[idx]) if idx is not None else None
    else:
        epochs = [_parse_unix(t) for t in times]
        idx = _nearest_index(epochs, target_epoch)
        observed_epoch = epochs[idx] if idx is not None else None

    if idx is None or idx >= len(speeds) or idx >= len(directions):
        return None
    speed, direction = speeds[idx], directions[idx]
    if speed is None or direction is None:
        return None
    try:
        return WindSample(
            wind_speed_kmh=float(speed),
            wind_direction_deg=float(direction),
            source=source,
            observed_at=(
                datetime.fromtimestamp(observed_epoch, tz=timezone.utc)
                if observed_epoch is not None
                else None
            ),
        )
    except (TypeError, ValueError, OverflowError, OSError):
        logger.debug("Discarding non-numeric %s wind entry at index %s", source, idx)
        return None


class OpenMeteoWindProvider:
    """Query the ERA5 archive first and the forecast API as a fallback.

    Results, including "no data" answers, are cached by rounded coordinates
    and hour. Transport failures are not cached so the next run retries.
    """

    def __init__(
        self,
        *,
        archive_url: str | None = None,
        forecast_url: str | None = None,
        connect_timeout: float | None = None,
        read_timeout: float | None = None,
        cache: TTLCache | None = None,
        client: httpx.AsyncClient | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.archive_url = archive_url or settings.open_meteo_archive_url
        self.forecast_url = forecast_url or settings.open_meteo_forecast_url
        self.timeout = httpx.Timeout(
            read_timeout or settings.wind_read_timeout,
            connect=connect_timeout or settings.wind_connect_timeout,
        )
        self.cache = cache
        self.client = client
        self.transport = transport

    @staticmethod
    def cache_key(lat: float, lon: float, hour: datetime) -> tuple[float, float, int]:
        return (round(lat, 3), round(lon, 3), int(hour.timestamp()))

    async def lookup(
        self, lat: float, lon: float, timestamp: datetime
    ) -> Optional[WindSample]:
        hour = hour_start(timestamp)
        key = self.cache_key(lat, lon, hour)
        cached = self._cache_get(key)
        if cached is not MISS:
            return cached

        failures: list[str] = []
        sample = await self._query_archive(lat, lon, hour, failures)
        if sample is None:
            sample = await self._query_forecast(lat, lon, hour, failures)

        if sample is None and len(failures) == 2:
            raise ProviderExhausted(
                "no wind source answered: " + "; ".join(failures)
            )

        # transient failures are never cached
        if sample is not None or not failures:
            self._cache_set(key, sample)
        return sample

    async def _query_archive(
        self, lat: float, lon: float, hour: datetime, failures: list[str]
    ) -> Optional[WindSample]:
        day = hour.date().isoformat()
        params = {
            "latitude": round(lat, 4),
            "longitude": round(lon, 4),
            "start_date": day,
            "end_date": day,
            "hourly": HOURLY_FIELDS,
            "windspeed_unit": "kmh",
            "timezone": "UTC",
            "timeformat": "unixtime",
        }
        payload = await self._get_json(self.archive_url, params, "archive", failures)
        if payload is None:
            return None
        return _sample_from_hourly(payload, hour, source="archive", iso_times=False)

    async def _query_forecast(
        self, lat: float, lon: float, hour: datetime, failures: list[str]
    ) -> Optional[WindSample]:
        params = {
            "latitude": round(lat, 4),
            "longitude": round(lon, 4),
            "hourly": HOURLY_FIELDS,
            "past_days": FORECAST_PAST_DAYS,
            "windspeed_unit": "kmh",
            "timezone": "UTC",
        }
        payload = await self._get_json(self.forecast_url, params, "forecast", failures)
        if payload is None:
            return None
        return _sample_from_hourly(payload, hour, source="forecast", iso_times=True)

    async def _get_json(
        self, url: str, params: dict[str, Any], source: str, failures: list[str]
    ) -> Any:
        headers = {"User-Agent": settings.user_agent}
        try:
            if self.client is not None:
                response = await self.client.get(
                    url, params=params, headers=headers, timeout=self.timeout
                )
            else:
                async with httpx.AsyncClient(
                    timeout=self.timeout, transport=self.transport
                ) as client:
                    response = await client.get(url, params=params, headers=headers)
            response.raise_for_status()
        except httpx.TimeoutException as exc:
            logger.warning("Wind %s request timed out: %s", source, exc)
            failures.append(f"{source} timeout")
            return None
        except httpx.HTTPStatusError as exc:
            logger.warning(
                "Wind %s source returned HTTP %s", source, exc.response.status_code
            )
            failures.append(f"{source} HTTP {exc.response.status_code}")
            return None
        except httpx.RequestError as exc:
            logger.warning("Wind %s request failed: %s", source, exc)
            failures.append(f"{source} request failed: {exc.__class__.__name__}")
            return None

        try:
            return response.json()
        except ValueError as exc:
            logger.warning("Failed to parse wind %s JSON response: %s", source, exc)
            failures.append(f"{source} returned malformed JSON")
            return None

    def _cache_get(self, key: tuple[float, float, int]) -> Any:
        if self.cache is None:
            return MISS
        try:
            return self.cache.get(key)
        except Exception as exc:  # pragma: no cover - cache is best-effort
            logger.warning("Wind cache read failed: %s", exc)
            return MISS

    def _cache_set(self, key: tuple[float, float, int], sample: Optional[WindSample]) -> None:
        if self.cache is None:
            return
        try:
            self.cache.set(key, sample)
        except Exception as exc:  # pragma: no cover - cache is best-effort
            logger.warning("Wind cache write failed: %s", exc)


__all__ = [
    "NullWindProvider",
    "OpenMeteoWindProvider",
    "WindProvider",
    "hour_start",
]
