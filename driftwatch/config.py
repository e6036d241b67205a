"""Configuration settings for the driftwatch service."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger("driftwatch.config")


def _get_bool(env_var: str, default: bool = False) -> bool:
    """Parse an environment variable into a boolean with a default."""

    value = os.getenv(env_var)
    if value is None:
        return default

    return value.lower() in {"1", "true", "yes", "on"}


def _get_optional_int(env_var: str) -> int | None:
    value = os.getenv(env_var)
    if not value:
        return None
    try:
        return int(value)
    except ValueError:
        logger.warning("Ignoring non-integer value for %s: %r", env_var, value)
        return None


@dataclass
class Settings:
    """Application configuration loaded from environment variables."""

    driftwatch_env: str = os.getenv("DRIFTWATCH_ENV", "local")
    log_level: str = os.getenv("DRIFTWATCH_LOG_LEVEL", "INFO")

    # Position feed
    treasure_base_url: str = os.getenv(
        "TREASURE_BASE_URL", "https://a.windbornesystems.com/treasure"
    )
    treasure_connect_timeout: float = float(os.getenv("TREASURE_CONNECT_TIMEOUT", "3.0"))
    treasure_read_timeout: float = float(os.getenv("TREASURE_READ_TIMEOUT", "8.0"))
    max_rows_per_hour: int | None = _get_optional_int("MAX_ROWS_PER_HOUR")

    # Wind enrichment
    enable_wind_enrichment: bool = _get_bool("ENABLE_WIND_ENRICHMENT", default=True)
    open_meteo_archive_url: str = os.getenv(
        "OPEN_METEO_ARCHIVE_URL", "https://archive-api.open-meteo.com/v1/era5"
    )
    open_meteo_forecast_url: str = os.getenv(
        "OPEN_METEO_FORECAST_URL", "https://api.open-meteo.com/v1/forecast"
    )
    wind_connect_timeout: float = float(os.getenv("WIND_CONNECT_TIMEOUT", "3.0"))
    wind_read_timeout: float = float(os.getenv("WIND_READ_TIMEOUT", "5.0"))
    wind_cache_ttl_seconds: float = float(os.getenv("WIND_CACHE_TTL_SECONDS", "1800"))
    wind_max_concurrency: int = int(os.getenv("WIND_MAX_CONCURRENCY", "8"))
    default_meteo_cap: int = int(os.getenv("DEFAULT_METEO_CAP", "40"))

    # HTTP surface
    result_cache_ttl_seconds: float = float(os.getenv("RESULT_CACHE_TTL_SECONDS", "90"))
    cache_control_max_age: int = int(os.getenv("CACHE_CONTROL_MAX_AGE", "60"))
    user_agent: str = os.getenv("DRIFTWATCH_USER_AGENT", "driftwatch/1.0")


settings = Settings()

__all__ = ["settings", "Settings"]
