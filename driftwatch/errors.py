"""Domain exceptions raised and recorded by the driftwatch pipeline."""

from __future__ import annotations


class DriftwatchError(Exception):
    """Base class for driftwatch failures."""


class IngestionError(DriftwatchError):
    """A single hour bucket of the position feed could not be fetched."""

    def __init__(self, hour: int, message: str, status_code: int | None = None):
        super().__init__(f"hour {hour:02d}: {message}")
        self.hour = hour
        self.status_code = status_code


class EnrichmentError(DriftwatchError):
    """A wind lookup for one record failed or returned nothing usable."""

    def __init__(self, message: str, *, record_id: str | None = None):
        super().__init__(message)
        self.record_id = record_id


class ProviderExhausted(EnrichmentError):
    """Every wind source was tried for a record and none produced a sample."""


__all__ = ["DriftwatchError", "EnrichmentError", "IngestionError", "ProviderExhausted"]
