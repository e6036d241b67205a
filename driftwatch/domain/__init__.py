"""Domain enums shared across the API and service layers."""

from .ordering import DEFAULT_ORDER, ResultOrder

__all__ = ["DEFAULT_ORDER", "ResultOrder"]
