"""Result ordering options for constellation output."""

from __future__ import annotations

from enum import Enum


class ResultOrder(str, Enum):
    """Supported orderings for the balloons list."""

    FASTEST = "fastest"
    RECENT = "recent"
    RANDOM = "random"


DEFAULT_ORDER: ResultOrder = ResultOrder.FASTEST

__all__ = ["ResultOrder", "DEFAULT_ORDER"]
