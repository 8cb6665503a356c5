"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass

SECONDS_PER_DAY = 86400


@dataclass(frozen=True, slots=True)
class Reading:
    """A single observation of a cumulative counter."""

    timestamp: int
    value: float


@dataclass(frozen=True, slots=True)
class TimeWindow:
    """Half-open ``[start, end)`` interval covering one local calendar day."""

    start: int
    end: int
    label: str
    offset_seconds: int = 0

    def contains(self, timestamp: int) -> bool:
        return self.start <= timestamp < self.end
