"""Resolution of a local calendar day into absolute epoch-second bounds.

The timezone model is a constant UTC offset: no DST transitions and no leap
seconds, so every window is exactly 86400 seconds long. All arithmetic is
done on integer instants; nothing is derived from a mutated calendar object.
"""

from __future__ import annotations

import math
import time
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional, Union

from models.records import SECONDS_PER_DAY, TimeWindow

Instant = Union[int, float, datetime]

_EPOCH_DATE = date(1970, 1, 1)
_MAX_OFFSET_SECONDS = SECONDS_PER_DAY


class InvalidWindow(ValueError):
    """Raised when a window cannot be resolved from the given parameters."""


def validate_offset(offset_seconds: int) -> int:
    if isinstance(offset_seconds, bool) or not isinstance(offset_seconds, int):
        raise InvalidWindow(f"UTC offset must be whole seconds, got {offset_seconds!r}")
    if abs(offset_seconds) > _MAX_OFFSET_SECONDS:
        raise InvalidWindow(f"UTC offset {offset_seconds}s is outside +/-24h")
    return offset_seconds


def to_epoch_seconds(reference: Instant) -> int:
    """Normalise a reference instant to whole epoch seconds (floored)."""
    if isinstance(reference, datetime):
        if reference.tzinfo is None:
            reference = reference.replace(tzinfo=timezone.utc)
        return math.floor(reference.timestamp())
    if isinstance(reference, bool) or not isinstance(reference, (int, float)):
        raise InvalidWindow(f"Reference instant must be numeric, got {reference!r}")
    if isinstance(reference, float) and not math.isfinite(reference):
        raise InvalidWindow(f"Reference instant must be finite, got {reference!r}")
    return math.floor(reference)


def _label_for(local_midnight: int) -> str:
    try:
        local_date = _EPOCH_DATE + timedelta(days=local_midnight // SECONDS_PER_DAY)
    except OverflowError as exc:
        raise InvalidWindow("Resolved day is outside the supported calendar range") from exc
    return local_date.isoformat()


def resolve_window(reference: Instant, offset_seconds: int, day_offset: int = 0) -> TimeWindow:
    """Return the window for the local day ``day_offset`` days from ``reference``."""
    validate_offset(offset_seconds)
    if isinstance(day_offset, bool) or not isinstance(day_offset, int):
        raise InvalidWindow(f"Day offset must be an integer, got {day_offset!r}")

    local_instant = to_epoch_seconds(reference) + offset_seconds
    local_midnight = local_instant - local_instant % SECONDS_PER_DAY
    local_midnight += day_offset * SECONDS_PER_DAY

    start = local_midnight - offset_seconds
    return TimeWindow(
        start=start,
        end=start + SECONDS_PER_DAY,
        label=_label_for(local_midnight),
        offset_seconds=offset_seconds,
    )


def resolve_date(target: date, offset_seconds: int) -> TimeWindow:
    """Return the window for an explicit local calendar date."""
    validate_offset(offset_seconds)
    local_midnight = (target - _EPOCH_DATE).days * SECONDS_PER_DAY
    start = local_midnight - offset_seconds
    return TimeWindow(
        start=start,
        end=start + SECONDS_PER_DAY,
        label=target.isoformat(),
        offset_seconds=offset_seconds,
    )


class WindowResolver:
    """Resolves day windows for a fixed UTC offset, reading "now" from ``clock``."""

    def __init__(self, offset_seconds: int = 0, clock: Callable[[], float] = time.time) -> None:
        self.offset_seconds = validate_offset(offset_seconds)
        self._clock = clock

    def resolve(self, reference: Optional[Instant] = None, day_offset: int = 0) -> TimeWindow:
        if reference is None:
            reference = self._clock()
        return resolve_window(reference, self.offset_seconds, day_offset)

    def resolve_date(self, target: date) -> TimeWindow:
        return resolve_date(target, self.offset_seconds)
