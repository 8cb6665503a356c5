"""Daily delta computation for cumulative counter readings."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from app.schemas import ProductionResult, ProductionStatus, ReadingOut
from models.records import Reading, TimeWindow

logger = logging.getLogger(__name__)

RawRecord = Union[Reading, Mapping[str, Any]]

# Anything this large is a JavaScript-style millisecond timestamp (year 5138+ in seconds).
_MILLISECOND_THRESHOLD = 10**11


class MalformedReading(ValueError):
    """A supplied record cannot be interpreted as a reading."""

    def __init__(self, reason: str) -> None:
        super().__init__(reason)
        self.reason = reason


def _coerce_number(raw: Any, field_name: str) -> float:
    if raw is None:
        raise MalformedReading(f"missing {field_name}")
    if isinstance(raw, bool):
        raise MalformedReading(f"non-numeric {field_name}")
    if isinstance(raw, str):
        candidate = raw.strip()
        if not candidate:
            raise MalformedReading(f"missing {field_name}")
        try:
            number: float = float(candidate)
        except ValueError as exc:
            raise MalformedReading(f"non-numeric {field_name}") from exc
    elif isinstance(raw, (int, float)):
        number = raw
    else:
        raise MalformedReading(f"non-numeric {field_name}")
    try:
        finite = math.isfinite(number)
    except OverflowError:
        # Integers beyond float range.
        finite = False
    if not finite:
        raise MalformedReading(f"non-finite {field_name}")
    return number


def coerce_reading(record: RawRecord) -> Reading:
    """Turn a raw store record into a :class:`Reading` or raise ``MalformedReading``."""
    if isinstance(record, Reading):
        raw_timestamp, raw_value = record.timestamp, record.value
    elif isinstance(record, Mapping):
        raw_timestamp, raw_value = record.get("timestamp"), record.get("value")
    else:
        raise MalformedReading("unsupported record type")

    timestamp = _coerce_number(raw_timestamp, "timestamp")
    value = _coerce_number(raw_value, "value")

    if abs(timestamp) >= _MILLISECOND_THRESHOLD:
        seconds = timestamp // 1000 if isinstance(timestamp, int) else math.floor(timestamp / 1000)
    else:
        seconds = math.floor(timestamp)
    return Reading(timestamp=int(seconds), value=float(value))


@dataclass(frozen=True)
class _Boundaries:
    status: ProductionStatus
    first: Optional[Reading] = None
    last: Optional[Reading] = None

    @property
    def delta(self) -> float:
        if self.status in (ProductionStatus.exact, ProductionStatus.fallback):
            assert self.first is not None and self.last is not None
            return self.last.value - self.first.value
        return 0.0


@dataclass(frozen=True)
class _Inputs:
    window: TimeWindow
    pool: Sequence[Reading]
    in_window: Sequence[Reading]
    fallback_requested: bool
    fallback_span: Optional[int]


Rule = Callable[[_Inputs], Optional[_Boundaries]]


def _exact_rule(inputs: _Inputs) -> Optional[_Boundaries]:
    if len(inputs.in_window) < 2:
        return None
    return _Boundaries(ProductionStatus.exact, inputs.in_window[0], inputs.in_window[-1])


def _fallback_rule(inputs: _Inputs) -> Optional[_Boundaries]:
    if not inputs.fallback_requested:
        return None

    window = inputs.window
    candidates = list(inputs.pool)
    if inputs.fallback_span is not None:
        lower = window.start - inputs.fallback_span
        upper = window.end + inputs.fallback_span
        candidates = [r for r in candidates if lower <= r.timestamp < upper]
    if not candidates:
        return None

    before = [r for r in candidates if r.timestamp < window.start]
    after = [r for r in candidates if r.timestamp >= window.end]
    first = before[-1] if before else candidates[0]
    last = after[0] if after else candidates[-1]
    if first.timestamp >= last.timestamp:
        return None
    return _Boundaries(ProductionStatus.fallback, first, last)


def _single_rule(inputs: _Inputs) -> Optional[_Boundaries]:
    if len(inputs.in_window) != 1:
        return None
    only = inputs.in_window[0]
    return _Boundaries(ProductionStatus.single_reading, only, only)


def _no_data_rule(_inputs: _Inputs) -> Optional[_Boundaries]:
    return _Boundaries(ProductionStatus.no_data)


# Evaluated top to bottom; the first rule that matches decides the status.
DECISION_TABLE: Tuple[Rule, ...] = (
    _exact_rule,
    _fallback_rule,
    _single_rule,
    _no_data_rule,
)


class DeltaEngine:
    """Pure production calculator that can be unit tested in isolation."""

    def __init__(self, mismatch_tolerance: float = 1e-6) -> None:
        self.mismatch_tolerance = mismatch_tolerance

    def compute(
        self,
        window: TimeWindow,
        readings: Iterable[RawRecord],
        fallback: Optional[Iterable[RawRecord]] = None,
        fallback_span: Optional[int] = None,
    ) -> ProductionResult:
        """Classify the day's data and compute the counter increase over ``window``.

        ``fallback`` is a wider candidate set (``None`` means fallback was not
        requested). When ``fallback_span`` is given, candidates further than that
        many seconds outside the window are ignored.
        """
        rejected: Dict[int, RawRecord] = {}
        primary = self._coerce_all(readings, window, rejected)
        candidates: List[Reading] = []
        if fallback is not None:
            candidates = self._coerce_all(fallback, window, rejected)
        malformed_count = len(rejected)

        pool = sorted(set(primary) | set(candidates), key=lambda r: (r.timestamp, r.value))
        in_window = [r for r in pool if window.contains(r.timestamp)]

        inputs = _Inputs(
            window=window,
            pool=pool,
            in_window=in_window,
            fallback_requested=fallback is not None,
            fallback_span=fallback_span,
        )
        boundaries = next(
            chosen for chosen in (rule(inputs) for rule in DECISION_TABLE) if chosen is not None
        )

        delta = boundaries.delta
        verified_delta: Optional[float] = None
        warnings: List[str] = []
        if boundaries.status is ProductionStatus.exact and len(in_window) > 2:
            verified_delta = self._positive_increments(in_window)
            if not math.isclose(verified_delta, delta, rel_tol=0.0, abs_tol=self.mismatch_tolerance):
                warnings.append(
                    f"non-monotonic readings: increments sum to {verified_delta} "
                    f"but end-to-end delta is {delta}"
                )
        if delta < 0:
            warnings.append(f"counter decreased by {-delta} over the window")

        return ProductionResult(
            window_label=window.label,
            window_start=window.start,
            window_end=window.end,
            status=boundaries.status,
            delta=delta,
            first_reading=_to_out(boundaries.first),
            last_reading=_to_out(boundaries.last),
            reading_count_in_window=len(in_window),
            used_fallback=boundaries.status is ProductionStatus.fallback,
            verified_delta=verified_delta,
            warning="; ".join(warnings) or None,
            malformed_count=malformed_count,
        )

    @staticmethod
    def _coerce_all(
        records: Iterable[RawRecord], window: TimeWindow, rejected: Dict[int, RawRecord]
    ) -> List[Reading]:
        """Coerce ``records``, keeping each bad record in ``rejected`` keyed by ``id``.

        A record object passed in both the primary and fallback sets is counted
        once; separate rows with equal content are counted separately.
        """
        readings: List[Reading] = []
        for record in records:
            try:
                readings.append(coerce_reading(record))
            except MalformedReading as exc:
                if id(record) in rejected:
                    continue
                rejected[id(record)] = record
                logger.warning(
                    "Skipping malformed reading: %s",
                    exc.reason,
                    extra={"window_label": window.label, "reason": exc.reason},
                )
        return readings

    @staticmethod
    def _positive_increments(sequence: Sequence[Reading]) -> float:
        total = 0.0
        for previous, current in zip(sequence, sequence[1:]):
            step = current.value - previous.value
            if step > 0:
                total += step
        return total


def _to_out(reading: Optional[Reading]) -> Optional[ReadingOut]:
    if reading is None:
        return None
    return ReadingOut(timestamp=reading.timestamp, value=reading.value)
