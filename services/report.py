"""Orchestration of a daily production report: window, fetch, compute, notify."""

from __future__ import annotations

import logging
from datetime import date
from functools import lru_cache
from typing import List, Optional, Tuple

from app.schemas import FallbackMode, ProductionResult
from datastore.readings import RawRecord, ReadingStore, build_default_store, record_in_range
from models.records import TimeWindow
from notify.mailer import Notifier, NotifierUnavailable, build_notifier
from services.delta import DeltaEngine
from services.window import Instant, WindowResolver
from settings import get_settings

logger = logging.getLogger(__name__)


class ReportService:
    """Coordinates the reading store, the delta engine and the notifier."""

    def __init__(
        self,
        store: ReadingStore,
        engine: DeltaEngine,
        resolver: WindowResolver,
        notifier: Optional[Notifier] = None,
        fallback_mode: FallbackMode = FallbackMode.bounded,
        fallback_span: int = 86400,
        day_offset: int = -1,
    ) -> None:
        self.store = store
        self.engine = engine
        self.resolver = resolver
        self.notifier = notifier
        self.fallback_mode = fallback_mode
        self.fallback_span = fallback_span
        self.day_offset = day_offset

    def resolve(
        self,
        day_offset: Optional[int] = None,
        reference: Optional[Instant] = None,
        target_date: Optional[date] = None,
    ) -> TimeWindow:
        if target_date is not None:
            return self.resolver.resolve_date(target_date)
        offset = self.day_offset if day_offset is None else day_offset
        return self.resolver.resolve(reference=reference, day_offset=offset)

    def _fetch(self, window: TimeWindow) -> Tuple[List[RawRecord], Optional[List[RawRecord]]]:
        """Return the in-window records and, unless fallback is off, the wider candidate set.

        The in-window records are taken from the candidate set itself so a stored
        record reaches the engine as a single object.
        """
        if self.fallback_mode is FallbackMode.off:
            return self.store.query_range(window.start, window.end), None
        if self.fallback_mode is FallbackMode.bounded:
            candidates = self.store.query_range(
                window.start - self.fallback_span, window.end + self.fallback_span
            )
        else:
            candidates = self.store.query_all()
        readings = [record for record in candidates if record_in_range(record, window.start, window.end)]
        return readings, candidates

    def compute(
        self,
        day_offset: Optional[int] = None,
        reference: Optional[Instant] = None,
        target_date: Optional[date] = None,
    ) -> ProductionResult:
        """Compute production for one day; ``target_date`` wins over ``day_offset``.

        ``day_offset`` defaults to the service's configured offset.
        """
        window = self.resolve(day_offset=day_offset, reference=reference, target_date=target_date)
        readings, fallback = self._fetch(window)
        span = self.fallback_span if self.fallback_mode is FallbackMode.bounded else None

        result = self.engine.compute(window, readings, fallback=fallback, fallback_span=span)

        log_extra = {
            "window_label": result.window_label,
            "status": result.status.value,
            "delta": result.delta,
            "reading_count": result.reading_count_in_window,
            "malformed_count": result.malformed_count or None,
        }
        if result.warning:
            logger.warning("Production computed with warning: %s", result.warning, extra=log_extra)
        else:
            logger.info("Production computed", extra=log_extra)
        return result

    def send(
        self,
        day_offset: Optional[int] = None,
        reference: Optional[Instant] = None,
        target_date: Optional[date] = None,
    ) -> ProductionResult:
        """Compute production and hand the result to the notifier."""
        if self.notifier is None:
            raise NotifierUnavailable("Email delivery is not configured.")
        result = self.compute(day_offset=day_offset, reference=reference, target_date=target_date)
        self.notifier.send(result)
        return result


@lru_cache
def build_default_service() -> ReportService:
    """Factory that wires the report service from environment settings."""
    settings = get_settings()
    return ReportService(
        store=build_default_store(),
        engine=DeltaEngine(),
        resolver=WindowResolver(offset_seconds=settings.timezone_offset_seconds),
        notifier=build_notifier(settings),
        fallback_mode=FallbackMode(settings.fallback_mode),
        fallback_span=settings.fallback_span_seconds,
        day_offset=settings.day_offset,
    )
