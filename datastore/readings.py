from __future__ import annotations
import copy
import json
import logging
import math
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Any, Dict, Optional, Protocol
from uuid import uuid4

from settings import get_settings

logger = logging.getLogger(__name__)

RawRecord = Dict[str, Any]


class ReadingStore(Protocol):
    """Range-queryable source of raw counter records."""

    def query_range(self, start: int, end: int) -> list[RawRecord]: ...

    def query_all(self) -> list[RawRecord]: ...


def _record_timestamp(record: RawRecord) -> Optional[float]:
    raw = record.get("timestamp")
    if isinstance(raw, bool):
        return None
    if isinstance(raw, str):
        try:
            raw = float(raw.strip())
        except ValueError:
            return None
    if not isinstance(raw, (int, float)):
        return None
    try:
        if not math.isfinite(raw):
            return None
    except OverflowError:
        return None
    # Millisecond timestamps are compared in seconds.
    return raw / 1000 if abs(raw) >= 10**11 else raw


def record_in_range(record: RawRecord, start: int, end: int) -> bool:
    """True when ``record`` has a readable timestamp with ``start <= timestamp < end``."""
    timestamp = _record_timestamp(record)
    return timestamp is not None and start <= timestamp < end


class JsonReadingStore:
    """In-memory record collection persisted as a ``{key: record}`` JSON export."""

    def __init__(self, name: str, persistence_path: Optional[Path] = None) -> None:
        self.name = name
        self._records: Dict[str, RawRecord] = {}
        self.persistence_path = persistence_path
        self._lock = Lock()
        if persistence_path:
            persistence_path.parent.mkdir(parents=True, exist_ok=True)
            self._load_from_disk()

    def put_record(self, record: RawRecord, key: Optional[str] = None) -> str:
        record_key = key or uuid4().hex
        with self._lock:
            self._records[record_key] = copy.deepcopy(record)
            self._persist()
        logger.debug("Stored reading", extra={"record_key": record_key})
        return record_key

    def get_record(self, key: str) -> Optional[RawRecord]:
        with self._lock:
            record = self._records.get(key)
            if record is None:
                return None
            return copy.deepcopy(record)

    def query_range(self, start: int, end: int) -> list[RawRecord]:
        """Return records with ``start <= timestamp < end``; unreadable timestamps never match."""

        with self._lock:
            return [
                copy.deepcopy(record)
                for record in self._records.values()
                if record_in_range(record, start, end)
            ]

    def query_all(self) -> list[RawRecord]:
        with self._lock:
            return [copy.deepcopy(record) for record in self._records.values()]

    def _persist(self) -> None:
        if not self.persistence_path:
            return
        payload = {self.name: self._records}
        self.persistence_path.write_text(json.dumps(payload, indent=2, sort_keys=True))

    def _load_from_disk(self) -> None:
        if not self.persistence_path or not self.persistence_path.exists():
            return

        try:
            raw = self.persistence_path.read_text() or "{}"
            data = json.loads(raw)
        except (OSError, json.JSONDecodeError):
            logger.warning("Ignoring unreadable readings export %s", self.persistence_path)
            data = {}

        collection = data.get(self.name, {}) if isinstance(data, dict) else {}
        if not isinstance(collection, dict):
            return
        for key, record in collection.items():
            if isinstance(record, dict):
                self._records[key] = record
            else:
                # Keep non-object entries so they surface as malformed downstream.
                logger.warning("Readings export entry is not an object", extra={"record_key": key})
                self._records[key] = {"timestamp": None, "value": record}


@lru_cache
def build_default_store(
    name: Optional[str] = None,
    path: Optional[str] = None,
) -> JsonReadingStore:
    settings = get_settings()
    collection = settings.readings_collection if name is None else name
    store_path = settings.readings_path if path is None else path
    persistence = Path(store_path) if store_path else None
    return JsonReadingStore(name=collection, persistence_path=persistence)
