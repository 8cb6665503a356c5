"""Unit tests for the JSON-backed reading store."""

from __future__ import annotations

import json
import logging
from pathlib import Path

from datastore.readings import JsonReadingStore, record_in_range


def test_put_and_get_round_trip_returns_deep_copy() -> None:
    store = JsonReadingStore(name="production")
    record = {"timestamp": 100, "value": 1.5, "meta": {"line": "A"}}

    key = store.put_record(record)
    fetched = store.get_record(key)

    assert fetched == record
    assert fetched is not record

    fetched["meta"]["line"] = "B"  # type: ignore[index]
    assert store.get_record(key)["meta"]["line"] == "A"  # type: ignore[index]


def test_get_record_returns_none_when_missing() -> None:
    store = JsonReadingStore(name="production")

    assert store.get_record("missing") is None


def test_query_range_is_half_open() -> None:
    store = JsonReadingStore(name="production")
    for timestamp in (99, 100, 150, 199, 200):
        store.put_record({"timestamp": timestamp, "value": float(timestamp)}, key=f"k{timestamp}")

    matched = sorted(record["timestamp"] for record in store.query_range(100, 200))

    assert matched == [100, 150, 199]


def test_query_range_skips_unreadable_timestamps_but_query_all_keeps_them() -> None:
    store = JsonReadingStore(name="production")
    store.put_record({"timestamp": 150, "value": 1.0}, key="ok")
    store.put_record({"timestamp": "later", "value": 2.0}, key="bad")
    store.put_record({"value": 3.0}, key="missing")

    assert [record["value"] for record in store.query_range(0, 1000)] == [1.0]
    assert len(store.query_all()) == 3


def test_query_range_skips_timestamps_beyond_float_range() -> None:
    store = JsonReadingStore(name="production")
    store.put_record({"timestamp": 10**400, "value": 1.0}, key="huge")
    store.put_record({"timestamp": 150, "value": 2.0}, key="ok")

    assert [record["value"] for record in store.query_range(0, 1000)] == [2.0]
    assert record_in_range({"timestamp": -(10**400)}, -(10**9), 10**9) is False


def test_query_range_compares_millisecond_timestamps_in_seconds() -> None:
    store = JsonReadingStore(name="production")
    store.put_record({"timestamp": 1713312000500, "value": 1.0})

    assert len(store.query_range(1713312000, 1713312001)) == 1
    assert store.query_range(1713312001, 1713312100) == []


def test_put_record_persists_to_disk_and_reloads(tmp_path: Path) -> None:
    path = tmp_path / "readings.json"
    store = JsonReadingStore(name="production", persistence_path=path)

    key = store.put_record({"timestamp": 10, "value": 2.0})

    payload = json.loads(path.read_text())
    assert payload == {"production": {key: {"timestamp": 10, "value": 2.0}}}

    reloaded = JsonReadingStore(name="production", persistence_path=path)
    assert reloaded.get_record(key) == {"timestamp": 10, "value": 2.0}


def test_loads_realtime_database_export(tmp_path: Path) -> None:
    path = tmp_path / "export.json"
    path.write_text(
        json.dumps(
            {
                "production": {
                    "-NvA1": {"timestamp": 1713312000, "value": 10},
                    "-NvA2": 42,
                },
                "other": {"-X": {"timestamp": 1, "value": 1}},
            }
        )
    )

    store = JsonReadingStore(name="production", persistence_path=path)

    records = store.query_all()
    assert len(records) == 2
    assert {"timestamp": None, "value": 42} in records


def test_unreadable_export_is_ignored(tmp_path: Path) -> None:
    path = tmp_path / "broken.json"
    path.write_text("{not json")

    store = JsonReadingStore(name="production", persistence_path=path)

    assert store.query_all() == []


def test_put_record_logs_the_key(caplog) -> None:
    store = JsonReadingStore(name="production")

    with caplog.at_level(logging.DEBUG, logger="datastore.readings"):
        key = store.put_record({"timestamp": 10, "value": 2.0})

    stored = [record for record in caplog.records if record.name == "datastore.readings"]
    assert [getattr(record, "record_key", None) for record in stored] == [key]
