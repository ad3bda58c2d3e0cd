"""Unit tests for the SQLite reading store."""

from __future__ import annotations

import math
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Iterator, List

import pytest

from datastore.reading_store import (
    ReadingStore,
    StoreEmptyError,
    StoreError,
    StoreInvalidError,
    StoreUnavailableError,
)


class SequenceClock:
    """Returns the queued timestamps in order, repeating the last one."""

    def __init__(self, *moments: datetime) -> None:
        self._moments: List[datetime] = list(moments)

    def __call__(self) -> datetime:
        if len(self._moments) > 1:
            return self._moments.pop(0)
        return self._moments[0]


_T0 = datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def store(tmp_path: Path) -> Iterator[ReadingStore]:
    instance = ReadingStore(path=tmp_path / "data.db")
    yield instance
    instance.close()


def test_append_then_latest_returns_level(store: ReadingStore) -> None:
    reading = store.append(12.5)

    assert reading.id == 1
    assert reading.level == 12.5
    assert reading.created_at.tzinfo is not None
    assert store.latest() == 12.5


def test_latest_on_empty_store_raises(store: ReadingStore) -> None:
    with pytest.raises(StoreEmptyError) as excinfo:
        store.latest()

    assert excinfo.value.kind == "empty"
    assert isinstance(excinfo.value, StoreError)


def test_latest_follows_most_recent_append(store: ReadingStore) -> None:
    for level in (1.0, 7.25, -3.5, 42.0):
        store.append(level)

    assert store.latest() == 42.0
    assert store.count() == 4


def test_identical_timestamps_fall_back_to_insertion_order(tmp_path: Path) -> None:
    store = ReadingStore(path=tmp_path / "data.db", clock=SequenceClock(_T0))
    try:
        store.append(1.0)
        store.append(2.0)
        last = store.append(3.0)

        latest = store.latest_reading()
        assert latest.id == last.id
        assert latest.level == 3.0
        assert latest.created_at == _T0
    finally:
        store.close()


def test_latest_orders_by_timestamp_not_insertion(tmp_path: Path) -> None:
    clock = SequenceClock(_T0 + timedelta(minutes=5), _T0)
    store = ReadingStore(path=tmp_path / "data.db", clock=clock)
    try:
        store.append(9.0)
        store.append(1.0)

        assert store.latest() == 9.0
    finally:
        store.close()


@pytest.mark.parametrize("value", [math.nan, math.inf, -math.inf])
def test_non_finite_levels_are_rejected(store: ReadingStore, value: float) -> None:
    with pytest.raises(StoreInvalidError):
        store.append(value)

    assert store.count() == 0


@pytest.mark.parametrize("value", [True, "12.0", None])
def test_non_numeric_levels_are_rejected(store: ReadingStore, value) -> None:
    with pytest.raises(StoreInvalidError):
        store.append(value)  # type: ignore[arg-type]

    assert store.count() == 0


def test_integer_levels_are_stored_as_floats(store: ReadingStore) -> None:
    reading = store.append(7)

    assert isinstance(reading.level, float)
    assert store.latest() == 7.0


def test_readings_survive_reopen(tmp_path: Path) -> None:
    path = tmp_path / "nested" / "data.db"
    first = ReadingStore(path=path)
    first.append(3.25)
    first.close()

    reopened = ReadingStore(path=path)
    try:
        assert path.exists()
        assert reopened.count() == 1
        assert reopened.latest() == 3.25
        assert reopened.append(4.0).id == 2
    finally:
        reopened.close()


def test_closed_store_reports_unavailable(tmp_path: Path) -> None:
    store = ReadingStore(path=tmp_path / "data.db")
    store.close()

    with pytest.raises(StoreUnavailableError):
        store.append(1.0)
    with pytest.raises(StoreUnavailableError):
        store.latest()


def test_unwritable_location_reports_unavailable(tmp_path: Path) -> None:
    blocker = tmp_path / "not-a-dir"
    blocker.write_text("occupied")

    with pytest.raises(StoreUnavailableError):
        ReadingStore(path=blocker / "data.db")
