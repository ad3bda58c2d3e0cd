"""SQLite-backed append-only log of level readings."""

from __future__ import annotations

import logging
import math
import sqlite3
from datetime import datetime, timezone
from functools import lru_cache
from numbers import Real
from pathlib import Path
from threading import Lock
from typing import Callable, Optional

from models.records import Reading
from settings import get_settings

logger = logging.getLogger(__name__)

_SCHEMA = (
    """
    CREATE TABLE IF NOT EXISTS level_data (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        level REAL NOT NULL,
        created_at TEXT NOT NULL
    )
    """,
    """
    CREATE INDEX IF NOT EXISTS idx_level_data_latest
        ON level_data (created_at DESC, id DESC)
    """,
)

_LATEST_SQL = (
    "SELECT id, level, created_at FROM level_data "
    "ORDER BY created_at DESC, id DESC LIMIT 1"
)


class StoreError(Exception):
    """Base class for reading store failures."""

    kind = "store"


class StoreInvalidError(StoreError, ValueError):
    """The level cannot be stored because it is not a finite number."""

    kind = "invalid"


class StoreUnavailableError(StoreError):
    """The backing database could not be read or written."""

    kind = "unavailable"


class StoreEmptyError(StoreError, LookupError):
    """No readings have been stored yet."""

    kind = "empty"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReadingStore:
    """Durable store of readings in a single SQLite file.

    One connection is shared by every request thread; ``_lock`` serializes
    access to it. Timestamps are written as UTC ISO-8601 strings with a fixed
    microsecond width so lexical ordering matches chronological ordering.
    """

    def __init__(
        self,
        path: Path,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.path = path
        self._clock = clock
        self._lock = Lock()
        try:
            if str(path) != ":memory:":
                path.parent.mkdir(parents=True, exist_ok=True)
            self._conn = sqlite3.connect(str(path), check_same_thread=False)
            with self._conn:
                for statement in _SCHEMA:
                    self._conn.execute(statement)
        except (OSError, sqlite3.Error) as exc:
            raise StoreUnavailableError(
                f"Failed to initialize reading store at {path}: {exc}"
            ) from exc
        logger.info("Reading store initialized at %s", path)

    def append(self, level: float) -> Reading:
        if isinstance(level, bool) or not isinstance(level, Real):
            raise StoreInvalidError(f"Level must be a number, got {level!r}.")
        value = float(level)
        if not math.isfinite(value):
            raise StoreInvalidError(f"Level must be a finite number, got {value!r}.")

        created_at = self._clock().astimezone(timezone.utc)
        try:
            with self._lock, self._conn:
                cursor = self._conn.execute(
                    "INSERT INTO level_data (level, created_at) VALUES (?, ?)",
                    (value, _format_timestamp(created_at)),
                )
                reading_id = cursor.lastrowid
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Failed to insert reading: {exc}") from exc

        return Reading(id=int(reading_id), level=value, created_at=created_at)

    def latest_reading(self) -> Reading:
        try:
            with self._lock:
                row = self._conn.execute(_LATEST_SQL).fetchone()
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Failed to query readings: {exc}") from exc

        if row is None:
            raise StoreEmptyError("No level data found.")
        reading_id, level, created_at = row
        return Reading(
            id=int(reading_id),
            level=float(level),
            created_at=datetime.fromisoformat(created_at),
        )

    def latest(self) -> float:
        return self.latest_reading().level

    def count(self) -> int:
        try:
            with self._lock:
                (total,) = self._conn.execute("SELECT COUNT(*) FROM level_data").fetchone()
        except sqlite3.Error as exc:
            raise StoreUnavailableError(f"Failed to count readings: {exc}") from exc
        return int(total)

    def close(self) -> None:
        with self._lock:
            self._conn.close()


def _format_timestamp(value: datetime) -> str:
    return value.isoformat(timespec="microseconds")


@lru_cache
def build_default_store(path: Optional[str] = None) -> ReadingStore:
    settings = get_settings()
    db_path = settings.db_path if path is None else path
    return ReadingStore(path=Path(db_path))
