"""
Persistence for the "last synchronized at" watermark.

The watermark lives in the ``sync_state`` table of the local store database.
It is read once at the start of a sync cycle and written once after the
cycle's batch committed. It never moves backwards.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Protocol

from dashsync.core.dashboard.db.connection import get_connection, init_db

logger = logging.getLogger(__name__)

WATERMARK_KEY = "last_synchronized_at"


class WatermarkStore(Protocol):
    """Single-value store for the sync watermark."""

    def read(self) -> datetime | None: ...

    def write(self, watermark: datetime) -> None: ...


def _as_utc(value: datetime) -> datetime:
    # Naive timestamps are taken to be UTC so that they stay comparable
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SqliteWatermarkStore:
    """
    Watermark stored as an ISO 8601 string in ``sync_state``.

    Example:
        >>> store = SqliteWatermarkStore(db_path)
        >>> store.read() is None  # first sync
        True
        >>> store.write(datetime(2015, 6, 1, tzinfo=timezone.utc))
        >>> store.read()
        datetime.datetime(2015, 6, 1, 0, 0, tzinfo=datetime.timezone.utc)
    """

    def __init__(self, db_path: Path | str, key: str = WATERMARK_KEY) -> None:
        self.db_path = Path(db_path)
        self.key = key
        if not self.db_path.exists():
            init_db(self.db_path).close()

    @property
    def lock_key(self) -> tuple[str, str]:
        """Identity of the watermark; stores sharing it share one sync lock."""
        return (str(self.db_path.resolve()), self.key)

    def read(self) -> datetime | None:
        """Return the watermark, or None if no sync has completed yet."""
        with get_connection(self.db_path) as conn:
            row = conn.execute(
                "SELECT value FROM sync_state WHERE key = ?", (self.key,)
            ).fetchone()
        if row is None or not row["value"]:
            return None
        return datetime.fromisoformat(row["value"])

    def write(self, watermark: datetime) -> None:
        """
        Persist a new watermark.

        A value older than the stored one is ignored, keeping the watermark
        monotonically non-decreasing.
        """
        current = self.read()
        if current is not None and _as_utc(watermark) < _as_utc(current):
            logger.warning(
                f"Refusing to move watermark backwards from {current.isoformat()} "
                f"to {watermark.isoformat()}"
            )
            return

        with get_connection(self.db_path) as conn:
            conn.execute(
                """
                INSERT INTO sync_state (key, value, updated_at)
                VALUES (?, ?, CURRENT_TIMESTAMP)
                ON CONFLICT(key) DO UPDATE SET
                    value = excluded.value,
                    updated_at = CURRENT_TIMESTAMP
                """,
                (self.key, watermark.isoformat()),
            )
            conn.commit()
        logger.debug(f"Watermark advanced to {watermark.isoformat()}")

    def clear(self) -> None:
        """Forget the watermark so the next cycle does a full fetch."""
        with get_connection(self.db_path) as conn:
            conn.execute("DELETE FROM sync_state WHERE key = ?", (self.key,))
            conn.commit()
