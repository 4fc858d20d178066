"""
SQLite local store for synced dashboard entities.

Reads return pydantic models; writes happen only through ``apply_batch``,
which applies an ordered list of DbOperation in a single transaction.
If any operation fails the transaction is rolled back and
StorageCommitFailed is raised, so readers never observe a partial batch.

Usage:
    from dashsync.core.dashboard.db.store import SqliteStore

    store = SqliteStore(Path(".dashsync/dashboards.db"))
    dashboards = store.query_dashboards()
    store.apply_batch([DbOperation.insert(dashboard)])
"""

import json
import logging
import sqlite3
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from dashsync.core.dashboard.db.connection import get_connection, init_db
from dashsync.core.dashboard.exceptions import StorageCommitFailed
from dashsync.core.dashboard.models import (
    ContentType,
    Dashboard,
    DashboardElement,
    DashboardItem,
    DashboardItemContent,
    DbOperation,
    Entity,
    OperationKind,
)

logger = logging.getLogger(__name__)


class LocalStore(Protocol):
    """Persisted snapshot the sync layer reconciles against."""

    def query_dashboards(self) -> list[Dashboard]: ...

    def query_dashboard_items(self) -> list[DashboardItem]: ...

    def query_contents(
        self, content_type: ContentType | None = None
    ) -> list[DashboardItemContent]: ...

    def query_elements(self, item_uid: str) -> list[DashboardElement]: ...

    def apply_batch(self, operations: Sequence[DbOperation]) -> None: ...

    def count_rows(self) -> dict[str, int]: ...


@dataclass(frozen=True)
class _Table:
    name: str
    key_columns: tuple[str, ...]


DASHBOARDS_TABLE = _Table("dashboards", ("uid",))
ITEMS_TABLE = _Table("dashboard_items", ("uid",))
CONTENTS_TABLE = _Table("dashboard_item_contents", ("type", "uid"))
ELEMENTS_TABLE = _Table("dashboard_elements", ("dashboard_item_uid", "uid"))


def _timestamp(value: datetime | None) -> str | None:
    return value.isoformat() if value else None


def _json(value: Any) -> str | None:
    return json.dumps(value) if value is not None else None


def _loads(value: str | None) -> Any:
    return json.loads(value) if value else None


def entity_row(entity: Entity) -> tuple[_Table, dict[str, Any]]:
    """
    Map an entity to its table and column values.

    Raises:
        TypeError: If the entity type has no table
    """
    row: dict[str, Any] = {
        "uid": entity.uid,
        "created": _timestamp(entity.created),
        "last_updated": _timestamp(entity.last_updated),
        "state": entity.state.value,
    }
    match entity:
        case Dashboard():
            row.update(
                name=entity.name,
                display_name=entity.display_name,
                access=_json(entity.access),
                item_uids=json.dumps(entity.item_uids),
            )
            return DASHBOARDS_TABLE, row
        case DashboardItem():
            row.update(
                type=entity.type,
                shape=entity.shape,
                messages=entity.messages,
                access=_json(entity.access),
                dashboard_uid=entity.dashboard_uid,
            )
            return ITEMS_TABLE, row
        case DashboardItemContent():
            row.update(
                type=entity.type.value,
                name=entity.name,
                display_name=entity.display_name,
            )
            return CONTENTS_TABLE, row
        case DashboardElement():
            row.update(
                dashboard_item_uid=entity.dashboard_item_uid,
                content_type=entity.content_type.value,
                name=entity.name,
                display_name=entity.display_name,
            )
            return ELEMENTS_TABLE, row
        case _:
            raise TypeError(f"No table for entity type {type(entity).__name__}")


class SqliteStore:
    """
    Local store backed by one SQLite database file.

    Every call opens its own connection, so the store can be used from
    worker threads (the orchestrator applies batches via asyncio.to_thread).

    Example:
        >>> store = SqliteStore(tmp_path / "dashboards.db")
        >>> store.query_dashboards()
        []
    """

    def __init__(self, db_path: Path | str) -> None:
        self.db_path = Path(db_path)
        if not self.db_path.exists():
            logger.info(f"Initializing database: {self.db_path}")
            init_db(self.db_path).close()

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def query_dashboards(self) -> list[Dashboard]:
        with get_connection(self.db_path) as conn:
            rows = conn.execute("SELECT * FROM dashboards ORDER BY rowid").fetchall()
        return [
            Dashboard.model_validate(
                {
                    **row,
                    "access": _loads(row["access"]),
                    "item_uids": _loads(row["item_uids"]) or [],
                }
            )
            for row in rows
        ]

    def query_dashboard_items(self) -> list[DashboardItem]:
        """
        Load all items with their content references.

        Content references are rebuilt from the stored element rows, so a
        persisted item compares equal to the fetched item it came from.
        """
        with get_connection(self.db_path) as conn:
            rows = conn.execute("SELECT * FROM dashboard_items ORDER BY rowid").fetchall()
            element_rows = conn.execute(
                "SELECT * FROM dashboard_elements ORDER BY rowid"
            ).fetchall()

        refs_by_item: dict[str, list[Any]] = {}
        for element_row in element_rows:
            element = self._element_from_row(element_row)
            refs_by_item.setdefault(element.dashboard_item_uid, []).append(element.to_ref())

        return [
            DashboardItem.model_validate(
                {
                    **row,
                    "messages": bool(row["messages"]) if row["messages"] is not None else None,
                    "access": _loads(row["access"]),
                    "content": refs_by_item.get(row["uid"], []),
                }
            )
            for row in rows
        ]

    def query_contents(
        self, content_type: ContentType | None = None
    ) -> list[DashboardItemContent]:
        """Load content rows, optionally only those of one kind."""
        with get_connection(self.db_path) as conn:
            if content_type is None:
                cursor = conn.execute("SELECT * FROM dashboard_item_contents ORDER BY rowid")
            else:
                cursor = conn.execute(
                    "SELECT * FROM dashboard_item_contents WHERE type = ? ORDER BY rowid",
                    (content_type.value,),
                )
            rows = cursor.fetchall()
        return [DashboardItemContent.model_validate(row) for row in rows]

    def query_elements(self, item_uid: str) -> list[DashboardElement]:
        """Load the element rows owned by one item."""
        with get_connection(self.db_path) as conn:
            rows = conn.execute(
                "SELECT * FROM dashboard_elements WHERE dashboard_item_uid = ? ORDER BY rowid",
                (item_uid,),
            ).fetchall()
        return [self._element_from_row(row) for row in rows]

    def count_rows(self) -> dict[str, int]:
        """Row counts per entity table."""
        counts: dict[str, int] = {}
        with get_connection(self.db_path) as conn:
            for table in (DASHBOARDS_TABLE, ITEMS_TABLE, CONTENTS_TABLE, ELEMENTS_TABLE):
                row = conn.execute(f"SELECT COUNT(*) AS count FROM {table.name}").fetchone()
                counts[table.name] = row["count"]
        return counts

    @staticmethod
    def _element_from_row(row: dict[str, Any]) -> DashboardElement:
        return DashboardElement.model_validate(row)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def apply_batch(self, operations: Sequence[DbOperation]) -> None:
        """
        Apply operations in order, all or nothing.

        Raises:
            StorageCommitFailed: If any operation or the commit fails; the
                database is left exactly as it was before the call
        """
        if not operations:
            logger.debug("Empty batch, nothing to apply")
            return

        with get_connection(self.db_path) as conn:
            try:
                conn.execute("BEGIN IMMEDIATE")
                for operation in operations:
                    self._apply(conn, operation)
                conn.commit()
            except (sqlite3.Error, TypeError) as e:
                conn.rollback()
                logger.error(f"Batch of {len(operations)} operations rolled back: {e}")
                raise StorageCommitFailed(e, operations=len(operations)) from e

        logger.info(f"Applied batch of {len(operations)} operations")

    def _apply(self, conn: sqlite3.Connection, operation: DbOperation) -> None:
        table, row = entity_row(operation.entity)
        key_clause = " AND ".join(f"{column} = ?" for column in table.key_columns)
        key_values = tuple(row[column] for column in table.key_columns)

        if operation.kind == OperationKind.DELETE:
            conn.execute(f"DELETE FROM {table.name} WHERE {key_clause}", key_values)
            return

        columns = list(row)
        placeholders = ",".join("?" * len(columns))
        query = f"INSERT INTO {table.name} ({','.join(columns)}) VALUES ({placeholders})"
        if operation.kind == OperationKind.UPDATE:
            # Whole-row replacement without deleting the row, so cascades don't fire
            assignments = ",".join(
                f"{column} = excluded.{column}"
                for column in columns
                if column not in table.key_columns
            )
            query += (
                f" ON CONFLICT({','.join(table.key_columns)}) DO UPDATE SET {assignments}"
            )
        conn.execute(query, tuple(row.values()))
