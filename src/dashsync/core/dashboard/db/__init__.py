"""
Local store for synced dashboards.

Main components:
- schema.py: SQL schema definitions and migrations
- connection.py: Database connection management
- store.py: Entity reads and atomic batch writes
- watermark.py: The "last synchronized at" marker

Usage:
    from dashsync.core.dashboard.db import SqliteStore, SqliteWatermarkStore

    store = SqliteStore(db_path)
    watermark = SqliteWatermarkStore(db_path)
"""

from dashsync.core.dashboard.db.connection import get_connection, init_db
from dashsync.core.dashboard.db.schema import SCHEMA_VERSION, create_schema
from dashsync.core.dashboard.db.store import LocalStore, SqliteStore
from dashsync.core.dashboard.db.watermark import SqliteWatermarkStore, WatermarkStore

__all__ = [
    "get_connection",
    "init_db",
    "create_schema",
    "SCHEMA_VERSION",
    "LocalStore",
    "SqliteStore",
    "SqliteWatermarkStore",
    "WatermarkStore",
]
