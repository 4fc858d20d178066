"""
SQLite schema for the local dashboard store.

Schema Design:
- dashboards: one row per dashboard, item order kept as a JSON list
- dashboard_items: one row per item, ``dashboard_uid`` is the owning dashboard
- dashboard_item_contents: content of all eight kinds, keyed by (type, uid)
- dashboard_elements: item -> content wrappers, keyed by (dashboard_item_uid, uid)
- sync_state: key/value rows, holds the sync watermark
- schema_info: version tracking for migrations

Rows are always replaced whole. Deleting an item removes its elements
(ON DELETE CASCADE); deleting a dashboard detaches its items (ON DELETE SET NULL)
until the same batch deletes or re-links them.
"""

import sqlite3

from dashsync.core.dashboard.models import ContentType, EntityState

# Schema version for migrations
SCHEMA_VERSION = 1

_STATES = ", ".join(f"'{state.value}'" for state in EntityState)
_CONTENT_TYPES = ", ".join(f"'{kind.value}'" for kind in ContentType)

# SQLite schema DDL
SCHEMA_DDL = f"""
-- Schema version tracking
CREATE TABLE IF NOT EXISTS schema_info (
    version INTEGER PRIMARY KEY,
    applied_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
    description TEXT
);

CREATE TABLE IF NOT EXISTS dashboards (
    uid TEXT PRIMARY KEY,
    created TIMESTAMP,
    last_updated TIMESTAMP,
    name TEXT,
    display_name TEXT,
    access JSON,
    item_uids JSON,
    state TEXT NOT NULL DEFAULT 'synced' CHECK(state IN ({_STATES}))
);

CREATE TABLE IF NOT EXISTS dashboard_items (
    uid TEXT PRIMARY KEY,
    created TIMESTAMP,
    last_updated TIMESTAMP,
    type TEXT,
    shape TEXT,
    messages INTEGER,
    access JSON,
    dashboard_uid TEXT,
    state TEXT NOT NULL DEFAULT 'synced' CHECK(state IN ({_STATES})),

    FOREIGN KEY (dashboard_uid) REFERENCES dashboards(uid) ON DELETE SET NULL
);

CREATE TABLE IF NOT EXISTS dashboard_item_contents (
    uid TEXT NOT NULL,
    type TEXT NOT NULL CHECK(type IN ({_CONTENT_TYPES})),
    created TIMESTAMP,
    last_updated TIMESTAMP,
    name TEXT,
    display_name TEXT,
    state TEXT NOT NULL DEFAULT 'synced' CHECK(state IN ({_STATES})),

    PRIMARY KEY (type, uid)
);

CREATE TABLE IF NOT EXISTS dashboard_elements (
    uid TEXT NOT NULL,
    dashboard_item_uid TEXT NOT NULL,
    content_type TEXT NOT NULL CHECK(content_type IN ({_CONTENT_TYPES})),
    created TIMESTAMP,
    last_updated TIMESTAMP,
    name TEXT,
    display_name TEXT,
    state TEXT NOT NULL DEFAULT 'synced' CHECK(state IN ({_STATES})),

    FOREIGN KEY (dashboard_item_uid) REFERENCES dashboard_items(uid) ON DELETE CASCADE,

    PRIMARY KEY (dashboard_item_uid, uid)
);

-- Sync bookkeeping (watermark)
CREATE TABLE IF NOT EXISTS sync_state (
    key TEXT PRIMARY KEY,
    value TEXT,
    updated_at TIMESTAMP DEFAULT CURRENT_TIMESTAMP
);

CREATE INDEX IF NOT EXISTS idx_dashboard_items_dashboard ON dashboard_items(dashboard_uid);
CREATE INDEX IF NOT EXISTS idx_contents_type ON dashboard_item_contents(type);
CREATE INDEX IF NOT EXISTS idx_elements_item ON dashboard_elements(dashboard_item_uid);
"""


def create_schema(conn: sqlite3.Connection) -> None:
    """
    Create the database schema.

    Idempotent: safe to call on an existing database.

    Example:
        >>> import sqlite3
        >>> conn = sqlite3.connect(":memory:")
        >>> create_schema(conn)
        >>> cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        >>> "dashboard_elements" in [row[0] for row in cursor.fetchall()]
        True
    """
    conn.executescript(SCHEMA_DDL)

    conn.execute(
        """
        INSERT OR REPLACE INTO schema_info (version, description)
        VALUES (?, ?)
        """,
        (SCHEMA_VERSION, "Dashboards, items, contents, elements and sync state"),
    )

    conn.commit()


def get_schema_version(conn: sqlite3.Connection) -> int | None:
    """
    Get the current schema version, or None if the schema was never created.
    """
    try:
        cursor = conn.execute("SELECT MAX(version) AS version FROM schema_info")
        row = cursor.fetchone()
    except sqlite3.OperationalError:
        # schema_info table doesn't exist
        return None
    if row is None:
        return None
    value = row["version"] if isinstance(row, dict) else row[0]
    return int(value) if value is not None else None


def needs_migration(conn: sqlite3.Connection) -> bool:
    """True if the database is missing the schema or has an older version."""
    current_version = get_schema_version(conn)
    if current_version is None:
        return True
    return current_version < SCHEMA_VERSION
