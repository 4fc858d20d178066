"""
Pytest configuration and shared fixtures.

Provides temp SQLite stores, a controllable clock and an in-memory fake of
the remote API that honours the ``fields=id`` listing and the
``lastUpdated:gt:`` filter the sync layer relies on.
"""

from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from dashsync.core.config import clear_cache
from dashsync.core.dashboard.db import SqliteStore, SqliteWatermarkStore, init_db
from dashsync.core.dashboard.models import DASHBOARD_ITEMS, DASHBOARDS, ContentType

EPOCH = datetime(2015, 6, 1, tzinfo=timezone.utc)


def at(day: int) -> datetime:
    """Timestamp ``day`` days after 2015-06-01 UTC."""
    return EPOCH + timedelta(days=day)


# ==============================================================================
# Remote Fake
# ==============================================================================


class FakeRemote:
    """
    In-memory remote data source.

    Entities are stored as the JSON dicts the server would return. A
    resource listed in ``failures`` raises the given exception instead of
    answering.
    """

    def __init__(self) -> None:
        self.dashboards: dict[str, dict[str, Any]] = {}
        self.items: dict[str, dict[str, Any]] = {}
        self.contents: dict[ContentType, dict[str, dict[str, Any]]] = {
            kind: {} for kind in ContentType
        }
        self.failures: dict[str, Exception] = {}
        self.requests: list[tuple[str, dict[str, str]]] = []

    # Builders ------------------------------------------------------------

    def add_dashboard(self, uid: str, item_uids: list[str], *, day: int = 0, name: str = "") -> None:
        self.dashboards[uid] = {
            "id": uid,
            "name": name or f"Dashboard {uid}",
            "lastUpdated": at(day).isoformat(),
            "dashboardItems": [{"id": item_uid} for item_uid in item_uids],
        }

    def add_item(self, uid: str, *, day: int = 0, **refs: Any) -> None:
        """Add an item; ``refs`` maps item fields (chart, users ...) to uids."""
        item: dict[str, Any] = {"id": uid, "lastUpdated": at(day).isoformat(), "type": "CHART"}
        for field, value in refs.items():
            if isinstance(value, list):
                item[field] = [{"id": ref_uid, "name": ref_uid} for ref_uid in value]
            else:
                item[field] = {"id": value, "name": value}
        self.items[uid] = item

    def add_content(self, kind: ContentType, uid: str, *, day: int = 0, name: str = "") -> None:
        self.contents[kind][uid] = {
            "id": uid,
            "name": name or uid,
            "lastUpdated": at(day).isoformat(),
        }

    # RemoteDataSource ----------------------------------------------------

    async def __aenter__(self) -> "FakeRemote":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        return None

    def _respond(
        self, resource: str, entities: dict[str, dict[str, Any]], params: dict[str, str]
    ) -> dict[str, Any]:
        self.requests.append((resource, dict(params)))
        if resource in self.failures:
            raise self.failures[resource]
        if params.get("fields") == "id":
            return {resource: [{"id": uid} for uid in entities]}
        selected = list(entities.values())
        if flt := params.get("filter"):
            since = datetime.fromisoformat(flt.removeprefix("lastUpdated:gt:"))
            selected = [e for e in selected if datetime.fromisoformat(e["lastUpdated"]) > since]
        return {resource: [dict(e) for e in selected]}

    async def get_dashboards(self, params: dict[str, str]) -> dict[str, Any]:
        return self._respond(DASHBOARDS, self.dashboards, params)

    async def get_dashboard_items(self, params: dict[str, str]) -> dict[str, Any]:
        return self._respond(DASHBOARD_ITEMS, self.items, params)

    async def get_content(
        self, content_type: ContentType, params: dict[str, str]
    ) -> dict[str, Any]:
        return self._respond(content_type.resource_name, self.contents[content_type], params)


class FixedClock:
    """Clock returning ``now``; tests move it forward explicitly."""

    def __init__(self, now: datetime) -> None:
        self.now = now

    def __call__(self) -> datetime:
        return self.now


# ==============================================================================
# Fixtures
# ==============================================================================


@pytest.fixture
def tmp_db(tmp_path: Path) -> Path:
    """Create temporary database for testing."""
    db_path = tmp_path / "dashboards.db"
    init_db(db_path).close()
    return db_path


@pytest.fixture
def store(tmp_db: Path) -> SqliteStore:
    return SqliteStore(tmp_db)


@pytest.fixture
def watermark_store(tmp_db: Path) -> SqliteWatermarkStore:
    return SqliteWatermarkStore(tmp_db)


@pytest.fixture
def remote() -> FakeRemote:
    return FakeRemote()


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(at(10))


@pytest.fixture(autouse=True)
def isolated_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """Keep user config, env vars and the config cache out of every test."""
    monkeypatch.setenv("XDG_CONFIG_HOME", str(tmp_path / "xdg"))
    for name in (
        "DASHSYNC_SERVER_URL",
        "DASHSYNC_USERNAME",
        "DASHSYNC_PASSWORD",
        "DASHSYNC_TIMEOUT",
        "DASHSYNC_DB_PATH",
        "DASHSYNC_PROTECT_PENDING",
        "DASHSYNC_SERVER_TIMEZONE",
    ):
        monkeypatch.delenv(name, raising=False)
    clear_cache()
    yield
    clear_cache()
