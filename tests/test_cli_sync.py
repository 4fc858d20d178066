"""
Tests for the dashsync CLI commands.

The remote API is replaced by the in-memory fake; everything else
(config loading, SQLite store, orchestrator) runs for real.
"""

from pathlib import Path
from unittest.mock import patch

import httpx
import pytest
from typer.testing import CliRunner

from conftest import FakeRemote

from dashsync.cli import app
from dashsync.core.dashboard.db import SqliteWatermarkStore
from dashsync.core.dashboard.models import ContentType

runner = CliRunner()


@pytest.fixture
def project(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Path:
    """Project directory with server URL and database path configured."""
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("DASHSYNC_SERVER_URL", "https://dhis.example.org")
    monkeypatch.setenv("DASHSYNC_DB_PATH", str(tmp_path / "data" / "dashboards.db"))
    return tmp_path


@pytest.fixture
def populated_remote(remote: FakeRemote) -> FakeRemote:
    remote.add_content(ContentType.CHART, "c1")
    remote.add_dashboard("d1", ["A"])
    remote.add_item("A", chart="c1")
    return remote


class TestHelp:
    """Test command structure."""

    def test_help_lists_commands(self) -> None:
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "sync" in result.output
        assert "status" in result.output

    def test_sync_help(self) -> None:
        result = runner.invoke(app, ["sync", "--help"])
        assert result.exit_code == 0
        assert "--full" in result.output

    def test_version(self) -> None:
        result = runner.invoke(app, ["--version"])
        assert result.exit_code == 0
        assert "dashsync" in result.output


class TestSyncCommand:
    """Test 'dashsync sync'."""

    def test_no_server_url(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.chdir(tmp_path)
        result = runner.invoke(app, ["sync"])
        assert result.exit_code == 1
        assert "No server URL configured" in result.output

    def test_successful_sync(self, project: Path, populated_remote: FakeRemote) -> None:
        with patch("dashsync.cli.sync.create_client", return_value=populated_remote):
            result = runner.invoke(app, ["sync"])

        assert result.exit_code == 0, result.output
        assert "Sync successful" in result.output
        assert "Entities inserted: 3" in result.output
        assert "Elements inserted: 1" in result.output
        assert (project / "data" / "dashboards.db").exists()

    def test_failed_sync_exits_nonzero(self, project: Path, populated_remote: FakeRemote) -> None:
        populated_remote.failures["dashboards"] = httpx.ConnectError("Connection refused")

        with patch("dashsync.cli.sync.create_client", return_value=populated_remote):
            result = runner.invoke(app, ["sync"])

        assert result.exit_code == 1
        assert "Sync failed" in result.output
        assert "Phase: fetch" in result.output
        assert "Entity type: dashboards" in result.output

    def test_full_sync_ignores_watermark(
        self, project: Path, populated_remote: FakeRemote
    ) -> None:
        with patch("dashsync.cli.sync.create_client", return_value=populated_remote):
            runner.invoke(app, ["sync"])
            db_path = project / "data" / "dashboards.db"
            assert SqliteWatermarkStore(db_path).read() is not None

            populated_remote.requests.clear()
            result = runner.invoke(app, ["sync", "--full"])

        assert result.exit_code == 0, result.output
        assert all("filter" not in params for _, params in populated_remote.requests)


class TestStatusCommand:
    """Test 'dashsync status'."""

    def test_no_database(self, project: Path) -> None:
        result = runner.invoke(app, ["status"])
        assert result.exit_code == 1
        assert "No database" in result.output

    def test_after_sync(self, project: Path, populated_remote: FakeRemote) -> None:
        with patch("dashsync.cli.sync.create_client", return_value=populated_remote):
            runner.invoke(app, ["sync"])

        result = runner.invoke(app, ["status"])

        assert result.exit_code == 0, result.output
        assert "dashboard_elements" in result.output
        assert "Last synchronized at" in result.output
        assert "never" not in result.output
