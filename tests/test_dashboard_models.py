"""
Tests for dashboard entity models.

Covers remote JSON parsing (aliases, DHIS2 timestamp offsets), content
reference folding on items, content kind resolution and change-detection
helpers.
"""

from datetime import datetime, timezone

import pytest
from pydantic import ValidationError

from dashsync.core.dashboard.exceptions import UnsupportedEntityKind
from dashsync.core.dashboard.models import (
    ContentRef,
    ContentType,
    Dashboard,
    DashboardElement,
    DashboardItem,
    DashboardItemContent,
    DbOperation,
    EntityState,
    OperationKind,
    SyncResult,
)


class TestContentType:
    """Tests for content kind resolution."""

    @pytest.mark.parametrize(
        "kind,resource",
        [
            (ContentType.CHART, "charts"),
            (ContentType.EVENT_CHART, "eventCharts"),
            (ContentType.MAP, "maps"),
            (ContentType.REPORT_TABLE, "reportTables"),
            (ContentType.EVENT_REPORT, "eventReports"),
            (ContentType.USERS, "users"),
            (ContentType.REPORTS, "reports"),
            (ContentType.RESOURCES, "documents"),
        ],
    )
    def test_resource_name(self, kind: ContentType, resource: str) -> None:
        assert kind.resource_name == resource

    def test_eight_kinds(self) -> None:
        assert len(ContentType) == 8

    def test_parse_known_tag(self) -> None:
        assert ContentType.parse("eventChart") is ContentType.EVENT_CHART
        assert ContentType.parse(ContentType.MAP) is ContentType.MAP

    def test_parse_unknown_tag_raises(self) -> None:
        with pytest.raises(UnsupportedEntityKind) as exc_info:
            ContentType.parse("pivotTable")
        assert exc_info.value.kind == "pivotTable"


class TestDashboard:
    """Tests for the Dashboard model."""

    def test_from_remote_json(self) -> None:
        dashboard = Dashboard.model_validate(
            {
                "id": "d1",
                "name": "ANC",
                "displayName": "Antenatal care",
                "created": "2015-01-01T10:00:00.000+0000",
                "lastUpdated": "2015-06-01T12:30:00.000+0000",
                "dashboardItems": [{"id": "i1"}, {"id": "i2"}],
            }
        )

        assert dashboard.uid == "d1"
        assert dashboard.display_name == "Antenatal care"
        assert dashboard.item_uids == ["i1", "i2"]
        assert dashboard.last_updated == datetime(2015, 6, 1, 12, 30, tzinfo=timezone.utc)
        assert dashboard.state == EntityState.SYNCED

    def test_populate_by_name(self) -> None:
        dashboard = Dashboard(uid="d1", item_uids=["i1"])
        assert dashboard.key == "d1"
        assert dashboard.item_uids == ["i1"]

    def test_missing_item_list(self) -> None:
        assert Dashboard.model_validate({"id": "d1", "dashboardItems": None}).item_uids == []

    def test_frozen(self) -> None:
        dashboard = Dashboard(uid="d1")
        with pytest.raises(ValidationError):
            dashboard.name = "changed"  # type: ignore[misc]


class TestDashboardItem:
    """Tests for folding per-kind references into item content."""

    def test_collects_single_and_list_references(self) -> None:
        item = DashboardItem.model_validate(
            {
                "id": "i1",
                "chart": {"id": "c1", "name": "Chart 1"},
                "users": [{"id": "u1"}, {"id": "u2"}],
                "resources": [{"id": "doc1"}],
            }
        )

        assert [(ref.type, ref.uid) for ref in item.content] == [
            (ContentType.CHART, "c1"),
            (ContentType.USERS, "u1"),
            (ContentType.USERS, "u2"),
            (ContentType.RESOURCES, "doc1"),
        ]
        assert item.content[0].name == "Chart 1"

    def test_report_tables_list_maps_to_report_table(self) -> None:
        item = DashboardItem.model_validate({"id": "i1", "reportTables": [{"id": "rt1"}]})
        assert item.content[0].type == ContentType.REPORT_TABLE

    def test_duplicate_references_dropped(self) -> None:
        item = DashboardItem.model_validate(
            {
                "id": "i1",
                "reportTable": {"id": "rt1"},
                "reportTables": [{"id": "rt1"}, {"id": "rt2"}],
            }
        )
        assert [ref.uid for ref in item.content] == ["rt1", "rt2"]

    def test_no_references(self) -> None:
        item = DashboardItem.model_validate({"id": "i1", "type": "MESSAGES", "messages": True})
        assert item.content == []
        assert item.messages is True

    def test_content_excluded_from_comparison(self) -> None:
        with_content = DashboardItem.model_validate({"id": "i1", "chart": {"id": "c1"}})
        without_content = DashboardItem(uid="i1")
        assert with_content.comparable() == without_content.comparable()
        assert with_content != without_content


class TestContentAndElements:
    """Tests for tagged content and element wrappers."""

    def test_content_key_is_type_and_uid(self) -> None:
        content = DashboardItemContent.model_validate({"id": "x1", "type": "map"})
        assert content.key == (ContentType.MAP, "x1")

    def test_same_uid_different_kind_distinct(self) -> None:
        chart = DashboardItemContent(uid="x1", type=ContentType.CHART)
        report = DashboardItemContent(uid="x1", type=ContentType.REPORTS)
        assert chart.key != report.key

    def test_unknown_content_tag_raises(self) -> None:
        with pytest.raises(UnsupportedEntityKind):
            DashboardItemContent.model_validate({"id": "x1", "type": "pivotTable"})

    def test_element_from_ref_round_trip(self) -> None:
        ref = ContentRef(uid="c1", type=ContentType.CHART, name="Chart 1")
        element = DashboardElement.from_ref("i1", ref)

        assert element.key == ("i1", "c1")
        assert element.content_type == ContentType.CHART
        assert element.to_ref() == ref

    def test_is_unposted(self) -> None:
        assert DashboardElement(
            uid="c1", dashboard_item_uid="i1", content_type="chart", state="to_post"
        ).is_unposted
        assert not DashboardElement(
            uid="c1", dashboard_item_uid="i1", content_type="chart", state="to_update"
        ).is_unposted


class TestDbOperation:
    """Tests for operation constructors."""

    def test_constructors(self) -> None:
        dashboard = Dashboard(uid="d1")
        assert DbOperation.insert(dashboard).kind == OperationKind.INSERT
        assert DbOperation.update(dashboard).kind == OperationKind.UPDATE
        assert DbOperation.delete(dashboard).kind == OperationKind.DELETE
        assert DbOperation.delete(dashboard).entity is dashboard


class TestSyncResult:
    """Tests for SyncResult."""

    def test_total_changes(self) -> None:
        result = SyncResult(
            success=True,
            entities_inserted=3,
            entities_updated=2,
            entities_deleted=1,
            elements_inserted=4,
            elements_deleted=5,
        )
        assert result.total_changes == 15

    def test_failure_defaults(self) -> None:
        result = SyncResult(success=False, failed_phase="fetch", entity_type="charts")
        assert result.total_changes == 0
        assert result.errors == []
