"""
Tests for the DHIS2 API client and query builders.

Uses httpx.MockTransport so no network access is needed.
"""

import base64
from datetime import datetime, timezone

import httpx
import pytest

from dashsync.core.dashboard.api import DhisClient, basic_query, full_query, unwrap_response
from dashsync.core.dashboard.api.queries import DASHBOARD_ITEM_FIELDS, format_watermark
from dashsync.core.dashboard.models import ContentType


def recording_transport(requests: list[httpx.Request], body: dict | None = None, status: int = 200):
    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(status, json=body if body is not None else {})

    return httpx.MockTransport(handler)


class TestQueries:
    """Tests for query parameter builders."""

    def test_basic_query(self) -> None:
        assert basic_query() == {"fields": "id"}

    def test_full_query_without_watermark(self) -> None:
        assert full_query("id,name", None) == {"fields": "id,name"}

    def test_full_query_with_watermark(self) -> None:
        watermark = datetime(2015, 6, 1, 12, 0, 5, 123456, tzinfo=timezone.utc)
        assert full_query("id", watermark)["filter"] == (
            "lastUpdated:gt:2015-06-01T12:00:05.123+00:00"
        )

    def test_format_watermark_millisecond_precision(self) -> None:
        assert format_watermark(datetime(2015, 6, 1)) == "2015-06-01T00:00:00.000"

    def test_item_fields_project_every_reference_kind(self) -> None:
        for field in ("chart", "eventChart", "map", "users", "resources", "reportTables"):
            assert f"{field}[" in DASHBOARD_ITEM_FIELDS


class TestUnwrapResponse:
    """Tests for envelope extraction."""

    def test_envelope_present(self) -> None:
        assert unwrap_response({"charts": [{"id": "c1"}]}, "charts") == [{"id": "c1"}]

    def test_missing_envelope_is_empty(self) -> None:
        assert unwrap_response({"pager": {}}, "charts") == []

    def test_wrong_shape_raises(self) -> None:
        with pytest.raises(ValueError):
            unwrap_response({"charts": {"id": "c1"}}, "charts")
        with pytest.raises(ValueError):
            unwrap_response([], "charts")  # type: ignore[arg-type]


class TestDhisClient:
    """Tests for HTTP behavior of DhisClient."""

    @pytest.mark.asyncio
    async def test_dashboards_request(self) -> None:
        requests: list[httpx.Request] = []
        transport = recording_transport(requests, {"dashboards": [{"id": "d1"}]})

        async with DhisClient(
            "https://dhis.example.org/", "admin", "district", transport=transport
        ) as client:
            body = await client.get_dashboards(basic_query())

        assert body == {"dashboards": [{"id": "d1"}]}
        [request] = requests
        assert request.url.path == "/api/dashboards"
        assert request.url.params["fields"] == "id"
        assert request.url.params["paging"] == "false"
        expected = base64.b64encode(b"admin:district").decode()
        assert request.headers["Authorization"] == f"Basic {expected}"

    @pytest.mark.asyncio
    async def test_content_resource_names(self) -> None:
        requests: list[httpx.Request] = []
        async with DhisClient(
            "https://dhis.example.org", transport=recording_transport(requests)
        ) as client:
            await client.get_content(ContentType.RESOURCES, basic_query())
            await client.get_content(ContentType.EVENT_CHART, basic_query())
            await client.get_dashboard_items(basic_query())

        assert [r.url.path for r in requests] == [
            "/api/documents",
            "/api/eventCharts",
            "/api/dashboardItems",
        ]
        assert "Authorization" not in requests[0].headers

    @pytest.mark.asyncio
    async def test_filter_passed_through(self) -> None:
        requests: list[httpx.Request] = []
        watermark = datetime(2015, 6, 1, tzinfo=timezone.utc)
        async with DhisClient(
            "https://dhis.example.org", transport=recording_transport(requests)
        ) as client:
            await client.get_dashboards(full_query("id,name", watermark))

        assert requests[0].url.params["filter"] == "lastUpdated:gt:2015-06-01T00:00:00.000+00:00"

    @pytest.mark.asyncio
    async def test_http_error_status_raises(self) -> None:
        requests: list[httpx.Request] = []
        async with DhisClient(
            "https://dhis.example.org", transport=recording_transport(requests, status=401)
        ) as client:
            with pytest.raises(httpx.HTTPStatusError):
                await client.get_dashboards(basic_query())
