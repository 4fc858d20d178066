"""
DHIS2 web API client for dashboard sync.

Fetches dashboards, dashboard items and the eight kinds of dashboard item
content. Every call disables paging and returns the decoded JSON body, a
mapping keyed by a response envelope name (``dashboards``, ``charts``,
``documents`` ...) to the list of entities.

API Endpoints:
- GET {base}/api/dashboards?paging=false
- GET {base}/api/dashboardItems?paging=false
- GET {base}/api/{charts|eventCharts|maps|reportTables|eventReports|users|reports|documents}?paging=false

Errors are not translated here: httpx transport and status errors propagate
to the sync strategies, which report them as RemoteFetchFailed.

Example:
    >>> async with DhisClient("https://play.dhis2.org/demo", "admin", "district") as client:
    ...     body = await client.get_dashboards({"fields": "id"})
    ...     dashboards = unwrap_response(body, "dashboards")
"""

from __future__ import annotations

import logging
from typing import Any, Protocol

import httpx

from dashsync.core.dashboard.models import DASHBOARD_ITEMS, DASHBOARDS, ContentType

logger = logging.getLogger(__name__)

ResponseBody = dict[str, Any]


class RemoteDataSource(Protocol):
    """Read-only view of the remote dataset used by the sync layer."""

    async def get_dashboards(self, params: dict[str, str]) -> ResponseBody: ...

    async def get_dashboard_items(self, params: dict[str, str]) -> ResponseBody: ...

    async def get_content(
        self, content_type: ContentType, params: dict[str, str]
    ) -> ResponseBody: ...


def unwrap_response(body: ResponseBody, envelope: str) -> list[dict[str, Any]]:
    """
    Extract the entity list stored under ``envelope``.

    A missing envelope means the server has no entities of that type.

    Raises:
        ValueError: If the body or the envelope has the wrong shape
    """
    if not isinstance(body, dict):
        raise ValueError(f"Expected a JSON object, got {type(body).__name__}")
    entities = body.get(envelope)
    if entities is None:
        return []
    if not isinstance(entities, list):
        raise ValueError(f"Envelope '{envelope}' is not a list")
    return entities


class DhisClient:
    """
    Async HTTP client for the DHIS2 web API.

    Uses one httpx.AsyncClient with HTTP basic auth, so the concurrent
    fetches of a sync cycle share a connection pool.

    Args:
        server_url: Server root (``/api`` is appended)
        username: Basic auth user, or None for anonymous access
        password: Basic auth password
        timeout: Per-request timeout in seconds
        transport: Optional httpx transport (tests use httpx.MockTransport)
    """

    def __init__(
        self,
        server_url: str,
        username: str | None = None,
        password: str | None = None,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.api_url = f"{server_url.rstrip('/')}/api"
        auth = httpx.BasicAuth(username, password or "") if username else None
        self._client = httpx.AsyncClient(
            base_url=self.api_url,
            auth=auth,
            timeout=timeout,
            headers={"Accept": "application/json"},
            transport=transport,
        )

    async def __aenter__(self) -> DhisClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _get(self, resource: str, params: dict[str, str]) -> ResponseBody:
        query = {**params, "paging": "false"}
        logger.debug(f"GET /{resource} {query}")
        response = await self._client.get(f"/{resource}", params=query)
        response.raise_for_status()
        body: ResponseBody = response.json()
        return body

    async def get_dashboards(self, params: dict[str, str]) -> ResponseBody:
        return await self._get(DASHBOARDS, params)

    async def get_dashboard_items(self, params: dict[str, str]) -> ResponseBody:
        return await self._get(DASHBOARD_ITEMS, params)

    async def get_content(
        self, content_type: ContentType, params: dict[str, str]
    ) -> ResponseBody:
        return await self._get(content_type.resource_name, params)
