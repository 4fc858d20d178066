"""
Reconciliation of dashboard item content across all content kinds.

Each kind (charts, maps, reports ...) lives behind its own endpoint, so it
is reconciled on its own and tagged with its kind. The eight reconciled
collections are then concatenated into one heterogeneous collection keyed
by ``(type, uid)``.
"""

import asyncio
import logging
from collections.abc import Iterable
from datetime import datetime

from dashsync.core.dashboard.api.client import RemoteDataSource, unwrap_response
from dashsync.core.dashboard.api.queries import CONTENT_FIELDS, basic_query, full_query
from dashsync.core.dashboard.db.store import LocalStore
from dashsync.core.dashboard.models import ContentType, DashboardItemContent
from dashsync.core.dashboard.sync.strategy import sync_entities
from dashsync.core.dashboard.sync.tasks import gather_fail_fast

logger = logging.getLogger(__name__)


class ContentAggregator:
    """
    Runs one reconciliation per content kind and unions the results.

    All kinds are fetched concurrently. If any kind fails, the others are
    cancelled and the failure propagates; there is no partial aggregate.

    Example:
        >>> aggregator = ContentAggregator(client, store)
        >>> contents = await aggregator.aggregate(watermark=None)
        >>> {content.type for content in contents} <= set(ContentType)
        True
    """

    def __init__(
        self,
        source: RemoteDataSource,
        store: LocalStore,
        *,
        kinds: Iterable[ContentType] = tuple(ContentType),
        protect_pending: bool = True,
    ) -> None:
        self.source = source
        self.store = store
        self.kinds = tuple(ContentType.parse(kind) for kind in kinds)
        self.protect_pending = protect_pending

    async def aggregate(self, watermark: datetime | None) -> list[DashboardItemContent]:
        """
        Reconcile every content kind.

        Returns:
            Contents of all kinds; within a kind, reconciliation order

        Raises:
            RemoteFetchFailed: If any kind's fetch fails
        """
        results = await gather_fail_fast(
            *(self.sync_kind(kind, watermark) for kind in self.kinds)
        )
        contents = [content for kind_contents in results for content in kind_contents]
        logger.info(f"Aggregated {len(contents)} contents across {len(self.kinds)} kinds")
        return contents

    async def sync_kind(
        self, kind: ContentType, watermark: datetime | None
    ) -> list[DashboardItemContent]:
        """Reconcile the contents of one kind."""

        async def fetch(params: dict[str, str]) -> list[DashboardItemContent]:
            body = await self.source.get_content(kind, params)
            return [
                DashboardItemContent.model_validate({**entity, "type": kind})
                for entity in unwrap_response(body, kind.resource_name)
            ]

        return await sync_entities(
            kind.value,
            fetch_existing=lambda: fetch(basic_query()),
            fetch_updated=lambda: fetch(full_query(CONTENT_FIELDS, watermark)),
            query_persisted=lambda: asyncio.to_thread(self.store.query_contents, kind),
            protect_pending=self.protect_pending,
        )
