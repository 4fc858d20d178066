"""
Sync orchestrator for dashboards.

Coordinates one sync cycle from the remote server into the local store.

Architecture:
- SyncOrchestrator sequences the cycle and owns the single-flight lock
- sync_entities reconciles dashboards and dashboard items
- ContentAggregator reconciles the eight content kinds
- relations.py re-links items to dashboards and elements to items
- planner.py turns the reconciled state into one ordered batch
- LocalStore applies the batch atomically; WatermarkStore records success

Sync Flow:
1. Capture the cycle start time and read the watermark
2. Fetch and reconcile dashboards, items and contents concurrently
3. Build dashboard -> item and item -> element relations
4. Plan entity replacements and per-item element diffs
5. Apply the batch (contents, dashboards, items, elements) in one transaction
6. Advance the watermark to the start time captured in step 1

Failure Handling:
- Any fetch failure cancels the sibling fetches; nothing is written
- A failed read of the local store is reported in the fetch phase too
- A commit failure rolls the whole batch back; the watermark is untouched
- Failures are reported as a SyncResult naming the phase and entity type
- UnsupportedEntityKind is a programming error and propagates
- There is no retry; callers may simply run another cycle

Usage:
    from dashsync.core.dashboard.sync import SyncOrchestrator

    async with DhisClient(url, username, password) as client:
        orchestrator = SyncOrchestrator(client, SqliteStore(db_path),
                                        SqliteWatermarkStore(db_path))
        result = await orchestrator.run()
"""

import asyncio
import logging
import sqlite3
import threading
import time
from collections import Counter
from collections.abc import Callable, Hashable
from datetime import datetime, timezone
from typing import Any
from zoneinfo import ZoneInfo

from dashsync.core.dashboard.api.client import RemoteDataSource, unwrap_response
from dashsync.core.dashboard.api.queries import (
    DASHBOARD_FIELDS,
    DASHBOARD_ITEM_FIELDS,
    basic_query,
    full_query,
)
from dashsync.core.dashboard.db.store import LocalStore
from dashsync.core.dashboard.db.watermark import WatermarkStore
from dashsync.core.dashboard.exceptions import (
    StorageReadFailed,
    SyncError,
    SyncInProgressError,
)
from dashsync.core.dashboard.models import (
    DASHBOARD_ITEMS,
    DASHBOARDS,
    Dashboard,
    DashboardItem,
    DashboardItemContent,
    DbOperation,
    OperationKind,
    SyncResult,
)
from dashsync.core.dashboard.sync.content import ContentAggregator
from dashsync.core.dashboard.sync.planner import (
    ElementPlan,
    NestedDiffPlanner,
    create_operations,
    flatten,
)
from dashsync.core.dashboard.sync.relations import (
    build_dashboard_relations,
    build_element_relations,
)
from dashsync.core.dashboard.sync.strategy import sync_entities
from dashsync.core.dashboard.sync.tasks import gather_fail_fast

logger = logging.getLogger(__name__)

Clock = Callable[[], datetime]

_cycle_locks: dict[Hashable, threading.Lock] = {}
_cycle_locks_guard = threading.Lock()


def server_clock(timezone_name: str = "UTC") -> Clock:
    """
    Clock returning the current time in the server's timezone.

    Example:
        >>> now = server_clock("Africa/Kampala")()
        >>> now.tzinfo.key
        'Africa/Kampala'
    """
    zone = ZoneInfo(timezone_name)

    def now() -> datetime:
        return datetime.now(zone)

    return now


def cycle_lock(watermark_store: WatermarkStore) -> threading.Lock:
    """
    Lock guarding sync cycles against one watermark.

    Watermark stores exposing ``lock_key`` share one lock with every other
    store over the same watermark, whichever orchestrator holds them. Any
    other store gets a lock of its own.
    """
    lock_key = getattr(watermark_store, "lock_key", None)
    if lock_key is None:
        lock_key = ("instance", id(watermark_store))
    with _cycle_locks_guard:
        return _cycle_locks.setdefault(lock_key, threading.Lock())



class SyncOrchestrator:
    """
    Runs sync cycles between a remote data source and the local store.

    Only one cycle may run at a time against a given watermark, across all
    orchestrators in the process; starting a second one while the first is
    in progress raises SyncInProgressError.

    Example:
        >>> orchestrator = SyncOrchestrator(client, store, watermark_store)
        >>> result = await orchestrator.run()
        >>> print(f"Success: {result.success}, changes: {result.total_changes}")
    """

    def __init__(
        self,
        source: RemoteDataSource,
        store: LocalStore,
        watermark_store: WatermarkStore,
        *,
        clock: Clock | None = None,
        protect_pending: bool = True,
    ) -> None:
        """
        Initialize the SyncOrchestrator.

        Args:
            source: Remote data source
            store: Local store the batch is applied to
            watermark_store: Holds the "last synchronized at" marker
            clock: Returns the current server time (default: UTC now)
            protect_pending: Keep locally created, unposted rows that the
                server does not list
        """
        self.source = source
        self.store = store
        self.watermark_store = watermark_store
        self.clock = clock or (lambda: datetime.now(timezone.utc))
        self.protect_pending = protect_pending
        self.aggregator = ContentAggregator(source, store, protect_pending=protect_pending)
        self._lock = cycle_lock(watermark_store)

    def sync(self) -> SyncResult:
        """Run one cycle from synchronous code."""
        return asyncio.run(self.run())

    async def run(self) -> SyncResult:
        """
        Run one sync cycle.

        Returns:
            SyncResult with counters, or with the failed phase on failure

        Raises:
            SyncInProgressError: If another cycle is running
            UnsupportedEntityKind: If the remote data holds an unknown content kind
        """
        if not self._lock.acquire(blocking=False):
            raise SyncInProgressError()
        try:
            return await self._run_cycle()
        finally:
            self._lock.release()

    async def _run_cycle(self) -> SyncResult:
        start_time = time.time()
        # Captured before fetching so changes made during the cycle are seen next time
        started_at = self.clock()

        try:
            watermark = await self._read_local("watermark", self.watermark_store.read)
            if watermark is None:
                logger.info("Starting full dashboard sync")
            else:
                logger.info(f"Starting dashboard sync since {watermark.isoformat()}")

            contents, dashboards, items = await self._fetch_and_reconcile(watermark)
            batch, counts = await self._read_local(
                "local store", self._plan_batch, contents, dashboards, items
            )
            await asyncio.to_thread(self.store.apply_batch, batch)
        except SyncError as e:
            return self._failure(e, start_time)

        try:
            await asyncio.to_thread(self.watermark_store.write, started_at)
        except Exception as e:
            logger.error(f"Batch committed but watermark write failed: {e}")
            return SyncResult(
                success=False,
                failed_phase="commit",
                errors=[f"Watermark write failed: {e}"],
                watermark=watermark,
                duration_seconds=time.time() - start_time,
                **counts,
            )

        self._send_local_changes()

        result = SyncResult(
            success=True,
            watermark=started_at,
            duration_seconds=time.time() - start_time,
            **counts,
        )
        logger.info(
            f"Sync completed successfully in {result.duration_seconds:.2f}s: "
            f"{result.total_changes} total changes"
        )
        return result

    async def _fetch_and_reconcile(
        self, watermark: datetime | None
    ) -> tuple[list[DashboardItemContent], list[Dashboard], list[DashboardItem]]:
        async def fetch_dashboards(params: dict[str, str]) -> list[Dashboard]:
            body = await self.source.get_dashboards(params)
            return [Dashboard.model_validate(e) for e in unwrap_response(body, DASHBOARDS)]

        async def fetch_items(params: dict[str, str]) -> list[DashboardItem]:
            body = await self.source.get_dashboard_items(params)
            return [
                DashboardItem.model_validate(e) for e in unwrap_response(body, DASHBOARD_ITEMS)
            ]

        dashboards = sync_entities(
            DASHBOARDS,
            fetch_existing=lambda: fetch_dashboards(basic_query()),
            fetch_updated=lambda: fetch_dashboards(full_query(DASHBOARD_FIELDS, watermark)),
            query_persisted=lambda: asyncio.to_thread(self.store.query_dashboards),
            protect_pending=self.protect_pending,
        )
        items = sync_entities(
            DASHBOARD_ITEMS,
            fetch_existing=lambda: fetch_items(basic_query()),
            fetch_updated=lambda: fetch_items(full_query(DASHBOARD_ITEM_FIELDS, watermark)),
            query_persisted=lambda: asyncio.to_thread(self.store.query_dashboard_items),
            protect_pending=self.protect_pending,
        )
        contents = self.aggregator.aggregate(watermark)

        results = await gather_fail_fast(contents, dashboards, items)
        return results[0], results[1], results[2]

    async def _read_local(self, entity_type: str, func: Callable[..., Any], *args: Any) -> Any:
        try:
            return await asyncio.to_thread(func, *args)
        except sqlite3.Error as e:
            raise StorageReadFailed(entity_type, str(e)) from e

    def _plan_batch(
        self,
        contents: list[DashboardItemContent],
        dashboards: list[Dashboard],
        items: list[DashboardItem],
    ) -> tuple[list[DbOperation], dict[str, Any]]:
        linked_items = build_dashboard_relations(dashboards, items)
        elements_by_item = build_element_relations(linked_items)

        entity_ops = (
            create_operations(self.store.query_contents(), contents)
            + create_operations(self.store.query_dashboards(), dashboards)
            + create_operations(self.store.query_dashboard_items(), linked_items)
        )
        planner = NestedDiffPlanner(
            self.store.query_elements, protect_pending=self.protect_pending
        )
        plans = planner.plan(elements_by_item)

        return entity_ops + flatten(plans), self._count(entity_ops, plans)

    @staticmethod
    def _count(entity_ops: list[DbOperation], plans: list[ElementPlan]) -> dict[str, int]:
        kinds = Counter(op.kind for op in entity_ops)
        return {
            "entities_inserted": kinds[OperationKind.INSERT],
            "entities_updated": kinds[OperationKind.UPDATE],
            "entities_deleted": kinds[OperationKind.DELETE],
            "elements_inserted": sum(len(plan.to_insert) for plan in plans),
            "elements_deleted": sum(len(plan.to_delete) for plan in plans),
        }

    def _failure(self, error: SyncError, start_time: float) -> SyncResult:
        entity_type = getattr(error, "entity_type", None)
        logger.error(f"Sync failed in {error.phase} phase: {error}")
        return SyncResult(
            success=False,
            failed_phase=error.phase,
            entity_type=entity_type,
            errors=[str(error)],
            duration_seconds=time.time() - start_time,
        )

    def _send_local_changes(self) -> None:
        # TODO: upload of locally created dashboards/items once the server
        # contract for posting, conflicts and partial failures is settled.
        logger.debug("Uploading local changes is not implemented; skipping")

    def get_stats(self) -> dict[str, Any]:
        """
        Get current store statistics.

        Returns:
            Dict with row counts per table and the current watermark
        """
        counts: dict[str, Any] = dict(self.store.count_rows())
        watermark = self.watermark_store.read()
        counts["watermark"] = watermark.isoformat() if watermark else None
        return counts

