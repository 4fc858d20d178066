"""
Three-source reconciliation of one entity type.

Every entity type is reconciled from three snapshots:

- E: the uids of every entity currently on the server (cheap ``fields=id`` fetch)
- U: full representations of entities changed since the watermark
- P: what the local store holds now

The reconciled collection is ``(P ∩ E, with U substitutions) ∪ (U \\ P)``:
persisted rows the server still has are kept (replaced by their U version
when there is one), persisted rows the server no longer has are dropped,
and U rows not stored yet are added.

Usage:
    dashboards = await sync_entities(
        DASHBOARDS,
        fetch_existing=lambda: fetch(basic_query()),
        fetch_updated=lambda: fetch(full_query(DASHBOARD_FIELDS, watermark)),
        query_persisted=lambda: asyncio.to_thread(store.query_dashboards),
    )
"""

import logging
from collections.abc import Awaitable, Callable, Hashable, Iterable, Sequence
from operator import attrgetter
from typing import TypeVar

from dashsync.core.dashboard.exceptions import (
    RemoteFetchFailed,
    StorageReadFailed,
    SyncError,
    UnsupportedEntityKind,
)
from dashsync.core.dashboard.models import Entity
from dashsync.core.dashboard.sync.tasks import gather_fail_fast

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Entity)

entity_key: Callable[[Entity], Hashable] = attrgetter("key")


def reconcile(
    existing_keys: Iterable[Hashable],
    updated: Sequence[T],
    persisted: Sequence[T],
    *,
    key: Callable[[T], Hashable] = entity_key,
    protect_pending: bool = True,
) -> list[T]:
    """
    Combine the three snapshots into the collection that should be stored.

    Order: persisted rows in stored order (substituted in place), then new
    rows in remote order. Every key appears at most once.

    Args:
        existing_keys: Keys of every entity on the server (E)
        updated: Entities created or changed since the watermark (U)
        persisted: Entities currently stored (P)
        key: Identity function
        protect_pending: Keep persisted rows created locally and never
            posted even though the server does not list them

    Example:
        >>> reconcile(["d1", "d3"], [d3, d4], [d1, d2])  # doctest: +SKIP
        [d1, d3, d4]
    """
    existing = set(existing_keys)
    updated_by_key: dict[Hashable, T] = {}
    for entity in updated:
        updated_by_key[key(entity)] = entity

    result: list[T] = []
    persisted_keys: set[Hashable] = set()

    for entity in persisted:
        entity_id = key(entity)
        if entity_id in persisted_keys:
            continue
        persisted_keys.add(entity_id)
        if entity_id in existing:
            result.append(updated_by_key.get(entity_id, entity))
        elif protect_pending and entity.is_unposted:
            logger.debug(f"Keeping unposted entity {entity_id} missing from server")
            result.append(entity)

    for entity_id, entity in updated_by_key.items():
        if entity_id not in persisted_keys:
            result.append(entity)

    return result


async def sync_entities(
    entity_type: str,
    fetch_existing: Callable[[], Awaitable[Sequence[T]]],
    fetch_updated: Callable[[], Awaitable[Sequence[T]]],
    query_persisted: Callable[[], Awaitable[Sequence[T]]],
    *,
    key: Callable[[T], Hashable] = entity_key,
    protect_pending: bool = True,
) -> list[T]:
    """
    Fetch the three snapshots of one entity type and reconcile them.

    The two remote fetches run concurrently. This function has no side
    effects; the caller turns the result into store operations.

    Args:
        entity_type: Name used in logs and in RemoteFetchFailed
        fetch_existing: Returns every entity on the server (only keys are used)
        fetch_updated: Returns full entities changed since the watermark
        query_persisted: Returns the stored entities
        key: Identity function
        protect_pending: See ``reconcile``

    Returns:
        Reconciled collection

    Raises:
        RemoteFetchFailed: If either remote fetch fails
        StorageReadFailed: If the stored entities cannot be read
        UnsupportedEntityKind: If a fetched entity carries an unknown kind
    """
    try:
        existing, updated = await gather_fail_fast(fetch_existing(), fetch_updated())
    except (SyncError, UnsupportedEntityKind):
        raise
    except Exception as e:
        logger.error(f"Fetching {entity_type} failed: {e!r}")
        raise RemoteFetchFailed(entity_type, str(e) or type(e).__name__) from e

    try:
        persisted = await query_persisted()
    except Exception as e:
        logger.error(f"Reading stored {entity_type} failed: {e!r}")
        raise StorageReadFailed(entity_type, str(e) or type(e).__name__) from e

    result = reconcile(
        (key(entity) for entity in existing),
        updated,
        persisted,
        key=key,
        protect_pending=protect_pending,
    )
    logger.info(
        f"Reconciled {entity_type}: {len(existing)} on server, {len(updated)} updated, "
        f"{len(persisted)} stored -> {len(result)}"
    )
    return result
