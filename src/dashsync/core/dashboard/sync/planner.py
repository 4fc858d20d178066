"""
Operation planning for the local store batch.

Two planners live here:

- ``create_operations``: entity-level replacement of a whole collection
  (dashboards, items, contents). Stored rows missing from the reconciled
  collection are deleted, new rows inserted, changed rows replaced whole.
  Unchanged rows produce nothing, which keeps repeated syncs idempotent.

- ``NestedDiffPlanner``: element rows have no endpoint of their own. For each
  reconciled item, the element uids derived from its fresh content
  references are set-differenced against the uids stored for that item.
  Deletes come before inserts; elements present on both sides are left
  untouched.
"""

import logging
from collections.abc import Callable, Hashable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import TypeVar

from dashsync.core.dashboard.models import DashboardElement, DbOperation, Entity
from dashsync.core.dashboard.sync.strategy import entity_key

logger = logging.getLogger(__name__)

T = TypeVar("T", bound=Entity)


def create_operations(
    persisted: Sequence[T],
    refreshed: Sequence[T],
    *,
    key: Callable[[T], Hashable] = entity_key,
) -> list[DbOperation]:
    """
    Plan the operations that turn ``persisted`` into ``refreshed``.

    Returns:
        Deletes (stored order), then inserts and updates (refreshed order)

    Example:
        >>> ops = create_operations([d1, d2], [d1, d3])  # doctest: +SKIP
        >>> [(op.kind.value, op.entity.uid) for op in ops]  # doctest: +SKIP
        [('delete', 'd2'), ('insert', 'd3')]
    """
    refreshed_keys = {key(entity) for entity in refreshed}
    persisted_by_key = {key(entity): entity for entity in persisted}

    operations = [
        DbOperation.delete(entity) for entity in persisted if key(entity) not in refreshed_keys
    ]
    for entity in refreshed:
        stored = persisted_by_key.get(key(entity))
        if stored is None:
            operations.append(DbOperation.insert(entity))
        elif stored.comparable() != entity.comparable():
            operations.append(DbOperation.update(entity))
    return operations


def diff_ids(
    persisted_ids: Sequence[str], fresh_ids: Sequence[str]
) -> tuple[list[str], list[str]]:
    """
    Set-difference two id lists, keeping each side's order.

    Returns:
        ``(to_delete, to_insert)`` where ``to_delete = persisted - fresh``
        and ``to_insert = fresh - persisted``

    Example:
        >>> diff_ids(["e1", "e2"], ["e2", "e3"])
        (['e1'], ['e3'])
    """
    persisted = set(persisted_ids)
    fresh = set(fresh_ids)
    to_delete = [uid for uid in persisted_ids if uid not in fresh]
    to_insert = [uid for uid in fresh_ids if uid not in persisted]
    return to_delete, to_insert


@dataclass
class ElementPlan:
    """Element changes planned for one item."""

    item_uid: str
    to_delete: list[DashboardElement] = field(default_factory=list)
    to_insert: list[DashboardElement] = field(default_factory=list)

    def operations(self) -> list[DbOperation]:
        return [DbOperation.delete(element) for element in self.to_delete] + [
            DbOperation.insert(element) for element in self.to_insert
        ]


class NestedDiffPlanner:
    """
    Plans element inserts and deletes per reconciled item.

    Args:
        query_persisted: Returns the stored elements of one item
        protect_pending: Never delete stored elements created locally and
            not posted yet

    Example:
        >>> planner = NestedDiffPlanner(store.query_elements)
        >>> plans = planner.plan({"A": [e2, e3]})  # stored: e1, e2
        >>> [(op.kind.value, op.entity.uid) for op in plans[0].operations()]
        [('delete', 'e1'), ('insert', 'e3')]
    """

    def __init__(
        self,
        query_persisted: Callable[[str], Sequence[DashboardElement]],
        *,
        protect_pending: bool = True,
    ) -> None:
        self.query_persisted = query_persisted
        self.protect_pending = protect_pending

    def plan_item(self, item_uid: str, fresh: Sequence[DashboardElement]) -> ElementPlan:
        persisted = list(self.query_persisted(item_uid))
        persisted_by_uid = {element.uid: element for element in persisted}
        fresh_by_uid = {element.uid: element for element in fresh}

        delete_ids, insert_ids = diff_ids(
            [element.uid for element in persisted], [element.uid for element in fresh]
        )

        plan = ElementPlan(item_uid)
        for uid in delete_ids:
            element = persisted_by_uid[uid]
            if self.protect_pending and element.is_unposted:
                logger.debug(f"Keeping unposted element {uid} of item {item_uid}")
                continue
            plan.to_delete.append(element)
        plan.to_insert = [fresh_by_uid[uid] for uid in insert_ids]

        if plan.to_delete or plan.to_insert:
            logger.debug(
                f"Item {item_uid}: delete {[e.uid for e in plan.to_delete]}, "
                f"insert {[e.uid for e in plan.to_insert]}"
            )
        return plan

    def plan(self, elements_by_item: Mapping[str, Sequence[DashboardElement]]) -> list[ElementPlan]:
        """Plan every item, in mapping order."""
        return [self.plan_item(item_uid, fresh) for item_uid, fresh in elements_by_item.items()]


def flatten(plans: Sequence[ElementPlan]) -> list[DbOperation]:
    """Concatenate the operations of several element plans."""
    return [operation for plan in plans for operation in plan.operations()]
