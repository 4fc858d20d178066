"""
Relation building between independently fetched collections.

Dashboards, items and contents are reconciled separately and in any order,
so parent/child links are re-established afterwards, once every fetch has
completed:

- dashboard -> item: each dashboard lists its item uids; the owning
  dashboard uid is written onto the item
- item -> element: each item's content references become DashboardElement
  rows owned by that item

Both passes are pure. Items are frozen, so linking produces new copies and
the inputs are never mutated.
"""

import logging
from collections.abc import Sequence

from dashsync.core.dashboard.models import Dashboard, DashboardElement, DashboardItem

logger = logging.getLogger(__name__)


def build_dashboard_relations(
    dashboards: Sequence[Dashboard], items: Sequence[DashboardItem]
) -> list[DashboardItem]:
    """
    Resolve each item's owning dashboard.

    Item uids a dashboard lists but that are not among ``items`` are
    skipped. An item no reconciled dashboard lists ends up with no owner,
    except an unposted item whose stored owner is still present. If two
    dashboards list the same item, the later one wins.

    Returns:
        Items in input order, with ``dashboard_uid`` resolved
    """
    items_by_uid = {item.uid: item for item in items}
    dashboard_uids = {dashboard.uid for dashboard in dashboards}
    owners: dict[str, str] = {}

    for dashboard in dashboards:
        for item_uid in dashboard.item_uids:
            if item_uid not in items_by_uid:
                logger.debug(f"Dashboard {dashboard.uid} lists unknown item {item_uid}")
                continue
            owners[item_uid] = dashboard.uid

    linked = []
    for item in items:
        owner = owners.get(item.uid)
        if owner is None and item.is_unposted and item.dashboard_uid in dashboard_uids:
            owner = item.dashboard_uid
        if owner != item.dashboard_uid:
            item = item.model_copy(update={"dashboard_uid": owner})
        linked.append(item)
    return linked


def build_element_relations(
    items: Sequence[DashboardItem],
) -> dict[str, list[DashboardElement]]:
    """
    Derive each item's elements from its content references.

    Every element carries exactly one owner, the item it was derived from.
    Within an item, element uids are unique; the first reference wins, even
    if a later one names a different kind. DHIS2 uids are unique across
    object types, and elements are stored keyed by ``(item uid, uid)``.

    Returns:
        Mapping of item uid to its elements, in reference order
    """
    elements_by_item: dict[str, list[DashboardElement]] = {}
    for item in items:
        elements: list[DashboardElement] = []
        seen: set[str] = set()
        for ref in item.content:
            if ref.uid in seen:
                continue
            seen.add(ref.uid)
            elements.append(DashboardElement.from_ref(item.uid, ref))
        elements_by_item[item.uid] = elements
    return elements_by_item
