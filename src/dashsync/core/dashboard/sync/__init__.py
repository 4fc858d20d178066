"""
Sync layer for dashboards.

Pulls dashboards, dashboard items and item content from the server and
folds them into the local store in one atomic batch per cycle.

The sync layer handles:
- Reconciling each collection from its id listing, its changes since the
  watermark and the persisted snapshot
- Aggregating the eight content kinds into one collection
- Re-linking items to dashboards and elements to items
- Planning entity replacements and per-item element diffs

Architecture:
- strategy: three-source reconciliation for one entity type
- content: per-kind reconciliation and aggregation
- relations: dashboard -> item and item -> element links
- planner: batch planning
- orchestrator: coordinates one cycle end to end
"""

from dashsync.core.dashboard.sync.content import ContentAggregator
from dashsync.core.dashboard.sync.orchestrator import SyncOrchestrator, server_clock
from dashsync.core.dashboard.sync.planner import (
    ElementPlan,
    NestedDiffPlanner,
    create_operations,
    diff_ids,
)
from dashsync.core.dashboard.sync.relations import (
    build_dashboard_relations,
    build_element_relations,
)
from dashsync.core.dashboard.sync.strategy import reconcile, sync_entities

__all__ = [
    "SyncOrchestrator",
    "server_clock",
    "ContentAggregator",
    "ElementPlan",
    "NestedDiffPlanner",
    "create_operations",
    "diff_ids",
    "build_dashboard_relations",
    "build_element_relations",
    "reconcile",
    "sync_entities",
]
