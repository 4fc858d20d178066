"""
Dashsync - DHIS2 dashboard synchronization

Keeps a local SQLite copy of a DHIS2 server's dashboards, dashboard items
and their content in step with the server using watermark-based
incremental syncs.
"""

__version__ = "0.1.0"

# Re-export core models for convenience
from dashsync.core.config.models import DashsyncConfig
from dashsync.core.dashboard.models import (
    ContentType,
    Dashboard,
    DashboardItem,
    DashboardItemContent,
    SyncResult,
)

__all__ = [
    "DashsyncConfig",
    "ContentType",
    "Dashboard",
    "DashboardItem",
    "DashboardItemContent",
    "SyncResult",
    "__version__",
]
