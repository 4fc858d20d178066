"""
Query parameters for the two fetch shapes of every entity type.

- basic: ``fields=id``, no filter. Lists every entity currently on the server.
- full: the full field projection, plus ``filter=lastUpdated:gt:<watermark>``
  when a watermark exists. Lists entities created or changed since then.
"""

from datetime import datetime

CONTENT_REF_FIELDS = "id,created,lastUpdated,name,displayName"

DASHBOARD_FIELDS = "id,created,lastUpdated,name,displayName,access,dashboardItems[id]"

DASHBOARD_ITEM_FIELDS = ",".join(
    [
        "id,created,lastUpdated,access,type,shape,messages",
        *(
            f"{field}[{CONTENT_REF_FIELDS}]"
            for field in (
                "chart",
                "eventChart",
                "map",
                "reportTable",
                "eventReport",
                "users",
                "reports",
                "resources",
                "reportTables",
            )
        ),
    ]
)

CONTENT_FIELDS = CONTENT_REF_FIELDS


def format_watermark(watermark: datetime) -> str:
    """Render a watermark the way the server filter expects it."""
    return watermark.isoformat(timespec="milliseconds")


def basic_query() -> dict[str, str]:
    return {"fields": "id"}


def full_query(fields: str, watermark: datetime | None) -> dict[str, str]:
    """
    Build the full-projection query.

    Example:
        >>> full_query("id,name", None)
        {'fields': 'id,name'}
        >>> full_query("id", datetime(2015, 6, 1, 12, 0))
        {'fields': 'id', 'filter': 'lastUpdated:gt:2015-06-01T12:00:00.000'}
    """
    query = {"fields": fields}
    if watermark is not None:
        query["filter"] = f"lastUpdated:gt:{format_watermark(watermark)}"
    return query
