"""
Pydantic models for synced dashboard entities.

These models provide type-safe data structures for:
- Dashboard / DashboardItem: the top-level remote collections
- DashboardItemContent: the eight content kinds, tagged by ContentType
- DashboardElement: per-item wrapper binding one piece of content to one item
- DbOperation: one insert/update/delete in a local store batch
- SyncResult: outcome of a sync cycle

All entity models are frozen. Relations between independently fetched
collections are expressed as explicit uid fields (``dashboard_uid``,
``dashboard_item_uid``) and are resolved by building new copies, never by
mutating shared instances.

Remote JSON uses DHIS2 field names (``id``, ``lastUpdated``, ``displayName``);
every model accepts both those aliases and the Python field names.
"""

import re
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from dashsync.core.dashboard.exceptions import UnsupportedEntityKind

# Entity type names used in logs and failure reports
DASHBOARDS = "dashboards"
DASHBOARD_ITEMS = "dashboardItems"
DASHBOARD_ELEMENTS = "dashboardElements"

_COMPACT_OFFSET = re.compile(r"([+-]\d{2})(\d{2})$")


class ContentType(str, Enum):
    """Kinds of content a dashboard item can reference.

    The value is the tag stored with every content row and element row.
    """

    CHART = "chart"
    EVENT_CHART = "eventChart"
    MAP = "map"
    REPORT_TABLE = "reportTable"
    EVENT_REPORT = "eventReport"
    USERS = "users"
    REPORTS = "reports"
    RESOURCES = "resources"

    @classmethod
    def parse(cls, value: Any) -> "ContentType":
        """
        Resolve a tag to a ContentType.

        Raises:
            UnsupportedEntityKind: If the tag is not a known kind
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(value)
        except ValueError as e:
            raise UnsupportedEntityKind(value) from e

    @property
    def resource_name(self) -> str:
        """API path segment, which is also the response envelope name."""
        match self:
            case ContentType.CHART:
                return "charts"
            case ContentType.EVENT_CHART:
                return "eventCharts"
            case ContentType.MAP:
                return "maps"
            case ContentType.REPORT_TABLE:
                return "reportTables"
            case ContentType.EVENT_REPORT:
                return "eventReports"
            case ContentType.USERS:
                return "users"
            case ContentType.REPORTS:
                return "reports"
            case ContentType.RESOURCES:
                return "documents"
            case _:
                raise UnsupportedEntityKind(self)


# Keys under which a remote dashboard item embeds its content references.
# Single-object keys first, then list keys.
ITEM_CONTENT_FIELDS: tuple[tuple[str, ContentType], ...] = (
    ("chart", ContentType.CHART),
    ("eventChart", ContentType.EVENT_CHART),
    ("map", ContentType.MAP),
    ("reportTable", ContentType.REPORT_TABLE),
    ("eventReport", ContentType.EVENT_REPORT),
    ("users", ContentType.USERS),
    ("reports", ContentType.REPORTS),
    ("resources", ContentType.RESOURCES),
    ("reportTables", ContentType.REPORT_TABLE),
)


class EntityState(str, Enum):
    """Local bookkeeping state of a stored entity.

    Anything fetched from the server is SYNCED. The other states mark
    local work the server has not acknowledged yet.
    """

    SYNCED = "synced"
    TO_POST = "to_post"
    TO_UPDATE = "to_update"
    TO_DELETE = "to_delete"


def _parse_timestamp(value: Any) -> Any:
    # DHIS2 sends offsets as +0000; pydantic wants +00:00
    if isinstance(value, str):
        return _COMPACT_OFFSET.sub(r"\1:\2", value)
    return value


class Entity(BaseModel):
    """Fields shared by every synced entity."""

    # Fields rebuilt from other rows when read back, ignored by change detection
    derived_fields: ClassVar[frozenset[str]] = frozenset()

    uid: str = Field(..., alias="id", description="Globally unique identifier")
    created: datetime | None = Field(default=None, description="Creation timestamp")
    last_updated: datetime | None = Field(
        default=None, alias="lastUpdated", description="Last server-side change"
    )
    state: EntityState = Field(default=EntityState.SYNCED, description="Local sync state")

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    @field_validator("created", "last_updated", mode="before")
    @classmethod
    def normalize_timestamps(cls, value: Any) -> Any:
        return _parse_timestamp(value)

    @property
    def key(self) -> Any:
        """Identity used for reconciliation and change detection."""
        return self.uid

    @property
    def is_unposted(self) -> bool:
        """True if this row was created locally and never reached the server."""
        return self.state == EntityState.TO_POST

    def comparable(self) -> dict[str, Any]:
        """Field values that are persisted as-is, for change detection."""
        return self.model_dump(exclude=set(self.derived_fields))


class Dashboard(Entity):
    """A dashboard and the ordered uids of its items.

    Example:
        >>> dashboard = Dashboard.model_validate(
        ...     {"id": "d1", "name": "ANC", "dashboardItems": [{"id": "i1"}]}
        ... )
        >>> dashboard.item_uids
        ['i1']
    """

    name: str | None = None
    display_name: str | None = Field(default=None, alias="displayName")
    access: dict[str, Any] | None = None
    item_uids: list[str] = Field(default_factory=list, alias="dashboardItems")

    @field_validator("item_uids", mode="before")
    @classmethod
    def unwrap_item_refs(cls, value: Any) -> Any:
        if value is None:
            return []
        return [ref["id"] if isinstance(ref, dict) else ref for ref in value]


class ContentRef(BaseModel):
    """Reference from a dashboard item to one piece of content."""

    uid: str = Field(..., alias="id")
    type: ContentType
    name: str | None = None
    display_name: str | None = Field(default=None, alias="displayName")
    created: datetime | None = None
    last_updated: datetime | None = Field(default=None, alias="lastUpdated")

    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="ignore")

    @field_validator("created", "last_updated", mode="before")
    @classmethod
    def normalize_timestamps(cls, value: Any) -> Any:
        return _parse_timestamp(value)

    @field_validator("type", mode="before")
    @classmethod
    def parse_type(cls, value: Any) -> ContentType:
        return ContentType.parse(value)


class DashboardItem(Entity):
    """A dashboard item with its owning dashboard and content references.

    The remote representation embeds references per kind (``chart``,
    ``users``, ``reportTables`` ...). They are folded into ``content``,
    tagged with their kind and de-duplicated in first-seen order.

    Example:
        >>> item = DashboardItem.model_validate(
        ...     {"id": "i1", "chart": {"id": "c1"}, "users": [{"id": "u1"}]}
        ... )
        >>> [(ref.type.value, ref.uid) for ref in item.content]
        [('chart', 'c1'), ('users', 'u1')]
    """

    derived_fields: ClassVar[frozenset[str]] = frozenset({"content"})

    type: str | None = None
    shape: str | None = None
    messages: bool | None = None
    access: dict[str, Any] | None = None
    dashboard_uid: str | None = Field(default=None, description="Owning dashboard")
    content: list[ContentRef] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def collect_content_refs(cls, data: Any) -> Any:
        if not isinstance(data, dict):
            return data
        if not any(field in data for field, _ in ITEM_CONTENT_FIELDS):
            return data

        data = dict(data)
        refs: list[Any] = list(data.get("content") or [])
        for field, kind in ITEM_CONTENT_FIELDS:
            value = data.pop(field, None)
            if not value:
                continue
            for ref in value if isinstance(value, list) else [value]:
                refs.append({**ref, "type": kind})
        data["content"] = refs
        return data

    @field_validator("content", mode="after")
    @classmethod
    def dedupe_content(cls, refs: list[ContentRef]) -> list[ContentRef]:
        seen: set[tuple[ContentType, str]] = set()
        unique = []
        for ref in refs:
            if (ref.type, ref.uid) in seen:
                continue
            seen.add((ref.type, ref.uid))
            unique.append(ref)
        return unique


class DashboardItemContent(Entity):
    """One piece of content, tagged with its kind.

    Identity is the composite ``(type, uid)``.
    """

    type: ContentType
    name: str | None = None
    display_name: str | None = Field(default=None, alias="displayName")

    @field_validator("type", mode="before")
    @classmethod
    def parse_type(cls, value: Any) -> ContentType:
        return ContentType.parse(value)

    @property
    def key(self) -> tuple[ContentType, str]:
        return (self.type, self.uid)


class DashboardElement(Entity):
    """Binds one piece of content to exactly one dashboard item.

    Elements have no remote endpoint; they are derived from an item's
    content references. ``uid`` is the content uid.
    """

    dashboard_item_uid: str = Field(..., description="Owning dashboard item")
    content_type: ContentType
    name: str | None = None
    display_name: str | None = Field(default=None, alias="displayName")

    @property
    def key(self) -> tuple[str, str]:
        return (self.dashboard_item_uid, self.uid)

    @classmethod
    def from_ref(cls, item_uid: str, ref: ContentRef) -> "DashboardElement":
        """Wrap a content reference as an element owned by ``item_uid``."""
        return cls(
            uid=ref.uid,
            dashboard_item_uid=item_uid,
            content_type=ref.type,
            name=ref.name,
            display_name=ref.display_name,
            created=ref.created,
            last_updated=ref.last_updated,
        )

    def to_ref(self) -> ContentRef:
        """Content reference this element stands for."""
        return ContentRef(
            uid=self.uid,
            type=self.content_type,
            name=self.name,
            display_name=self.display_name,
            created=self.created,
            last_updated=self.last_updated,
        )


class OperationKind(str, Enum):
    """Kinds of local store mutation. UPDATE replaces the whole row."""

    INSERT = "insert"
    UPDATE = "update"
    DELETE = "delete"


@dataclass(frozen=True)
class DbOperation:
    """One mutation in a local store batch."""

    kind: OperationKind
    entity: Entity

    @classmethod
    def insert(cls, entity: Entity) -> "DbOperation":
        return cls(OperationKind.INSERT, entity)

    @classmethod
    def update(cls, entity: Entity) -> "DbOperation":
        return cls(OperationKind.UPDATE, entity)

    @classmethod
    def delete(cls, entity: Entity) -> "DbOperation":
        return cls(OperationKind.DELETE, entity)


class SyncResult(BaseModel):
    """Result of a sync cycle.

    Returned by the sync orchestrator. On failure nothing was committed and
    ``failed_phase`` / ``entity_type`` identify where the cycle stopped.

    Example:
        >>> result = SyncResult(success=True, entities_inserted=12, elements_inserted=4)
        >>> result.total_changes
        16
    """

    success: bool = Field(..., description="Whether the cycle committed")
    failed_phase: str | None = Field(default=None, description="'fetch' or 'commit'")
    entity_type: str | None = Field(default=None, description="Entity type that failed")
    entities_inserted: int = Field(default=0, ge=0)
    entities_updated: int = Field(default=0, ge=0)
    entities_deleted: int = Field(default=0, ge=0)
    elements_inserted: int = Field(default=0, ge=0)
    elements_deleted: int = Field(default=0, ge=0)
    watermark: datetime | None = Field(default=None, description="Watermark after the cycle")
    errors: list[str] = Field(default_factory=list, description="Error messages")
    duration_seconds: float = Field(default=0.0, ge=0.0)

    model_config = ConfigDict(populate_by_name=True)

    @property
    def total_changes(self) -> int:
        """Total number of committed mutations."""
        return (
            self.entities_inserted
            + self.entities_updated
            + self.entities_deleted
            + self.elements_inserted
            + self.elements_deleted
        )
