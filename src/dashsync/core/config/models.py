"""
Configuration data models for dashsync.

These models define the structure of .dashsync.json and
~/.config/dashsync/config.json files, with validation and type safety via
Pydantic.
"""

from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator


class ServerConfig(BaseModel):
    """
    Connection settings for the remote server.

    The API root is ``<url>/api``; credentials are sent as HTTP basic auth.
    """

    url: str | None = Field(
        default=None,
        description="Server base URL, e.g. https://play.dhis2.org/demo",
    )
    username: str | None = Field(default=None, description="Basic auth user name")
    password: str | None = Field(default=None, description="Basic auth password")
    timeout_seconds: float = Field(
        default=30.0,
        gt=0,
        description="Per-request timeout in seconds",
    )

    @field_validator("url")
    @classmethod
    def strip_trailing_slash(cls, v: str | None) -> str | None:
        """Normalize the base URL so ``/api`` can be appended safely."""
        if v is None:
            return None
        v = v.strip().rstrip("/")
        return v or None


class StorageConfig(BaseModel):
    """Where the local store lives."""

    db_path: Path = Field(
        default=Path(".dashsync/dashboards.db"),
        description="SQLite database file holding entities and the watermark",
    )


class SyncConfig(BaseModel):
    """
    Behavior of a sync cycle.

    ``server_timezone`` is the zone the server stamps ``lastUpdated`` in;
    the watermark is captured in that zone so filters compare like with like.
    """

    protect_pending: bool = Field(
        default=True,
        description="Never delete locally created rows that are not posted yet",
    )
    server_timezone: str = Field(
        default="UTC",
        description="IANA timezone of the server clock",
    )

    @field_validator("server_timezone")
    @classmethod
    def validate_timezone(cls, v: str) -> str:
        try:
            ZoneInfo(v)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {v}") from e
        return v


class DashsyncConfig(BaseModel):
    """
    Complete dashsync configuration.

    Combines server, storage and sync settings. Loaded from JSON files and
    environment variables with layered merging.

    Example:
        >>> config = DashsyncConfig(server={"url": "https://dhis.example.org"})
        >>> config.server.timeout_seconds
        30.0
    """

    server: ServerConfig = Field(default_factory=ServerConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    sync: SyncConfig = Field(default_factory=SyncConfig)

    model_config = ConfigDict(
        extra="ignore",
        validate_assignment=True,
    )
