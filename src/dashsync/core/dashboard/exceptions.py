"""
Custom exceptions for dashboard sync.

Exception Hierarchy:
    DashsyncError (base)
    ├── SyncError (a sync cycle was aborted)
    │   ├── RemoteFetchFailed (a remote fetch for one entity type failed)
    │   ├── StorageReadFailed (the stored snapshot could not be read)
    │   ├── StorageCommitFailed (the local batch could not be committed)
    │   └── SyncInProgressError (another cycle holds the watermark)
    └── UnsupportedEntityKind (content tag outside the known kinds)

Example:
    >>> from dashsync.core.dashboard.exceptions import RemoteFetchFailed
    >>> try:
    ...     raise RemoteFetchFailed("dashboards", "Connection refused")
    ... except RemoteFetchFailed as e:
    ...     print(e.entity_type, e.phase)
    dashboards fetch
"""


class DashsyncError(Exception):
    """
    Base exception for all dashsync errors.

    Attributes:
        message: Human-readable error message
        context: Optional dictionary of additional context
    """

    def __init__(self, message: str, **context: object) -> None:
        super().__init__(message)
        self.message = message
        self.context = context

    def __str__(self) -> str:
        return self.message


class SyncError(DashsyncError):
    """
    Base exception for an aborted sync cycle.

    Attributes:
        phase: Phase that failed ("fetch" or "commit")
    """

    phase: str = "fetch"


class RemoteFetchFailed(SyncError):
    """
    Raised when an existing-ids or full fetch fails for one entity type.

    The transport exception is preserved via ``__cause__``.

    Example:
        >>> import httpx
        >>> try:
        ...     raise httpx.ConnectError("Connection refused")
        ... except httpx.ConnectError as e:
        ...     raise RemoteFetchFailed("charts", str(e)) from e
    """

    phase = "fetch"

    def __init__(self, entity_type: str, message: str, **context: object) -> None:
        super().__init__(message, entity_type=entity_type, **context)
        self.entity_type = entity_type

    def __str__(self) -> str:
        return f"[{self.entity_type}] Remote fetch failed: {self.message}"


class StorageReadFailed(SyncError):
    """
    Raised when the local store cannot be read while a cycle is being planned.

    Reported in the fetch phase: nothing has been written yet.
    """

    phase = "fetch"

    def __init__(self, entity_type: str, message: str, **context: object) -> None:
        super().__init__(message, entity_type=entity_type, **context)
        self.entity_type = entity_type

    def __str__(self) -> str:
        return f"[{self.entity_type}] Local store read failed: {self.message}"


class StorageCommitFailed(SyncError):
    """
    Raised when the operation batch could not be applied to the local store.

    Nothing from the batch is visible after this error.
    """

    phase = "commit"

    def __init__(self, cause: BaseException | str, **context: object) -> None:
        super().__init__(str(cause), **context)
        self.cause = cause

    def __str__(self) -> str:
        return f"Storage commit failed: {self.message}"


class SyncInProgressError(SyncError):
    """Raised when a sync cycle is started while another one is running."""

    def __init__(self, message: str = "A sync cycle is already in progress") -> None:
        super().__init__(message)


class UnsupportedEntityKind(DashsyncError):
    """
    Raised for a content kind that is not one of the known kinds.

    This is a programming or configuration error and is never retried.
    """

    def __init__(self, kind: object) -> None:
        super().__init__(f"Unsupported dashboard item content kind: {kind!r}", kind=kind)
        self.kind = kind
