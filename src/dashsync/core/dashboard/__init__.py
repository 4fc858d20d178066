"""
Dashboard synchronization for dashsync.

Mirrors the server's dashboards into a local SQLite store:
- API layer (api/) - HTTP client and query builders for the remote server
- Database layer (db/) - SQLite schema, local store and watermark
- Sync layer (sync/) - Reconciliation, relation building and planning
- Models (models.py) - Pydantic models for dashboard entities
"""

__all__: list[str] = []
