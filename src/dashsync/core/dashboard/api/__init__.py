"""
Remote API layer for dashboard sync.

- client.py: async httpx client for the DHIS2 web API
- queries.py: field projections and watermark filters
"""

from dashsync.core.dashboard.api.client import DhisClient, RemoteDataSource, unwrap_response
from dashsync.core.dashboard.api.queries import basic_query, full_query

__all__ = [
    "DhisClient",
    "RemoteDataSource",
    "unwrap_response",
    "basic_query",
    "full_query",
]
