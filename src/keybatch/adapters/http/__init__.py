"""HTTP adapter for remote bulk-lookup endpoints."""

from __future__ import annotations

from .client import ResilientClient
from .schema import LookupRequest, LookupResponse, WireRecord
from .store import HttpRecordStore, RemoteStoreError

__all__ = [
    "HttpRecordStore",
    "LookupRequest",
    "LookupResponse",
    "RemoteStoreError",
    "ResilientClient",
    "WireRecord",
]
