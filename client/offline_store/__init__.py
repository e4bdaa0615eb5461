"""Local persistence for offline operation."""

from .offline_store import OfflineStore, SQLiteDatabase
from .response_cache import CachedResponse, ResponseCache, cache_key

__all__ = [
    "OfflineStore",
    "SQLiteDatabase",
    "CachedResponse",
    "ResponseCache",
    "cache_key",
]
