"""Offline trip synchronization and cache-first reads."""

from .api_client import BackendClient
from .connectivity import ConnectivityMonitor
from .fetcher import CachingFetcher
from .notifier import Notification, Notifier
from .sync_coordinator import SyncCoordinator, SyncResult, SyncState, SyncStatus

__all__ = [
    "BackendClient",
    "ConnectivityMonitor",
    "CachingFetcher",
    "Notification",
    "Notifier",
    "SyncCoordinator",
    "SyncResult",
    "SyncState",
    "SyncStatus",
]
