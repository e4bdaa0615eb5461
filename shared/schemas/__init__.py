"""Configuration and record schemas."""

from .config import ApiConfig, ClientConfig, Environment, StoreConfig, SyncConfig
from .trip import BulkSyncRequest, OfflineTripRecord

__all__ = [
    "ApiConfig",
    "ClientConfig",
    "Environment",
    "StoreConfig",
    "SyncConfig",
    "BulkSyncRequest",
    "OfflineTripRecord",
]
