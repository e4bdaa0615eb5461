"""Error taxonomy for offline storage and trip synchronization."""

from typing import Optional


class OfflineSyncError(Exception):
    """Base class for offline client errors."""


class StorageUnavailable(OfflineSyncError):
    """Local persistent storage could not be opened or used."""


class SyncUploadFailed(OfflineSyncError):
    """Bulk upload returned a non-2xx status or could not complete."""

    def __init__(self, message: str, status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class AuthExpired(SyncUploadFailed):
    """Backend rejected the bearer credential (HTTP 401)."""

    def __init__(self, message: str = "Authentication expired", status: int = 401):
        super().__init__(message, status=status)
