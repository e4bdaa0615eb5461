"""Reconciles the offline trip queue with the backend."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, UTC
from enum import Enum
from typing import Optional

from client.offline_store.offline_store import OfflineStore
from shared.errors import AuthExpired, StorageUnavailable, SyncUploadFailed

from .api_client import BackendClient
from .connectivity import ConnectivityMonitor
from .notifier import Notification, Notifier

logger = logging.getLogger(__name__)

SYNC_SUCCESS_TAG = "sync-success"


class SyncState(Enum):
    """Phases of a single sync attempt."""
    IDLE = "idle"
    DRAINING = "draining"
    UPLOADING = "uploading"
    CLEARING = "clearing"
    FAILED = "failed"


class SyncStatus(Enum):
    """Outcome of a sync attempt."""
    SYNCED = "synced"
    NOTHING_TO_SYNC = "nothing_to_sync"
    FAILED = "failed"
    IN_PROGRESS = "in_progress"
    STORAGE_UNAVAILABLE = "storage_unavailable"


@dataclass
class SyncResult:
    """Report of one sync attempt."""
    status: SyncStatus
    reason: str = "manual"
    synced: int = 0
    pending: int = 0
    error: Optional[str] = None
    http_status: Optional[int] = None
    auth_expired: bool = False
    started_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    finished_at: Optional[datetime] = None

    @property
    def ok(self) -> bool:
        return self.status in (SyncStatus.SYNCED, SyncStatus.NOTHING_TO_SYNC)


class SyncCoordinator:
    """Drains the offline store into the bulk sync endpoint.

    At most one attempt runs at a time; triggers that arrive while one is in
    flight are coalesced into it. Records are deleted only after the backend
    accepts the whole batch, so a failed or interrupted attempt leaves them
    queued for the next trigger. Nothing is retried by the coordinator
    itself.
    """

    def __init__(
        self,
        store: OfflineStore,
        client: BackendClient,
        notifier: Optional[Notifier] = None,
        monitor: Optional[ConnectivityMonitor] = None,
        periodic_interval: float = 0.0
    ):
        self.store = store
        self.client = client
        self.notifier = notifier or Notifier()
        self.monitor = monitor
        self.periodic_interval = periodic_interval

        self.state = SyncState.IDLE
        self.last_result: Optional[SyncResult] = None

        self._in_progress = False
        self._task: Optional[asyncio.Task] = None
        self._periodic_task: Optional[asyncio.Task] = None
        self._running = False
        self._stopped = False

    @property
    def in_progress(self) -> bool:
        return self._in_progress

    async def start(self):
        """Subscribe to connectivity changes and start the periodic trigger."""
        self._running = True
        self._stopped = False

        if self.monitor is not None:
            self.monitor.add_restored_handler(self._on_connectivity_restored)

        if self.periodic_interval > 0:
            self._periodic_task = asyncio.create_task(self._periodic_loop())

        logger.info("Sync coordinator started")

    async def stop(self):
        """Stop triggering new attempts and wait for an in-flight one."""
        self._running = False
        self._stopped = True

        if self.monitor is not None:
            self.monitor.remove_restored_handler(self._on_connectivity_restored)

        if self._periodic_task:
            self._periodic_task.cancel()
            try:
                await self._periodic_task
            except asyncio.CancelledError:
                pass
            self._periodic_task = None

        if self._task and not self._task.done():
            await asyncio.wait([self._task])

        logger.info("Sync coordinator stopped")

    def trigger(self, reason: str = "manual") -> Optional[asyncio.Task]:
        """Schedule a sync attempt without waiting for it.

        Returns None when an attempt is already running or scheduled, or
        after ``stop()``. ``sync_now`` stays usable without ``start()``.
        """
        if self._stopped:
            logger.info(f"Sync coordinator stopped, ignoring trigger ({reason})")
            return None

        if self._in_progress or (self._task is not None and not self._task.done()):
            logger.info(f"Sync already in progress, ignoring trigger ({reason})")
            return None

        self._task = asyncio.create_task(self.sync_now(reason))
        self._task.add_done_callback(self._log_task_error)
        return self._task

    async def sync_now(self, reason: str = "manual") -> SyncResult:
        """Run one sync attempt and report its outcome.

        Expected failures are reported on the result, never raised.
        """
        if self._in_progress:
            logger.info(f"Sync already in progress, coalescing trigger ({reason})")
            return SyncResult(status=SyncStatus.IN_PROGRESS, reason=reason)

        self._in_progress = True
        try:
            result = await self._attempt(reason)
        finally:
            self._in_progress = False
            self.state = SyncState.IDLE

        result.finished_at = datetime.now(UTC)
        self.last_result = result
        return result

    async def _attempt(self, reason: str) -> SyncResult:
        logger.info(f"Starting offline trip sync ({reason})")

        self.state = SyncState.DRAINING
        try:
            pending = await self.store.list_all()
        except StorageUnavailable as e:
            logger.error(f"Offline store unavailable, skipping sync: {e}")
            return await self._fail(SyncResult(
                status=SyncStatus.STORAGE_UNAVAILABLE, reason=reason, error=str(e)
            ))

        if not pending:
            logger.info("No offline trips to sync")
            return SyncResult(status=SyncStatus.NOTHING_TO_SYNC, reason=reason)

        self.state = SyncState.UPLOADING
        try:
            http_status = await self.client.bulk_sync(pending)
        except SyncUploadFailed as e:
            self.state = SyncState.FAILED
            logger.error(f"Sync error: {e}")
            return await self._fail(SyncResult(
                status=SyncStatus.FAILED,
                reason=reason,
                pending=len(pending),
                error=str(e),
                http_status=e.status,
                auth_expired=isinstance(e, AuthExpired)
            ))

        # Only the uploaded batch is removed; trips queued during the upload stay
        self.state = SyncState.CLEARING
        try:
            await self.store.delete_many(record.id for record in pending)
        except StorageUnavailable as e:
            self.state = SyncState.FAILED
            logger.error(f"Uploaded {len(pending)} trips but could not clear them: {e}")
            return await self._fail(SyncResult(
                status=SyncStatus.STORAGE_UNAVAILABLE,
                reason=reason,
                pending=len(pending),
                error=str(e),
                http_status=http_status
            ))

        logger.info(f"Synced {len(pending)} offline trips")
        await self.notifier.notify(Notification(
            title="Trips synced successfully",
            body=f"{len(pending)} offline trips have been synced to the server.",
            tag=SYNC_SUCCESS_TAG,
            data={"count": len(pending)}
        ))

        return SyncResult(
            status=SyncStatus.SYNCED,
            reason=reason,
            synced=len(pending),
            http_status=http_status
        )

    async def _fail(self, result: SyncResult) -> SyncResult:
        await self.notifier.report_failure(result)
        return result

    async def _on_connectivity_restored(self):
        self.trigger("connectivity-restored")

    async def _periodic_loop(self):
        while self._running:
            await asyncio.sleep(self.periodic_interval)
            self.trigger("periodic")

    @staticmethod
    def _log_task_error(task: asyncio.Task):
        if task.cancelled():
            return
        error = task.exception()
        if error is not None:
            logger.error(f"Unexpected sync failure: {error!r}")
