"""Main entry point for the vendor booking offline client."""

import argparse
import asyncio
import json
import logging
import os
import signal
import sys
from pathlib import Path
from typing import Any, Optional

from client.offline_store import OfflineStore, ResponseCache
from client.sync import (
    BackendClient,
    CachingFetcher,
    ConnectivityMonitor,
    Notification,
    Notifier,
    SyncCoordinator,
    SyncResult,
)
from shared.errors import StorageUnavailable
from shared.schemas.config import ClientConfig
from shared.schemas.trip import OfflineTripRecord

logger = logging.getLogger("vendor_booking.client")


class OfflineClient:
    """Wires the offline store, response cache and sync coordinator.

    Owns the lifecycle of every component. If local storage cannot be
    opened, offline queuing is disabled for the session and the host is
    warned once through the notifier; the rest of the client keeps working.
    """

    def __init__(
        self,
        config: Optional[ClientConfig] = None,
        notifier: Optional[Notifier] = None,
        backend: Optional[BackendClient] = None
    ):
        self.config = config or ClientConfig.from_env()
        self.notifier = notifier or Notifier()

        self.store = OfflineStore(self.config.store.offline_db_path)
        self.cache: Optional[ResponseCache] = ResponseCache(
            self.config.store.cache_db_path,
            cache_name=self.config.store.cache_name
        )
        self.backend = backend or BackendClient(self.config.api)
        self.fetcher = CachingFetcher(self.backend, self.cache)
        self.monitor = ConnectivityMonitor(
            health_url=self.config.sync.health_url,
            poll_interval=self.config.sync.connectivity_poll_seconds
        )
        self.coordinator = SyncCoordinator(
            self.store,
            self.backend,
            notifier=self.notifier,
            monitor=self.monitor,
            periodic_interval=self.config.sync.periodic_sync_seconds
        )

        self.offline_queue_enabled = True
        self._storage_warning_sent = False
        self.running = False

    async def start(self):
        """Open local storage, connect and start listening for sync triggers."""
        logger.info(f"Starting offline client against {self.config.api.base_url}")

        try:
            await self.store.open()
        except StorageUnavailable as e:
            await self._disable_offline_queue(e)

        try:
            await self.cache.open()
        except StorageUnavailable as e:
            logger.warning(f"Response cache disabled: {e}")
            self.cache = None
            self.fetcher.cache = None

        await self.backend.connect()
        await self.coordinator.start()
        await self.monitor.start()
        self.running = True

    async def stop(self):
        """Stop triggers, wait for an in-flight sync and close the session."""
        logger.info("Stopping offline client...")
        self.running = False

        await self.monitor.stop()
        await self.coordinator.stop()
        await self.backend.disconnect()

        logger.info("Offline client stopped")

    async def queue_trip(self, record: OfflineTripRecord) -> bool:
        """Queue a trip for the next sync.

        Returns False when offline queuing is unavailable this session.
        """
        if not self.offline_queue_enabled:
            return False

        try:
            await self.store.put(record)
        except StorageUnavailable as e:
            await self._disable_offline_queue(e)
            return False

        logger.info(f"Queued offline trip {record.id} ({record.vehicle_number})")
        return True

    async def pending_count(self) -> int:
        if not self.offline_queue_enabled:
            return 0
        try:
            return await self.store.count()
        except StorageUnavailable as e:
            await self._disable_offline_queue(e)
            return 0

    def trigger_sync(self, reason: str = "manual") -> Optional[asyncio.Task]:
        """Fire-and-forget sync; the outcome arrives through the notifier."""
        if not self.offline_queue_enabled:
            return None
        return self.coordinator.trigger(reason)

    async def sync_now(self, reason: str = "manual") -> SyncResult:
        return await self.coordinator.sync_now(reason)

    async def fetch(self, method: str, path: str, **kwargs: Any):
        """Backend request with cache-first GETs."""
        return await self.fetcher.fetch(method, path, **kwargs)

    async def set_online(self, online: bool):
        """Connectivity signal from the host environment."""
        await self.monitor.set_online(online)

    async def _disable_offline_queue(self, error: Exception):
        self.offline_queue_enabled = False
        logger.error(f"Offline storage unavailable, offline queuing disabled: {error}")

        if not self._storage_warning_sent:
            self._storage_warning_sent = True
            await self.notifier.notify(Notification(
                title="Offline mode unavailable",
                body="Trips cannot be saved while offline on this device.",
                tag="storage-unavailable"
            ))


def _load_trips(path: str) -> list[OfflineTripRecord]:
    data = json.loads(Path(path).read_text())
    if isinstance(data, dict):
        data = data.get("trips", [data])
    return [OfflineTripRecord.from_dict(item) for item in data]


async def run(args: argparse.Namespace) -> int:
    """Run the requested command."""
    client = OfflineClient()

    if args.command == "run":
        stop_event = asyncio.Event()
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, stop_event.set)

        await client.start()
        client.trigger_sync("startup")
        await stop_event.wait()
        await client.stop()
        return 0

    await client.start()
    try:
        if args.command == "sync":
            result = await client.sync_now("cli")
            print(json.dumps({
                "status": result.status.value,
                "synced": result.synced,
                "pending": result.pending,
                "error": result.error,
            }))
            return 0 if result.ok else 1

        if args.command == "queue":
            queued = 0
            for record in _load_trips(args.file):
                if await client.queue_trip(record):
                    queued += 1
            print(f"Queued {queued} trips")
            return 0 if client.offline_queue_enabled else 1

        if args.command == "pending":
            if not client.offline_queue_enabled:
                print("Offline storage unavailable")
                return 1
            records = await client.store.list_all()
            for record in records:
                print(json.dumps(record.to_dict()))
            print(f"{len(records)} trips pending sync", file=sys.stderr)
            return 0

        if args.command == "clear-cache":
            if client.cache is None:
                print("Response cache unavailable")
                return 1
            await client.cache.clear()
            print("Response cache cleared")
            return 0
    finally:
        await client.stop()

    return 2


def main():
    """Command line entry point."""
    logging.basicConfig(
        level=os.getenv("LOG_LEVEL", "INFO"),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    )

    parser = argparse.ArgumentParser(description="Vendor booking offline trip client")
    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("run", help="Sync whenever connectivity is restored")
    subparsers.add_parser("sync", help="Sync queued trips once")
    subparsers.add_parser("pending", help="List trips waiting to be synced")
    subparsers.add_parser("clear-cache", help="Drop all cached responses")

    queue_parser = subparsers.add_parser("queue", help="Queue trips from a JSON file")
    queue_parser.add_argument("file", type=str, help="JSON trip or list of trips")

    args = parser.parse_args()
    sys.exit(asyncio.run(run(args)))


if __name__ == "__main__":
    main()
