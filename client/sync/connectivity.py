"""Connectivity detection for triggering offline sync."""

import asyncio
import logging
from typing import Awaitable, Callable, Optional

import aiohttp

logger = logging.getLogger(__name__)

RestoredHandler = Callable[[], Awaitable[None]]


class ConnectivityMonitor:
    """Tracks whether the backend is reachable.

    Hosts with their own network events call ``set_online``; otherwise the
    monitor polls ``health_url``. Handlers run on every offline -> online
    transition, including the first successful check after start.
    """

    def __init__(
        self,
        health_url: Optional[str] = None,
        poll_interval: float = 15.0,
        session: Optional[aiohttp.ClientSession] = None,
        timeout: float = 5.0
    ):
        self.health_url = health_url
        self.poll_interval = poll_interval
        self.session = session
        self.timeout = timeout

        self.online: Optional[bool] = None
        self.restored_handlers: list[RestoredHandler] = []

        self._running = False
        self._poll_task: Optional[asyncio.Task] = None
        self._owns_session = False

    def add_restored_handler(self, handler: RestoredHandler):
        """Add handler called when connectivity comes back."""
        self.restored_handlers.append(handler)

    def remove_restored_handler(self, handler: RestoredHandler):
        if handler in self.restored_handlers:
            self.restored_handlers.remove(handler)

    async def set_online(self, online: bool):
        """Record the current connectivity state and fire restore handlers."""
        previous = self.online
        self.online = online

        if online and previous is not True:
            logger.info("Connectivity restored")
            for handler in list(self.restored_handlers):
                try:
                    await handler()
                except Exception as e:
                    logger.error(f"Connectivity handler error: {e}")
        elif not online and previous is not False:
            logger.warning("Connectivity lost")

    async def check(self) -> bool:
        """Check the health URL once."""
        if not self.health_url or self.session is None:
            return False

        try:
            async with self.session.get(
                self.health_url,
                timeout=aiohttp.ClientTimeout(total=self.timeout)
            ) as response:
                return response.status < 500
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.debug(f"Health check failed: {e!r}")
            return False

    async def start(self):
        """Start polling if a health URL is configured."""
        if not self.health_url:
            logger.info("No health URL configured, connectivity polling disabled")
            return

        if self.session is None:
            self.session = aiohttp.ClientSession()
            self._owns_session = True

        self._running = True
        self._poll_task = asyncio.create_task(self._poll_loop())
        logger.info(f"Connectivity monitor polling {self.health_url} every {self.poll_interval}s")

    async def stop(self):
        self._running = False
        if self._poll_task:
            self._poll_task.cancel()
            try:
                await self._poll_task
            except asyncio.CancelledError:
                pass
            self._poll_task = None

        if self._owns_session and self.session:
            await self.session.close()
            self.session = None
            self._owns_session = False

    async def _poll_loop(self):
        while self._running:
            await self.set_online(await self.check())
            await asyncio.sleep(self.poll_interval)
