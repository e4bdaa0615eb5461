"""Passive notification channel between the sync core and its host."""

import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, UTC
from typing import Any, Callable, Optional

logger = logging.getLogger(__name__)

DEFAULT_ICON = "/icon-192x192.png"


@dataclass
class Notification:
    """User-visible message surfaced by the host."""
    title: str
    body: str
    tag: Optional[str] = None
    icon: str = DEFAULT_ICON
    data: dict = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))


Handler = Callable[[Any], Any]


class Notifier:
    """Fan notifications and failure reports out to host handlers.

    Handlers may be plain functions or coroutines. A handler that raises is
    logged and skipped; nothing propagates back into the sync core.
    """

    def __init__(self):
        self.notification_handlers: list[Handler] = []
        self.failure_handlers: list[Handler] = []

    def add_notification_handler(self, handler: Handler):
        """Add handler for user-visible notifications."""
        self.notification_handlers.append(handler)

    def add_failure_handler(self, handler: Handler):
        """Add handler for silent failure reports."""
        self.failure_handlers.append(handler)

    async def notify(self, notification: Notification):
        logger.info(f"Notification [{notification.tag}]: {notification.title} - {notification.body}")
        await self._dispatch(self.notification_handlers, notification)

    async def report_failure(self, report: Any):
        """Record a failure without showing anything to the user."""
        logger.warning(f"Sync failure reported: {report}")
        await self._dispatch(self.failure_handlers, report)

    async def _dispatch(self, handlers: list[Handler], payload: Any):
        for handler in handlers:
            try:
                result = handler(payload)
                if asyncio.iscoroutine(result):
                    await result
            except Exception as e:
                logger.error(f"Notification handler error: {e}")
