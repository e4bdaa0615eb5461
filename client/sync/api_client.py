"""HTTP client for the vendor booking backend."""

import asyncio
import logging
from typing import Any, Optional, Sequence

import aiohttp
from yarl import URL

from client.offline_store.response_cache import CachedResponse
from shared.errors import AuthExpired, SyncUploadFailed
from shared.schemas.config import ApiConfig
from shared.schemas.trip import BulkSyncRequest, OfflineTripRecord

logger = logging.getLogger(__name__)


class BackendClient:
    """aiohttp client for the booking backend.

    Adds the bearer credential and ``X-Environment`` header to every
    request and logs each request and response. A 401 is raised as
    ``AuthExpired``; clearing credentials or redirecting to a login page is
    left to the host.
    """

    def __init__(
        self,
        config: Optional[ApiConfig] = None,
        session: Optional[aiohttp.ClientSession] = None
    ):
        self.config = config or ApiConfig()
        self.auth_token: Optional[str] = self.config.auth_token

        self.session: Optional[aiohttp.ClientSession] = session
        self._owns_session = session is None

    @property
    def env_label(self) -> str:
        return self.config.environment.value.upper()

    def set_token(self, token: Optional[str]):
        """Replace the bearer credential used for subsequent requests."""
        self.auth_token = token

    def _get_headers(self) -> dict:
        headers = {
            "Content-Type": "application/json",
            "X-Environment": self.config.environment.value,
        }
        if self.auth_token:
            headers["Authorization"] = f"Bearer {self.auth_token}"
        return headers

    def url_for(self, path: str, params: Optional[dict] = None) -> str:
        """Absolute URL for a backend path, with query parameters folded in."""
        url = URL(path)
        if not url.is_absolute():
            url = URL(f"{self.config.base_url}/{path.lstrip('/')}")
        if params:
            url = url.update_query(params)
        return str(url)

    async def connect(self):
        """Initialize the HTTP session."""
        if self.session is None:
            timeout = aiohttp.ClientTimeout(total=self.config.timeout_seconds)
            self.session = aiohttp.ClientSession(timeout=timeout)
            self._owns_session = True
        logger.info(f"[{self.env_label}] Backend client connected to {self.config.base_url}")

    async def disconnect(self):
        """Close the HTTP session if this client created it."""
        if self.session and self._owns_session:
            await self.session.close()
        self.session = None
        logger.info(f"[{self.env_label}] Backend client disconnected")

    async def request(self, method: str, url: str, **kwargs: Any) -> CachedResponse:
        """Send a request and capture the full response.

        Transport errors propagate as ``aiohttp.ClientError`` or
        ``asyncio.TimeoutError``.
        """
        if self.session is None:
            await self.connect()

        method = method.upper()
        headers = {**self._get_headers(), **kwargs.pop("headers", {})}
        logger.debug(f"[{self.env_label}] API Request: {method} {url}")

        try:
            async with self.session.request(method, url, headers=headers, **kwargs) as response:
                body = await response.read()
                captured = CachedResponse(
                    status=response.status,
                    url=str(response.url),
                    headers=list(response.headers.items()),
                    body=body
                )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.error(f"[{self.env_label}] API Error: {method} {url} - {e!r}")
            raise

        if captured.status == 401:
            logger.error(f"[{self.env_label}] API Error: 401 {url}")
            raise AuthExpired()

        logger.debug(f"[{self.env_label}] API Response: {captured.status} {url}")
        return captured

    async def bulk_sync(self, records: Sequence[OfflineTripRecord]) -> int:
        """Upload queued trips in one request.

        Returns the HTTP status on success. Raises ``AuthExpired`` on 401
        and ``SyncUploadFailed`` on any other non-2xx status or transport
        failure.
        """
        url = self.config.bulk_sync_url
        payload = BulkSyncRequest(trips=list(records)).to_dict()

        try:
            response = await self.request("POST", url, json=payload)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise SyncUploadFailed(f"Bulk sync request failed: {e!r}") from e

        if not response.ok:
            raise SyncUploadFailed(
                f"Bulk sync rejected: {response.status} - {response.text()[:200]}",
                status=response.status
            )

        logger.info(f"[{self.env_label}] Bulk sync accepted {len(records)} trips ({response.status})")
        return response.status
