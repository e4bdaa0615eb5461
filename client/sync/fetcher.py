"""Cache-first request interception for backend reads."""

import logging
from typing import Any, Optional

from client.offline_store.response_cache import CachedResponse, ResponseCache
from shared.errors import StorageUnavailable

from .api_client import BackendClient

logger = logging.getLogger(__name__)


class CachingFetcher:
    """Serve GETs from the response cache before going to the network.

    A cached response is returned as-is even when the network is
    reachable; it only changes when a later successful GET to the same
    key overwrites it. Non-GET requests and non-2xx responses are never
    cached.
    """

    def __init__(self, client: BackendClient, cache: Optional[ResponseCache]):
        self.client = client
        self.cache = cache

    async def fetch(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        **kwargs: Any
    ) -> CachedResponse:
        method = method.upper()
        url = self.client.url_for(path, params)
        cacheable = method == "GET" and self.cache is not None

        if cacheable:
            try:
                cached = await self.cache.match(method, url)
            except StorageUnavailable as e:
                logger.warning(f"Response cache unavailable, going to network: {e}")
                cached = None
            if cached is not None:
                logger.debug(f"Cache hit: {method} {url}")
                return cached

        response = await self.client.request(method, url, **kwargs)

        if cacheable and response.ok:
            try:
                await self.cache.put(method, url, response)
            except StorageUnavailable as e:
                logger.warning(f"Could not cache {url}: {e}")

        return response

    async def get(self, path: str, params: Optional[dict] = None, **kwargs: Any) -> CachedResponse:
        return await self.fetch("GET", path, params=params, **kwargs)
