"""Unit tests for the response cache."""

import sqlite3

import pytest

from client.offline_store.response_cache import CachedResponse, ResponseCache, cache_key
from shared.errors import StorageUnavailable


def _response(body: bytes = b'{"trips": []}', status: int = 200) -> CachedResponse:
    return CachedResponse(
        status=status,
        url="http://backend/trips",
        headers=[("Content-Type", "application/json")],
        body=body
    )


class TestResponseCache:
    """Tests for ResponseCache."""

    def test_cache_key_includes_method(self):
        assert cache_key("get", "http://backend/trips") == "GET http://backend/trips"
        assert cache_key("GET", "http://a/x") != cache_key("GET", "http://a/y")

    @pytest.mark.asyncio
    async def test_match_miss_returns_none(self, cache_path):
        cache = ResponseCache(cache_path)
        assert await cache.match("GET", "http://backend/trips") is None

    @pytest.mark.asyncio
    async def test_put_then_match(self, cache_path):
        cache = ResponseCache(cache_path)
        await cache.put("GET", "http://backend/trips", _response())

        cached = await cache.match("GET", "http://backend/trips")

        assert cached is not None
        assert cached.from_cache
        assert cached.status == 200
        assert cached.json() == {"trips": []}
        assert cached.header("content-type") == "application/json"
        assert cached.stored_at is not None

    @pytest.mark.asyncio
    async def test_repeated_headers_survive(self, cache_path):
        cache = ResponseCache(cache_path)
        response = _response()
        response.headers += [("Set-Cookie", "a=1"), ("Set-Cookie", "b=2")]
        await cache.put("GET", "http://backend/trips", response)

        cached = await cache.match("GET", "http://backend/trips")

        assert cached.header_values("Set-Cookie") == ["a=1", "b=2"]
        assert cached.header("set-cookie") == "a=1"
        assert cached.header("ETag") is None

    @pytest.mark.asyncio
    async def test_newer_response_overwrites(self, cache_path):
        cache = ResponseCache(cache_path)
        await cache.put("GET", "http://backend/trips", _response(b'{"v": 1}'))
        await cache.put("GET", "http://backend/trips", _response(b'{"v": 2}'))

        cached = await cache.match("GET", "http://backend/trips")
        assert cached.json() == {"v": 2}
        assert await cache.keys() == ["GET http://backend/trips"]

    @pytest.mark.asyncio
    async def test_generation_bump_invalidates_everything(self, cache_path):
        old = ResponseCache(cache_path, cache_name="vendor-booking-cache-v1")
        await old.put("GET", "http://backend/trips", _response())
        await old.put("GET", "http://backend/vendors", _response())

        new = ResponseCache(cache_path, cache_name="vendor-booking-cache-v2")
        await new.open()

        assert await new.keys() == []
        assert await old.keys() == []

    @pytest.mark.asyncio
    async def test_delete_and_clear(self, cache_path):
        cache = ResponseCache(cache_path)
        await cache.put("GET", "http://backend/trips", _response())
        await cache.put("GET", "http://backend/vendors", _response())

        await cache.delete("GET", "http://backend/trips")
        assert await cache.keys() == ["GET http://backend/vendors"]

        await cache.clear()
        assert await cache.keys() == []

    @pytest.mark.asyncio
    async def test_upgrade_drops_entries_with_object_headers(self, cache_path):
        conn = sqlite3.connect(cache_path)
        conn.executescript("""
            CREATE TABLE responses (
                cache_name TEXT NOT NULL,
                key TEXT NOT NULL,
                url TEXT NOT NULL,
                status INTEGER NOT NULL,
                headers_json TEXT NOT NULL,
                body BLOB NOT NULL,
                stored_at TEXT NOT NULL,
                PRIMARY KEY (cache_name, key)
            );
            INSERT INTO responses VALUES (
                'vendor-booking-cache-v1', 'GET http://backend/trips',
                'http://backend/trips', 200, '{"Content-Type": "application/json"}',
                X'00', '2026-10-19T00:00:00+00:00'
            );
            PRAGMA user_version = 1;
        """)
        conn.close()

        cache = ResponseCache(cache_path)
        assert await cache.match("GET", "http://backend/trips") is None
        assert await cache.keys() == []

    @pytest.mark.asyncio
    async def test_unusable_path(self, unusable_path):
        cache = ResponseCache(unusable_path)
        with pytest.raises(StorageUnavailable):
            await cache.match("GET", "http://backend/trips")
