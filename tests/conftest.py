"""Pytest configuration and fixtures for the offline client tests."""

import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from shared.schemas.config import ApiConfig, ClientConfig, StoreConfig
from shared.schemas.trip import OfflineTripRecord


class FakeBackend:
    """In-process aiohttp server that records every request it receives."""

    def __init__(self):
        self.app = web.Application()
        self.requests: list[dict] = []
        self.server = None

    def route(self, method: str, path: str, handler):
        async def _recording(request: web.Request):
            body = await request.read()
            self.requests.append({
                "method": request.method,
                "path": request.path,
                "query": dict(request.query),
                "headers": dict(request.headers),
                "body": body,
            })
            return await handler(request)

        self.app.router.add_route(method, path, _recording)

    def hits(self, path: str) -> int:
        return sum(1 for r in self.requests if r["path"] == path)

    @property
    def base_url(self) -> str:
        return f"http://{self.server.host}:{self.server.port}"

    async def __aenter__(self):
        self.server = TestServer(self.app)
        await self.server.start_server()
        return self

    async def __aexit__(self, *exc):
        await self.server.close()


@pytest.fixture
def fake_backend():
    return FakeBackend()


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "offline.db")


@pytest.fixture
def cache_path(tmp_path):
    return str(tmp_path / "cache.db")


@pytest.fixture
def unusable_path(tmp_path):
    """Path whose parent is a regular file, so it can never be opened."""
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("x")
    return str(blocker / "offline.db")


@pytest.fixture
def client_config(db_path, cache_path):
    return ClientConfig(
        api=ApiConfig(base_url="http://127.0.0.1:9", auth_token="test-token"),
        store=StoreConfig(offline_db_path=db_path, cache_db_path=cache_path),
    )


@pytest.fixture
def make_trip():
    """Factory for offline trips with realistic defaults."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        n = counter["n"]
        fields = {
            "vendor_id": "vendor-001",
            "vehicle_number": f"MH12AB{1000 + n}",
            "driver_name": "Ravi Kumar",
            "driver_phone": "+919800000000",
            "start_location": "Pune",
            "end_location": "Mumbai",
            "start_time": "2026-10-19T06:30:00+00:00",
            "distance": 148.5,
            "fare": 4200.0,
            "status": "pending",
            "gr_number": f"GR-{n:04d}",
        }
        fields.update(overrides)
        return OfflineTripRecord(**fields)

    return _make
