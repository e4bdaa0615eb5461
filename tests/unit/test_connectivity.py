"""Unit tests for connectivity detection."""

import pytest
from aiohttp import web

from client.sync.connectivity import ConnectivityMonitor


class TestConnectivityMonitor:
    """Tests for ConnectivityMonitor."""

    @pytest.mark.asyncio
    async def test_restored_fires_on_transition_only(self):
        monitor = ConnectivityMonitor()
        calls = []

        async def on_restored():
            calls.append(monitor.online)

        monitor.add_restored_handler(on_restored)

        await monitor.set_online(True)
        await monitor.set_online(True)
        assert calls == [True]

        await monitor.set_online(False)
        await monitor.set_online(True)
        assert len(calls) == 2

    @pytest.mark.asyncio
    async def test_handler_error_is_contained(self):
        monitor = ConnectivityMonitor()
        calls = []

        async def broken():
            raise RuntimeError("boom")

        async def working():
            calls.append("ok")

        monitor.add_restored_handler(broken)
        monitor.add_restored_handler(working)

        await monitor.set_online(True)

        assert calls == ["ok"]
        assert monitor.online is True

    @pytest.mark.asyncio
    async def test_check_without_health_url_is_offline(self):
        monitor = ConnectivityMonitor()
        assert await monitor.check() is False

        await monitor.start()
        await monitor.stop()

    @pytest.mark.asyncio
    async def test_check_against_health_endpoint(self, fake_backend):
        async def health(request):
            return web.json_response({"status": "ok"})

        fake_backend.route("GET", "/health", health)

        async with fake_backend:
            monitor = ConnectivityMonitor(
                health_url=f"{fake_backend.base_url}/health",
                poll_interval=60
            )
            await monitor.start()
            try:
                assert await monitor.check() is True
            finally:
                await monitor.stop()

        assert monitor.session is None

    @pytest.mark.asyncio
    async def test_check_unreachable_is_offline(self, fake_backend):
        async with fake_backend:
            health_url = f"{fake_backend.base_url}/health"

        monitor = ConnectivityMonitor(health_url=health_url, poll_interval=60)
        await monitor.start()
        try:
            assert await monitor.check() is False
        finally:
            await monitor.stop()
