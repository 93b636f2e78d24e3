"""Integration tests for the diagnostics HTTP server."""

from __future__ import annotations

import asyncio

import aiohttp

from tempest.diagnostics.server import DiagnosticsServer
from tempest.metrics.collector import OutcomeCollector
from tempest.metrics.models import ErrorKind, Outcome


async def _get_json(url: str) -> dict:
    async with aiohttp.ClientSession() as session, session.get(url) as resp:
        assert resp.status == 200
        return await resp.json()


class TestDiagnosticsServer:
    async def test_health(self, free_port: int):
        async with DiagnosticsServer(OutcomeCollector(), port=free_port) as server:
            data = await _get_json(f"{server.url}/health")
        assert data == {"status": "ok"}

    async def test_stats_reflect_collector(self, free_port: int):
        collector = OutcomeCollector()
        collector.on_outcome(Outcome(0, True, 1, status_code=200, latency_ms=12.0))
        collector.on_outcome(Outcome(1, False, 3, error_kind=ErrorKind.TRANSPORT_FAILURE))

        async with DiagnosticsServer(collector, port=free_port) as server:
            data = await _get_json(f"{server.url}/debug/stats")

        assert data["total_requests"] == 2
        assert data["total_success"] == 1
        assert data["total_failure"] == 1
        assert data["total_attempts"] == 4
        assert data["responses_by_status"] == {"200": 1}
        assert data["errors_by_kind"] == {"transport_failure": 1}
        assert data["latency_p50"] == 12.0

    async def test_tasks_lists_named_tasks(self, free_port: int):
        async def _idle() -> None:
            await asyncio.sleep(10)

        task = asyncio.create_task(_idle(), name="tempest-worker-7")
        try:
            async with DiagnosticsServer(OutcomeCollector(), port=free_port) as server:
                data = await _get_json(f"{server.url}/debug/tasks")
        finally:
            task.cancel()

        names = [t["name"] for t in data["tasks"]]
        assert "tempest-worker-7" in names
        assert data["count"] == len(data["tasks"])

    async def test_stop_is_idempotent(self, free_port: int):
        server = DiagnosticsServer(OutcomeCollector(), port=free_port)
        await server.start()
        await server.stop()
        await server.stop()
        assert server.url == f"http://127.0.0.1:{free_port}"
