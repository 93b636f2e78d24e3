"""Local diagnostics HTTP endpoint exposing live run state."""

from __future__ import annotations

import asyncio
from dataclasses import asdict

from aiohttp import web

from tempest._internal.logging import get_logger
from tempest.metrics.collector import OutcomeCollector

logger = get_logger("diagnostics.server")

_COLLECTOR_KEY = web.AppKey("collector", OutcomeCollector)


async def _health_handler(request: web.Request) -> web.Response:
    return web.json_response({"status": "ok"})


async def _stats_handler(request: web.Request) -> web.Response:
    """Return the collector snapshot as JSON."""
    snapshot = asdict(request.app[_COLLECTOR_KEY].snapshot())
    # JSON object keys must be strings
    snapshot["responses_by_status"] = {
        str(status): count for status, count in snapshot["responses_by_status"].items()
    }
    return web.json_response(snapshot)


async def _tasks_handler(request: web.Request) -> web.Response:
    """List the asyncio tasks currently alive on the event loop."""
    tasks = sorted(
        (
            {"name": task.get_name(), "done": task.done()}
            for task in asyncio.all_tasks()
        ),
        key=lambda t: str(t["name"]),
    )
    return web.json_response({"count": len(tasks), "tasks": tasks})


def create_app(collector: OutcomeCollector) -> web.Application:
    """Build the diagnostics application.

    Routes:
        GET /health: Liveness probe.
        GET /debug/stats: Live outcome counters and latency percentiles.
        GET /debug/tasks: Names of running asyncio tasks.

    Args:
        collector: Collector whose snapshot is served.

    Returns:
        The aiohttp application.
    """
    app = web.Application()
    app[_COLLECTOR_KEY] = collector
    app.router.add_get("/health", _health_handler)
    app.router.add_get("/debug/stats", _stats_handler)
    app.router.add_get("/debug/tasks", _tasks_handler)
    return app


class DiagnosticsServer:
    """Runs the diagnostics application on localhost for the run's duration.

    Usable as an async context manager.

    Attributes:
        host: Bind address.
        port: Bind port.
    """

    def __init__(
        self,
        collector: OutcomeCollector,
        *,
        host: str = "127.0.0.1",
        port: int = 6060,
    ) -> None:
        self.host = host
        self.port = port
        self._app = create_app(collector)
        self._runner: web.AppRunner | None = None

    @property
    def url(self) -> str:
        """Return the base URL of the server."""
        return f"http://{self.host}:{self.port}"

    async def start(self) -> None:
        """Bind and start serving."""
        self._runner = web.AppRunner(self._app, access_log=None)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self.host, self.port)
        await site.start()
        logger.info("Diagnostics server listening on %s", self.url)

    async def stop(self) -> None:
        """Stop serving and release the socket."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None

    async def __aenter__(self) -> DiagnosticsServer:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()
