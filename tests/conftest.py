"""Shared test fixtures for the Tempest test suite."""

from __future__ import annotations

import asyncio
import socket
import threading
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import pytest
from aiohttp import web

from tempest._internal.errors import TransportError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterator

    from tempest.transport.base import Request


# =============================================================================
# Pytest configuration
# =============================================================================


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    """Auto-apply markers based on test directory structure."""
    for item in items:
        test_path = str(item.fspath)
        if "/unit/" in test_path:
            item.add_marker(pytest.mark.unit)
        elif "/integration/" in test_path:
            item.add_marker(pytest.mark.integration)
        elif "/e2e/" in test_path:
            item.add_marker(pytest.mark.e2e)


# =============================================================================
# Fake transport
# =============================================================================


@dataclass
class FakeResponse:
    status: int = 200
    content_length: int = 0
    released: bool = False

    def release(self) -> None:
        self.released = True


@dataclass
class FakeClient:
    """In-memory client whose attempt results follow a script.

    ``failures`` is the number of leading attempts that raise
    ``TransportError``; ``always_fail`` makes every attempt fail.
    """

    failures: int = 0
    always_fail: bool = False
    delay: float = 0.0
    requests: list[Request] = field(default_factory=list)
    responses: list[FakeResponse] = field(default_factory=list)
    entered: bool = False
    closed: bool = False

    async def __aenter__(self) -> FakeClient:
        self.entered = True
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        self.closed = True

    async def execute(self, request: Request) -> FakeResponse:
        self.requests.append(request)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.always_fail or len(self.requests) <= self.failures:
            msg = f"attempt {len(self.requests)} refused"
            raise TransportError(msg)
        response = FakeResponse()
        self.responses.append(response)
        return response


class FakeClientFactory:
    """Builds ``FakeClient`` instances and remembers every one it built."""

    def __init__(self, **client_kwargs: object) -> None:
        self._client_kwargs = client_kwargs
        self.clients: list[FakeClient] = []

    def __call__(self) -> FakeClient:
        client = FakeClient(**self._client_kwargs)  # type: ignore[arg-type]
        self.clients.append(client)
        return client


@pytest.fixture
def fake_client_factory() -> FakeClientFactory:
    """A factory of always-succeeding in-memory clients."""
    return FakeClientFactory()


@pytest.fixture
def make_client_factory() -> type[FakeClientFactory]:
    """The ``FakeClientFactory`` class, for tests that script failures."""
    return FakeClientFactory


@pytest.fixture
def make_client() -> type[FakeClient]:
    """The ``FakeClient`` class, for tests that drive a client directly."""
    return FakeClient


# =============================================================================
# Network utilities
# =============================================================================


def _get_free_port() -> int:
    """Find an available port on localhost."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("", 0))
        s.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        return s.getsockname()[1]


@pytest.fixture
def free_port() -> int:
    """An unused localhost port."""
    return _get_free_port()


# =============================================================================
# Echo HTTP Server handlers
# =============================================================================


async def _echo_handler(request: web.Request) -> web.Response:
    """Echo back request details as JSON."""
    return web.json_response(
        {
            "method": request.method,
            "path": str(request.path),
            "headers": dict(request.headers),
        },
        status=200,
    )


async def _delay_handler(request: web.Request) -> web.Response:
    """Respond after a configurable delay (query param: ?delay=0.5)."""
    delay = float(request.query.get("delay", "0.1"))
    await asyncio.sleep(delay)
    return web.json_response({"delayed_by": delay})


async def _error_handler(request: web.Request) -> web.Response:
    """Return a configurable error status (query param: ?status=500)."""
    status = int(request.query.get("status", "500"))
    return web.json_response({"error": True}, status=status)


async def _health_handler(request: web.Request) -> web.Response:
    """Simple health check endpoint."""
    return web.json_response({"status": "ok"})


def _create_echo_app() -> web.Application:
    """Build the echo server app with all test routes."""
    app = web.Application()
    app.router.add_route("*", "/echo{path:.*}", _echo_handler)
    app.router.add_get("/delay", _delay_handler)
    app.router.add_route("*", "/error", _error_handler)
    app.router.add_get("/health", _health_handler)
    return app


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
async def echo_server() -> AsyncIterator[str]:
    """Aiohttp echo server fixture.

    Returns the base URL (e.g., 'http://127.0.0.1:54321').
    """
    app = _create_echo_app()
    port = _get_free_port()
    runner = web.AppRunner(app)
    await runner.setup()
    site = web.TCPSite(runner, "127.0.0.1", port)
    await site.start()
    yield f"http://127.0.0.1:{port}"
    await runner.cleanup()


@pytest.fixture
def sync_echo_server() -> Iterator[str]:
    """Echo server running in a background thread for sync tests.

    Useful for runner and CLI tests where ``asyncio.run`` blocks the
    main thread.
    """
    port = _get_free_port()
    started = threading.Event()
    loop_holder: list[asyncio.AbstractEventLoop] = []

    def _thread_target() -> None:
        loop = asyncio.new_event_loop()
        asyncio.set_event_loop(loop)
        app = _create_echo_app()
        runner = web.AppRunner(app)
        loop.run_until_complete(runner.setup())
        site = web.TCPSite(runner, "127.0.0.1", port)
        loop.run_until_complete(site.start())
        loop_holder.append(loop)
        started.set()
        loop.run_forever()
        loop.run_until_complete(runner.cleanup())
        loop.close()

    thread = threading.Thread(target=_thread_target, daemon=True)
    thread.start()
    started.wait(timeout=5.0)

    yield f"http://127.0.0.1:{port}"

    if loop_holder:
        loop_holder[0].call_soon_threadsafe(loop_holder[0].stop)
    thread.join(timeout=5.0)
