"""Default aiohttp-backed transport client."""

from __future__ import annotations

from typing import TYPE_CHECKING

import aiohttp

from tempest._internal.errors import TransportError

if TYPE_CHECKING:
    from types import TracebackType

    from tempest.transport.base import Request


class HttpResponse:
    """Thin wrapper exposing the fields the engine needs from a response."""

    def __init__(self, raw: aiohttp.ClientResponse) -> None:
        self._raw = raw

    @property
    def status(self) -> int:
        return self._raw.status

    @property
    def content_length(self) -> int:
        return int(self._raw.headers.get("Content-Length", 0))

    def release(self) -> None:
        """Return the connection to the pool without reading the body."""
        self._raw.release()


class HttpClient:
    """Async HTTP client wrapping ``aiohttp.ClientSession``.

    One instance belongs to one worker and is never shared. Connection
    and timeout failures surface as ``TransportError``; any HTTP status is
    a completed attempt.

    Attributes:
        headers: Headers applied to every request, overridden per request.
    """

    def __init__(
        self,
        headers: dict[str, str] | None = None,
        timeout: float = 30.0,
        verify_tls: bool = False,
        pool_size: int = 100,
    ) -> None:
        """Initialize the HTTP client.

        Args:
            headers: Default headers applied to every request.
            timeout: Total request timeout in seconds.
            verify_tls: Whether to verify server certificates.
            pool_size: Maximum open connections for this client.
        """
        self.headers: dict[str, str] = dict(headers or {})
        self._timeout = aiohttp.ClientTimeout(total=timeout)
        self._verify_tls = verify_tls
        self._pool_size = pool_size
        self._session: aiohttp.ClientSession | None = None

    async def __aenter__(self) -> HttpClient:
        """Open the underlying aiohttp session."""
        connector = aiohttp.TCPConnector(
            limit=self._pool_size,
            ssl=None if self._verify_tls else False,
        )
        self._session = aiohttp.ClientSession(
            timeout=self._timeout,
            connector=connector,
        )
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Close the underlying aiohttp session."""
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def execute(self, request: Request) -> HttpResponse:
        """Send a request and return its response.

        Args:
            request: The request to send.

        Returns:
            The wrapped response. The caller must ``release()`` it.

        Raises:
            TransportError: If the connection failed or timed out.
            RuntimeError: If the client is used outside of an async context
                manager.
        """
        if self._session is None:
            msg = "HttpClient must be used as an async context manager"
            raise RuntimeError(msg)

        try:
            raw = await self._session.request(
                request.method,
                request.url,
                headers={**self.headers, **request.headers},
            )
        except (aiohttp.ClientError, TimeoutError) as exc:
            msg = f"{type(exc).__name__}: {exc}"
            raise TransportError(msg) from exc
        return HttpResponse(raw)


class HttpClientFactory:
    """Builds a fresh ``HttpClient`` for each worker.

    Timeout, TLS verification and pool size are construction-time
    parameters; the engine never sees them.
    """

    def __init__(
        self,
        *,
        timeout: float = 30.0,
        verify_tls: bool = False,
        pool_size: int = 100,
        headers: dict[str, str] | None = None,
    ) -> None:
        if timeout <= 0:
            msg = f"timeout must be positive, got {timeout}"
            raise ValueError(msg)
        self._timeout = timeout
        self._verify_tls = verify_tls
        self._pool_size = pool_size
        self._headers = dict(headers or {})

    def __call__(self) -> HttpClient:
        return HttpClient(
            headers=self._headers,
            timeout=self._timeout,
            verify_tls=self._verify_tls,
            pool_size=self._pool_size,
        )
