"""Transport contracts consumed by the dispatch engine."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Protocol

from yarl import URL

from tempest._internal.errors import RequestBuildError

if TYPE_CHECKING:
    from types import TracebackType

    from tempest._internal.types import Headers


@dataclass(frozen=True)
class Request:
    """An outgoing request, independent of any HTTP library.

    Attributes:
        method: HTTP method.
        url: Absolute target URL.
        headers: Headers sent with the request.
    """

    method: str
    url: URL
    headers: Headers = field(default_factory=dict)

    def with_header(self, name: str, value: str) -> Request:
        """Return a copy of this request with ``name`` set to ``value``."""
        return replace(self, headers={**self.headers, name: value})


class Response(Protocol):
    """A received response whose body must be released after use."""

    @property
    def status(self) -> int: ...

    @property
    def content_length(self) -> int: ...

    def release(self) -> None:
        """Release the body and return the connection to the pool."""


class Client(Protocol):
    """A transport client owned by exactly one worker.

    Used as an async context manager: entering opens the underlying
    connection pool, exiting closes it.
    """

    async def __aenter__(self) -> Client: ...

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None: ...

    async def execute(self, request: Request) -> Response:
        """Send ``request`` and await its response.

        Raises:
            TransportError: If the attempt failed.
        """
        ...


# Builds a fresh client. May raise any exception; the worker treats it as
# a client construction failure.
ClientFactory = Callable[[], Client]


def build_request(target: str | URL, method: str = "GET") -> Request:
    """Construct a request to ``target``.

    Args:
        target: Absolute http(s) URL.
        method: HTTP method. Defaults to GET.

    Returns:
        A request with no headers set.

    Raises:
        RequestBuildError: If the target is not an absolute http(s) URL.
    """
    try:
        url = target if isinstance(target, URL) else URL(target)
    except (TypeError, ValueError) as exc:
        msg = f"invalid request URL: {target!r}"
        raise RequestBuildError(msg) from exc

    if url.scheme not in ("http", "https") or not url.host:
        msg = f"request URL must be absolute http(s), got: {target!r}"
        raise RequestBuildError(msg)

    return Request(method=method.upper(), url=url)
