"""Retry policy and attempt executor for a single logical request."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from tempest._internal.errors import RetryExhaustedError, RunCancelled, TransportError
from tempest._internal.timing import sleep_or_cancel

if TYPE_CHECKING:
    import asyncio
    from collections.abc import Callable

    from tempest.transport.base import Client, Request, Response

# Fixed so that observable timing is identical from run to run.
MAX_ATTEMPTS = 3
BASE_BACKOFF_SECONDS = 0.1


@dataclass(frozen=True)
class RetryPolicy:
    """Decides whether to retry and how long to back off.

    Backoff doubles with each retry: 100ms after the first failure, 200ms
    after the second, and so on. No backoff follows the final attempt.

    Attributes:
        max_attempts: Total attempts allowed, including the first.
        base_backoff: Backoff after the first failed attempt, in seconds.
    """

    max_attempts: int = MAX_ATTEMPTS
    base_backoff: float = BASE_BACKOFF_SECONDS

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            msg = f"max_attempts must be >= 1, got {self.max_attempts}"
            raise ValueError(msg)
        if self.base_backoff < 0:
            msg = f"base_backoff must be >= 0, got {self.base_backoff}"
            raise ValueError(msg)

    def should_retry(self, attempts_made: int) -> bool:
        """Return True if another attempt is allowed after ``attempts_made``."""
        return attempts_made < self.max_attempts

    def backoff(self, attempts_made: int) -> float:
        """Return the sleep in seconds after ``attempts_made`` failed attempts."""
        return self.base_backoff * (2 ** max(attempts_made - 1, 0))


DEFAULT_RETRY_POLICY = RetryPolicy()


@dataclass
class _RetryState:
    attempts_made: int = 0
    backoff: float = 0.0


def _as_transport_error(exc: Exception) -> TransportError:
    if isinstance(exc, TransportError):
        return exc
    return TransportError(f"{type(exc).__name__}: {exc}")


async def execute_with_retry(
    client: Client,
    request: Request,
    *,
    policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    cancel: asyncio.Event | None = None,
    on_failure: Callable[[int, BaseException], None] | None = None,
) -> tuple[Response, int]:
    """Execute ``request`` on ``client``, retrying failed attempts.

    Any exception raised by ``client.execute`` counts as a failed attempt.
    Errors other than ``TransportError`` are wrapped in one, so callers
    only ever see ``RetryExhaustedError`` or ``RunCancelled``.

    Args:
        client: Transport client owned by the calling worker.
        request: Fully built request.
        policy: Retry policy. Defaults to 3 attempts, 100ms doubling backoff.
        cancel: Optional cancellation event interrupting backoff sleeps.
        on_failure: Called with ``(attempt, error)`` after each failed attempt.

    Returns:
        Tuple of (response, attempts made).

    Raises:
        RetryExhaustedError: If every attempt failed. Carries the last
            error and the attempt count.
        RunCancelled: If ``cancel`` fired during a backoff sleep. Carries
            the attempts made so far.
    """
    state = _RetryState()
    while True:
        state.attempts_made += 1
        try:
            response = await client.execute(request)
        except Exception as exc:
            error = _as_transport_error(exc)
            if on_failure is not None:
                on_failure(state.attempts_made, error)
            if not policy.should_retry(state.attempts_made):
                raise RetryExhaustedError(error, state.attempts_made) from exc
            state.backoff = policy.backoff(state.attempts_made)
            if await sleep_or_cancel(state.backoff, cancel):
                raise RunCancelled(state.attempts_made) from exc
            continue
        return response, state.attempts_made
