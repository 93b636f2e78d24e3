"""Token-bucket rate limiter shared by every worker of a run."""

from __future__ import annotations

import asyncio
import time

from tempest._internal.errors import RunCancelled
from tempest._internal.timing import sleep_or_cancel


class TokenBucketRateLimiter:
    """Async token-bucket rate limiter.

    Controls the combined rate at which all workers issue requests. Each
    ``acquire()`` call consumes one token. Tokens are replenished at
    ``rate`` tokens per second. The bucket starts full and holds at most
    ``capacity`` tokens (allowing short bursts).

    When tokens are exhausted, ``acquire()`` awaits until a token becomes
    available or the run's cancellation event fires.

    Attributes:
        rate: Tokens added per second.
        capacity: Maximum token count (burst capacity).
    """

    def __init__(
        self,
        rate: float,
        capacity: float | None = None,
    ) -> None:
        """Initialize the rate limiter.

        Args:
            rate: Tokens per second. Must be positive.
            capacity: Maximum tokens. Defaults to ``rate`` (1 second of burst),
                but never less than one token so slow rates still admit.

        Raises:
            ValueError: If rate is not positive or capacity is below 1.
        """
        if not rate > 0:
            msg = f"rate must be positive, got {rate}"
            raise ValueError(msg)
        if capacity is not None and not capacity >= 1.0:
            msg = f"capacity must be at least 1, got {capacity}"
            raise ValueError(msg)

        self._rate = rate
        self._capacity = capacity if capacity is not None else max(rate, 1.0)
        self._tokens = self._capacity
        self._last_refill = time.monotonic()
        self._lock = asyncio.Lock()
        self._granted = 0

    @property
    def rate(self) -> float:
        """Return the token replenishment rate."""
        return self._rate

    @property
    def capacity(self) -> float:
        """Return the maximum token capacity."""
        return self._capacity

    @property
    def granted(self) -> int:
        """Return the number of acquisitions granted so far."""
        return self._granted

    @property
    def available_tokens(self) -> float:
        """Return the current number of available tokens (approximate).

        Performs a time-based refill calculation without acquiring the lock.
        The result is approximate since another coroutine may modify tokens
        concurrently.
        """
        elapsed = time.monotonic() - self._last_refill
        return min(self._capacity, self._tokens + elapsed * self._rate)

    async def acquire(self, cancel: asyncio.Event | None = None) -> None:
        """Acquire a single token, waiting if necessary.

        The lock is held while waiting, so blocked callers are admitted in
        the order they arrived.

        Args:
            cancel: Optional run-scoped cancellation event.

        Raises:
            RunCancelled: If ``cancel`` is set before a token is granted.
                No token is consumed in that case.
        """
        if cancel is not None and cancel.is_set():
            raise RunCancelled

        async with self._lock:
            self._refill()
            while self._tokens < 1.0:
                wait_time = (1.0 - self._tokens) / self._rate
                if await sleep_or_cancel(wait_time, cancel):
                    raise RunCancelled
                self._refill()
            if cancel is not None and cancel.is_set():
                raise RunCancelled
            self._tokens -= 1.0
            self._granted += 1

    def _refill(self) -> None:
        """Refill tokens based on elapsed time since last refill."""
        now = time.monotonic()
        elapsed = now - self._last_refill
        self._tokens = min(self._capacity, self._tokens + elapsed * self._rate)
        self._last_refill = now
