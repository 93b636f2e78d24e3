"""Worker: one transport client driving a bounded sequence of requests."""

from __future__ import annotations

import contextlib
import random
import time
from typing import TYPE_CHECKING

from tempest._internal.errors import (
    ClientConstructionError,
    RequestBuildError,
    RetryExhaustedError,
    RunCancelled,
)
from tempest._internal.logging import get_logger
from tempest._internal.timing import sleep_or_cancel
from tempest.engine.fingerprint import RequestFingerprinter
from tempest.engine.retry import DEFAULT_RETRY_POLICY, execute_with_retry
from tempest.metrics.models import ErrorKind, Outcome, WorkerSummary
from tempest.metrics.sink import OutcomeSink
from tempest.transport.base import build_request

if TYPE_CHECKING:
    import asyncio

    from tempest._internal.config import RunConfig
    from tempest._internal.types import PacingRange
    from tempest.engine.rate_limiter import TokenBucketRateLimiter
    from tempest.engine.retry import RetryPolicy
    from tempest.transport.base import Client, ClientFactory

logger = get_logger("engine.worker")

# Delay between consecutive requests of one worker, in seconds.
PACING_RANGE: PacingRange = (0.010, 0.050)


class Worker:
    """Issues ``requests_per_worker`` sequential requests against the target.

    Per iteration: acquire a rate token, build the request, fingerprint
    it, execute it with retry, record exactly one ``Outcome``, then pace.
    The loop ends when the quota is exhausted or cancellation is observed.

    The worker owns its client, counters and RNG; the rate limiter is the
    only state it shares with other workers.

    Attributes:
        worker_id: Worker identifier.
    """

    def __init__(
        self,
        worker_id: int,
        config: RunConfig,
        limiter: TokenBucketRateLimiter,
        client_factory: ClientFactory,
        *,
        sink: OutcomeSink | None = None,
        fingerprinter: RequestFingerprinter | None = None,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
        cancel: asyncio.Event | None = None,
    ) -> None:
        """Initialize the worker.

        Args:
            worker_id: Worker identifier used in outcomes and logs.
            config: Validated run configuration.
            limiter: Rate limiter shared with every other worker.
            client_factory: Builds this worker's private transport client.
            sink: Receives outcomes and the final summary.
            fingerprinter: Header randomizer. Defaults to a User-Agent pool.
            retry_policy: Retry policy for each request.
            cancel: Run-scoped cancellation event.
        """
        self.worker_id = worker_id
        self._config = config
        self._limiter = limiter
        self._client_factory = client_factory
        self._sink = sink or OutcomeSink()
        self._fingerprinter = fingerprinter or RequestFingerprinter()
        self._retry_policy = retry_policy
        self._cancel = cancel
        self._rng = random.Random()  # noqa: S311

        self._success_count = 0
        self._failure_count = 0
        self._cancelled = False

    def summary(self) -> WorkerSummary:
        """Return the counts recorded so far."""
        return WorkerSummary(
            worker_id=self.worker_id,
            success_count=self._success_count,
            failure_count=self._failure_count,
            cancelled=self._cancelled,
        )

    async def run(self) -> WorkerSummary:
        """Run the worker loop to completion.

        Attempt-level errors never escape: each is absorbed into exactly
        one failed ``Outcome``.

        A client that cannot be built or opened fails every planned
        request of this worker with ``CLIENT_CONSTRUCTION``.

        Returns:
            The worker's final summary.
        """
        async with contextlib.AsyncExitStack() as stack:
            try:
                client = self._client_factory()
                await stack.enter_async_context(client)
            except Exception as exc:
                error = ClientConstructionError(f"{type(exc).__name__}: {exc}")
                logger.error(
                    "Error creating HTTP client",
                    extra={"worker_id": self.worker_id, "error": error},
                )
                self._fail_all(error)
            else:
                await self._loop(client)
        return self._finish()

    async def _loop(self, client: Client) -> None:
        total = self._config.requests_per_worker
        for index in range(total):
            # Acquire
            try:
                await self._limiter.acquire(self._cancel)
            except RunCancelled:
                self._record_failure(ErrorKind.CANCELLED, attempts=0, error="run cancelled")
                self._cancelled = True
                return

            # Build
            try:
                request = build_request(self._config.target)
            except RequestBuildError as exc:
                self._record_failure(ErrorKind.REQUEST_BUILD, attempts=0, error=str(exc))
                continue

            # Fingerprint
            request = self._fingerprinter.apply(request)

            # Execute
            start = time.monotonic()
            try:
                response, attempts = await execute_with_retry(
                    client,
                    request,
                    policy=self._retry_policy,
                    cancel=self._cancel,
                    on_failure=self._on_attempt_failed,
                )
            except RetryExhaustedError as exc:
                self._record_failure(
                    ErrorKind.TRANSPORT_FAILURE,
                    attempts=exc.attempts,
                    error=str(exc.last_error),
                    latency_ms=(time.monotonic() - start) * 1000,
                )
            except RunCancelled as exc:
                self._record_failure(ErrorKind.CANCELLED, attempts=exc.attempts, error="run cancelled")
                self._cancelled = True
                return
            else:
                response.release()
                self._record_success(
                    attempts=attempts,
                    status_code=response.status,
                    latency_ms=(time.monotonic() - start) * 1000,
                )

            # Pace
            if index < total - 1:
                await sleep_or_cancel(self.pacing_delay(), self._cancel)

    def pacing_delay(self) -> float:
        """Return a uniformly random pacing delay within ``PACING_RANGE``."""
        low, high = PACING_RANGE
        return self._rng.uniform(low, high)

    def _on_attempt_failed(self, attempt: int, error: BaseException) -> None:
        self._sink.on_attempt_failed(self.worker_id, attempt, error)

    def _record_success(self, *, attempts: int, status_code: int, latency_ms: float) -> None:
        self._success_count += 1
        self._sink.on_outcome(
            Outcome(
                worker_id=self.worker_id,
                succeeded=True,
                attempts=attempts,
                status_code=status_code,
                latency_ms=latency_ms,
            )
        )

    def _record_failure(
        self,
        kind: ErrorKind,
        *,
        attempts: int,
        error: str,
        latency_ms: float = 0.0,
    ) -> None:
        self._failure_count += 1
        self._sink.on_outcome(
            Outcome(
                worker_id=self.worker_id,
                succeeded=False,
                attempts=attempts,
                error_kind=kind,
                latency_ms=latency_ms,
                error=error,
            )
        )

    def _fail_all(self, exc: BaseException) -> None:
        remaining = self._config.requests_per_worker - self._success_count - self._failure_count
        for _ in range(remaining):
            self._record_failure(ErrorKind.CLIENT_CONSTRUCTION, attempts=0, error=str(exc))

    def _finish(self) -> WorkerSummary:
        summary = self.summary()
        self._sink.on_worker_complete(summary)
        return summary
