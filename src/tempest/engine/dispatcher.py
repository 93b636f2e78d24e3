"""Worker pool: spawns, cancels, joins and aggregates workers."""

from __future__ import annotations

import asyncio
import time
from typing import TYPE_CHECKING

from tempest._internal.logging import get_logger
from tempest.engine.fingerprint import RequestFingerprinter
from tempest.engine.rate_limiter import TokenBucketRateLimiter
from tempest.engine.retry import DEFAULT_RETRY_POLICY
from tempest.engine.worker import Worker
from tempest.metrics.models import RunSummary, WorkerSummary
from tempest.metrics.sink import OutcomeSink

if TYPE_CHECKING:
    from collections.abc import Callable

    from tempest._internal.config import RunConfig
    from tempest.engine.retry import RetryPolicy
    from tempest.transport.base import ClientFactory

logger = get_logger("engine.dispatcher")


async def _drain(tasks: list[asyncio.Task[WorkerSummary]]) -> None:
    """Wait for every task to finish, even if this coroutine is cancelled again."""
    pending = set(tasks)
    while pending:
        try:
            _done, pending = await asyncio.wait(pending)
        except asyncio.CancelledError:
            logger.info("Dispatcher cancelled again, still waiting for workers")
            pending = {task for task in tasks if not task.done()}


class Dispatcher:
    """Owns the lifecycle of one run's worker pool.

    Validates the run configuration, creates the shared rate limiter,
    starts one asyncio task per worker, and waits for every one of them
    before aggregating their summaries. A single ``asyncio.Event`` is the
    run's cancellation signal; every worker observes it at its next wait
    point (at the latest, its next rate-limiter acquisition).
    """

    def __init__(
        self,
        client_factory: ClientFactory,
        *,
        sink: OutcomeSink | None = None,
        fingerprinter_factory: Callable[[], RequestFingerprinter] = RequestFingerprinter,
        retry_policy: RetryPolicy = DEFAULT_RETRY_POLICY,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            client_factory: Called once per worker to build its own client.
            sink: Receives outcomes and summaries. Defaults to a no-op sink.
            fingerprinter_factory: Builds one fingerprinter per worker.
            retry_policy: Retry policy applied to every request.
        """
        self._client_factory = client_factory
        self._sink = sink or OutcomeSink()
        self._fingerprinter_factory = fingerprinter_factory
        self._retry_policy = retry_policy
        self._limiter: TokenBucketRateLimiter | None = None

    @property
    def limiter(self) -> TokenBucketRateLimiter | None:
        """Return the rate limiter of the current or last run."""
        return self._limiter

    async def run(
        self,
        config: RunConfig,
        cancel: asyncio.Event | None = None,
    ) -> RunSummary:
        """Execute a run and return its aggregate summary.

        Does not return until every worker has finished its quota or
        observed cancellation. If this coroutine is itself cancelled, the
        cancellation event is set, the workers are drained (further
        cancellations do not interrupt the drain), and the
        ``asyncio.CancelledError`` is re-raised.

        Args:
            config: Run parameters. Validated before any worker starts.
            cancel: Optional externally controlled cancellation event.

        Returns:
            RunSummary aggregating every worker's summary.

        Raises:
            ConfigError: If ``config`` is invalid.
        """
        config.validate()

        cancel = cancel if cancel is not None else asyncio.Event()
        self._limiter = TokenBucketRateLimiter(rate=config.rate_per_second)

        logger.info(
            "Starting run: target=%s, workers=%d, requests_per_worker=%d, rate=%.1f/s",
            config.target,
            config.worker_count,
            config.requests_per_worker,
            config.rate_per_second,
        )

        workers = [
            Worker(
                worker_id,
                config,
                self._limiter,
                self._client_factory,
                sink=self._sink,
                fingerprinter=self._fingerprinter_factory(),
                retry_policy=self._retry_policy,
                cancel=cancel,
            )
            for worker_id in range(config.worker_count)
        ]

        start_time = time.monotonic()
        tasks = [
            asyncio.create_task(worker.run(), name=f"tempest-worker-{worker.worker_id}")
            for worker in workers
        ]

        try:
            await asyncio.wait(tasks)
        except asyncio.CancelledError:
            logger.info("Dispatcher cancelled, waiting for workers to stop")
            cancel.set()
            await _drain(tasks)
            raise

        summaries = [self._collect(worker, task) for worker, task in zip(workers, tasks, strict=True)]
        summary = RunSummary.from_workers(
            summaries,
            duration_seconds=time.monotonic() - start_time,
            cancelled=cancel.is_set(),
        )
        self._sink.on_run_complete(summary)
        return summary

    def _collect(self, worker: Worker, task: asyncio.Task[WorkerSummary]) -> WorkerSummary:
        """Return a worker's summary, falling back to its partial counts."""
        if task.cancelled():
            logger.warning("Worker %d task was cancelled", worker.worker_id)
        else:
            exc = task.exception()
            if exc is None:
                return task.result()
            logger.error(
                "Worker %d crashed",
                worker.worker_id,
                exc_info=exc,
                extra={"worker_id": worker.worker_id},
            )
        summary = worker.summary()
        self._sink.on_worker_complete(summary)
        return summary
