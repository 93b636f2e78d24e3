"""Observability sinks receiving engine events."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tempest._internal.logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Iterable

    from tempest.metrics.models import Outcome, RunSummary, WorkerSummary

logger = get_logger("metrics.sink")


class OutcomeSink:
    """Base sink. Every hook is a no-op; subclasses override what they need.

    The engine calls the hooks from the event loop thread at fixed points:
    after each failed transport attempt, once per logical request, when a
    worker finishes, and when the run finishes.
    """

    def on_attempt_failed(self, worker_id: int, attempt: int, error: BaseException) -> None:
        """Called after a transport attempt fails, before any backoff."""

    def on_outcome(self, outcome: Outcome) -> None:
        """Called exactly once per logical request."""

    def on_worker_complete(self, summary: WorkerSummary) -> None:
        """Called when a worker has stopped issuing requests."""

    def on_run_complete(self, summary: RunSummary) -> None:
        """Called once after every worker has finished."""


class LoggingSink(OutcomeSink):
    """Writes engine events to the ``tempest`` logger."""

    def on_attempt_failed(self, worker_id: int, attempt: int, error: BaseException) -> None:
        logger.warning(
            "Retry %d failed",
            attempt,
            extra={"worker_id": worker_id, "error": error},
        )

    def on_outcome(self, outcome: Outcome) -> None:
        if outcome.succeeded:
            return
        kind = outcome.error_kind.value if outcome.error_kind is not None else "unknown"
        logger.error(
            "Request failed (%s) after %d attempt(s)",
            kind,
            outcome.attempts,
            extra={"worker_id": outcome.worker_id, "error": outcome.error},
        )

    def on_worker_complete(self, summary: WorkerSummary) -> None:
        logger.info(
            "Worker completed: Success: %d, Failures: %d",
            summary.success_count,
            summary.failure_count,
            extra={"worker_id": summary.worker_id},
        )

    def on_run_complete(self, summary: RunSummary) -> None:
        logger.info(
            "Run completed: duration=%.1fs, success=%d, failures=%d, error_rate=%.2f%%%s",
            summary.duration_seconds,
            summary.total_success,
            summary.total_failure,
            summary.error_rate * 100,
            " (cancelled)" if summary.cancelled else "",
        )


class FanoutSink(OutcomeSink):
    """Forwards every event to several sinks in order.

    A sink that raises is logged and skipped so it cannot break the run.
    """

    def __init__(self, sinks: Iterable[OutcomeSink]) -> None:
        self._sinks = list(sinks)

    @property
    def sinks(self) -> list[OutcomeSink]:
        """Return the wrapped sinks."""
        return list(self._sinks)

    def on_attempt_failed(self, worker_id: int, attempt: int, error: BaseException) -> None:
        for sink in self._sinks:
            try:
                sink.on_attempt_failed(worker_id, attempt, error)
            except Exception:
                logger.warning("Sink %r failed in on_attempt_failed", sink, exc_info=True)

    def on_outcome(self, outcome: Outcome) -> None:
        for sink in self._sinks:
            try:
                sink.on_outcome(outcome)
            except Exception:
                logger.warning("Sink %r failed in on_outcome", sink, exc_info=True)

    def on_worker_complete(self, summary: WorkerSummary) -> None:
        for sink in self._sinks:
            try:
                sink.on_worker_complete(summary)
            except Exception:
                logger.warning("Sink %r failed in on_worker_complete", sink, exc_info=True)

    def on_run_complete(self, summary: RunSummary) -> None:
        for sink in self._sinks:
            try:
                sink.on_run_complete(summary)
            except Exception:
                logger.warning("Sink %r failed in on_run_complete", sink, exc_info=True)
