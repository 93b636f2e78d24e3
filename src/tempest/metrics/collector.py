"""In-memory outcome collection for a run."""

from __future__ import annotations

import time
from collections import Counter
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import numpy as np

from tempest.metrics.sink import OutcomeSink

if TYPE_CHECKING:
    from tempest.metrics.models import Outcome, RunSummary, WorkerSummary


def _compute_percentiles(
    latencies: list[float],
) -> tuple[float, float, float, float, float, float, float]:
    """Compute latency statistics from a list of latency values.

    Args:
        latencies: List of latency values in milliseconds.

    Returns:
        Tuple of (min, max, avg, p50, p90, p95, p99).
    """
    if not latencies:
        return (0.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0)

    arr = np.array(latencies, dtype=np.float64)
    percentiles = np.percentile(arr, [50.0, 90.0, 95.0, 99.0])

    return (
        float(np.min(arr)),
        float(np.max(arr)),
        float(np.mean(arr)),
        float(percentiles[0]),
        float(percentiles[1]),
        float(percentiles[2]),
        float(percentiles[3]),
    )


@dataclass
class CollectorSnapshot:
    """Point-in-time view of a run's collected outcomes.

    Attributes:
        elapsed_seconds: Seconds since the collector was created.
        total_requests: Outcomes recorded so far.
        total_success: Successful outcomes.
        total_failure: Failed outcomes.
        total_attempts: Transport attempts across all outcomes.
        failed_attempts: Attempts that raised a transport error.
        requests_per_second: Outcomes per second since start.
        workers_completed: Workers that have reported a summary.
        latency_min: Minimum successful latency in milliseconds.
        latency_max: Maximum successful latency in milliseconds.
        latency_avg: Mean successful latency in milliseconds.
        latency_p50: 50th percentile latency (ms).
        latency_p90: 90th percentile latency (ms).
        latency_p95: 95th percentile latency (ms).
        latency_p99: 99th percentile latency (ms).
        errors_by_kind: Failure count keyed by ``ErrorKind`` value.
        responses_by_status: Response count keyed by HTTP status code.
    """

    elapsed_seconds: float
    total_requests: int = 0
    total_success: int = 0
    total_failure: int = 0
    total_attempts: int = 0
    failed_attempts: int = 0
    requests_per_second: float = 0.0
    workers_completed: int = 0
    latency_min: float = 0.0
    latency_max: float = 0.0
    latency_avg: float = 0.0
    latency_p50: float = 0.0
    latency_p90: float = 0.0
    latency_p95: float = 0.0
    latency_p99: float = 0.0
    errors_by_kind: dict[str, int] = field(default_factory=dict)
    responses_by_status: dict[int, int] = field(default_factory=dict)


class OutcomeCollector(OutcomeSink):
    """Accumulates outcomes into counters and a latency list.

    Only the event loop thread writes to the collector, so no lock is
    needed. ``snapshot()`` may be called at any time, including while the
    run is in progress (the diagnostics server does so).
    """

    def __init__(self) -> None:
        self._start = time.monotonic()
        self._latencies: list[float] = []
        self._errors: Counter[str] = Counter()
        self._statuses: Counter[int] = Counter()
        self._success = 0
        self._failure = 0
        self._attempts = 0
        self._failed_attempts = 0
        self._worker_summaries: list[WorkerSummary] = []
        self._run_summary: RunSummary | None = None

    @property
    def run_summary(self) -> RunSummary | None:
        """Return the final run summary, once the run has completed."""
        return self._run_summary

    @property
    def worker_summaries(self) -> list[WorkerSummary]:
        """Return the worker summaries received so far."""
        return list(self._worker_summaries)

    def on_attempt_failed(self, worker_id: int, attempt: int, error: BaseException) -> None:
        self._failed_attempts += 1

    def on_outcome(self, outcome: Outcome) -> None:
        self._attempts += outcome.attempts
        if outcome.succeeded:
            self._success += 1
            self._latencies.append(outcome.latency_ms)
            if outcome.status_code is not None:
                self._statuses[outcome.status_code] += 1
        else:
            self._failure += 1
            if outcome.error_kind is not None:
                self._errors[outcome.error_kind.value] += 1

    def on_worker_complete(self, summary: WorkerSummary) -> None:
        self._worker_summaries.append(summary)

    def on_run_complete(self, summary: RunSummary) -> None:
        self._run_summary = summary

    def snapshot(self) -> CollectorSnapshot:
        """Compute a snapshot of everything collected so far."""
        elapsed = time.monotonic() - self._start
        total = self._success + self._failure
        lat_min, lat_max, lat_avg, p50, p90, p95, p99 = _compute_percentiles(self._latencies)

        return CollectorSnapshot(
            elapsed_seconds=elapsed,
            total_requests=total,
            total_success=self._success,
            total_failure=self._failure,
            total_attempts=self._attempts,
            failed_attempts=self._failed_attempts,
            requests_per_second=total / elapsed if elapsed > 0 else 0.0,
            workers_completed=len(self._worker_summaries),
            latency_min=lat_min,
            latency_max=lat_max,
            latency_avg=lat_avg,
            latency_p50=p50,
            latency_p90=p90,
            latency_p95=p95,
            latency_p99=p99,
            errors_by_kind=dict(self._errors),
            responses_by_status=dict(self._statuses),
        )
