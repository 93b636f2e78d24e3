"""Outcome and summary dataclasses for Tempest."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

__all__ = [
    "ErrorKind",
    "Outcome",
    "RunSummary",
    "WorkerSummary",
]


class ErrorKind(Enum):
    """Why a logical request failed."""

    REQUEST_BUILD = "request_build"
    TRANSPORT_FAILURE = "transport_failure"
    CANCELLED = "cancelled"
    CLIENT_CONSTRUCTION = "client_construction"


@dataclass(frozen=True)
class Outcome:
    """Result of one logical (post-retry) request, emitted exactly once.

    Attributes:
        worker_id: ID of the worker that owned the request.
        succeeded: Whether a response was received.
        attempts: Transport attempts made (0 if none was made).
        error_kind: Failure category, None on success.
        status_code: HTTP status of the response, None on failure.
        latency_ms: Wall time from first attempt to final result.
        error: Error message of the final failure, None on success.
    """

    worker_id: int
    succeeded: bool
    attempts: int
    error_kind: ErrorKind | None = None
    status_code: int | None = None
    latency_ms: float = 0.0
    error: str | None = None


@dataclass(frozen=True)
class WorkerSummary:
    """Final counts reported by one worker.

    Attributes:
        worker_id: Worker identifier.
        success_count: Requests that received a response.
        failure_count: Requests recorded as failed.
        cancelled: Whether the worker stopped early on cancellation.
    """

    worker_id: int
    success_count: int = 0
    failure_count: int = 0
    cancelled: bool = False

    @property
    def total(self) -> int:
        """Return the number of requests this worker accounted for."""
        return self.success_count + self.failure_count


@dataclass(frozen=True)
class RunSummary:
    """Aggregate result of a whole run.

    Attributes:
        per_worker: Worker summaries ordered by worker ID.
        total_success: Sum of all worker success counts.
        total_failure: Sum of all worker failure counts.
        duration_seconds: Wall-clock duration of the run.
        cancelled: Whether the run's cancellation signal fired.
    """

    per_worker: tuple[WorkerSummary, ...] = field(default_factory=tuple)
    total_success: int = 0
    total_failure: int = 0
    duration_seconds: float = 0.0
    cancelled: bool = False

    @classmethod
    def from_workers(
        cls,
        summaries: list[WorkerSummary],
        *,
        duration_seconds: float = 0.0,
        cancelled: bool = False,
    ) -> RunSummary:
        """Aggregate worker summaries into a run summary.

        Args:
            summaries: One summary per worker, in any order.
            duration_seconds: Wall-clock duration of the run.
            cancelled: Whether the run was cancelled.

        Returns:
            A RunSummary with totals computed from ``summaries``.
        """
        ordered = tuple(sorted(summaries, key=lambda s: s.worker_id))
        return cls(
            per_worker=ordered,
            total_success=sum(s.success_count for s in ordered),
            total_failure=sum(s.failure_count for s in ordered),
            duration_seconds=duration_seconds,
            cancelled=cancelled,
        )

    @property
    def total_requests(self) -> int:
        """Return the number of requests accounted for across all workers."""
        return self.total_success + self.total_failure

    @property
    def error_rate(self) -> float:
        """Return the fraction of requests that failed (0.0 to 1.0)."""
        if self.total_requests == 0:
            return 0.0
        return self.total_failure / self.total_requests
