"""Custom exception hierarchy for Tempest."""

from __future__ import annotations


class TempestError(Exception):
    """Base exception for all Tempest errors.

    All custom exceptions in Tempest inherit from this class, making it
    easy to catch any Tempest-specific error with a single except clause.
    """


class ConfigError(TempestError):
    """Raised when run parameters are invalid.

    Fatal: the run is aborted before any worker starts.

    Examples:
        - Worker count or requests per worker below 1.
        - Target URL is not an absolute http(s) URL.
        - Rate limit is zero or negative.
    """


class ClientConstructionError(TempestError):
    """Raised when a worker cannot build its transport client.

    Fatal to that worker only; the other workers are unaffected.
    """


class RequestBuildError(TempestError):
    """Raised when an outgoing request cannot be constructed."""


class TransportError(TempestError):
    """Raised by a transport client when a single attempt fails."""


class RetryExhaustedError(TransportError):
    """Raised when every attempt allowed by the retry policy failed.

    Attributes:
        last_error: The error observed on the final attempt.
        attempts: Number of attempts made.
    """

    def __init__(self, last_error: BaseException, attempts: int) -> None:
        super().__init__(f"request failed after {attempts} attempt(s): {last_error}")
        self.last_error = last_error
        self.attempts = attempts


class RunCancelled(TempestError):
    """Raised when the run's cancellation signal fires at a wait point.

    Attributes:
        attempts: Transport attempts already made for the current request
            (0 when cancelled before the first attempt).
    """

    def __init__(self, attempts: int = 0) -> None:
        super().__init__("run cancelled")
        self.attempts = attempts
