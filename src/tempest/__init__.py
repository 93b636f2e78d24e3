"""Tempest — rate-limited concurrent HTTP load generation."""

from __future__ import annotations

from tempest._internal.config import RunConfig
from tempest._internal.errors import ConfigError, RunCancelled, TempestError, TransportError
from tempest.engine.dispatcher import Dispatcher
from tempest.engine.fingerprint import RequestFingerprinter
from tempest.engine.rate_limiter import TokenBucketRateLimiter
from tempest.engine.retry import RetryPolicy, execute_with_retry
from tempest.engine.runner import LoadRunner
from tempest.engine.worker import Worker
from tempest.metrics.models import ErrorKind, Outcome, RunSummary, WorkerSummary
from tempest.metrics.sink import OutcomeSink
from tempest.transport.base import Request, build_request
from tempest.transport.http_client import HttpClientFactory

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "Dispatcher",
    "ErrorKind",
    "HttpClientFactory",
    "LoadRunner",
    "Outcome",
    "OutcomeSink",
    "Request",
    "RequestFingerprinter",
    "RetryPolicy",
    "RunCancelled",
    "RunConfig",
    "RunSummary",
    "TempestError",
    "TokenBucketRateLimiter",
    "TransportError",
    "Worker",
    "WorkerSummary",
    "build_request",
    "execute_with_retry",
]
