"""Configuration loading and run parameter validation for Tempest."""

from __future__ import annotations

import os
from dataclasses import dataclass

from yarl import URL

from tempest._internal.errors import ConfigError

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off"})


@dataclass(frozen=True)
class TempestConfig:
    """Global Tempest defaults, read from the environment.

    Attributes:
        default_rate: Default global rate limit in requests per second.
        request_timeout: Total timeout for a single request in seconds.
        verify_tls: Whether the default HTTP client verifies certificates.
        diagnostics_port: Port of the local diagnostics server.
    """

    default_rate: float = 20.0
    request_timeout: float = 30.0
    verify_tls: bool = False
    diagnostics_port: int = 6060


@dataclass(frozen=True)
class RunConfig:
    """Parameters of a single load run. Immutable for the run's lifetime.

    Attributes:
        target: Absolute http(s) URL every request is sent to.
        worker_count: Number of concurrent workers.
        requests_per_worker: Requests each worker issues.
        rate_per_second: Global admission rate shared by all workers.
    """

    target: str
    worker_count: int
    requests_per_worker: int
    rate_per_second: float = 20.0

    @property
    def planned_requests(self) -> int:
        """Return the total number of requests the run plans to issue."""
        return self.worker_count * self.requests_per_worker

    def validate(self) -> None:
        """Check every field, raising on the first invalid one.

        Raises:
            ConfigError: If a count is below 1, the rate is not positive,
                or the target is not an absolute http(s) URL.
        """
        if self.worker_count < 1:
            msg = f"worker_count must be >= 1, got: {self.worker_count}"
            raise ConfigError(msg)

        if self.requests_per_worker < 1:
            msg = f"requests_per_worker must be >= 1, got: {self.requests_per_worker}"
            raise ConfigError(msg)

        if not self.rate_per_second > 0:
            msg = f"rate_per_second must be positive, got: {self.rate_per_second}"
            raise ConfigError(msg)

        try:
            url = URL(self.target)
        except (TypeError, ValueError) as exc:
            msg = f"target is not a valid URL: {self.target!r}"
            raise ConfigError(msg) from exc

        if url.scheme not in ("http", "https") or not url.host:
            msg = f"target must be an absolute http(s) URL, got: {self.target!r}"
            raise ConfigError(msg)


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUE_VALUES:
        return True
    if value in _FALSE_VALUES:
        return False
    msg = f"{name} must be a boolean, got: {raw!r}"
    raise ConfigError(msg)


def load_config() -> TempestConfig:
    """Load configuration from environment variables with defaults.

    Environment variables:
        TEMPEST_RATE: Default rate limit in requests/second (default: 20).
        TEMPEST_TIMEOUT: Request timeout in seconds (default: 30.0).
        TEMPEST_VERIFY_TLS: Verify TLS certificates (default: false).
        TEMPEST_DIAGNOSTICS_PORT: Diagnostics server port (default: 6060).

    Returns:
        Populated TempestConfig instance.

    Raises:
        ConfigError: If an environment variable has an invalid value.
    """
    rate_str = os.environ.get("TEMPEST_RATE", "20")
    timeout_str = os.environ.get("TEMPEST_TIMEOUT", "30.0")
    port_str = os.environ.get("TEMPEST_DIAGNOSTICS_PORT", "6060")

    try:
        rate = float(rate_str)
    except ValueError:
        msg = f"TEMPEST_RATE must be a number, got: {rate_str!r}"
        raise ConfigError(msg) from None

    if rate <= 0:
        msg = f"TEMPEST_RATE must be positive, got: {rate}"
        raise ConfigError(msg)

    try:
        timeout = float(timeout_str)
    except ValueError:
        msg = f"TEMPEST_TIMEOUT must be a number, got: {timeout_str!r}"
        raise ConfigError(msg) from None

    if timeout <= 0:
        msg = f"TEMPEST_TIMEOUT must be positive, got: {timeout}"
        raise ConfigError(msg)

    try:
        port = int(port_str)
    except ValueError:
        msg = f"TEMPEST_DIAGNOSTICS_PORT must be an integer, got: {port_str!r}"
        raise ConfigError(msg) from None

    if not 0 < port < 65536:
        msg = f"TEMPEST_DIAGNOSTICS_PORT must be in 1..65535, got: {port}"
        raise ConfigError(msg)

    return TempestConfig(
        default_rate=rate,
        request_timeout=timeout,
        verify_tls=_parse_bool("TEMPEST_VERIFY_TLS", os.environ.get("TEMPEST_VERIFY_TLS", "false")),
        diagnostics_port=port,
    )
