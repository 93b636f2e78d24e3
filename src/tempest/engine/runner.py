"""Top-level synchronous entry point for a load run."""

from __future__ import annotations

import asyncio
import logging
import signal
import sys
from typing import TYPE_CHECKING

from tempest._internal.logging import get_logger, setup_logging
from tempest.diagnostics.server import DiagnosticsServer
from tempest.engine.dispatcher import Dispatcher
from tempest.metrics.collector import OutcomeCollector
from tempest.metrics.sink import FanoutSink, LoggingSink
from tempest.transport.http_client import HttpClientFactory

if TYPE_CHECKING:
    from tempest._internal.config import RunConfig
    from tempest.metrics.models import RunSummary
    from tempest.metrics.sink import OutcomeSink
    from tempest.transport.base import ClientFactory

logger = get_logger("engine.runner")


def _install_uvloop() -> None:
    """Install uvloop as the default event loop policy if available.

    Falls back silently to the default asyncio event loop on Windows
    or if uvloop is not installed.
    """
    if sys.platform == "win32":
        return

    try:
        import uvloop

        uvloop.install()
        logger.debug("uvloop installed as event loop policy")
    except ImportError:
        logger.debug("uvloop not available, using default asyncio event loop")


class LoadRunner:
    """Wires a Dispatcher to logging, signals, metrics and diagnostics.

    ``run()`` blocks until the run completes or SIGINT/SIGTERM triggers
    the cancellation signal, and returns the ``RunSummary``.

    Attributes:
        config: The run configuration.
        collector: Outcome collector fed by the run.
    """

    def __init__(
        self,
        config: RunConfig,
        *,
        client_factory: ClientFactory | None = None,
        sinks: list[OutcomeSink] | None = None,
        request_timeout: float = 30.0,
        verify_tls: bool = False,
        diagnostics_port: int | None = None,
        log_level: int = logging.INFO,
        json_logs: bool = False,
    ) -> None:
        """Initialize the runner.

        Args:
            config: Run parameters. Validated when the run starts.
            client_factory: Transport client factory. Defaults to the
                aiohttp-backed ``HttpClientFactory``.
            sinks: Extra sinks receiving engine events.
            request_timeout: Timeout for the default client, in seconds.
            verify_tls: TLS verification for the default client.
            diagnostics_port: If set, serve diagnostics on this port.
            log_level: Logging level.
            json_logs: Emit one-line JSON logs instead of plain text.
        """
        self.config = config
        self.collector = OutcomeCollector()
        self._client_factory = client_factory or HttpClientFactory(
            timeout=request_timeout,
            verify_tls=verify_tls,
        )
        self._sinks = [LoggingSink(), self.collector, *(sinks or [])]
        self._diagnostics_port = diagnostics_port
        self._log_level = log_level
        self._json_logs = json_logs
        self._cancel: asyncio.Event | None = None

    def run(self) -> RunSummary:
        """Execute the run and return its summary.

        Raises:
            ConfigError: If the run configuration is invalid.
        """
        _install_uvloop()
        setup_logging(level=self._log_level, json_format=self._json_logs)
        return asyncio.run(self._run())

    def cancel(self) -> None:
        """Trigger the run's cancellation signal, if the run has started."""
        if self._cancel is not None:
            self._cancel.set()

    async def _run(self) -> RunSummary:
        self._cancel = asyncio.Event()
        dispatcher = Dispatcher(self._client_factory, sink=FanoutSink(self._sinks))

        self._install_signal_handlers()
        try:
            if self._diagnostics_port is not None:
                async with DiagnosticsServer(self.collector, port=self._diagnostics_port):
                    return await dispatcher.run(self.config, self._cancel)
            return await dispatcher.run(self.config, self._cancel)
        finally:
            self._remove_signal_handlers()

    def _install_signal_handlers(self) -> None:
        """Install SIGINT and SIGTERM handlers that set the cancel event."""
        loop = asyncio.get_running_loop()

        def _signal_handler() -> None:
            logger.info("Signal received, initiating graceful shutdown")
            self.cancel()

        if sys.platform != "win32":
            loop.add_signal_handler(signal.SIGINT, _signal_handler)
            loop.add_signal_handler(signal.SIGTERM, _signal_handler)
        else:
            # Windows doesn't support add_signal_handler
            signal.signal(signal.SIGINT, lambda _s, _f: loop.call_soon_threadsafe(_signal_handler))
            signal.signal(signal.SIGTERM, lambda _s, _f: loop.call_soon_threadsafe(_signal_handler))

    def _remove_signal_handlers(self) -> None:
        """Remove custom signal handlers, restoring defaults."""
        if sys.platform != "win32":
            loop = asyncio.get_running_loop()
            for sig in (signal.SIGINT, signal.SIGTERM):
                loop.remove_signal_handler(sig)
        else:
            signal.signal(signal.SIGINT, signal.default_int_handler)
            signal.signal(signal.SIGTERM, signal.SIG_DFL)
