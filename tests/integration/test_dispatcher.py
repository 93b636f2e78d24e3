"""Integration tests for the Dispatcher worker pool."""

from __future__ import annotations

import asyncio

import pytest

from tempest._internal.config import RunConfig
from tempest._internal.errors import ConfigError
from tempest.engine import worker as worker_module
from tempest.engine.dispatcher import Dispatcher
from tempest.engine.retry import RetryPolicy
from tempest.metrics.collector import OutcomeCollector
from tempest.metrics.models import Outcome, RunSummary
from tempest.metrics.sink import FanoutSink, OutcomeSink

_TARGET = "http://example.test/"


@pytest.fixture
def no_pacing(monkeypatch: pytest.MonkeyPatch) -> None:
    """Skip the inter-request pacing delay."""

    async def _no_sleep(delay: float, cancel: asyncio.Event | None = None) -> bool:
        await asyncio.sleep(0)
        return cancel is not None and cancel.is_set()

    monkeypatch.setattr(worker_module, "sleep_or_cancel", _no_sleep)


class _RunRecorder(OutcomeSink):
    def __init__(self) -> None:
        self.runs: list[RunSummary] = []

    def on_run_complete(self, summary: RunSummary) -> None:
        self.runs.append(summary)


class _CrashOnSecondOutcome(OutcomeSink):
    """Raises inside worker 0 once its second outcome is recorded."""

    def __init__(self) -> None:
        self.seen = 0

    def on_outcome(self, outcome: Outcome) -> None:
        if outcome.worker_id == 0:
            self.seen += 1
            if self.seen == 2:
                raise RuntimeError("sink exploded")


@pytest.mark.timeout(30)
class TestDispatcherRun:
    async def test_fifty_workers_hundred_requests(self, fake_client_factory, no_pacing):
        config = RunConfig(_TARGET, worker_count=50, requests_per_worker=100, rate_per_second=1e6)

        summary = await Dispatcher(fake_client_factory).run(config)

        assert summary.total_success == 5000
        assert summary.total_failure == 0
        assert summary.total_requests == config.planned_requests
        assert summary.cancelled is False
        assert [w.worker_id for w in summary.per_worker] == list(range(50))
        assert all(w.success_count == 100 for w in summary.per_worker)

    async def test_each_worker_owns_a_client(self, fake_client_factory, no_pacing):
        config = RunConfig(_TARGET, worker_count=4, requests_per_worker=3, rate_per_second=1e6)

        await Dispatcher(fake_client_factory).run(config)

        assert len(fake_client_factory.clients) == 4
        assert all(len(c.requests) == 3 for c in fake_client_factory.clients)
        assert all(c.closed for c in fake_client_factory.clients)

    async def test_mixed_failures_are_accounted(self, make_client_factory, no_pacing):
        config = RunConfig(_TARGET, worker_count=3, requests_per_worker=2, rate_per_second=1e6)
        factory = make_client_factory(always_fail=True)
        collector = OutcomeCollector()

        summary = await Dispatcher(
            factory, sink=collector, retry_policy=RetryPolicy(base_backoff=0.0)
        ).run(config)

        assert summary.total_failure == 6
        assert summary.error_rate == 1.0
        snapshot = collector.snapshot()
        assert snapshot.errors_by_kind == {"transport_failure": 6}
        assert snapshot.failed_attempts == 18

    async def test_sink_receives_run_completion(self, fake_client_factory, no_pacing):
        recorder = _RunRecorder()
        collector = OutcomeCollector()
        config = RunConfig(_TARGET, worker_count=2, requests_per_worker=5, rate_per_second=1e6)

        summary = await Dispatcher(
            fake_client_factory, sink=FanoutSink([recorder, collector])
        ).run(config)

        assert recorder.runs == [summary]
        assert collector.run_summary == summary
        assert len(collector.worker_summaries) == 2

    async def test_rate_limit_bounds_throughput(self, fake_client_factory, no_pacing):
        config = RunConfig(_TARGET, worker_count=5, requests_per_worker=4, rate_per_second=20.0)
        loop = asyncio.get_running_loop()
        start = loop.time()

        summary = await Dispatcher(fake_client_factory).run(config)

        # 20 initial tokens cover the whole run
        assert summary.total_success == 20
        assert loop.time() - start < 2.0

    async def test_limiter_exposed_after_run(self, fake_client_factory, no_pacing):
        dispatcher = Dispatcher(fake_client_factory)
        assert dispatcher.limiter is None

        await dispatcher.run(RunConfig(_TARGET, 2, 3, 1e6))

        assert dispatcher.limiter is not None
        assert dispatcher.limiter.granted == 6


class TestDispatcherValidation:
    @pytest.mark.parametrize(
        "config",
        [
            RunConfig(_TARGET, worker_count=0, requests_per_worker=1),
            RunConfig(_TARGET, worker_count=1, requests_per_worker=0),
            RunConfig(_TARGET, worker_count=1, requests_per_worker=1, rate_per_second=0),
            RunConfig("not a url", worker_count=1, requests_per_worker=1),
        ],
    )
    async def test_invalid_config_starts_nothing(self, fake_client_factory, config):
        with pytest.raises(ConfigError):
            await Dispatcher(fake_client_factory).run(config)
        assert fake_client_factory.clients == []


@pytest.mark.timeout(30)
class TestDispatcherCancellation:
    async def test_external_cancel_returns_promptly(self, fake_client_factory):
        cancel = asyncio.Event()
        config = RunConfig(_TARGET, worker_count=4, requests_per_worker=50, rate_per_second=5.0)
        loop = asyncio.get_running_loop()
        loop.call_later(0.3, cancel.set)
        start = loop.time()

        summary = await Dispatcher(fake_client_factory).run(config, cancel)

        assert loop.time() - start < 2.0
        assert summary.cancelled is True
        assert summary.total_requests <= config.planned_requests
        assert all(w.cancelled for w in summary.per_worker)
        assert all(c.closed for c in fake_client_factory.clients)

    async def test_cancelling_the_run_drains_workers(self, fake_client_factory):
        config = RunConfig(_TARGET, worker_count=3, requests_per_worker=100, rate_per_second=5.0)
        task = asyncio.create_task(Dispatcher(fake_client_factory).run(config))
        await asyncio.sleep(0.2)

        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert len(fake_client_factory.clients) == 3
        assert all(c.closed for c in fake_client_factory.clients)

    async def test_repeated_cancellation_still_drains_workers(self, make_client_factory):
        factory = make_client_factory(delay=0.3)
        config = RunConfig(_TARGET, worker_count=3, requests_per_worker=10, rate_per_second=1e6)
        task = asyncio.create_task(Dispatcher(factory).run(config))
        await asyncio.sleep(0.1)

        # Every worker is in flight; the drain has to outlast a second cancel
        task.cancel()
        await asyncio.sleep(0.05)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

        assert len(factory.clients) == 3
        assert all(c.closed for c in factory.clients)
        assert all(len(c.requests) == 1 for c in factory.clients)

    async def test_crashed_worker_reports_partial_counts(self, fake_client_factory, no_pacing):
        config = RunConfig(_TARGET, worker_count=2, requests_per_worker=5, rate_per_second=1e6)

        summary = await Dispatcher(fake_client_factory, sink=_CrashOnSecondOutcome()).run(config)

        crashed, healthy = summary.per_worker
        assert crashed.worker_id == 0
        assert crashed.success_count == 2
        assert healthy.success_count == 5
        assert summary.total_success == 7


class _ResetsAfterFirstCall:
    """Client that succeeds once, then raises a non-transport error."""

    def __init__(self, make_client) -> None:
        self._inner = make_client()
        self.calls = 0

    async def __aenter__(self):
        await self._inner.__aenter__()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self._inner.__aexit__(*exc_info)

    async def execute(self, request):
        self.calls += 1
        if self.calls > 1:
            raise ConnectionResetError("connection reset by peer")
        return await self._inner.execute(request)


@pytest.mark.timeout(30)
class TestDispatcherAccounting:
    async def test_unexpected_client_errors_are_counted(self, make_client, no_pacing):
        config = RunConfig(_TARGET, worker_count=2, requests_per_worker=5, rate_per_second=1e6)
        collector = OutcomeCollector()

        summary = await Dispatcher(
            lambda: _ResetsAfterFirstCall(make_client),
            sink=collector,
            retry_policy=RetryPolicy(base_backoff=0.0),
        ).run(config)

        assert summary.total_success + summary.total_failure == config.planned_requests
        assert summary.total_success == 2
        assert summary.total_failure == 8
        assert all(w.success_count == 1 and w.failure_count == 4 for w in summary.per_worker)
        assert collector.snapshot().errors_by_kind == {"transport_failure": 8}

    async def test_client_construction_failure_is_isolated(self, make_client_factory, no_pacing):
        config = RunConfig(_TARGET, worker_count=3, requests_per_worker=4, rate_per_second=1e6)
        inner = make_client_factory()
        calls = 0

        def _factory():
            nonlocal calls
            calls += 1
            if calls == 2:
                raise OSError("too many open files")
            return inner()

        collector = OutcomeCollector()
        summary = await Dispatcher(_factory, sink=collector).run(config)

        failed = [w for w in summary.per_worker if w.failure_count]
        healthy = [w for w in summary.per_worker if not w.failure_count]
        assert len(failed) == 1
        assert failed[0].success_count == 0
        assert failed[0].failure_count == 4
        assert len(healthy) == 2
        assert all(w.success_count == 4 for w in healthy)
        assert summary.total_requests == config.planned_requests
        assert collector.snapshot().errors_by_kind == {"client_construction": 4}
