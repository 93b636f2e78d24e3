"""Custom client — tune the transport and fingerprint pool of a run.

Every worker gets its own client from the factory. Here each client
sends a bearer token, keeps at most ten connections, and the
fingerprinter rotates ``Accept-Language`` instead of ``User-Agent``.
Any factory returning an object with ``__aenter__``/``__aexit__`` and an
``execute(request)`` coroutine can replace ``HttpClientFactory``.
"""

from __future__ import annotations

import asyncio

from tempest import Dispatcher, HttpClientFactory, RunConfig
from tempest.engine.fingerprint import RequestFingerprinter
from tempest.metrics.sink import LoggingSink

ACCEPT_LANGUAGES = ("en-US,en;q=0.9", "de-DE,de;q=0.8", "fr-FR,fr;q=0.7")


async def main() -> None:
    factory = HttpClientFactory(
        timeout=5.0,
        headers={"Authorization": "Bearer example-token"},
        pool_size=10,
    )
    dispatcher = Dispatcher(
        factory,
        sink=LoggingSink(),
        fingerprinter_factory=lambda: RequestFingerprinter(ACCEPT_LANGUAGES, header="Accept-Language"),
    )
    config = RunConfig("http://localhost:8080/api/items", worker_count=3, requests_per_worker=10)

    cancel = asyncio.Event()
    # Stop early after five seconds, whatever the progress
    asyncio.get_running_loop().call_later(5.0, cancel.set)

    summary = await dispatcher.run(config, cancel)
    print(f"{summary.total_requests} requests, error rate {summary.error_rate:.1%}")


if __name__ == "__main__":
    asyncio.run(main())
