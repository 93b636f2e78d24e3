"""Basic run — drive Tempest from Python instead of the CLI.

Sends 5 workers x 20 requests to a local server at 50 requests/second
and prints the aggregate counts. Equivalent to:

    tempest run -t http://localhost:8080/ -w 5 -n 20 --rate 50
"""

from __future__ import annotations

from tempest import LoadRunner, RunConfig


def main() -> None:
    config = RunConfig(
        target="http://localhost:8080/",
        worker_count=5,
        requests_per_worker=20,
        rate_per_second=50.0,
    )
    summary = LoadRunner(config, request_timeout=10.0).run()

    print(f"Success: {summary.total_success}, Failures: {summary.total_failure}")
    for worker in summary.per_worker:
        print(f"  worker {worker.worker_id}: {worker.success_count} ok, {worker.failure_count} failed")


if __name__ == "__main__":
    main()
