"""``tempest run`` — execute a load run with a Rich summary."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tempest._internal.config import RunConfig, load_config
from tempest._internal.errors import TempestError
from tempest.engine.runner import LoadRunner

if TYPE_CHECKING:
    from tempest.metrics.collector import CollectorSnapshot
    from tempest.metrics.models import RunSummary

console = Console(stderr=True)

# Above this many workers the per-worker table is omitted.
_MAX_WORKER_ROWS = 32


# ---------------------------------------------------------------------------
# Summary rendering
# ---------------------------------------------------------------------------


def _print_summary(summary: RunSummary, snapshot: CollectorSnapshot) -> None:
    """Print the final summary tables after the run completes.

    Args:
        summary: Aggregate run summary.
        snapshot: Final collector snapshot (latencies and error kinds).
    """
    table = Table(
        title="Run Cancelled" if summary.cancelled else "Run Complete",
        show_header=True,
        header_style="bold green",
        expand=True,
    )
    table.add_column("Metric", style="bold")
    table.add_column("Value", justify="right")

    table.add_row("Duration", f"{summary.duration_seconds:.1f}s")
    table.add_row("Total Requests", str(summary.total_requests))
    table.add_row("Successes", str(summary.total_success))
    table.add_row("Failures", str(summary.total_failure))
    table.add_row("Error Rate", f"{summary.error_rate * 100:.2f}%")
    table.add_row("Attempts", str(snapshot.total_attempts))
    table.add_row("p50 Latency", f"{snapshot.latency_p50:.1f}ms")
    table.add_row("p95 Latency", f"{snapshot.latency_p95:.1f}ms")
    table.add_row("p99 Latency", f"{snapshot.latency_p99:.1f}ms")

    if snapshot.errors_by_kind:
        err_table = Table(
            title="Failures by Kind",
            show_header=True,
            header_style="bold red",
            expand=True,
        )
        err_table.add_column("Kind")
        err_table.add_column("Count", justify="right")
        for kind, count in sorted(snapshot.errors_by_kind.items()):
            err_table.add_row(kind, str(count))
        console.print(err_table)

    if 0 < len(summary.per_worker) <= _MAX_WORKER_ROWS:
        worker_table = Table(
            title="Per-Worker Breakdown",
            show_header=True,
            header_style="bold cyan",
            expand=True,
        )
        worker_table.add_column("Worker")
        worker_table.add_column("Success", justify="right")
        worker_table.add_column("Failures", justify="right")
        worker_table.add_column("Cancelled", justify="right")
        for ws in summary.per_worker:
            worker_table.add_row(
                str(ws.worker_id),
                str(ws.success_count),
                str(ws.failure_count),
                "yes" if ws.cancelled else "",
            )
        console.print(worker_table)

    console.print(table)


# ---------------------------------------------------------------------------
# Command
# ---------------------------------------------------------------------------


def run_cmd(
    target: str = typer.Option(
        ...,
        "--target",
        "-t",
        prompt="Enter target URL (e.g., https://target.example.com)",
        help="Target URL every request is sent to.",
    ),
    workers: int = typer.Option(
        ...,
        "--workers",
        "-w",
        prompt="Enter the number of workers (e.g., 64)",
        help="Number of concurrent workers.",
    ),
    requests: int = typer.Option(
        ...,
        "--requests",
        "-n",
        prompt="Enter the number of requests per worker (e.g., 10000)",
        help="Requests issued by each worker.",
    ),
    rate: float | None = typer.Option(
        None,
        "--rate",
        "-r",
        help="Global rate limit in requests/second (default: TEMPEST_RATE or 20).",
    ),
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        help="Per-request timeout in seconds (default: TEMPEST_TIMEOUT or 30).",
    ),
    verify_tls: bool | None = typer.Option(
        None,
        "--verify-tls/--insecure",
        help="Verify TLS certificates (default: TEMPEST_VERIFY_TLS or off).",
    ),
    diagnostics: bool = typer.Option(
        False,
        "--diagnostics",
        help="Serve live run stats on localhost while the run is active.",
    ),
    diagnostics_port: int | None = typer.Option(
        None,
        "--diagnostics-port",
        help="Port for the diagnostics server (default: TEMPEST_DIAGNOSTICS_PORT or 6060).",
    ),
    fail_on_error_rate: float | None = typer.Option(
        None,
        "--fail-on-error-rate",
        help="Exit non-zero if error rate exceeds this threshold (e.g., 0.05).",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Emit structured one-line JSON logs.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) logging.",
    ),
) -> None:
    """Send a fixed volume of rate-limited requests to a single target."""
    try:
        defaults = load_config()
    except TempestError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    config = RunConfig(
        target=target.strip(),
        worker_count=workers,
        requests_per_worker=requests,
        rate_per_second=rate if rate is not None else defaults.default_rate,
    )
    try:
        config.validate()
    except TempestError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    log_level = logging.DEBUG if verbose else logging.INFO
    port = diagnostics_port if diagnostics_port is not None else defaults.diagnostics_port

    console.print(
        Panel(
            f"[bold]Target:[/bold]   {config.target}\n"
            f"[bold]Workers:[/bold]  {config.worker_count}\n"
            f"[bold]Requests:[/bold] {config.requests_per_worker} per worker "
            f"({config.planned_requests} total)\n"
            f"[bold]Rate:[/bold]     {config.rate_per_second:g}/s",
            title="Tempest",
            border_style="cyan",
        )
    )

    try:
        load_runner = LoadRunner(
            config,
            request_timeout=timeout if timeout is not None else defaults.request_timeout,
            verify_tls=verify_tls if verify_tls is not None else defaults.verify_tls,
            diagnostics_port=port if diagnostics else None,
            log_level=log_level,
            json_logs=json_logs,
        )
    except ValueError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    try:
        summary = load_runner.run()
    except TempestError as exc:
        console.print(f"[red]Run failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    _print_summary(summary, load_runner.collector.snapshot())

    if fail_on_error_rate is not None and summary.error_rate > fail_on_error_rate:
        console.print(
            f"[red]FAIL:[/red] Error rate {summary.error_rate * 100:.2f}% "
            f"exceeds threshold {fail_on_error_rate * 100:.2f}%"
        )
        raise typer.Exit(code=1)

    if summary.cancelled:
        console.print("[yellow]Run cancelled before completion.[/yellow]")
        raise typer.Exit(code=130)

    console.print("[green]Run completed.[/green]")
