"""Main Typer application — entry point for the ``tempest`` CLI."""

from __future__ import annotations

import typer

from tempest import __version__
from tempest.cli.run import run_cmd

app = typer.Typer(
    name="tempest",
    help="Rate-limited concurrent HTTP load generator.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("run", help="Send a fixed volume of requests to a target URL.")(run_cmd)


def _version_callback(value: bool) -> None:
    """Print version and exit.

    Args:
        value: True if --version was passed.
    """
    if value:
        typer.echo(f"tempest {__version__}")
        raise typer.Exit


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """Tempest — rate-limited concurrent HTTP load generator."""
