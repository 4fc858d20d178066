"""
Dashsync CLI - Main application entry point.

This module sets up the Typer CLI application with all subcommands.
"""

import logging

import typer
from rich.console import Console

from dashsync import __version__
from dashsync.cli import sync
from dashsync.core.config.env import load_layered_env

app = typer.Typer(
    name="dashsync",
    help="Keep a local copy of DHIS2 dashboards in sync with the server",
    no_args_is_help=True,
    context_settings={"help_option_names": ["--help", "-h"]},
)

console = Console()


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"dashsync {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    ctx: typer.Context,
    debug: bool = typer.Option(
        False,
        "--debug",
        help="Enable debug output with detailed logging",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit",
    ),
) -> None:
    """
    Dashsync - DHIS2 dashboard synchronization.

    Pulls dashboards, dashboard items and their content from a DHIS2 server
    into a local SQLite database. After the first full sync, only entities
    changed since the last successful sync are fetched.

    Examples:
        dashsync sync              # Incremental sync
        dashsync sync --full       # Ignore the watermark, fetch everything
        dashsync status            # Show the watermark and row counts
    """
    # Precedence: OS env > project .env > user .env
    load_layered_env()

    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    ctx.obj = {"debug": debug}


app.command(name="sync")(sync.sync)
app.command(name="status")(sync.status)


def cli_main() -> None:
    """Main CLI entry point."""
    app()


__all__ = ["app", "cli_main"]
