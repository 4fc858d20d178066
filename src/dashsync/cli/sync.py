"""
Sync commands for dashsync.

Runs one sync cycle against the configured server, or reports the state of
the local store.
"""

import asyncio
from typing import Any

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.table import Table

from dashsync.core.config import DashsyncConfig, load_config
from dashsync.core.dashboard.api import DhisClient
from dashsync.core.dashboard.db import SqliteStore, SqliteWatermarkStore
from dashsync.core.dashboard.exceptions import DashsyncError
from dashsync.core.dashboard.models import SyncResult
from dashsync.core.dashboard.sync import SyncOrchestrator, server_clock

console = Console()


def create_client(config: DashsyncConfig) -> DhisClient:
    """
    Build the API client from configuration.

    Raises:
        typer.Exit: If no server URL is configured
    """
    if not config.server.url:
        console.print(
            "[red]Error:[/red] No server URL configured. "
            "Set DASHSYNC_SERVER_URL or server.url in .dashsync.json"
        )
        raise typer.Exit(1)
    return DhisClient(
        config.server.url,
        config.server.username,
        config.server.password,
        timeout=config.server.timeout_seconds,
    )


async def run_sync(
    config: DashsyncConfig, client: DhisClient, *, full: bool = False
) -> tuple[SyncResult, dict[str, Any]]:
    """Run one cycle and return its result with the store statistics."""
    store = SqliteStore(config.storage.db_path)
    watermark_store = SqliteWatermarkStore(config.storage.db_path)
    if full:
        watermark_store.clear()

    async with client:
        orchestrator = SyncOrchestrator(
            client,
            store,
            watermark_store,
            clock=server_clock(config.sync.server_timezone),
            protect_pending=config.sync.protect_pending,
        )
        result = await orchestrator.run()
    return result, orchestrator.get_stats()


def _print_stats(stats: dict[str, Any]) -> None:
    table = Table(title="Local store")
    table.add_column("Table", style="cyan")
    table.add_column("Rows", justify="right")
    for name, count in stats.items():
        if name != "watermark":
            table.add_row(name, str(count))
    console.print(table)
    console.print(f"Last synchronized at: {stats.get('watermark') or '[dim]never[/dim]'}")


def sync(
    ctx: typer.Context,
    full: bool = typer.Option(
        False,
        "--full",
        "-f",
        help="Forget the watermark and fetch everything",
    ),
) -> None:
    """
    Sync dashboards from the server into the local database.

    Fetches dashboards, dashboard items and all content kinds, reconciles
    them with the local copy and applies the result in one transaction.

    Examples:
        dashsync sync             # Incremental sync
        dashsync sync --full      # Full sync
    """
    debug = ctx.obj.get("debug", False) if ctx.obj else False

    try:
        config = load_config()
        client = create_client(config)

        if debug:
            console.print(f"[dim]Server: {client.api_url}[/dim]")
            console.print(f"[dim]Database: {config.storage.db_path}[/dim]")

        console.print("[cyan]Syncing dashboards...[/cyan]")
        result, stats = asyncio.run(run_sync(config, client, full=full))
    except (DashsyncError, ValidationError) as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)

    if not result.success:
        console.print("\n[bold red]✗ Sync failed[/bold red]")
        console.print(f"  Phase: {result.failed_phase}")
        if result.entity_type:
            console.print(f"  Entity type: {result.entity_type}")
        for error in result.errors:
            console.print(f"  • {error}")
        raise typer.Exit(1)

    console.print("\n[bold green]✓ Sync successful[/bold green]")
    console.print(f"  Entities inserted: {result.entities_inserted}")
    console.print(f"  Entities updated: {result.entities_updated}")
    console.print(f"  Entities deleted: {result.entities_deleted}")
    console.print(f"  Elements inserted: {result.elements_inserted}")
    console.print(f"  Elements deleted: {result.elements_deleted}")
    console.print(f"  Duration: {result.duration_seconds:.2f}s")

    if debug:
        _print_stats(stats)


def status() -> None:
    """
    Show the watermark and row counts of the local database.

    Examples:
        dashsync status
    """
    config = load_config()
    db_path = config.storage.db_path
    if not db_path.exists():
        console.print(f"[yellow]No database at {db_path}. Run 'dashsync sync' first.[/yellow]")
        raise typer.Exit(1)

    stats: dict[str, Any] = dict(SqliteStore(db_path).count_rows())
    watermark = SqliteWatermarkStore(db_path).read()
    stats["watermark"] = watermark.isoformat() if watermark else None
    _print_stats(stats)
